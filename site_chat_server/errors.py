"""Exception hierarchy for Site Chat Server."""


class SiteChatError(Exception):
    """Base class for all errors raised by Site Chat Server.

    The message is meant to be shown to the caller as-is.
    """


class InvalidInputError(SiteChatError):
    """A URL or question was missing or malformed."""


class EmptyContentError(SiteChatError):
    """Crawling a site produced no usable text."""


class ConfigurationError(SiteChatError):
    """A required credential or provider is not configured."""


class NotReadyError(SiteChatError):
    """A chat message was sent before a site was prepared."""


class NetworkError(SiteChatError):
    """A single page could not be fetched. Handled inside the crawler."""


class RerankParseError(SiteChatError):
    """The reranking model returned something other than a score mapping."""


class UpstreamProviderError(SiteChatError):
    """An embedding, completion or blob storage call failed."""
