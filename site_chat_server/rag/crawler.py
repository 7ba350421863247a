"""Same-origin web crawler.

Breadth-first crawl from a seed URL that stays inside the seed's origin,
strips boilerplate elements and returns the visible text of every page
as one corpus.

Links are resolved against the URL each page was served from (and its
`<base href>`), not against the seed origin, so relative links on nested
pages reach the pages they point to. Links are collected before
boilerplate is removed, so navigation menus still feed the frontier.
"""

import logging
import sys
from collections import deque
from urllib.parse import urldefrag, urljoin, urlparse

import requests
from bs4 import BeautifulSoup
from tqdm import tqdm

from ..errors import NetworkError
from .config import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

# Elements that never carry page content
_BOILERPLATE_TAGS = ["script", "style", "nav", "footer", "header", "noscript"]

_HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


def url_origin(url: str) -> str:
    """Return the scheme://host[:port] origin of a URL."""
    parsed = urlparse(url)
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


def normalize_url(url: str) -> str:
    """Normalize a URL for the visited set.

    Discards the fragment and spells an empty path as "/", so that
    https://example.com and https://example.com/#top are one page.
    """
    url = urldefrag(url)[0]
    parsed = urlparse(url)
    if not parsed.path:
        url = parsed._replace(path="/").geturl()
    return url


def extract_text(soup: BeautifulSoup) -> str:
    """Extract visible text from a parsed page with whitespace runs collapsed.

    Boilerplate elements are removed from soup in place.

    Args:
        soup: Parsed HTML document

    Returns:
        Page text on a single line, or "" when the page has no visible text
    """
    for element in soup(_BOILERPLATE_TAGS):
        element.decompose()

    root = soup.body or soup
    return " ".join(root.get_text(separator=" ").split())


def extract_links(soup: BeautifulSoup, page_url: str, origin: str) -> list[str]:
    """Extract same-origin links from a parsed page.

    Args:
        soup: Parsed HTML document
        page_url: URL the page was served from, used to resolve relative links
        origin: Origin links must match to be kept

    Returns:
        Normalized absolute URLs in document order
    """
    base = soup.find("base", href=True)
    base_url = urljoin(page_url, base["href"]) if base else page_url

    links = []
    for link in soup.find_all("a", href=True):
        href = link["href"].strip()
        if not href:
            continue
        try:
            absolute = normalize_url(urljoin(base_url, href))
        except ValueError:
            # Malformed hrefs (e.g. bad IPv6 literals) are ignored
            continue
        if url_origin(absolute) == origin:
            links.append(absolute)
    return links


class SiteCrawler:
    """Breadth-first crawler restricted to the seed URL's origin."""

    def __init__(
        self,
        request_timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        show_progress: bool = False,
        session: requests.Session | None = None,
    ):
        """Initialize the crawler.

        Args:
            request_timeout: HTTP request timeout per page in seconds
            user_agent: User agent string for requests
            show_progress: Show a progress bar while crawling
            session: Optional requests session (a plain requests.get is used when omitted)
        """
        self.request_timeout = request_timeout
        self.user_agent = user_agent
        self.show_progress = show_progress
        self.session = session

    def crawl(self, seed_url: str, max_pages: int = 50) -> str:
        """Crawl a site and return the text of every page reached.

        Pages that fail to load are logged and skipped; they never abort the crawl.

        Args:
            seed_url: URL to start crawling from
            max_pages: Maximum number of distinct URLs to visit

        Returns:
            Page texts separated by blank lines, or "" if no page produced text
        """
        origin = url_origin(seed_url)
        frontier: deque[str] = deque([normalize_url(seed_url)])
        visited: set[str] = set()
        texts: list[str] = []
        failed = 0

        logger.info(f"[CRAWLER] Starting crawl of {origin} (max pages: {max_pages})")

        pbar = tqdm(
            desc="Crawling pages",
            unit="page",
            total=max_pages,
            disable=not self.show_progress,
            file=sys.stderr,
        )

        while frontier and len(visited) < max_pages:
            current_url = frontier.popleft()

            # The same URL can be queued more than once before it is visited
            if current_url in visited:
                continue
            visited.add(current_url)

            logger.debug(f"[CRAWLER] Fetching {current_url} (visited: {len(visited)}/{max_pages}, queue: {len(frontier)})")
            pbar.update(1)

            try:
                final_url, html = self.fetch_page(current_url, origin)
            except NetworkError as e:
                failed += 1
                logger.warning(f"[CRAWLER] Error fetching {current_url}: {e}")
                continue

            soup = BeautifulSoup(html, "html.parser")
            # Links first: extract_text strips nav and header elements from soup
            links = extract_links(soup, final_url, origin)
            page_text = extract_text(soup)
            if page_text:
                texts.append(page_text + "\n\n")

            for link in links:
                if link not in visited:
                    frontier.append(link)

            pbar.set_postfix_str(f"queue={len(frontier)}, failed={failed}", refresh=False)

        pbar.close()

        if len(visited) >= max_pages:
            logger.info(f"[CRAWLER] Reached max page limit of {max_pages}")
        logger.info(
            f"[CRAWLER] Crawl complete: {len(visited)} pages visited, "
            f"{len(texts)} with text, {failed} failed"
        )
        return "".join(texts)

    def fetch_page(self, url: str, origin: str) -> tuple[str, str]:
        """Fetch a single HTML page.

        Args:
            url: URL to fetch
            origin: Origin the response must stay within after redirects

        Returns:
            Tuple of (final_url, html_content)

        Raises:
            NetworkError: If the request fails, times out, returns an error status,
                redirects off-origin or is not HTML
        """
        getter = self.session.get if self.session is not None else requests.get
        try:
            response = getter(url, headers={"User-Agent": self.user_agent}, timeout=self.request_timeout)
            response.raise_for_status()
        except requests.Timeout as e:
            raise NetworkError(f"timed out after {self.request_timeout}s") from e
        except requests.RequestException as e:
            raise NetworkError(str(e)) from e

        final_url = response.url or url
        if url_origin(final_url) != origin:
            raise NetworkError(f"redirected off-site to {final_url}")

        content_type = response.headers.get("content-type", "")
        if not any(ct in content_type.lower() for ct in _HTML_CONTENT_TYPES):
            raise NetworkError(f"non-HTML content ({content_type or 'unknown content type'})")

        return final_url, response.text
