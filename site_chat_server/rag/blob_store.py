"""Remote blob storage interface used to mirror index cache entries."""

from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class BlobStore(Protocol):
    """Remote storage holding one directory of files per cache key.

    Implementations raise UpstreamProviderError on transport failures.
    """

    def exists(self, key: str) -> bool:
        """Whether a complete entry is stored under key."""
        ...

    def upload(self, local_path: Path, key: str) -> None:
        """Upload every file in the local_path directory under key."""
        ...

    def download(self, key: str, local_path: Path) -> None:
        """Download every file stored under key into the local_path directory."""
        ...
