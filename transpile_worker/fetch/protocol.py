"""Protocol for the download primitive."""

from __future__ import annotations

from typing import Any
from typing import Protocol


class DownloaderProtocol(Protocol):
    """Fetches an artifact from the remote source.

    HttpPackageDownloader talks to a package CDN. Apps running inside a
    controller/worker split implement this by asking the controller instead.
    """

    async def download(self, path: str, context_id: Any) -> dict[str, bytes]:
        """Download the artifact at ``path``.

        A path may name a file or a package directory. For a directory the
        downloader returns whatever files make it loadable (metadata plus
        entry file).

        Args:
            path: Absolute store path (e.g. ``/node_modules/pkg/package.json``).
            context_id: Opaque loader context of the requesting compile.

        Returns:
            Files to place in the store, as ``{store_path: content}``.

        Raises:
            FetchError: If the remote source has no such artifact.
        """
        ...
