"""HTTP downloader for packages served by an unpkg-style CDN."""

from __future__ import annotations

import asyncio
import json
import logging
import posixpath
from typing import Any
from urllib.error import HTTPError
from urllib.error import URLError
from urllib.request import urlopen

from ..exceptions import FetchError
from ..resolution.naming import get_dependency_name
from ..store.paths import join_path
from ..store.paths import normalize_path

logger = logging.getLogger(__name__)


class HttpPackageDownloader:
    """Download package files from ``{cdn_url}/{package}/{file}``.

    Store paths under the packages root map one-to-one onto CDN paths. A
    request for a package directory downloads ``package.json`` and the entry
    file named by its ``main`` field. A request without an extension also
    tries each configured extension.
    """

    def __init__(
        self,
        cdn_url: str = "https://unpkg.com",
        packages_root: str = "/node_modules",
        timeout: float = 60.0,
        extensions: tuple[str, ...] = (".js", ".py", ".json"),
    ) -> None:
        self.cdn_url = cdn_url.rstrip("/")
        self.packages_root = normalize_path(packages_root)
        self.timeout = timeout
        self.extensions = extensions

    async def download(self, path: str, context_id: Any = None) -> dict[str, bytes]:
        path = normalize_path(path)
        prefix = self.packages_root.rstrip("/") + "/"
        if not path.startswith(prefix):
            raise FetchError(path, f"not under {self.packages_root}")
        relative = path[len(prefix) :]

        # The CDN redirects a bare package URL to its main file, so package
        # roots are read through package.json
        if get_dependency_name(relative) == relative:
            files = await self._download_directory(relative)
            if files:
                return files

        candidates = [relative]
        if not posixpath.splitext(relative)[1]:
            candidates.extend(relative + ext for ext in self.extensions)

        for candidate in candidates:
            content = await self._get(candidate)
            if content is not None:
                return {join_path(self.packages_root, candidate): content}

        if get_dependency_name(relative) != relative:
            # Not a file - try it as a directory
            files = await self._download_directory(relative)
            if files:
                return files

        raise FetchError(path, "not found on CDN")

    async def _download_directory(self, relative: str) -> dict[str, bytes]:
        metadata = await self._get(f"{relative}/package.json")
        if metadata is None:
            index = await self._first_existing([f"{relative}/index{ext}" for ext in self.extensions])
            return dict([index]) if index else {}

        files = {join_path(self.packages_root, relative, "package.json"): metadata}
        try:
            main = json.loads(metadata).get("main") or "index"
        except (json.JSONDecodeError, AttributeError):
            main = "index"

        entry = posixpath.normpath(posixpath.join(relative, main))
        entry_candidates = [entry]
        if not posixpath.splitext(entry)[1]:
            entry_candidates.extend(entry + ext for ext in self.extensions)
            entry_candidates.extend(f"{entry}/index{ext}" for ext in self.extensions)

        found = await self._first_existing(entry_candidates)
        if found:
            files[found[0]] = found[1]
        return files

    async def _first_existing(self, candidates: list[str]) -> tuple[str, bytes] | None:
        for candidate in candidates:
            content = await self._get(candidate)
            if content is not None:
                return join_path(self.packages_root, candidate), content
        return None

    async def _get(self, relative: str) -> bytes | None:
        """GET one CDN file. Returns None on 404.

        Raises:
            FetchError: On any other HTTP or network failure.
        """
        url = f"{self.cdn_url}/{relative}"
        return await asyncio.to_thread(self._fetch_url, url)

    def _fetch_url(self, url: str) -> bytes | None:
        try:
            with urlopen(url, timeout=self.timeout) as response:  # noqa: S310
                return response.read()
        except HTTPError as e:
            if e.code == 404:
                logger.debug(f"[fetch:http] 404 {url}")
                return None
            raise FetchError(url, f"HTTP {e.code}") from e
        except URLError as e:
            raise FetchError(url, str(e.reason)) from e
