"""Tests for HttpPackageDownloader."""

import io
from urllib.error import HTTPError
from urllib.error import URLError

import pytest

from transpile_worker.exceptions import FetchError
from transpile_worker.fetch import HttpPackageDownloader


def serve(downloader: HttpPackageDownloader, files: dict[str, bytes]) -> list[str]:
    """Route the downloader's GETs to ``files``; returns the requested URLs."""
    requested: list[str] = []

    def fetch_url(url: str) -> bytes | None:
        requested.append(url)
        return files.get(url)

    downloader._fetch_url = fetch_url
    return requested


class TestHttpPackageDownloader:
    """Tests for CDN path mapping."""

    @pytest.mark.asyncio
    async def test_exact_file(self) -> None:
        """A file path maps onto the same CDN path."""
        downloader = HttpPackageDownloader(cdn_url="https://cdn.test/")
        serve(downloader, {"https://cdn.test/env/package.json": b"{}"})

        files = await downloader.download("/node_modules/env/package.json")

        assert files == {"/node_modules/env/package.json": b"{}"}

    @pytest.mark.asyncio
    async def test_extension_probing(self) -> None:
        """Extensionless requests try each extension."""
        downloader = HttpPackageDownloader(cdn_url="https://cdn.test")
        requested = serve(downloader, {"https://cdn.test/lib/util.py": b"default = 1"})

        files = await downloader.download("/node_modules/lib/util")

        assert files == {"/node_modules/lib/util.py": b"default = 1"}
        assert requested[:3] == [
            "https://cdn.test/lib/util",
            "https://cdn.test/lib/util.js",
            "https://cdn.test/lib/util.py",
        ]

    @pytest.mark.asyncio
    async def test_package_directory(self) -> None:
        """A package directory yields package.json and its main entry."""
        downloader = HttpPackageDownloader(cdn_url="https://cdn.test")
        serve(
            downloader,
            {
                "https://cdn.test/pkg/package.json": b'{"main": "lib/entry"}',
                "https://cdn.test/pkg/lib/entry.js": b"module.exports = 1",
            },
        )

        files = await downloader.download("/node_modules/pkg")

        assert files == {
            "/node_modules/pkg/package.json": b'{"main": "lib/entry"}',
            "/node_modules/pkg/lib/entry.js": b"module.exports = 1",
        }

    @pytest.mark.asyncio
    async def test_package_root_prefers_metadata(self) -> None:
        """A bare package URL that redirects to its main file is not stored as a file."""
        downloader = HttpPackageDownloader(cdn_url="https://cdn.test")
        requested = serve(
            downloader,
            {
                "https://cdn.test/pkg": b"default = require('./lib/x')",
                "https://cdn.test/pkg/package.json": b'{"main": "lib/entry.py"}',
                "https://cdn.test/pkg/lib/entry.py": b"default = require('./lib/x')",
            },
        )

        files = await downloader.download("/node_modules/pkg")

        assert files == {
            "/node_modules/pkg/package.json": b'{"main": "lib/entry.py"}',
            "/node_modules/pkg/lib/entry.py": b"default = require('./lib/x')",
        }
        assert "https://cdn.test/pkg" not in requested

    @pytest.mark.asyncio
    async def test_scoped_package_root(self) -> None:
        """Scoped package roots also go through package.json."""
        downloader = HttpPackageDownloader(cdn_url="https://cdn.test")
        serve(
            downloader,
            {
                "https://cdn.test/@babel/plugin-x/package.json": b'{"main": "lib"}',
                "https://cdn.test/@babel/plugin-x/lib/index.js": b"module.exports = 1",
            },
        )

        files = await downloader.download("/node_modules/@babel/plugin-x")

        assert files == {
            "/node_modules/@babel/plugin-x/package.json": b'{"main": "lib"}',
            "/node_modules/@babel/plugin-x/lib/index.js": b"module.exports = 1",
        }

    @pytest.mark.asyncio
    async def test_directory_without_metadata(self) -> None:
        """Without package.json the index file is used."""
        downloader = HttpPackageDownloader(cdn_url="https://cdn.test")
        serve(downloader, {"https://cdn.test/pkg/index.py": b"default = 1"})

        assert await downloader.download("/node_modules/pkg") == {
            "/node_modules/pkg/index.py": b"default = 1"
        }

    @pytest.mark.asyncio
    async def test_not_found(self) -> None:
        """Nothing on the CDN raises FetchError."""
        downloader = HttpPackageDownloader(cdn_url="https://cdn.test")
        serve(downloader, {})

        with pytest.raises(FetchError, match="not found on CDN"):
            await downloader.download("/node_modules/absent")

    @pytest.mark.asyncio
    async def test_outside_packages_root(self) -> None:
        """Project paths are not on the CDN."""
        downloader = HttpPackageDownloader()
        with pytest.raises(FetchError, match="not under /node_modules"):
            await downloader.download("/src/index.js")


class TestFetchUrl:
    """Tests for HTTP error translation."""

    def test_404_is_none(self, monkeypatch) -> None:
        """A 404 means the file does not exist."""

        def urlopen(url, timeout):
            raise HTTPError(url, 404, "Not Found", {}, io.BytesIO())

        monkeypatch.setattr("transpile_worker.fetch.http.urlopen", urlopen)
        assert HttpPackageDownloader()._fetch_url("https://cdn.test/x") is None

    def test_server_error_raises(self, monkeypatch) -> None:
        """Other HTTP errors become FetchError."""

        def urlopen(url, timeout):
            raise HTTPError(url, 503, "Unavailable", {}, io.BytesIO())

        monkeypatch.setattr("transpile_worker.fetch.http.urlopen", urlopen)
        with pytest.raises(FetchError, match="HTTP 503"):
            HttpPackageDownloader()._fetch_url("https://cdn.test/x")

    def test_network_error_raises(self, monkeypatch) -> None:
        """Network failures become FetchError."""

        def urlopen(url, timeout):
            raise URLError("connection refused")

        monkeypatch.setattr("transpile_worker.fetch.http.urlopen", urlopen)
        with pytest.raises(FetchError, match="connection refused"):
            HttpPackageDownloader()._fetch_url("https://cdn.test/x")
