"""Remote fetching: downloading artifacts into the store and recovering from failures."""

from .fetcher import RemoteFetcher
from .http import HttpPackageDownloader
from .parsing import is_missing_module_message
from .parsing import parse_missing_module
from .parsing import request_to_path
from .protocol import DownloaderProtocol

__all__ = [
    "DownloaderProtocol",
    "HttpPackageDownloader",
    "RemoteFetcher",
    "is_missing_module_message",
    "parse_missing_module",
    "request_to_path",
]
