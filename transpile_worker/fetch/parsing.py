"""Failure message parsing.

Collaborators that cannot raise MissingArtifactError report missing files
only through their message text. These helpers recover the module request from
messages shaped like ``Cannot find module './util' from '/node_modules/x/index.js'``.
"""

from __future__ import annotations

import re

from ..store.paths import dirname
from ..store.paths import join_path

MISSING_MODULE_PATTERN = re.compile(
    r"Cannot find module '(?P<request>[^']+)'(?: from '(?P<importer>[^']+)')?"
)


def is_missing_module_message(message: str) -> bool:
    """True if a failure message reports a missing module."""
    return "Cannot find module" in message


def parse_missing_module(message: str) -> tuple[str, str | None] | None:
    """Extract ``(request, importer)`` from a failure message.

    Returns:
        The module request and the importing file (None when the message does
        not name one), or None if the message has no module reference.
    """
    match = MISSING_MODULE_PATTERN.search(message)
    if not match:
        return None
    return match.group("request"), match.group("importer")


def request_to_path(request: str, importer: str | None, packages_root: str) -> str:
    """Turn a module request into the most specific store path it can mean.

    Relative requests resolve against the importer's directory; absolute ones
    stay as they are; bare package requests land under the packages root.
    """
    if request.startswith(("./", "../")) or request in (".", ".."):
        base = dirname(importer) if importer else "/"
        return join_path(base, request)
    if request.startswith("/"):
        return join_path(request)
    return join_path(packages_root, request)
