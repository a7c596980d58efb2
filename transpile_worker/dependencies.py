"""Dependency extraction and error excerpts for transform results."""

from __future__ import annotations

import re
from typing import Any

from .models import DependencyRecord

LINE_COLUMN_PATTERN = re.compile(r"\((\d+):(\d+)\)")


def get_dependencies(metadata: dict[str, Any]) -> list[DependencyRecord]:
    """Dependencies reported by the detective plugin.

    ``metadata["dependencies"]["strings"]`` lists static requests (direct);
    ``metadata["dependencies"]["dynamic"]`` lists requests produced by macros
    or equivalent code generation. Duplicates keep their first occurrence.
    """
    found = metadata.get("dependencies") or {}
    records: list[DependencyRecord] = []
    seen: set[tuple[str, str]] = set()

    for dep_type, key in (("direct", "strings"), ("dynamic", "dynamic")):
        for path in found.get(key) or []:
            if (path, dep_type) in seen:
                continue
            seen.add((path, dep_type))
            records.append(DependencyRecord(path=path, type=dep_type))

    return records


def code_frame(source: str, line: int, column: int, context_lines: int = 2) -> str:
    """Render the lines around ``line`` with a caret under ``column``.

    Lines are 1-based, columns 0-based, matching engine error positions.
    """
    lines = source.splitlines()
    if not lines:
        return ""
    line = min(max(line, 1), len(lines))
    start = max(line - context_lines, 1)
    end = min(line + context_lines, len(lines))
    width = len(str(end))

    frame = []
    for number in range(start, end + 1):
        marker = ">" if number == line else " "
        frame.append(f"{marker} {number:>{width}} | {lines[number - 1]}".rstrip())
        if number == line:
            frame.append(f"  {' ' * width} | {' ' * max(column, 0)}^")
    return "\n".join(frame)


def with_code_frame(message: str, source: str) -> str:
    """Append a code frame when the message carries a ``(line:column)`` position."""
    match = LINE_COLUMN_PATTERN.search(message)
    if not match:
        return message
    line, column = int(match.group(1)), int(match.group(2))
    return f"{message}\n\n{code_frame(source, line, column)}"
