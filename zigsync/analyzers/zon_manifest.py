"""Best-effort metadata extraction from `build.zig.zon` manifests.

This is not a ZON parser. It recovers two things with pattern matching and a
brace-depth scan:

* ``minimum_zig_version`` from ``.minimum_zig_version = "X"``
* the entries of the ``.dependencies = .{ ... }`` block, each reduced to a
  name plus ``url``/``hash`` or a local ``path``

Malformed input never raises; whatever could be recovered is returned.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

MIN_VERSION_RE = re.compile(r'\.minimum_zig_version\s*=\s*"([^"]+)"')
DEPENDENCIES_START_RE = re.compile(r"\.dependencies\s*=\s*\.\{")
ENTRY_START_RE = re.compile(r'\.(@"[^"]+"|[A-Za-z0-9_-]+)\s*=\s*\.\{')
URL_RE = re.compile(r'\.url\s*=\s*"([^"]+)"')
HASH_RE = re.compile(r'\.hash\s*=\s*"([^"]+)"')
PATH_RE = re.compile(r'\.path\s*=\s*"([^"]+)"')


@dataclass(slots=True)
class ZonDependency:
    name: str
    url: str
    hash: str | None = None


@dataclass(slots=True)
class ZonMetadata:
    dependencies: list[ZonDependency] = field(default_factory=list)
    minimum_zig_version: str | None = None


def strip_line_comments(text: str) -> str:
    """Drop `//` comments while leaving string literals (and their URLs) intact."""
    out: list[str] = []
    in_string = False
    i = 0
    length = len(text)
    while i < length:
        char = text[i]
        if in_string:
            out.append(char)
            if char == "\\" and i + 1 < length:
                out.append(text[i + 1])
                i += 2
                continue
            if char == '"':
                in_string = False
        elif char == '"':
            in_string = True
            out.append(char)
        elif char == "/" and text.startswith("//", i):
            newline = text.find("\n", i)
            if newline == -1:
                break
            i = newline
            continue
        else:
            out.append(char)
        i += 1
    return "".join(out)


def find_closing_brace(text: str, start: int) -> int:
    """Return the index of the `}` closing a block whose body begins at `start`.

    Depth starts at zero just inside the opening brace; braces inside string
    literals are ignored. Returns -1 when the block never closes.
    """
    depth = 0
    in_string = False
    i = start
    while i < len(text):
        char = text[i]
        if in_string:
            if char == "\\":
                i += 2
                continue
            if char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            if depth == 0:
                return i
            depth -= 1
        i += 1
    return -1


def _entry_name(raw: str) -> str:
    if raw.startswith('@"'):
        return raw[2:-1]
    return raw


def _parse_entries(block: str) -> list[ZonDependency]:
    deps: list[ZonDependency] = []
    pos = 0
    while True:
        match = ENTRY_START_RE.search(block, pos)
        if not match:
            break
        body_start = match.end()
        body_end = find_closing_brace(block, body_start)
        if body_end == -1:
            break
        body = block[body_start:body_end]
        pos = body_end + 1

        url_match = URL_RE.search(body)
        path_match = PATH_RE.search(body)
        name = _entry_name(match.group(1))
        if url_match:
            hash_match = HASH_RE.search(body)
            deps.append(
                ZonDependency(
                    name=name,
                    url=url_match.group(1),
                    hash=hash_match.group(1) if hash_match else None,
                )
            )
        elif path_match:
            deps.append(ZonDependency(name=name, url=path_match.group(1)))
    return deps


def extract_zon_metadata(zon_text: str | None) -> ZonMetadata:
    """Extract dependencies and minimum Zig version from manifest text."""
    metadata = ZonMetadata()
    if not zon_text:
        return metadata

    content = strip_line_comments(zon_text)

    version_match = MIN_VERSION_RE.search(content)
    if version_match:
        metadata.minimum_zig_version = version_match.group(1)

    start_match = DEPENDENCIES_START_RE.search(content)
    if not start_match:
        return metadata
    block_start = start_match.end()
    block_end = find_closing_brace(content, block_start)
    if block_end == -1:
        return metadata

    metadata.dependencies = _parse_entries(content[block_start:block_end])
    return metadata
