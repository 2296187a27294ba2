"""Path helpers shared by the pipeline.

Every path handed around is absolute and POSIX-separated so relative links
written into HTML and the manifest never depend on the host OS.
"""

from __future__ import annotations

import os
import posixpath
from urllib.parse import quote

# Same reserved set as ECMAScript encodeURI.
_URI_SAFE = ";,/?:@&=+$-_.!~*'()#"


def to_posix(p: str | os.PathLike) -> str:
    return os.fspath(p).replace(os.sep, "/") if os.sep != "/" else os.fspath(p)


def normalize(p: str | os.PathLike) -> str:
    return to_posix(os.path.abspath(os.fspath(p)))


def path_equals(a: str | os.PathLike, b: str | os.PathLike) -> bool:
    return normalize(a) == normalize(b)


def path_contains(parent: str | os.PathLike, child: str | os.PathLike) -> bool:
    """True when `child` lies strictly inside `parent`."""
    parent_n = normalize(parent)
    child_n = normalize(child)
    if parent_n == child_n:
        return False
    rel = posixpath.relpath(child_n, parent_n)
    return rel != ".." and not rel.startswith("../")


def relpath(target: str | os.PathLike, start: str | os.PathLike) -> str:
    return posixpath.relpath(normalize(target), normalize(start))


def dirname(p: str | os.PathLike) -> str:
    return posixpath.dirname(normalize(p))


def encode_uri(p: str) -> str:
    return quote(p, safe=_URI_SAFE)
