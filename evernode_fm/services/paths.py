"""Sandboxed path resolution.

User-supplied paths are never trusted. They are split into segments on both
``/`` and ``\\``; empty, ``.`` and ``..`` segments are dropped (not rejected)
and the rest is joined onto the root. A ``..`` therefore never reaches the
filesystem, whatever its position in the input:

    resolve("a/../../b")        -> <root>/a/b
    resolve("../../etc/passwd") -> <root>/etc/passwd

After the join a lexical ``commonpath`` check runs as a second line of
defense. Symlinks inside the root are not resolved here.
"""

from __future__ import annotations

import os
import re
from typing import List

from .errors import InvalidName, SandboxViolation


MAX_NAME_BYTES = 254

_SEPARATORS = re.compile(r"[/\\]+")
_INVALID_NAME_CHARS = re.compile(r'[<>:"|?*\x00-\x1f]')
_DROPPED_SEGMENTS = ("", ".", "..")


def split_segments(relative: str) -> List[str]:
    """Return the surviving segments of ``relative`` in their original order."""
    s = str(relative or "").replace("\x00", "")
    if os.sep not in ("/", "\\"):
        s = s.replace(os.sep, "/")
    return [seg for seg in _SEPARATORS.split(s) if seg not in _DROPPED_SEGMENTS]


def validate_name(name: str) -> str:
    """Check a file or directory name used for create/rename operations."""
    n = "" if name is None else str(name)
    if not n:
        raise InvalidName("name must not be empty")
    if len(n.encode("utf-8", errors="surrogatepass")) > MAX_NAME_BYTES:
        raise InvalidName(f"name longer than {MAX_NAME_BYTES} bytes")
    if _INVALID_NAME_CHARS.search(n):
        raise InvalidName("name contains forbidden characters")
    return n


class PathResolver:
    """Maps relative paths onto a fixed root directory."""

    def __init__(self, root: str) -> None:
        self._root = os.path.realpath(os.path.abspath(root))

    @property
    def root(self) -> str:
        return self._root

    def sanitize(self, relative: str) -> str:
        return "/".join(split_segments(relative))

    def resolve(self, relative: str) -> str:
        return self.resolve_under(self._root, relative)

    def resolve_under(self, base: str, relative: str) -> str:
        """Resolve ``relative`` below an already resolved directory ``base``."""
        self._check_contained(base)
        segments = split_segments(relative)
        resolved = os.path.join(base, *segments) if segments else base
        self._check_contained(resolved)
        return resolved

    def relative_to_root(self, resolved: str) -> str:
        self._check_contained(resolved)
        rel = os.path.relpath(resolved, self._root)
        return "" if rel == "." else rel.replace(os.sep, "/")

    def is_root(self, resolved: str) -> bool:
        return os.path.normpath(resolved) == self._root

    def _check_contained(self, path: str) -> None:
        try:
            inside = os.path.commonpath([os.path.abspath(path), self._root]) == self._root
        except ValueError:
            inside = False
        if not inside:
            raise SandboxViolation("path escapes the sandbox root")
