"""Directory listings and entry metadata."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass, asdict
from typing import Any, Dict, List

from .errors import NotADirectory, NotFound, from_os_error


KIND_FILE = "file"
KIND_DIRECTORY = "directory"


@dataclass(frozen=True)
class Entry:
    name: str
    kind: str
    size: int
    modified_at: float
    permissions: str = ""

    @property
    def is_dir(self) -> bool:
        return self.kind == KIND_DIRECTORY

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ArchiveEntry:
    """One member of an archive being written or extracted.

    ``name`` is the '/'-separated name inside the archive; ``source`` is the
    filesystem path the bytes come from (writer) or went to (reader).
    """

    name: str
    kind: str
    size: int
    source: str = ""

    @property
    def is_dir(self) -> bool:
        return self.kind == KIND_DIRECTORY

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "kind": self.kind, "size": self.size}


def entry_from_stat(name: str, st: os.stat_result) -> Entry:
    is_dir = stat.S_ISDIR(st.st_mode)
    return Entry(
        name=name,
        kind=KIND_DIRECTORY if is_dir else KIND_FILE,
        size=0 if is_dir else int(st.st_size),
        modified_at=float(st.st_mtime),
        permissions="0" + format(st.st_mode & 0o777, "o"),
    )


def sort_entries(entries: List[Entry]) -> List[Entry]:
    """Directories first, then case-insensitive by name."""
    return sorted(entries, key=lambda e: (not e.is_dir, e.name.casefold(), e.name))


class FileCatalog:

    def list(self, resolved: str) -> List[Entry]:
        try:
            st = os.stat(resolved)
        except FileNotFoundError:
            raise NotFound("directory does not exist") from None
        except OSError as e:
            raise from_os_error(e) from e
        if not stat.S_ISDIR(st.st_mode):
            raise NotADirectory("path is not a directory")

        entries: List[Entry] = []
        try:
            with os.scandir(resolved) as it:
                for de in it:
                    try:
                        entries.append(entry_from_stat(de.name, de.stat()))
                    except FileNotFoundError:
                        # removed while listing, or a dangling symlink
                        continue
        except OSError as e:
            raise from_os_error(e) from e
        return sort_entries(entries)

    def stat(self, resolved: str) -> Entry:
        try:
            st = os.stat(resolved)
        except FileNotFoundError:
            raise NotFound("path does not exist") from None
        except OSError as e:
            raise from_os_error(e) from e
        return entry_from_stat(os.path.basename(resolved), st)
