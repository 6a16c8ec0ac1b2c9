"""Best-effort ZIP extraction into the sandbox.

Entry names come from an untrusted archive and go through the same
segment-stripping normalization as request paths, relative to the
destination directory. ``/etc/passwd`` lands at ``<dest>/etc/passwd`` and
``../../x`` at ``<dest>/x``.

Only the central directory is held in memory; entry bytes are copied in
chunks. A failing entry is recorded and skipped, the rest still extract.
"""

from __future__ import annotations

import os
import shutil
import zipfile
import zlib
from dataclasses import dataclass, field
from typing import IO, Any, Dict, List, Optional, Union

from .catalog import ArchiveEntry, KIND_DIRECTORY, KIND_FILE
from .errors import AlreadyExists, FileManagerError, InvalidName, IsADirectory, NotADirectory, TransferFailed
from .logging_setup import core_log
from .paths import PathResolver
from .results import ItemError


CHUNK_SIZE = 64 * 1024


@dataclass
class ExtractionReport:
    entries: List[ArchiveEntry] = field(default_factory=list)
    errors: List[ItemError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "errors": [e.to_dict() for e in self.errors],
        }


class ArchiveReader:

    def __init__(self, resolver: PathResolver, chunk_size: int = CHUNK_SIZE) -> None:
        self.resolver = resolver
        self.chunk_size = int(chunk_size)

    def extract_archive(self, source: Union[str, IO[bytes]], destination: str) -> ExtractionReport:
        """Extract every entry of ``source`` below the resolved ``destination``.

        Raises ``TransferFailed`` only when the archive itself cannot be read.
        """
        if not os.path.isdir(destination):
            raise NotADirectory("extraction destination is not a directory")
        try:
            zf = zipfile.ZipFile(source, "r")
        except (zipfile.BadZipFile, OSError) as e:
            core_log("warning", "archive.extract unreadable", error=str(e))
            raise TransferFailed("not a readable zip archive") from e

        # the archive file itself must never be an extraction target
        archive_path = os.path.realpath(source) if isinstance(source, (str, os.PathLike)) else None
        report = ExtractionReport()
        with zf:
            for info in zf.infolist():
                try:
                    report.entries.append(self._extract_entry(zf, info, destination, archive_path))
                except (FileManagerError, OSError, zipfile.BadZipFile, zlib.error, RuntimeError, EOFError) as e:
                    report.errors.append(ItemError.from_exception(info.filename, e))
        core_log(
            "info",
            "archive.extract",
            dest=self.resolver.relative_to_root(destination) or "/",
            entries=len(report.entries),
            errors=len(report.errors),
        )
        return report

    def _extract_entry(
        self, zf: zipfile.ZipFile, info: zipfile.ZipInfo, destination: str, archive_path: Optional[str] = None
    ) -> ArchiveEntry:
        name = self.resolver.sanitize(info.filename)
        if not name:
            raise InvalidName("entry name is empty after normalization")
        target = self.resolver.resolve_under(destination, name)
        if archive_path is not None and os.path.realpath(target) == archive_path:
            raise AlreadyExists("entry would overwrite the archive being extracted", path=name)

        if info.filename.endswith(("/", "\\")):
            os.makedirs(target, exist_ok=True)
            return ArchiveEntry(name + "/", KIND_DIRECTORY, 0, target)

        os.makedirs(os.path.dirname(target), exist_ok=True)
        if os.path.isdir(target):
            raise IsADirectory("entry would replace a directory", path=name)
        with zf.open(info, "r") as src, open(target, "wb") as dst:
            shutil.copyfileobj(src, dst, self.chunk_size)
        return ArchiveEntry(name, KIND_FILE, int(info.file_size), target)
