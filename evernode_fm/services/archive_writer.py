"""Streaming ZIP creation for multi-file downloads.

The archive is produced incrementally: each file is read in fixed-size
chunks and every compressed chunk is handed to the caller as soon as the
zip writer emits it, so memory use does not grow with the archive size.

All inputs are checked and directory trees are enumerated before the first
byte is produced. Once streaming has started any I/O error aborts the
whole archive with ``TransferFailed``; the partial output is corrupt.
"""

from __future__ import annotations

import os
import stat
import zipfile
from typing import IO, Iterator, List, Sequence, Set

from .catalog import ArchiveEntry, KIND_DIRECTORY, KIND_FILE
from .errors import NotFound, TransferFailed
from .logging_setup import core_log


CHUNK_SIZE = 64 * 1024


class _ChunkSink:
    """Write-only file object collecting zip output between yields.

    It has no ``tell``/``seek``, so ZipFile writes data descriptors instead
    of seeking back to patch local headers.
    """

    def __init__(self) -> None:
        self._chunks: List[bytes] = []

    def write(self, data) -> int:
        if data:
            self._chunks.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def _raise(err: OSError) -> None:
    raise err


def _unique_name(base: str, used: Set[str]) -> str:
    if base not in used:
        used.add(base)
        return base
    stem, ext = os.path.splitext(base)
    n = 2
    while f"{stem}_{n}{ext}" in used:
        n += 1
    name = f"{stem}_{n}{ext}"
    used.add(name)
    return name


class ArchiveWriter:

    def __init__(self, chunk_size: int = CHUNK_SIZE) -> None:
        self.chunk_size = int(chunk_size)

    def plan(self, paths: Sequence[str]) -> List[ArchiveEntry]:
        """Enumerate the archive members for ``paths`` without reading file data.

        A file contributes one entry named by its base name. A directory
        contributes one entry per contained regular file, named relative to
        the directory's parent; empty directories are kept as ``name/``.
        Symlinks inside directory trees are skipped.
        """
        entries: List[ArchiveEntry] = []
        used: Set[str] = set()
        for p in paths:
            try:
                st = os.stat(p)
            except FileNotFoundError:
                raise NotFound("path does not exist", path=os.path.basename(p)) from None
            except OSError as e:
                raise TransferFailed(str(e), path=os.path.basename(p)) from e

            top = _unique_name(os.path.basename(os.path.normpath(p)) or "item", used)
            if not stat.S_ISDIR(st.st_mode):
                entries.append(ArchiveEntry(top, KIND_FILE, int(st.st_size), p))
                continue
            try:
                entries.extend(self._plan_tree(p, top))
            except OSError as e:
                raise TransferFailed(str(e), path=top) from e
        return entries

    def _plan_tree(self, src_dir: str, top: str) -> Iterator[ArchiveEntry]:
        for dirpath, dirnames, filenames in os.walk(src_dir, topdown=True, onerror=_raise, followlinks=False):
            dirnames[:] = sorted(d for d in dirnames if not os.path.islink(os.path.join(dirpath, d)))

            rel_dir = os.path.relpath(dirpath, src_dir)
            prefix = top if rel_dir == "." else top + "/" + rel_dir.replace(os.sep, "/")

            files = []
            for fn in sorted(filenames):
                fp = os.path.join(dirpath, fn)
                st = os.lstat(fp)
                if stat.S_ISREG(st.st_mode):
                    files.append((fn, fp, int(st.st_size)))

            if not files and not dirnames:
                yield ArchiveEntry(prefix + "/", KIND_DIRECTORY, 0, dirpath)
            for fn, fp, size in files:
                yield ArchiveEntry(f"{prefix}/{fn}", KIND_FILE, size, fp)

    def iter_archive(self, paths: Sequence[str]) -> Iterator[bytes]:
        """Plan eagerly, then return a generator of zip bytes.

        Planning errors (``NotFound``) surface here, before any output.
        """
        entries = self.plan(paths)
        return self._stream(entries)

    def write_archive(self, paths: Sequence[str], output: IO[bytes]) -> List[ArchiveEntry]:
        entries = self.plan(paths)
        try:
            for chunk in self._stream(entries):
                output.write(chunk)
        except OSError as e:
            raise TransferFailed("archive output failed") from e
        return entries

    def _stream(self, entries: List[ArchiveEntry]) -> Iterator[bytes]:
        sink = _ChunkSink()
        current = ""
        try:
            with zipfile.ZipFile(sink, "w", compression=zipfile.ZIP_DEFLATED, allowZip64=True) as zf:
                for ent in entries:
                    current = ent.name
                    if ent.is_dir:
                        zf.writestr(ent.name, b"")
                        continue
                    yield from self._stream_file(zf, sink, ent)
            tail = sink.drain()
            if tail:
                yield tail
        except (OSError, RuntimeError, zipfile.LargeZipFile) as e:
            core_log("error", "archive.write failed", entry=current, error=str(e))
            raise TransferFailed(f"failed to archive {current}", path=current) from e
        core_log("info", "archive.write", entries=len(entries))

    def _stream_file(self, zf: zipfile.ZipFile, sink: _ChunkSink, ent: ArchiveEntry) -> Iterator[bytes]:
        zinfo = zipfile.ZipInfo.from_file(ent.source, ent.name)
        zinfo.compress_type = zipfile.ZIP_DEFLATED
        with open(ent.source, "rb") as src, zf.open(zinfo, "w") as dst:
            while True:
                chunk = src.read(self.chunk_size)
                if not chunk:
                    break
                dst.write(chunk)
                data = sink.drain()
                if data:
                    yield data
        data = sink.drain()
        if data:
            yield data
