"""Multi-item operations built on the resolver, catalog and archive services.

Failure policy differs per operation:

- delete_many / purge_all are best-effort: every item is attempted, failures
  are collected into a BatchResult next to the success count.
- download is all-or-nothing: the archive is one coherent snapshot.
- store_upload extracts archives best-effort per entry and only removes the
  uploaded archive when every entry extracted.
"""

from __future__ import annotations

import mimetypes
import os
import shutil
import stat
import uuid
from dataclasses import dataclass
from typing import IO, Any, Dict, Iterator, Optional, Sequence

from .archive_reader import ArchiveReader, ExtractionReport
from .archive_writer import ArchiveWriter, CHUNK_SIZE
from .errors import FileManagerError, IsADirectory, NotFound, ProtectedPath, UploadTooLarge, from_os_error
from .logging_setup import core_log
from .paths import PathResolver, split_segments, validate_name
from .results import BatchResult, ItemError


ARCHIVE_EXTENSION = ".zip"
ARCHIVE_CONTENT_TYPE = "application/zip"
ARCHIVE_DOWNLOAD_NAME = "download.zip"


@dataclass
class DownloadPayload:
    """What to send back for a download request.

    Either ``path`` (one regular file, sent as-is) or ``chunks`` (a zip stream).
    """

    filename: str
    content_type: str
    path: Optional[str] = None
    size: Optional[int] = None
    chunks: Optional[Iterator[bytes]] = None

    @property
    def is_archive(self) -> bool:
        return self.chunks is not None


@dataclass
class UploadResult:
    stored_name: str
    size: int
    path: str
    extracted: Optional[ExtractionReport] = None
    extract_error: Optional[ItemError] = None
    archive_removed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.stored_name, "size": self.size, "path": self.path}
        if self.extracted is not None:
            payload["extracted"] = self.extracted.to_dict()
            payload["archiveRemoved"] = self.archive_removed
        if self.extract_error is not None:
            payload["extractError"] = self.extract_error.to_dict()
        return payload


class TransferOrchestrator:

    def __init__(self, resolver: PathResolver, writer: ArchiveWriter, reader: ArchiveReader) -> None:
        self.resolver = resolver
        self.writer = writer
        self.reader = reader

    # --- delete ---

    def delete_many(self, relative_paths: Sequence[str]) -> BatchResult:
        result = BatchResult()
        for rel in relative_paths:
            label = str(rel or "")
            try:
                self._delete_resolved(self.resolver.resolve(label), label)
                result.deleted_count += 1
            except (FileManagerError, OSError) as e:
                result.errors.append(ItemError.from_exception(label, e))
        core_log("info", "fs.delete", requested=len(relative_paths), deleted=result.deleted_count, errors=len(result.errors))
        return result

    def purge_all(self) -> BatchResult:
        root = self.resolver.root
        core_log("warning", "fs.purge started", root=root)
        result = BatchResult()
        for name in sorted(os.listdir(root)):
            try:
                self._delete_resolved(os.path.join(root, name), name)
                result.deleted_count += 1
            except (FileManagerError, OSError) as e:
                result.errors.append(ItemError.from_exception(name, e))
        level = "warning" if result.errors else "info"
        core_log(level, "fs.purge finished", deleted=result.deleted_count, errors=len(result.errors))
        return result

    def _delete_resolved(self, ap: str, label: str) -> None:
        if self.resolver.is_root(ap):
            raise ProtectedPath("refusing to delete the root directory", path=label)
        try:
            st = os.lstat(ap)
        except FileNotFoundError:
            raise NotFound("path does not exist", path=label) from None
        # symlinks are removed themselves, never followed
        if stat.S_ISDIR(st.st_mode):
            shutil.rmtree(ap)
        else:
            os.unlink(ap)

    # --- download ---

    def download(self, relative_paths: Sequence[str]) -> DownloadPayload:
        if not relative_paths:
            raise NotFound("no paths requested")
        resolved = [self.resolver.resolve(str(rel or "")) for rel in relative_paths]

        if len(resolved) == 1 and os.path.isfile(resolved[0]):
            path = resolved[0]
            name = os.path.basename(path)
            ctype = mimetypes.guess_type(name)[0] or "application/octet-stream"
            core_log("info", "fs.download", path=self.resolver.relative_to_root(path), archive=False)
            return DownloadPayload(filename=name, content_type=ctype, path=path, size=os.path.getsize(path))

        chunks = self.writer.iter_archive(resolved)
        core_log("info", "fs.download", items=len(resolved), archive=True)
        return DownloadPayload(filename=ARCHIVE_DOWNLOAD_NAME, content_type=ARCHIVE_CONTENT_TYPE, chunks=chunks)

    # --- upload ---

    def store_upload(
        self,
        destination_dir: str,
        stream: IO[bytes],
        original_name: str,
        *,
        relative_path: Optional[str] = None,
        extract: bool = False,
        max_bytes: Optional[int] = None,
    ) -> UploadResult:
        """Store one uploaded file below ``destination_dir``.

        ``relative_path`` keeps folder structure for directory uploads; without
        it only the last segment of ``original_name`` is used.
        """
        dest_dir = self.resolver.resolve(destination_dir)
        if relative_path:
            segments = split_segments(relative_path)
        else:
            segments = split_segments(original_name)[-1:]
        if not segments:
            validate_name("")
        for seg in segments:
            validate_name(seg)

        target = self.resolver.resolve_under(dest_dir, "/".join(segments))
        rel = self.resolver.relative_to_root(target)
        parent = os.path.dirname(target)
        try:
            os.makedirs(parent, exist_ok=True)
        except OSError as e:
            raise from_os_error(e, rel) from e
        if os.path.isdir(target):
            raise IsADirectory("a directory with this name exists", path=segments[-1])

        tmp_path = os.path.join(parent, f".upload-{uuid.uuid4().hex}.part")
        total = 0
        try:
            with open(tmp_path, "wb") as out:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    total += len(chunk)
                    if max_bytes is not None and total > max_bytes:
                        raise UploadTooLarge(f"upload exceeds {max_bytes} bytes", path=segments[-1])
                    out.write(chunk)
            os.replace(tmp_path, target)
        except BaseException as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            if isinstance(e, OSError):
                raise from_os_error(e, rel) from e
            raise

        result = UploadResult(stored_name=segments[-1], size=total, path=rel)
        core_log("info", "fs.upload", path=result.path, bytes=total, extract=bool(extract))
        if extract and target.lower().endswith(ARCHIVE_EXTENSION):
            self._extract_upload(target, result)
        return result

    def _extract_upload(self, archive_path: str, result: UploadResult) -> None:
        try:
            report = self.reader.extract_archive(archive_path, os.path.dirname(archive_path))
        except FileManagerError as e:
            result.extract_error = ItemError.from_exception(result.path, e)
            core_log("warning", "fs.upload extract failed", path=result.path, error=e.code)
            return
        result.extracted = report
        if report.ok:
            os.remove(archive_path)
            result.archive_removed = True
        else:
            core_log("warning", "fs.upload extract partial", path=result.path, errors=len(report.errors))
