"""Boundary operations of the file manager.

``FileManager`` wires the path resolver, catalog, archive services and the
transfer orchestrator around one immutable configuration. The web layer
only talks to this object and never touches the filesystem itself.
"""

from __future__ import annotations

import os
import uuid
from typing import IO, List, Optional, Sequence, Tuple, Union

from .archive_reader import ArchiveReader
from .archive_writer import ArchiveWriter
from .catalog import Entry, FileCatalog
from .config import FileManagerConfig
from .errors import AlreadyExists, FileTooLarge, IsADirectory, NotFound, ProtectedPath, from_os_error
from .logging_setup import core_log
from .paths import PathResolver, split_segments, validate_name
from .results import BatchResult
from .transfer import DownloadPayload, TransferOrchestrator, UploadResult


class FileManager:

    def __init__(self, config: FileManagerConfig) -> None:
        self.config = config
        self.resolver = PathResolver(config.root)
        self.catalog = FileCatalog()
        self.transfers = TransferOrchestrator(self.resolver, ArchiveWriter(), ArchiveReader(self.resolver))

    def ensure_root(self) -> None:
        os.makedirs(self.resolver.root, exist_ok=True)

    # --- read side ---

    def list_directory(self, relative: str) -> Tuple[str, List[Entry]]:
        """Return the normalized relative path and its sorted entries."""
        ap = self.resolver.resolve(relative)
        return self.resolver.relative_to_root(ap), self.catalog.list(ap)

    def stat(self, relative: str) -> Entry:
        return self.catalog.stat(self.resolver.resolve(relative))

    def read_file(self, relative: str) -> Tuple[IO[bytes], int]:
        """Open a file for streaming. The caller closes the stream."""
        ap = self.resolver.resolve(relative)
        entry = self.catalog.stat(ap)
        if entry.is_dir:
            raise IsADirectory("cannot read a directory", path=self.resolver.sanitize(relative))
        try:
            return open(ap, "rb"), entry.size
        except OSError as e:
            raise from_os_error(e, self.resolver.sanitize(relative)) from e

    def read_text(self, relative: str, max_bytes: int) -> str:
        fp, size = self.read_file(relative)
        with fp:
            if size > max_bytes:
                raise FileTooLarge(f"file too large to edit (max {max_bytes} bytes)")
            return fp.read().decode("utf-8", errors="replace")

    # --- write side ---

    def write_file(self, relative: str, content: Union[bytes, str]) -> str:
        ap = self._resolve_named(relative)
        if os.path.isdir(ap):
            raise IsADirectory("cannot overwrite a directory", path=self.resolver.sanitize(relative))
        data = content.encode("utf-8") if isinstance(content, str) else bytes(content)
        rel = self.resolver.relative_to_root(ap)
        parent = os.path.dirname(ap)
        try:
            os.makedirs(parent, exist_ok=True)
        except OSError as e:
            raise from_os_error(e, rel) from e
        # fixed length so any valid name still fits the filesystem limit
        tmp_path = os.path.join(parent, f".save-{uuid.uuid4().hex}.part")
        try:
            with open(tmp_path, "wb") as out:
                out.write(data)
            os.replace(tmp_path, ap)
        except BaseException as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            if isinstance(e, OSError):
                raise from_os_error(e, rel) from e
            raise
        core_log("info", "fs.write", path=rel, bytes=len(data))
        return rel

    def create_file(self, directory: str, name: str, content: Union[bytes, str] = b"") -> str:
        validate_name(name)
        rel = "/".join(split_segments(directory) + split_segments(name))
        if os.path.lexists(self._resolve_named(rel)):
            raise AlreadyExists("file already exists", path=rel)
        return self.write_file(rel, content)

    def create_directory(self, relative: str) -> str:
        ap = self._resolve_named(relative)
        try:
            os.makedirs(ap, exist_ok=True)
        except OSError as e:
            raise from_os_error(e, self.resolver.sanitize(relative)) from e
        rel = self.resolver.relative_to_root(ap)
        core_log("info", "fs.mkdir", path=rel)
        return rel

    def rename_or_move(self, old_relative: str, new_name: str) -> str:
        validate_name(new_name)
        src = self.resolver.resolve(old_relative)
        if self.resolver.is_root(src):
            raise ProtectedPath("cannot rename the root directory")
        if not os.path.lexists(src):
            raise NotFound("path does not exist", path=self.resolver.sanitize(old_relative))
        dst = self.resolver.resolve_under(os.path.dirname(src), new_name)
        if self.resolver.is_root(dst) or dst == os.path.dirname(src):
            raise ProtectedPath("invalid rename target")
        try:
            os.rename(src, dst)
        except OSError as e:
            raise from_os_error(e, self.resolver.sanitize(old_relative)) from e
        rel = self.resolver.relative_to_root(dst)
        core_log("info", "fs.rename", src=self.resolver.relative_to_root(src), dst=rel)
        return rel

    # --- multi-item ---

    def delete_many(self, relative_paths: Sequence[str]) -> BatchResult:
        return self.transfers.delete_many(relative_paths)

    def purge_all(self) -> BatchResult:
        return self.transfers.purge_all()

    def download(self, relative_paths: Sequence[str]) -> DownloadPayload:
        return self.transfers.download(relative_paths)

    def upload(
        self,
        destination_dir: str,
        stream: IO[bytes],
        original_name: str,
        *,
        extract: bool = False,
        relative_path: Optional[str] = None,
    ) -> UploadResult:
        return self.transfers.store_upload(
            destination_dir,
            stream,
            original_name,
            relative_path=relative_path,
            extract=extract,
            max_bytes=self.config.max_upload_bytes,
        )

    def _resolve_named(self, relative: str) -> str:
        """Resolve a path whose last segment is about to be created."""
        segments = split_segments(relative)
        validate_name(segments[-1] if segments else "")
        return self.resolver.resolve("/".join(segments))
