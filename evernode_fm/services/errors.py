"""Error taxonomy shared by the file manager services.

Each error carries a short snake_case ``code`` and the HTTP status the web
layer answers with, so routes can turn any of them into a JSON error body.
"""

from __future__ import annotations

from typing import Any, Dict


class FileManagerError(Exception):
    code = "error"
    status = 400

    def __init__(self, message: str = "", *, path: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.path = path

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.path is not None:
            payload["path"] = self.path
        return payload


class NotFound(FileManagerError):
    code = "not_found"
    status = 404


class NotADirectory(FileManagerError):
    code = "not_a_directory"
    status = 400


class IsADirectory(FileManagerError):
    code = "is_a_directory"
    status = 400


class InvalidName(FileManagerError):
    code = "invalid_name"
    status = 400


class AlreadyExists(FileManagerError):
    code = "exists"
    status = 409


class ProtectedPath(FileManagerError):
    """The sandbox root itself, or a path the server process may not touch."""

    code = "protected_path"
    status = 403


class SandboxViolation(FileManagerError):
    """A joined path left the root. Cannot happen unless normalization is broken."""

    code = "path_not_allowed"
    status = 403


class FileTooLarge(FileManagerError):
    code = "file_too_large"
    status = 400


class UploadTooLarge(FileManagerError):
    code = "upload_too_large"
    status = 413


class TransferFailed(FileManagerError):
    code = "transfer_failed"
    status = 500


PARTIAL_FAILURE = "partial_failure"


def from_os_error(exc: OSError, path: str | None = None) -> FileManagerError:
    """Map a filesystem error onto the taxonomy."""
    if isinstance(exc, FileNotFoundError):
        return NotFound("path does not exist", path=path)
    if isinstance(exc, NotADirectoryError):
        return NotADirectory("path is not a directory", path=path)
    if isinstance(exc, IsADirectoryError):
        return IsADirectory("path is a directory", path=path)
    if isinstance(exc, FileExistsError):
        return AlreadyExists("path already exists", path=path)
    if isinstance(exc, PermissionError):
        return ProtectedPath("permission denied", path=path)
    return TransferFailed(exc.strerror or str(exc), path=path)
