"""Process-wide configuration, built once at startup.

Values come from environment variables (see ``from_env``). The resulting
object is frozen and passed explicitly into the services and the app factory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


DEFAULT_BASE_PATH = "/file-manager"
DEFAULT_MAX_UPLOAD_MB = 100
DEFAULT_MAX_UPLOAD_FILES = 10
DEFAULT_MAX_EDIT_KB = 1024
DEFAULT_PORT = 3000


def _read_int(env: Mapping[str, str], name: str, default: int) -> int:
    v = str(env.get(name, "") or "").strip()
    if not v:
        return int(default)
    try:
        return int(float(v))
    except ValueError:
        return int(default)


@dataclass(frozen=True)
class FileManagerConfig:
    root: str
    password: str = ""
    base_path: str = DEFAULT_BASE_PATH
    max_upload_mb: int = DEFAULT_MAX_UPLOAD_MB
    max_upload_files: int = DEFAULT_MAX_UPLOAD_FILES
    max_edit_kb: int = DEFAULT_MAX_EDIT_KB
    log_dir: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT

    def __post_init__(self) -> None:
        if not str(self.root or "").strip():
            raise ValueError("root must not be empty")
        # realpath so the containment check compares like with like
        object.__setattr__(self, "root", os.path.realpath(os.path.abspath(self.root)))
        base = "/" + str(self.base_path or "").strip().strip("/")
        object.__setattr__(self, "base_path", base.rstrip("/"))

    @property
    def max_upload_bytes(self) -> int:
        return max(1, int(self.max_upload_mb)) * 1024 * 1024

    @property
    def max_edit_bytes(self) -> int:
        return max(1, int(self.max_edit_kb)) * 1024

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "FileManagerConfig":
        env = os.environ if environ is None else environ
        password = str(env.get("EFM_PASSWORD") or env.get("PASSWORD") or "")
        log_dir = str(env.get("EFM_LOG_DIR", "") or "").strip() or None
        return cls(
            root=str(env.get("EFM_ROOT", "") or "").strip() or os.path.join(os.getcwd(), "data"),
            password=password,
            base_path=str(env.get("EFM_BASE_PATH", DEFAULT_BASE_PATH)),
            max_upload_mb=_read_int(env, "EFM_MAX_UPLOAD_MB", DEFAULT_MAX_UPLOAD_MB),
            max_upload_files=_read_int(env, "EFM_MAX_UPLOAD_FILES", DEFAULT_MAX_UPLOAD_FILES),
            max_edit_kb=_read_int(env, "EFM_MAX_EDIT_KB", DEFAULT_MAX_EDIT_KB),
            log_dir=log_dir,
            host=str(env.get("EFM_HOST", "") or "").strip() or "0.0.0.0",
            port=_read_int(env, "PORT", DEFAULT_PORT),
        )
