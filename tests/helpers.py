"""Small builders shared by the test modules."""

import io
import zipfile
from pathlib import Path


def make_zip(members: dict) -> bytes:
    """Build an in-memory zip; a value of None makes a directory entry."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in members.items():
            zf.writestr(name, b"" if data is None else data)
    return buf.getvalue()


def tree(base: Path) -> dict:
    """Map every file below ``base`` to its bytes, keyed by '/'-relative path."""
    return {
        p.relative_to(base).as_posix(): p.read_bytes()
        for p in sorted(base.rglob("*"))
        if p.is_file()
    }
