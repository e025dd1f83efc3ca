"""
Atomic file replacement.

Writes go to a temporary file in the target directory, are flushed to disk,
then renamed over the target. Readers see either the old or the new file,
never a partial one.
"""

import os
import tempfile
from pathlib import Path

from src.core.errors import IOFailureError


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """
    Replace ``path`` with ``data`` atomically.

    Args:
        path: Destination file
        data: Full new content

    Raises:
        IOFailureError: If any filesystem step fails (target left untouched)
    """
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            tmp_name = handle.name
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise IOFailureError(f"Failed to write {path}: {e}") from e
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass


def atomic_write_text(path: Path, text: str) -> None:
    """Replace ``path`` with UTF-8 encoded ``text`` atomically."""
    atomic_write_bytes(path, text.encode("utf-8"))
