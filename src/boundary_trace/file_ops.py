"""
Safe file operations for Boundary Trace.

Reads wrap OS and encoding failures; writes are all-or-nothing.
"""

import os
import stat
import tempfile
from pathlib import Path
from typing import Union

from .exceptions import SerializationError
from .logging_config import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


def safe_read_file(filepath: PathLike, encoding: str = "utf-8") -> str:
    """
    Read a text file, converting failures into SerializationError.

    Args:
        filepath: File to read
        encoding: Text encoding

    Returns:
        File contents as string

    Raises:
        SerializationError: If file cannot be read or decoded
    """
    filepath = Path(filepath)
    try:
        with open(filepath, encoding=encoding) as f:
            return f.read()
    except UnicodeDecodeError as e:
        raise SerializationError(filepath, f"Encoding error: {e}", cause=e)
    except OSError as e:
        raise SerializationError(filepath, f"Read failed: {e}", cause=e)


def _target_mode(filepath: Path) -> int:
    try:
        return stat.S_IMODE(filepath.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def atomic_write_text(filepath: PathLike, content: str, encoding: str = "utf-8") -> Path:
    """
    Write ``content`` to ``filepath`` atomically.

    The content goes to a temporary file in the target directory which is
    flushed, fsynced and renamed over the target. On any failure the
    temporary file is removed and the target is left as it was.
    An existing target keeps its permission bits; a new file gets the
    usual ``0o666`` minus the process umask.

    Args:
        filepath: File to write
        content: Content to write
        encoding: Text encoding

    Returns:
        The written path

    Raises:
        SerializationError: If the file cannot be written
    """
    filepath = Path(filepath)
    tmp_path = None
    try:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{filepath.name}.", suffix=".tmp", dir=str(filepath.parent)
        )
        tmp_path = Path(tmp_name)
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, _target_mode(filepath))
        os.replace(tmp_path, filepath)
        tmp_path = None
    except (OSError, UnicodeEncodeError) as e:
        raise SerializationError(filepath, f"Write failed: {e}", cause=e)
    finally:
        if tmp_path is not None:
            try:
                tmp_path.unlink()
            except OSError as e:
                logger.debug(f"Could not remove temporary file {tmp_path}: {e}")

    return filepath
