"""File helpers shared by specks modules.

Documents are always read whole and written whole. atomic_write() writes to
a temp file in the target directory and renames it over the target, so a
crash never leaves a half-written document behind.
"""

from __future__ import annotations

import codecs
import contextlib
import logging
import os
import tempfile
from pathlib import Path

from specks.core.exceptions import DocumentReadError

logger = logging.getLogger(__name__)


def atomic_write(path: Path, content: str, encoding: str = "utf-8") -> None:
    """Write content to path atomically.

    Args:
        path: Destination file.
        content: Full text to write.
        encoding: "utf-8", or "utf-8-sig" to keep a byte order mark.

    Raises:
        OSError: If the temp file cannot be created or renamed.

    """
    path = Path(path)
    fd: int | None = None
    tmp_path_str: str | None = None

    try:
        fd, tmp_path_str = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding=encoding, newline="") as f:
                fd = None  # os.fdopen takes ownership
                f.write(content)
        finally:
            if fd is not None:
                os.close(fd)

        os.replace(tmp_path_str, path)
        logger.debug("Atomic write completed: %s -> %s", tmp_path_str, path)
        tmp_path_str = None

    except Exception:
        if tmp_path_str is not None and os.path.exists(tmp_path_str):
            with contextlib.suppress(OSError):
                os.unlink(tmp_path_str)
        raise


def decode_text(data: str | bytes, path: str | None = None) -> str:
    """Return data as text, rejecting input that is not text at all.

    Args:
        data: Raw text or bytes.
        path: Source path for error messages.

    Returns:
        Decoded text.

    Raises:
        DocumentReadError: If bytes are not valid UTF-8 or contain NUL bytes.

    """
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DocumentReadError(f"Document is not valid UTF-8 text: {e}", path=path) from e
    if "\x00" in data:
        raise DocumentReadError("Document contains NUL bytes (binary input?)", path=path)
    # Strip BOM so the first heading still matches
    return data.removeprefix("﻿")


def read_text(path: Path) -> str:
    """Read a whole document from disk.

    Raises:
        DocumentReadError: If the file is missing, unreadable or not text.

    """
    return read_document(path)[0]


def read_document(path: Path) -> tuple[str, str]:
    """Read a whole document and the encoding to write it back with.

    Returns:
        (text without BOM, "utf-8-sig" if the file starts with a BOM else
        "utf-8").

    Raises:
        DocumentReadError: If the file is missing, unreadable or not text.

    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise DocumentReadError(f"Cannot read {path}: {e}", path=str(path)) from e
    encoding = "utf-8-sig" if data.startswith(codecs.BOM_UTF8) else "utf-8"
    return decode_text(data, path=str(path)), encoding
