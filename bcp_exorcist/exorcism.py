"""
exorcism.py

Responsibility: Repair a broken CSV file in place.

High-level flow:
1) Validate terminators and chunk size (nothing on disk is touched yet)
2) Move `<file>` to `<file>.bak`
3) Stream `<file>.bak` into a fresh `<file>` via `reader.exorcize_stream`
4) On failure: keep the partial output as `<file>.broken` and restore the backup
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from bcp_exorcist.reader import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_EOL,
    DEFAULT_SEP,
    ExorcismOptions,
    ExorcismStats,
    exorcize_stream,
)

logger = logging.getLogger(__name__)

DEFAULT_DELIM = bytes([DEFAULT_SEP])
DEFAULT_NEWLINE = bytes([DEFAULT_EOL])


class ExorcismError(RuntimeError):
    pass


def unwrap_byte(value: bytes | str | None, default: bytes) -> int:
    """
    Turn an optional one-byte value into an int.

    `None` and empty values fall back to `default`; anything longer than one
    byte is a TypeError.
    """
    if isinstance(value, str):
        try:
            value = value.encode("ascii")
        except UnicodeEncodeError as e:
            raise TypeError(f"Input {value!r} should be a single ASCII character") from e
    if not value:
        return default[0]
    if len(value) != 1:
        raise TypeError(f"Input {bytes(value)!r} should be a single byte; len: {len(value)}")
    return value[0]


_RESERVED = {ord('"'): "a quote", ord("\\"): "a backslash"}


def _terminators(delim: bytes | str | None, newline: bytes | str | None) -> ExorcismOptions:
    sep = unwrap_byte(delim, DEFAULT_DELIM)
    eol = unwrap_byte(newline, DEFAULT_NEWLINE)
    for name, value in (("delim", sep), ("newline", eol)):
        if value in _RESERVED:
            raise TypeError(f"`{name}` cannot be {_RESERVED[value]}")
    if sep == eol:
        raise TypeError(f"`delim` and `newline` must differ, both are {bytes([sep])!r}")
    return ExorcismOptions(sep=sep, eol=eol)


def exorcize_csv(
    filepath: str | os.PathLike[str],
    delim: bytes | str | None = None,
    newline: bytes | str | None = None,
    chunk_size: int | None = None,
    *,
    keep_backup: bool = True,
) -> ExorcismStats:
    """
    Fix a broken CSV file by processing it in chunks.

    `delim` and `newline` are the field and record terminators used in the
    broken file; they should be uncommon ASCII characters (defaults `\\x1e`
    and `\\x1d`). `chunk_size` defaults to 4 MiB.

    Raises:
    - TypeError if `delim` or `newline` is not a single byte, is a quote or a
      backslash, or if both are the same byte
    - FileNotFoundError if `filepath` does not exist
    - ExorcismError if the repair itself fails (the original file is restored)
    """
    options = _terminators(delim, newline)
    size = DEFAULT_CHUNK_SIZE if chunk_size is None else int(chunk_size)
    if size <= 0:
        raise ValueError(f"`chunk_size` must be positive, got {size}")

    path = Path(filepath)
    if not path.is_file():
        raise FileNotFoundError(f"No such file: {path}")

    backup = path.with_name(path.name + ".bak")
    broken = path.with_name(path.name + ".broken")
    os.replace(path, backup)
    logger.debug("Moved %s to %s", path, backup)

    try:
        with backup.open("rb") as src, path.open("wb") as dst:
            stats = exorcize_stream(src, dst, options=options, chunk_size=size)
    except (OSError, ValueError) as e:
        if path.exists():
            os.replace(path, broken)
        os.replace(backup, path)
        logger.error("Exorcism of %s failed, partial output kept at %s", path, broken)
        raise ExorcismError(f"exorcism failed: {e}") from e

    if not keep_backup:
        backup.unlink()

    logger.info("Exorcism completed: %s (%d records, %d bytes)", path, stats.records, stats.bytes_written)
    return stats
