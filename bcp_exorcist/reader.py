"""
reader.py

Responsibility: Stream a terminator-delimited export into quoted CSV.

The broken input uses two single-byte terminators (field and record) that
never occur inside the data, while the data itself may contain commas,
newlines and quotes. The output wraps every field in double quotes,
escapes literal quotes as `\\"` and ends records with `\\n`.

Rules:
- Field terminator -> `","`
- Record terminator -> `"` + newline; the next record's opening quote is
  only written once more input arrives.
- Literal `"` -> `\\"`
- A run of backslashes right before a quote written here is doubled.

All state lives on `Exorcist`, so chunk boundaries never change the output.
This module intentionally does NOT know about files on disk or renaming.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import BinaryIO

logger = logging.getLogger(__name__)

DEFAULT_SEP = 0x1E
DEFAULT_EOL = 0x1D
DEFAULT_CHUNK_SIZE = 4 * 1024 * 1024

_QUOTE = ord('"')
_BACKSLASH = ord("\\")


@dataclass(frozen=True)
class ExorcismOptions:
    """Terminator bytes of the broken input."""

    sep: int = DEFAULT_SEP
    eol: int = DEFAULT_EOL

    def __post_init__(self) -> None:
        for name in ("sep", "eol"):
            value = getattr(self, name)
            if not 0 <= value <= 0xFF:
                raise ValueError(f"`{name}` must be a single byte value, got {value!r}")
            if value in (_QUOTE, _BACKSLASH):
                raise ValueError(f"`{name}` cannot be a quote or a backslash")
        if self.sep == self.eol:
            raise ValueError("`sep` and `eol` must differ")


@dataclass(frozen=True)
class ExorcismStats:
    bytes_read: int
    bytes_written: int
    records: int


class Exorcist:
    """
    Incremental repairer: call `feed` for each chunk, then `finish` once.
    """

    def __init__(self, options: ExorcismOptions | None = None) -> None:
        self.options = options or ExorcismOptions()
        self._specials = re.compile(
            b"[" + re.escape(bytes([self.options.sep])) + re.escape(bytes([self.options.eol])) + b'"]'
        )
        self._pending_open = True
        self._backslashes = 0
        self.bytes_read = 0
        self.records = 0

    def feed(self, chunk: bytes) -> bytes:
        out = bytearray()
        idx = 0
        for match in self._specials.finditer(chunk):
            pos = match.start()
            self._emit_data(chunk[idx:pos], out)
            self._emit_special(chunk[pos], out)
            idx = pos + 1
        self._emit_data(chunk[idx:], out)
        self.bytes_read += len(chunk)
        return bytes(out)

    def finish(self) -> bytes:
        """
        Close the last field.

        Nothing is written for empty input, or when the input already ended
        with a record terminator.
        """
        if self._pending_open:
            return b""
        out = b"\\" * self._backslashes + b'"'
        self._backslashes = 0
        self._pending_open = True
        self.records += 1
        return out

    def _open(self, out: bytearray) -> None:
        if self._pending_open:
            out += b'"'
            self._pending_open = False

    def _emit_data(self, data: bytes, out: bytearray) -> None:
        if not data:
            return
        self._open(out)
        out += data
        stripped = data.rstrip(b"\\")
        trailing = len(data) - len(stripped)
        # An all-backslash segment extends the run started in a previous chunk.
        self._backslashes = trailing if stripped else self._backslashes + trailing

    def _emit_special(self, byte: int, out: bytearray) -> None:
        self._open(out)
        out += b"\\" * self._backslashes
        self._backslashes = 0
        if byte == self.options.sep:
            out += b'","'
        elif byte == self.options.eol:
            out += b'"\n'
            self._pending_open = True
            self.records += 1
        else:
            out += b'\\"'


def exorcize_stream(
    src: BinaryIO,
    dst: BinaryIO,
    *,
    options: ExorcismOptions | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> ExorcismStats:
    """
    Read `src` in `chunk_size` blocks and write the repaired CSV to `dst`.
    """
    if chunk_size <= 0:
        raise ValueError(f"`chunk_size` must be positive, got {chunk_size}")

    exorcist = Exorcist(options)
    written = 0
    while True:
        chunk = src.read(chunk_size)
        if not chunk:
            break
        out = exorcist.feed(chunk)
        dst.write(out)
        written += len(out)

    tail = exorcist.finish()
    dst.write(tail)
    written += len(tail)
    dst.flush()

    logger.debug("Repaired %d bytes into %d bytes (%d records)", exorcist.bytes_read, written, exorcist.records)
    return ExorcismStats(bytes_read=exorcist.bytes_read, bytes_written=written, records=exorcist.records)
