"""Internal utility helpers: GUID and FILETIME formatting, logger setup."""

import logging
import struct
from datetime import UTC, datetime

import structlog

from ._constants import FILETIME_EPOCH_OFFSET, FILETIME_TICKS_PER_SECOND


def format_guid(data: bytes, off: int = 0) -> str:
    """Format 16 bytes at *off* as an uppercase UUID string (no braces).

    Windows GUIDs are stored in mixed-endian layout:
    uint32-LE, uint16-LE, uint16-LE, 8 raw bytes.
    """
    if len(data) - off < 16:
        return "?"
    d1, d2, d3 = struct.unpack_from("<IHH", data, off)
    d4 = bytes(data[off + 8 : off + 10]).hex().upper()
    d5 = bytes(data[off + 10 : off + 16]).hex().upper()
    return f"{d1:08X}-{d2:04X}-{d3:04X}-{d4}-{d5}"


def filetime_to_datetime(ticks: int) -> datetime | None:
    """Convert FILETIME *ticks* to an aware UTC datetime.

    Returns ``None`` for zero (unset) and for values outside the range
    ``datetime`` can represent.
    """
    if ticks == 0:
        return None
    seconds = (ticks - FILETIME_EPOCH_OFFSET) / FILETIME_TICKS_PER_SECOND
    try:
        return datetime.fromtimestamp(seconds, tz=UTC)
    except (OSError, OverflowError, ValueError):
        return None


def filetime_to_str(ticks: int) -> str:
    dt = filetime_to_datetime(ticks)
    if dt is None:
        return "0 (unset)" if ticks == 0 else f"0x{ticks:016X}"
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger that emits through the stdlib logger *name*.

    Events end up wherever the application points :mod:`logging`; the
    package logger carries a ``NullHandler``, so nothing is printed until
    it does.
    """
    return structlog.wrap_logger(
        logging.getLogger(name), wrapper_class=structlog.stdlib.BoundLogger
    )
