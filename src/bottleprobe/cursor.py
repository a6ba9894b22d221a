"""Bounds-checked little-endian reader shared by the PE and shell link decoders.

Every read validates ``offset + width <= len(buffer)`` before touching the
buffer and raises :class:`~bottleprobe.errors.TruncatedInputError` otherwise.
Offsets taken from the data itself go through :meth:`ByteCursor.seek` or
:meth:`ByteCursor.window`, which apply the same check.
"""

import struct

from ._constants import ANSI_CODEPAGE
from ._types import Buffer
from .errors import TruncatedInputError

_U8 = struct.Struct("<B")
_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_I32 = struct.Struct("<i")
_U64 = struct.Struct("<Q")


class ByteCursor:
    """Read typed little-endian values from an immutable byte buffer.

    Reads without an explicit offset happen at the current position and
    advance it; the ``*_at`` variants read at an offset and leave the
    position alone.  A cursor created by :meth:`window` sees only its
    sub-range, with offsets relative to the start of that range.

    Args:
        data: The buffer to read.  It is wrapped in a read-only view, not copied.
        offset: Initial read position.
        base: Absolute offset of ``data[0]`` in the enclosing file, used only
            in error messages.
    """

    __slots__ = ("_view", "_pos", "base")

    def __init__(self, data: Buffer, offset: int = 0, *, base: int = 0) -> None:
        self._view = memoryview(data).cast("B").toreadonly()
        self._pos = 0
        self.base = base
        self.seek(offset)

    def __len__(self) -> int:
        return len(self._view)

    def __repr__(self) -> str:
        return f"ByteCursor(len={len(self._view)}, offset={self._pos}, base={self.base})"

    @property
    def offset(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return len(self._view) - self._pos

    # -- positioning --------------------------------------------------------

    def _check(self, offset: int, width: int) -> None:
        size = len(self._view)
        if offset < 0 or width < 0 or offset + width > size:
            available = max(0, size - offset) if offset >= 0 else 0
            raise TruncatedInputError(self.base + offset, width, available)

    def seek(self, offset: int) -> "ByteCursor":
        """Move to *offset*, which may equal the buffer length but not exceed it."""
        self._check(offset, 0)
        self._pos = offset
        return self

    def skip(self, count: int) -> "ByteCursor":
        self._check(self._pos, count)
        self._pos += count
        return self

    def window(self, offset: int, length: int) -> "ByteCursor":
        """Return a cursor over ``[offset, offset + length)`` of this buffer."""
        self._check(offset, length)
        return ByteCursor(
            self._view[offset : offset + length], base=self.base + offset
        )

    # -- fixed-width integers ----------------------------------------------

    def _unpack_at(self, fmt: struct.Struct, offset: int) -> int:
        self._check(offset, fmt.size)
        return fmt.unpack_from(self._view, offset)[0]

    def _unpack(self, fmt: struct.Struct) -> int:
        value = self._unpack_at(fmt, self._pos)
        self._pos += fmt.size
        return value

    def u8(self) -> int:
        return self._unpack(_U8)

    def u16(self) -> int:
        return self._unpack(_U16)

    def u32(self) -> int:
        return self._unpack(_U32)

    def i32(self) -> int:
        return self._unpack(_I32)

    def u64(self) -> int:
        return self._unpack(_U64)

    def u16_at(self, offset: int) -> int:
        return self._unpack_at(_U16, offset)

    def u32_at(self, offset: int) -> int:
        return self._unpack_at(_U32, offset)

    # -- raw bytes and strings ---------------------------------------------

    def bytes_at(self, offset: int, count: int) -> bytes:
        self._check(offset, count)
        return bytes(self._view[offset : offset + count])

    def read_bytes(self, count: int) -> bytes:
        data = self.bytes_at(self._pos, count)
        self._pos += count
        return data

    def ansi_string(self, count: int, codepage: str = ANSI_CODEPAGE) -> str:
        """Read *count* single-byte characters."""
        return self.read_bytes(count).decode(codepage, errors="replace")

    def utf16_string(self, count: int) -> str:
        """Read *count* UTF-16LE code units."""
        return self.read_bytes(count * 2).decode("utf-16-le", errors="replace")

    def counted_string(self, unicode: bool, codepage: str = ANSI_CODEPAGE) -> str:
        """Read a uint16 character count followed by that many characters."""
        count = self.u16()
        if unicode:
            return self.utf16_string(count)
        return self.ansi_string(count, codepage)

    def cstring_at(self, offset: int, codepage: str = ANSI_CODEPAGE) -> str:
        """Decode a NUL-terminated single-byte string starting at *offset*.

        The terminator must lie inside the buffer.
        """
        self._check(offset, 1)
        end = bytes(self._view[offset:]).find(b"\x00")
        if end < 0:
            raise TruncatedInputError(
                self.base + offset, len(self._view) - offset + 1, len(self._view) - offset
            )
        return self.bytes_at(offset, end).decode(codepage, errors="replace")

    def wstring_at(self, offset: int) -> str:
        """Decode a NUL-terminated UTF-16LE string starting at *offset*.

        The terminator is two zero bytes at an even distance from *offset*
        and must lie inside the buffer.
        """
        self._check(offset, 2)
        pos = offset
        end = len(self._view) - 1
        while pos < end:
            if self._view[pos] == 0 and self._view[pos + 1] == 0:
                return self.bytes_at(offset, pos - offset).decode(
                    "utf-16-le", errors="replace"
                )
            pos += 2
        raise TruncatedInputError(
            self.base + offset, pos - offset + 2, len(self._view) - offset
        )
