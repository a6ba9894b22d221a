"""Exceptions raised by the strict readers and the failure value returned by
the tolerant ``decode_*`` entry points."""

from dataclasses import dataclass


class FormatError(Exception):
    """Raised when data does not conform to the PE or MS-SHLLINK format."""


class TruncatedInputError(FormatError):
    """Raised when a read would run past the end of the buffer."""

    def __init__(self, offset: int, width: int, available: int) -> None:
        self.offset = offset
        self.width = width
        self.available = available
        super().__init__(
            f"Truncated input: need {width} byte(s) at offset {offset}, "
            f"only {available} available"
        )


class InvalidSignatureError(FormatError):
    """Raised on a DOS/PE signature mismatch or a bad shortcut header size."""


class UnrecognizedMagicError(FormatError):
    """Raised when the optional-header magic is not a known value."""

    def __init__(self, value: int) -> None:
        self.value = value
        super().__init__(f"Unrecognized optional header magic 0x{value:04X}")


class MalformedSubsectionError(FormatError):
    """Raised when a LinkInfo or StringData section is internally inconsistent."""


@dataclass(frozen=True, slots=True)
class DecodeFailure:
    """A decode failure returned in place of a result.

    Two failures compare equal when their messages match.
    """

    message: str

    def __str__(self) -> str:
        return self.message


INVALID_PE_FILE = DecodeFailure("Invalid PE file")
INVALID_SHELL_LINK = DecodeFailure("Invalid shell link file")
