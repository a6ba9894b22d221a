"""Validate Windows PE images and classify their target architecture."""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum, IntEnum

from ._constants import (
    COFF_HEADER_SIZE,
    DOS_HEADER_SIZE,
    DOS_PE_OFFSET_FIELD,
    DOS_SIGNATURE,
    MACHINE_NAMES,
    PE_SIGNATURE,
    SECTION_HEADER_SIZE,
)
from ._types import Buffer
from ._util import get_logger
from .cursor import ByteCursor
from .errors import (
    INVALID_PE_FILE,
    DecodeFailure,
    FormatError,
    InvalidSignatureError,
    TruncatedInputError,
    UnrecognizedMagicError,
)

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------
class Magic(IntEnum):
    """Optional-header magic word."""

    UNKNOWN = 0x0000
    PE32 = 0x010B
    PE32_PLUS = 0x020B

    @classmethod
    def parse(cls, raw: int) -> "Magic | None":
        """Return the magic for *raw*, or ``None`` if it is not a known value.

        ``0x0000`` is a recognised magic (``UNKNOWN``); every other
        unlisted value is rejected rather than folded into it.
        """
        try:
            return cls(raw)
        except ValueError:
            return None

    def __str__(self) -> str:
        return _MAGIC_NAMES[self]


_MAGIC_NAMES = {
    Magic.UNKNOWN: "unknown",
    Magic.PE32: "PE32",
    Magic.PE32_PLUS: "PE32+",
}


class Architecture(Enum):
    """Processor architecture of a PE image."""

    X32 = "x32"
    X64 = "x64"
    UNKNOWN = "unknown"

    @classmethod
    def from_magic(cls, magic: Magic | None) -> "Architecture":
        if magic is Magic.PE32:
            return cls.X32
        if magic is Magic.PE32_PLUS:
            return cls.X64
        return cls.UNKNOWN

    @property
    def label(self) -> str | None:
        """``"32-bit"``, ``"64-bit"``, or ``None`` when unknown."""
        return _ARCH_LABELS.get(self)


_ARCH_LABELS = {Architecture.X32: "32-bit", Architecture.X64: "64-bit"}


@dataclass(frozen=True, slots=True)
class COFFHeader:
    """The 20-byte COFF file header that follows the PE signature."""

    machine: int
    number_of_sections: int
    time_date_stamp: int
    pointer_to_symbol_table: int
    number_of_symbols: int
    size_of_optional_header: int
    characteristics: int

    @property
    def machine_name(self) -> str:
        return MACHINE_NAMES.get(self.machine, f"0x{self.machine:04X}")

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(self.time_date_stamp, tz=UTC)


@dataclass(frozen=True, slots=True)
class SectionHeader:
    """One 40-byte entry of the section table."""

    name: str
    virtual_size: int
    virtual_address: int
    size_of_raw_data: int
    pointer_to_raw_data: int
    characteristics: int


@dataclass(frozen=True, slots=True)
class PEImage:
    """Headers of a validated PE image.

    ``magic`` is ``None`` when the image has no optional header.
    """

    pe_offset: int
    coff_header: COFFHeader
    magic: Magic | None
    sections: tuple[SectionHeader, ...] = ()

    @property
    def architecture(self) -> Architecture:
        return Architecture.from_magic(self.magic)


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------
def _read_coff_header(cur: ByteCursor) -> COFFHeader:
    return COFFHeader(
        machine=cur.u16(),
        number_of_sections=cur.u16(),
        time_date_stamp=cur.u32(),
        pointer_to_symbol_table=cur.u32(),
        number_of_symbols=cur.u32(),
        size_of_optional_header=cur.u16(),
        characteristics=cur.u16(),
    )


def _read_section(cur: ByteCursor) -> SectionHeader:
    raw_name = cur.read_bytes(8)
    name = raw_name.split(b"\x00", 1)[0].decode("utf-8", errors="replace")
    virtual_size = cur.u32()
    virtual_address = cur.u32()
    size_of_raw_data = cur.u32()
    pointer_to_raw_data = cur.u32()
    cur.skip(12)  # relocation/line-number pointers and counts
    return SectionHeader(
        name=name,
        virtual_size=virtual_size,
        virtual_address=virtual_address,
        size_of_raw_data=size_of_raw_data,
        pointer_to_raw_data=pointer_to_raw_data,
        characteristics=cur.u32(),
    )


def _read_sections(cur: ByteCursor, table_offset: int, count: int) -> list[SectionHeader]:
    """Read up to *count* section headers, stopping at the first that is cut off."""
    sections = []
    for i in range(count):
        try:
            entry = cur.window(table_offset + i * SECTION_HEADER_SIZE, SECTION_HEADER_SIZE)
        except TruncatedInputError:
            logger.debug(
                "Section table truncated",
                declared=count,
                read=len(sections),
            )
            break
        sections.append(_read_section(entry))
    return sections


def read_pe(data: Buffer) -> PEImage:
    """Parse the DOS, PE and COFF headers of *data*.

    Raises:
        TruncatedInputError: a required header runs past the end of *data*.
        InvalidSignatureError: ``MZ`` or ``PE\\0\\0`` is missing.
        UnrecognizedMagicError: the optional-header magic is not known.
    """
    cur = ByteCursor(data)

    dos_header = cur.bytes_at(0, DOS_HEADER_SIZE)
    if dos_header[:2] != DOS_SIGNATURE:
        raise InvalidSignatureError(
            f"Invalid DOS signature {dos_header[:2].hex()} (expected 4d5a)"
        )

    pe_offset = cur.u32_at(DOS_PE_OFFSET_FIELD)
    cur.seek(pe_offset)
    signature = cur.read_bytes(len(PE_SIGNATURE))
    if signature != PE_SIGNATURE:
        raise InvalidSignatureError(
            f"Invalid PE signature {signature.hex()} at 0x{pe_offset:X}"
        )

    coff = _read_coff_header(cur)
    optional_header_offset = pe_offset + len(PE_SIGNATURE) + COFF_HEADER_SIZE

    magic = None
    if coff.size_of_optional_header > 0:
        raw_magic = cur.u16_at(optional_header_offset)
        magic = Magic.parse(raw_magic)
        if magic is None:
            raise UnrecognizedMagicError(raw_magic)

    sections = _read_sections(
        cur,
        optional_header_offset + coff.size_of_optional_header,
        coff.number_of_sections,
    )

    return PEImage(
        pe_offset=pe_offset,
        coff_header=coff,
        magic=magic,
        sections=tuple(sections),
    )


def decode_pe(data: Buffer) -> PEImage | DecodeFailure:
    """Like :func:`read_pe` but return :data:`INVALID_PE_FILE` instead of raising."""
    try:
        return read_pe(data)
    except FormatError as exc:
        logger.debug("Rejected PE image", error=type(exc).__name__, reason=str(exc))
        return INVALID_PE_FILE


def classify_executable(data: Buffer) -> Architecture | DecodeFailure:
    """Return the :class:`Architecture` of the PE image in *data*."""
    image = decode_pe(data)
    if isinstance(image, DecodeFailure):
        return image
    return image.architecture


# ---------------------------------------------------------------------------
# Human-readable formatter
# ---------------------------------------------------------------------------
def format_pe(image: PEImage) -> str:
    """Return a human-readable string representation of *image*."""
    coff = image.coff_header
    lines: list[str] = []

    lines.append("--- PE HEADER ---")
    lines.append(f"  PEOffset:        0x{image.pe_offset:08X}")
    lines.append(f"  Machine:         0x{coff.machine:04X} ({coff.machine_name})")
    lines.append(f"  Sections:        {coff.number_of_sections}")
    lines.append(
        f"  TimeDateStamp:   0x{coff.time_date_stamp:08X} "
        f"({coff.timestamp:%Y-%m-%d %H:%M:%S} UTC)"
    )
    lines.append(f"  OptHeaderSize:   0x{coff.size_of_optional_header:04X}")
    lines.append(f"  Characteristics: 0x{coff.characteristics:04X}")
    magic = str(image.magic) if image.magic is not None else "(none)"
    lines.append(f"  Magic:           {magic}")

    if image.sections:
        lines.append("")
        lines.append("--- SECTIONS ---")
        for s in image.sections:
            lines.append(
                f"  {s.name:<8} va=0x{s.virtual_address:08X} vsize=0x{s.virtual_size:08X} "
                f"raw=0x{s.pointer_to_raw_data:08X} rsize=0x{s.size_of_raw_data:08X} "
                f"chars=0x{s.characteristics:08X}"
            )

    lines.append("")
    lines.append("--- RESOLVED ---")
    lines.append(f"  Architecture:    {image.architecture.label or '(unknown)'}")

    return "\n".join(lines)
