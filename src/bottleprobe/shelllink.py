"""Decode Windows shell link (.lnk) files and resolve their target path."""

from dataclasses import dataclass
from enum import IntFlag

from ._constants import (
    ANSI_CODEPAGE,
    CNR_MIN_SIZE,
    DRIVE_TYPES,
    HOTKEY_MOD,
    LINK_CLSID,
    LINK_HEADER_SIZE,
    LINK_INFO_MIN_HEADER_SIZE,
    LINK_INFO_UNICODE_HEADER_SIZE,
    SHOW_CMD,
    WNNC_NET_TYPES,
)
from ._types import Buffer
from ._util import filetime_to_str, format_guid, get_logger
from .cursor import ByteCursor
from .errors import (
    INVALID_SHELL_LINK,
    DecodeFailure,
    FormatError,
    InvalidSignatureError,
    MalformedSubsectionError,
    TruncatedInputError,
)

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Flags
# ---------------------------------------------------------------------------
class LinkFlags(IntFlag):
    """LinkFlags field of the shell link header (MS-SHLLINK 2.1.1).

    Built from the raw 32-bit value without validation; bits with no name
    here are kept in the value and ignored.
    """

    HAS_LINK_TARGET_ID_LIST = 1 << 0
    HAS_LINK_INFO = 1 << 1
    HAS_NAME = 1 << 2
    HAS_RELATIVE_PATH = 1 << 3
    HAS_WORKING_DIR = 1 << 4
    HAS_ARGUMENTS = 1 << 5
    HAS_ICON_LOCATION = 1 << 6
    IS_UNICODE = 1 << 7
    FORCE_NO_LINK_INFO = 1 << 8
    HAS_EXP_STRING = 1 << 9
    RUN_IN_SEPARATE_PROCESS = 1 << 10
    UNUSED1 = 1 << 11
    HAS_DARWIN_ID = 1 << 12
    RUN_AS_USER = 1 << 13
    HAS_EXP_ICON = 1 << 14
    NO_PIDL_ALIAS = 1 << 15
    UNUSED2 = 1 << 16
    RUN_WITH_SHIM_LAYER = 1 << 17
    FORCE_NO_LINK_TRACK = 1 << 18
    ENABLE_TARGET_METADATA = 1 << 19
    DISABLE_LINK_PATH_TRACKING = 1 << 20
    DISABLE_KNOWN_FOLDER_TRACKING = 1 << 21
    DISABLE_KNOWN_FOLDER_ALIAS = 1 << 22
    ALLOW_LINK_TO_LINK = 1 << 23
    UNALIAS_ON_SAVE = 1 << 24
    PREFER_ENVIRONMENT_PATH = 1 << 25
    KEEP_LOCAL_ID_LIST_FOR_UNC_TARGET = 1 << 26

    def contains(self, flag: "LinkFlags") -> bool:
        return flag in self

    def names(self) -> list[str]:
        """Names of the known bits that are set, lowest bit first."""
        return [member.name for member in type(self) if member in self]


class LinkInfoFlags(IntFlag):
    """LinkInfoFlags field of the LinkInfo structure (MS-SHLLINK 2.3)."""

    VOLUME_ID_AND_LOCAL_BASE_PATH = 1 << 0
    COMMON_NETWORK_RELATIVE_LINK_AND_PATH_SUFFIX = 1 << 1


# StringData entries in on-disk order.
_STRING_FIELDS = (
    (LinkFlags.HAS_NAME, "name"),
    (LinkFlags.HAS_RELATIVE_PATH, "relative_path"),
    (LinkFlags.HAS_WORKING_DIR, "working_dir"),
    (LinkFlags.HAS_ARGUMENTS, "arguments"),
    (LinkFlags.HAS_ICON_LOCATION, "icon_location"),
)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ShellLinkHeader:
    """The fixed 76-byte ShellLinkHeader."""

    header_size: int
    clsid: bytes
    link_flags: LinkFlags
    file_attributes: int = 0
    creation_time: int = 0
    access_time: int = 0
    write_time: int = 0
    file_size: int = 0
    icon_index: int = 0
    show_command: int = 0
    hotkey_vk: int = 0
    hotkey_mod: int = 0

    @property
    def clsid_valid(self) -> bool:
        return self.clsid == LINK_CLSID

    @property
    def clsid_str(self) -> str:
        return "{" + format_guid(self.clsid) + "}"

    @property
    def show_command_name(self) -> str:
        return SHOW_CMD.get(self.show_command, "?")

    @property
    def hotkey_str(self) -> str:
        parts = [name for bit, name in HOTKEY_MOD.items() if self.hotkey_mod & bit]
        if self.hotkey_vk:
            parts.append(_vk_name(self.hotkey_vk))
        return "+".join(parts)


@dataclass(frozen=True, slots=True)
class VolumeID:
    """VolumeID structure describing the volume a local target lives on."""

    drive_type: int
    drive_serial: int
    volume_label: str

    @property
    def drive_type_name(self) -> str:
        return DRIVE_TYPES.get(self.drive_type, "?")


@dataclass(frozen=True, slots=True)
class LinkInfo:
    """Decoded LinkInfo block."""

    size: int
    header_size: int
    flags: LinkInfoFlags
    volume: VolumeID | None = None
    local_base_path: str = ""
    network_share_name: str = ""
    device_name: str = ""
    network_provider_type: int = 0
    common_path_suffix: str = ""

    @property
    def network_provider_name(self) -> str:
        if not self.network_provider_type:
            return ""
        return WNNC_NET_TYPES.get(
            self.network_provider_type, f"0x{self.network_provider_type:08X}"
        )

    @property
    def target_path(self) -> str | None:
        """Base path joined with the common suffix, or ``None`` if there is no base."""
        if (
            LinkInfoFlags.VOLUME_ID_AND_LOCAL_BASE_PATH in self.flags
            and self.local_base_path
        ):
            return self.local_base_path + self.common_path_suffix
        if (
            LinkInfoFlags.COMMON_NETWORK_RELATIVE_LINK_AND_PATH_SUFFIX in self.flags
            and self.network_share_name
        ):
            if self.common_path_suffix:
                return self.network_share_name + "\\" + self.common_path_suffix
            return self.network_share_name
        return None


@dataclass(frozen=True, slots=True)
class StringData:
    """StringData entries; a field is ``None`` when its flag bit is clear."""

    name: str | None = None
    relative_path: str | None = None
    working_dir: str | None = None
    arguments: str | None = None
    icon_location: str | None = None


@dataclass(frozen=True, slots=True)
class ShellLinkFile:
    """Structured representation of a decoded .lnk file.

    Optional sections that could not be decoded are ``None`` and described
    in ``issues``; the header itself is always valid.
    """

    header: ShellLinkHeader
    id_list: bytes | None = None
    link_info: LinkInfo | None = None
    string_data: StringData | None = None
    issues: tuple[str, ...] = ()

    @property
    def flags(self) -> LinkFlags:
        return self.header.link_flags

    @property
    def target_path(self) -> str | None:
        if LinkFlags.HAS_LINK_INFO not in self.flags or self.link_info is None:
            return None
        return self.link_info.target_path

    @property
    def is_complete(self) -> bool:
        return not self.issues


def _vk_name(vk: int) -> str:
    if 0x30 <= vk <= 0x39 or 0x41 <= vk <= 0x5A:
        return chr(vk)
    if 0x70 <= vk <= 0x87:
        return f"F{vk - 0x6F}"
    return f"0x{vk:02X}"


# ---------------------------------------------------------------------------
# Section readers
# ---------------------------------------------------------------------------
def _read_header(cur: ByteCursor) -> ShellLinkHeader:
    hdr = cur.window(0, LINK_HEADER_SIZE)
    header_size = hdr.u32()
    if header_size != LINK_HEADER_SIZE:
        raise InvalidSignatureError(
            f"Invalid header size 0x{header_size:08X} (expected 0x{LINK_HEADER_SIZE:X})"
        )
    clsid = hdr.read_bytes(16)
    link_flags = LinkFlags(hdr.u32())
    file_attributes = hdr.u32()
    creation_time = hdr.u64()
    access_time = hdr.u64()
    write_time = hdr.u64()
    file_size = hdr.u32()
    icon_index = hdr.i32()
    show_command = hdr.u32()
    hotkey_vk = hdr.u8()
    hotkey_mod = hdr.u8()
    # Reserved1 (2), Reserved2 (4), Reserved3 (4)
    cur.seek(LINK_HEADER_SIZE)
    return ShellLinkHeader(
        header_size=header_size,
        clsid=clsid,
        link_flags=link_flags,
        file_attributes=file_attributes,
        creation_time=creation_time,
        access_time=access_time,
        write_time=write_time,
        file_size=file_size,
        icon_index=icon_index,
        show_command=show_command,
        hotkey_vk=hotkey_vk,
        hotkey_mod=hotkey_mod,
    )


def _take_link_info_block(cur: ByteCursor) -> ByteCursor:
    """Return a cursor bounded to the LinkInfo block and advance past it."""
    start = cur.offset
    size = cur.u32_at(start)
    if size < LINK_INFO_MIN_HEADER_SIZE:
        raise MalformedSubsectionError(
            f"LinkInfo size {size} is smaller than its header"
        )
    if size > cur.remaining:
        raise MalformedSubsectionError(
            f"LinkInfo size {size} exceeds the {cur.remaining} byte(s) remaining"
        )
    block = cur.window(start, size)
    cur.skip(size)
    return block


def _read_volume_id(block: ByteCursor, offset: int, codepage: str) -> VolumeID:
    vol_size = block.u32_at(offset)
    if vol_size < 0x10:
        raise MalformedSubsectionError(f"VolumeID size {vol_size} is too small")
    vol = block.window(offset, vol_size)
    vol.skip(4)
    drive_type = vol.u32()
    drive_serial = vol.u32()
    label_offset = vol.u32()
    if label_offset == 0x14:
        label = vol.wstring_at(vol.u32_at(0x10))
    else:
        label = vol.cstring_at(label_offset, codepage)
    return VolumeID(drive_type=drive_type, drive_serial=drive_serial, volume_label=label)


def _read_network_link(
    block: ByteCursor, offset: int, codepage: str
) -> tuple[str, str, int]:
    """Read a CommonNetworkRelativeLink; returns (share, device, provider type)."""
    cnr_size = block.u32_at(offset)
    if cnr_size < CNR_MIN_SIZE:
        raise MalformedSubsectionError(
            f"CommonNetworkRelativeLink size {cnr_size} is too small"
        )
    cnr = block.window(offset, cnr_size)
    cnr.skip(4)
    cnr_flags = cnr.u32()
    net_name_offset = cnr.u32()
    device_name_offset = cnr.u32()
    provider_type = cnr.u32()
    valid_device = cnr_flags & 0x1
    valid_net_type = cnr_flags & 0x2

    share = cnr.cstring_at(net_name_offset, codepage)
    device = ""
    if valid_device and device_name_offset:
        device = cnr.cstring_at(device_name_offset, codepage)

    if net_name_offset > CNR_MIN_SIZE:
        uni_net_offset = cnr.u32()
        uni_device_offset = cnr.u32()
        if uni_net_offset:
            share = cnr.wstring_at(uni_net_offset)
        if valid_device and uni_device_offset:
            device = cnr.wstring_at(uni_device_offset)

    return share, device, provider_type if valid_net_type else 0


def _read_link_info_fields(
    block: ByteCursor, codepage: str, issues: list[str]
) -> LinkInfo:
    size = block.u32()
    header_size = block.u32()
    flags = LinkInfoFlags(block.u32())
    volume_id_offset = block.u32()
    local_base_path_offset = block.u32()
    network_link_offset = block.u32()
    suffix_offset = block.u32()

    if header_size < LINK_INFO_MIN_HEADER_SIZE or header_size > size:
        raise MalformedSubsectionError(
            f"LinkInfo header size 0x{header_size:X} inconsistent with block size {size}"
        )

    uni_base_offset = uni_suffix_offset = 0
    if header_size >= LINK_INFO_UNICODE_HEADER_SIZE:
        uni_base_offset = block.u32()
        uni_suffix_offset = block.u32()

    volume = None
    local_base_path = ""
    if LinkInfoFlags.VOLUME_ID_AND_LOCAL_BASE_PATH in flags:
        if volume_id_offset:
            try:
                volume = _read_volume_id(block, volume_id_offset, codepage)
            except FormatError as exc:
                _note(issues, "VolumeID", exc)
        if uni_base_offset:
            local_base_path = block.wstring_at(uni_base_offset)
        elif local_base_path_offset:
            local_base_path = block.cstring_at(local_base_path_offset, codepage)

    share = device = ""
    provider_type = 0
    if (
        LinkInfoFlags.COMMON_NETWORK_RELATIVE_LINK_AND_PATH_SUFFIX in flags
        and network_link_offset
    ):
        share, device, provider_type = _read_network_link(
            block, network_link_offset, codepage
        )

    suffix = ""
    if uni_suffix_offset:
        suffix = block.wstring_at(uni_suffix_offset)
    elif suffix_offset:
        suffix = block.cstring_at(suffix_offset, codepage)

    return LinkInfo(
        size=size,
        header_size=header_size,
        flags=flags,
        volume=volume,
        local_base_path=local_base_path,
        network_share_name=share,
        device_name=device,
        network_provider_type=provider_type,
        common_path_suffix=suffix,
    )


def _decode_link_info(block: ByteCursor, codepage: str, issues: list[str]) -> LinkInfo:
    """Decode a LinkInfo block; an offset that escapes the block is malformed."""
    try:
        return _read_link_info_fields(block, codepage, issues)
    except TruncatedInputError as exc:
        raise MalformedSubsectionError(
            f"Offset 0x{exc.offset:X} lies outside the {len(block)}-byte block"
        ) from exc


def _read_string_data(cur: ByteCursor, flags: LinkFlags, codepage: str) -> StringData:
    unicode = LinkFlags.IS_UNICODE in flags
    values = {}
    for flag, field_name in _STRING_FIELDS:
        if flag in flags:
            values[field_name] = cur.counted_string(unicode, codepage)
    return StringData(**values)


def _note(issues: list[str], section: str, exc: Exception) -> None:
    logger.debug("Shell link section unavailable", section=section, reason=str(exc))
    issues.append(f"{section}: {exc}")


# ---------------------------------------------------------------------------
# Main decoder
# ---------------------------------------------------------------------------
def read_shell_link(data: Buffer, *, codepage: str = ANSI_CODEPAGE) -> ShellLinkFile:
    """Decode the shell link in *data*.

    Only a bad header is fatal.  Optional sections that are truncated or
    inconsistent are left as ``None`` and described in
    :attr:`ShellLinkFile.issues`.

    Args:
        data: Raw bytes of a .lnk file.
        codepage: Encoding for strings stored without ``IS_UNICODE``.

    Raises:
        TruncatedInputError: *data* is shorter than the 76-byte header.
        InvalidSignatureError: the header size field is not 76.
    """
    cur = ByteCursor(data)
    header = _read_header(cur)
    flags = header.link_flags
    if not header.clsid_valid:
        logger.debug("Unexpected shell link CLSID", clsid=header.clsid_str)

    issues: list[str] = []
    # False once a section's length could not be trusted; later sections
    # have no known start offset after that.
    in_sync = True

    id_list = None
    if LinkFlags.HAS_LINK_TARGET_ID_LIST in flags:
        try:
            id_list = cur.read_bytes(cur.u16())
        except FormatError as exc:
            _note(issues, "LinkTargetIDList", exc)
            in_sync = False

    link_info = None
    if LinkFlags.HAS_LINK_INFO in flags:
        if not in_sync:
            issues.append("LinkInfo: start offset unknown")
        else:
            try:
                block = _take_link_info_block(cur)
            except FormatError as exc:
                _note(issues, "LinkInfo", exc)
                in_sync = False
            else:
                try:
                    link_info = _decode_link_info(block, codepage, issues)
                except FormatError as exc:
                    _note(issues, "LinkInfo", exc)

    string_data = None
    if not any(flag in flags for flag, _ in _STRING_FIELDS):
        string_data = StringData()
    elif not in_sync:
        issues.append("StringData: start offset unknown")
    else:
        try:
            string_data = _read_string_data(cur, flags, codepage)
        except FormatError as exc:
            _note(issues, "StringData", exc)

    return ShellLinkFile(
        header=header,
        id_list=id_list,
        link_info=link_info,
        string_data=string_data,
        issues=tuple(issues),
    )


def decode_shell_link(
    data: Buffer, *, codepage: str = ANSI_CODEPAGE
) -> ShellLinkFile | DecodeFailure:
    """Like :func:`read_shell_link` but return :data:`INVALID_SHELL_LINK` instead of raising."""
    try:
        return read_shell_link(data, codepage=codepage)
    except FormatError as exc:
        logger.debug("Rejected shell link", error=type(exc).__name__, reason=str(exc))
        return INVALID_SHELL_LINK


def resolve_target(data: Buffer, *, codepage: str = ANSI_CODEPAGE) -> str | None:
    """Return the path the shortcut in *data* points at, if LinkInfo provides one."""
    link = decode_shell_link(data, codepage=codepage)
    if isinstance(link, DecodeFailure):
        return None
    return link.target_path


# ---------------------------------------------------------------------------
# Human-readable formatter
# ---------------------------------------------------------------------------
def format_shell_link(link: ShellLinkFile) -> str:
    """Return a human-readable string representation of *link*."""
    hdr = link.header
    lines: list[str] = []

    lines.append("--- HEADER ---")
    clsid_note = "" if hdr.clsid_valid else "  (unexpected)"
    lines.append(f"  CLSID:           {hdr.clsid_str}{clsid_note}")
    lines.append(f"  LinkFlags:       0x{int(hdr.link_flags):08X}")
    for name in hdr.link_flags.names():
        lines.append(f"    - {name}")
    lines.append(f"  FileAttributes:  0x{hdr.file_attributes:08X}")
    lines.append(f"  CreationTime:    {filetime_to_str(hdr.creation_time)}")
    lines.append(f"  AccessTime:      {filetime_to_str(hdr.access_time)}")
    lines.append(f"  WriteTime:       {filetime_to_str(hdr.write_time)}")
    lines.append(f"  FileSize:        {hdr.file_size} (0x{hdr.file_size:08X})")
    lines.append(f"  IconIndex:       {hdr.icon_index}")
    lines.append(f"  ShowCommand:     {hdr.show_command} ({hdr.show_command_name})")
    lines.append(f"  HotKey:          {hdr.hotkey_str or 'None'}")

    if link.id_list is not None:
        lines.append("")
        lines.append("--- LINK TARGET ID LIST ---")
        lines.append(f"  Size:            {len(link.id_list)} byte(s)")

    info = link.link_info
    if info is not None:
        lines.append("")
        lines.append("--- LINK INFO ---")
        lines.append(f"  Flags:           0x{int(info.flags):08X}")
        if info.volume is not None:
            vol = info.volume
            lines.append(f'  VolumeLabel:     "{vol.volume_label}"')
            lines.append(f"  DriveType:       {vol.drive_type} ({vol.drive_type_name})")
            lines.append(f"  DriveSerial:     0x{vol.drive_serial:08X}")
        if info.local_base_path:
            lines.append(f'  LocalBasePath:   "{info.local_base_path}"')
        if info.common_path_suffix:
            lines.append(f'  CommonPath:      "{info.common_path_suffix}"')
        if info.network_share_name:
            lines.append(f'  NetworkShare:    "{info.network_share_name}"')
        if info.device_name:
            lines.append(f'  DeviceName:      "{info.device_name}"')
        if info.network_provider_name:
            lines.append(f"  NetProvider:     {info.network_provider_name}")

    strings = link.string_data
    if strings is not None and any(
        getattr(strings, name) is not None for _, name in _STRING_FIELDS
    ):
        lines.append("")
        lines.append("--- STRING DATA ---")
        labels = ("Name", "RelativePath", "WorkingDir", "Arguments", "IconLocation")
        for label, (_, name) in zip(labels, _STRING_FIELDS):
            value = getattr(strings, name)
            if value is not None:
                lines.append(f'  {label + ":":<18} "{value}"')

    if link.issues:
        lines.append("")
        lines.append("--- ISSUES ---")
        for issue in link.issues:
            lines.append(f"  {issue}")

    lines.append("")
    lines.append("--- RESOLVED ---")
    lines.append(f"  TargetPath:      {link.target_path or '(none)'}")

    return "\n".join(lines)
