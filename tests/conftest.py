"""Shared fixtures for bottleprobe tests."""

import struct

import pytest

from bottleprobe._constants import LINK_CLSID

# FILETIME for 2024-01-02 03:04:05 UTC
FILETIME_2024 = 133486382450000000

_STRING_BITS = {
    "name": 0x04,
    "relative_path": 0x08,
    "working_dir": 0x10,
    "arguments": 0x20,
    "icon_location": 0x40,
}


def _build_pe(
    magic=0x10B,
    *,
    pe_offset=0x80,
    opt_size=None,
    sections=(".text",),
    machine=0x014C,
    timestamp=0x12345678,
):
    """Assemble a minimal PE image: DOS header, signature, COFF, optional header, sections."""
    if opt_size is None:
        opt_size = 0xF0 if magic == 0x20B else 0xE0
    dos = bytearray(pe_offset)
    dos[0:2] = b"MZ"
    struct.pack_into("<I", dos, 0x3C, pe_offset)
    coff = struct.pack(
        "<HHIIIHH", machine, len(sections), timestamp, 0, 0, opt_size, 0x0022
    )
    opt = bytearray(opt_size)
    if opt_size >= 2:
        struct.pack_into("<H", opt, 0, magic)
    table = b"".join(
        struct.pack(
            "<8sIIIIIIHHI",
            name.encode(),
            0x1000,
            0x1000 * (i + 1),
            0x200,
            0x400 + 0x200 * i,
            0,
            0,
            0,
            0,
            0x60000020,
        )
        for i, name in enumerate(sections)
    )
    return bytes(dos) + b"PE\x00\x00" + coff + bytes(opt) + table


def _build_local_link_info(
    base,
    suffix="",
    *,
    label="SYSTEM",
    unicode_label=False,
    unicode_paths=False,
    codepage="cp1252",
):
    """Assemble a LinkInfo block with VolumeIDAndLocalBasePath set."""
    header_size = 0x24 if unicode_paths else 0x1C
    if unicode_label:
        # VolumeLabelOffset 0x14 redirects to VolumeLabelOffsetUnicode
        label_b = label.encode("utf-16-le") + b"\x00\x00"
        volume = (
            struct.pack("<IIIII", 20 + len(label_b), 3, 0xDEADBEEF, 0x14, 0x14)
            + label_b
        )
    else:
        label_b = label.encode(codepage) + b"\x00"
        volume = struct.pack("<IIII", 16 + len(label_b), 3, 0xDEADBEEF, 0x10) + label_b
    volume_off = header_size
    base_b = base.encode(codepage, errors="replace") + b"\x00"
    base_off = volume_off + len(volume)
    suffix_b = suffix.encode(codepage, errors="replace") + b"\x00"
    suffix_off = base_off + len(base_b)
    body = volume + base_b + suffix_b

    unicode_fields = b""
    if unicode_paths:
        uni_base = base.encode("utf-16-le") + b"\x00\x00"
        uni_base_off = header_size + len(body)
        uni_suffix = suffix.encode("utf-16-le") + b"\x00\x00"
        uni_suffix_off = uni_base_off + len(uni_base)
        body += uni_base + uni_suffix
        unicode_fields = struct.pack("<II", uni_base_off, uni_suffix_off)

    size = header_size + len(body)
    header = struct.pack(
        "<IIIIIII", size, header_size, 0x1, volume_off, base_off, 0, suffix_off
    )
    return header + unicode_fields + body


def _build_network_link_info(
    share, suffix="", *, provider=0x00020000, device=None, unicode=False
):
    """Assemble a LinkInfo block with CommonNetworkRelativeLinkAndPathSuffix set.

    With *unicode* the CommonNetworkRelativeLink grows to 0x1C bytes and
    carries UTF-16 copies of the share and device names after the ANSI ones.
    """
    header_size = 0x1C
    fixed = 0x1C if unicode else 0x14
    cnr_flags = 0x2 | (0x1 if device else 0)
    share_b = share.encode("cp1252", errors="replace") + b"\x00"
    device_b = device.encode("cp1252", errors="replace") + b"\x00" if device else b""
    device_off = fixed + len(share_b) if device else 0
    strings = share_b + device_b

    unicode_fields = b""
    if unicode:
        uni_share_off = fixed + len(strings)
        strings += share.encode("utf-16-le") + b"\x00\x00"
        uni_device_off = 0
        if device:
            uni_device_off = fixed + len(strings)
            strings += device.encode("utf-16-le") + b"\x00\x00"
        unicode_fields = struct.pack("<II", uni_share_off, uni_device_off)

    cnr = (
        struct.pack(
            "<IIIII", fixed + len(strings), cnr_flags, fixed, device_off, provider
        )
        + unicode_fields
        + strings
    )
    cnr_off = header_size
    suffix_b = suffix.encode("cp1252") + b"\x00"
    suffix_off = cnr_off + len(cnr)
    body = cnr + suffix_b
    size = header_size + len(body)
    header = struct.pack("<IIIIIII", size, header_size, 0x2, 0, 0, cnr_off, suffix_off)
    return header + body


def _build_lnk(
    flags=0,
    *,
    id_list=None,
    link_info=None,
    strings=None,
    unicode=True,
    codepage="cp1252",
    clsid=LINK_CLSID,
    header_size=0x4C,
    file_size=0,
    icon_index=0,
    show_command=1,
    hotkey_vk=0,
    hotkey_mod=0,
):
    """Assemble a .lnk buffer.

    *flags* is OR-ed with the bits implied by the sections passed in.
    """
    strings = strings or {}
    if id_list is not None:
        flags |= 0x01
    if link_info is not None:
        flags |= 0x02
    for key in strings:
        flags |= _STRING_BITS[key]
    if strings and unicode:
        flags |= 0x80

    data = struct.pack(
        "<I16sIIQQQIiIBBHII",
        header_size,
        clsid,
        flags,
        0x20,
        FILETIME_2024,
        FILETIME_2024,
        FILETIME_2024,
        file_size,
        icon_index,
        show_command,
        hotkey_vk,
        hotkey_mod,
        0,
        0,
        0,
    )
    if id_list is not None:
        data += struct.pack("<H", len(id_list)) + id_list
    if link_info is not None:
        data += link_info
    for key in _STRING_BITS:
        if key in strings:
            value = strings[key]
            if flags & 0x80:
                data += struct.pack("<H", len(value)) + value.encode("utf-16-le")
            else:
                data += struct.pack("<H", len(value)) + value.encode(codepage)
    return data


def _build_header(flags, *, header_size=0x4C):
    """A bare 76-byte header: size, zero CLSID, flags, zero padding."""
    return (
        struct.pack("<I", header_size)
        + bytes(16)
        + struct.pack("<I", flags)
        + bytes(0x4C - 24)
    )


@pytest.fixture
def make_pe():
    return _build_pe


@pytest.fixture
def make_lnk():
    return _build_lnk


@pytest.fixture
def make_header():
    return _build_header


@pytest.fixture
def make_local_link_info():
    return _build_local_link_info


@pytest.fixture
def make_network_link_info():
    return _build_network_link_info


@pytest.fixture
def pe32_bytes():
    """A minimal 32-bit image."""
    return _build_pe(0x10B)


@pytest.fixture
def pe32plus_bytes():
    """A minimal 64-bit image with two sections."""
    return _build_pe(0x20B, machine=0x8664, sections=(".text", ".rdata"))


@pytest.fixture
def notepad_lnk_bytes():
    """A shortcut to notepad.exe with an ID list, local LinkInfo and StringData."""
    return _build_lnk(
        id_list=b"\x14\x00\x1f\x50" + bytes(16) + b"\x00\x00",
        link_info=_build_local_link_info(r"C:\Windows\notepad.exe"),
        strings={
            "name": "Notepad",
            "working_dir": r"C:\Windows",
            "arguments": "--flag value",
        },
        file_size=201216,
        icon_index=-2,
        hotkey_vk=0x43,
        hotkey_mod=0x02,
    )


@pytest.fixture
def unc_lnk_bytes():
    """A shortcut to a file on a network share."""
    return _build_lnk(
        link_info=_build_network_link_info(r"\\server\share", r"folder\file.exe"),
    )
