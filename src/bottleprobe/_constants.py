"""PE and MS-SHLLINK constants and lookup tables shared by the decoders."""

# ---------------------------------------------------------------------------
# ANSI code page
# ---------------------------------------------------------------------------
# Non-Unicode shortcut strings are stored in the "system default code page"
# of the machine that created the link.  CP-1252 covers Western installs and
# is a strict superset of ASCII; callers can override it per decode call.
ANSI_CODEPAGE = "cp1252"

# ---------------------------------------------------------------------------
# PE / COFF layout
# ---------------------------------------------------------------------------
DOS_SIGNATURE = b"MZ"
DOS_HEADER_SIZE = 0x40
DOS_PE_OFFSET_FIELD = 0x3C  # e_lfanew

PE_SIGNATURE = b"PE\x00\x00"
COFF_HEADER_SIZE = 20
SECTION_HEADER_SIZE = 40

MACHINE_NAMES = {
    0x0000: "Unknown",
    0x014C: "x86",
    0x0166: "MIPS R4000",
    0x01C0: "ARM",
    0x01C4: "ARM Thumb-2",
    0x0200: "IA-64",
    0x8664: "x86_64",
    0xAA64: "AArch64",
    0xA641: "ARM64EC",
}

# ---------------------------------------------------------------------------
# Shell link header
# ---------------------------------------------------------------------------
LINK_HEADER_SIZE = 0x4C

LINK_CLSID = b"\x01\x14\x02\x00\x00\x00\x00\x00\xc0\x00\x00\x00\x00\x00\x00\x46"

# LinkInfo header is 0x1C bytes; 0x24 and up adds the Unicode offsets.
LINK_INFO_MIN_HEADER_SIZE = 0x1C
LINK_INFO_UNICODE_HEADER_SIZE = 0x24

# CommonNetworkRelativeLink carries Unicode offsets when NetNameOffset > 0x14.
CNR_MIN_SIZE = 0x14

# ---------------------------------------------------------------------------
# ShowWindow commands (MS-SHLLINK 2.1.1)
# ---------------------------------------------------------------------------
SHOW_CMD = {1: "SW_SHOWNORMAL", 3: "SW_SHOWMAXIMIZED", 7: "SW_SHOWMINNOACTIVE"}

# ---------------------------------------------------------------------------
# Hotkey modifier masks
# ---------------------------------------------------------------------------
HOTKEY_MOD = {0x01: "SHIFT", 0x02: "CTRL", 0x04: "ALT"}

# ---------------------------------------------------------------------------
# Drive types (VolumeID)
# ---------------------------------------------------------------------------
DRIVE_TYPES = {
    0: "UNKNOWN",
    1: "NO_ROOT_DIR",
    2: "REMOVABLE",
    3: "FIXED",
    4: "REMOTE",
    5: "CDROM",
    6: "RAMDISK",
}

# ---------------------------------------------------------------------------
# WNNC_NET_* network provider types (CommonNetworkRelativeLink)
# ---------------------------------------------------------------------------
WNNC_NET_TYPES = {
    0x00020000: "WNNC_NET_LANMAN",
    0x00030000: "WNNC_NET_NETWARE",
    0x000D0000: "WNNC_NET_SUN_PC_NFS",
    0x003B0000: "WNNC_NET_DFS",
    0x003D0000: "WNNC_NET_MSFTP",
    0x00430000: "WNNC_NET_MS_NFS",
}

# ---------------------------------------------------------------------------
# FILETIME
# ---------------------------------------------------------------------------
FILETIME_EPOCH_OFFSET = 116444736000000000  # 1601-01-01 -> 1970-01-01, 100ns
FILETIME_TICKS_PER_SECOND = 10_000_000
