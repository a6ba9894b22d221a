"""bottleprobe -- classify Windows PE executables and resolve .lnk shortcuts."""

import logging

__version__ = "0.1.0"

from .cursor import ByteCursor
from .errors import (
    INVALID_PE_FILE,
    INVALID_SHELL_LINK,
    DecodeFailure,
    FormatError,
    InvalidSignatureError,
    MalformedSubsectionError,
    TruncatedInputError,
    UnrecognizedMagicError,
)
from .pe import (
    Architecture,
    COFFHeader,
    Magic,
    PEImage,
    SectionHeader,
    classify_executable,
    decode_pe,
    format_pe,
    read_pe,
)
from .shelllink import (
    LinkFlags,
    LinkInfo,
    LinkInfoFlags,
    ShellLinkFile,
    ShellLinkHeader,
    StringData,
    VolumeID,
    decode_shell_link,
    format_shell_link,
    read_shell_link,
    resolve_target,
)

resolve_shortcut = resolve_target

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "classify_executable",
    "resolve_shortcut",
    "resolve_target",
    "read_pe",
    "decode_pe",
    "format_pe",
    "read_shell_link",
    "decode_shell_link",
    "format_shell_link",
    "ByteCursor",
    "Architecture",
    "Magic",
    "COFFHeader",
    "SectionHeader",
    "PEImage",
    "LinkFlags",
    "LinkInfoFlags",
    "ShellLinkHeader",
    "VolumeID",
    "LinkInfo",
    "StringData",
    "ShellLinkFile",
    "DecodeFailure",
    "INVALID_PE_FILE",
    "INVALID_SHELL_LINK",
    "FormatError",
    "TruncatedInputError",
    "InvalidSignatureError",
    "UnrecognizedMagicError",
    "MalformedSubsectionError",
    "__version__",
]
