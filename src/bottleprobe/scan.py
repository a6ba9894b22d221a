"""Walk a directory tree and decode every executable and shortcut in it.

Files are read one at a time; a file that cannot be read or decoded becomes
an entry with ``error`` set and the walk continues.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from ._constants import ANSI_CODEPAGE
from ._util import get_logger
from .errors import DecodeFailure
from .pe import Architecture, classify_executable
from .shelllink import decode_shell_link

logger = get_logger(__name__)

SHORTCUT_SUFFIX = ".lnk"
DEFAULT_EXTENSIONS = (".exe", SHORTCUT_SUFFIX)


@dataclass(frozen=True, slots=True)
class ScanEntry:
    """Outcome of decoding one file."""

    path: Path
    kind: str  # "executable" or "shortcut"
    architecture: Architecture | None = None
    target_path: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def iter_candidates(root: Path, extensions: Iterable[str] = DEFAULT_EXTENSIONS) -> Iterator[Path]:
    """Yield files under *root* whose suffix is in *extensions*, sorted by name.

    Matching is case-insensitive.  If *root* is a file it is yielded alone
    when it matches.
    """
    wanted = {ext.lower() for ext in extensions}
    if root.is_file():
        if root.suffix.lower() in wanted:
            yield root
        return
    paths = [p for p in root.rglob("*") if p.is_file() and p.suffix.lower() in wanted]
    yield from sorted(paths, key=lambda p: (p.name.lower(), str(p)))


def scan_file(path: Path, *, codepage: str = ANSI_CODEPAGE) -> ScanEntry:
    """Read and decode a single file, choosing the decoder by suffix."""
    kind = "shortcut" if path.suffix.lower() == SHORTCUT_SUFFIX else "executable"
    try:
        data = path.read_bytes()
    except OSError as exc:
        logger.warning("Could not read file", path=str(path), error=str(exc))
        return ScanEntry(path=path, kind=kind, error=f"Failed to read file: {exc}")

    if kind == "shortcut":
        link = decode_shell_link(data, codepage=codepage)
        if isinstance(link, DecodeFailure):
            return ScanEntry(path=path, kind=kind, error=link.message)
        if link.issues:
            logger.debug("Shortcut decoded partially", path=str(path), issues=list(link.issues))
        return ScanEntry(path=path, kind=kind, target_path=link.target_path)

    arch = classify_executable(data)
    if isinstance(arch, DecodeFailure):
        return ScanEntry(path=path, kind=kind, error=arch.message)
    return ScanEntry(path=path, kind=kind, architecture=arch)


def scan(
    root: str | Path,
    *,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    codepage: str = ANSI_CODEPAGE,
) -> Iterator[ScanEntry]:
    """Decode every matching file under *root*."""
    root = Path(root)
    count = 0
    failed = 0
    for path in iter_candidates(root, extensions):
        entry = scan_file(path, codepage=codepage)
        count += 1
        if not entry.ok:
            failed += 1
            logger.info("Skipping undecodable file", path=str(path), reason=entry.error)
        yield entry
    logger.debug("Scan finished", root=str(root), files=count, failed=failed)
