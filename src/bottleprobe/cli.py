"""CLI entry point: ``bottleprobe pe`` / ``bottleprobe lnk`` / ``bottleprobe scan``."""

import argparse
import codecs
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

import structlog

from ._constants import ANSI_CODEPAGE
from .errors import DecodeFailure
from .pe import PEImage, decode_pe, format_pe
from .scan import DEFAULT_EXTENSIONS, ScanEntry, scan
from .shelllink import ShellLinkFile, decode_shell_link, format_shell_link

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_DECODE_FAILED = 2


def _configure_logging(verbose: bool) -> None:
    """Send log output to stderr so stdout stays parseable."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, stream=sys.stderr, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
    )


def _codepage(value: str) -> str:
    """argparse type: accept only encodings Python knows."""
    try:
        codecs.lookup(value)
    except LookupError:
        raise argparse.ArgumentTypeError(f"unknown code page: {value}") from None
    return value


def _read(path: str) -> bytes | None:
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        print(f"[-] {path}: {exc}", file=sys.stderr)
        return None


def _print_banner(path: str) -> None:
    print(f"\n{'=' * 70}")
    print(f"FILE: {path}")
    print(f"{'=' * 70}")


def _serialize_pe(image: PEImage) -> dict:
    """Convert PEImage to a JSON-friendly dict."""
    d = asdict(image)
    d["magic"] = str(image.magic) if image.magic is not None else None
    d["architecture"] = image.architecture.label
    d["coff_header"]["machine_name"] = image.coff_header.machine_name
    return d


def _serialize_link(link: ShellLinkFile) -> dict:
    """Convert ShellLinkFile to a JSON-friendly dict."""
    d = asdict(link)
    d["header"]["clsid"] = link.header.clsid_str
    d["header"]["clsid_valid"] = link.header.clsid_valid
    d["header"]["link_flags"] = int(link.flags)
    d["header"]["flag_names"] = link.flags.names()
    if link.id_list is not None:
        d["id_list"] = link.id_list.hex()
    if link.link_info is not None:
        d["link_info"]["flags"] = int(link.link_info.flags)
    d["issues"] = list(link.issues)
    d["target_path"] = link.target_path
    return d


def _serialize_entry(entry: ScanEntry) -> dict:
    return {
        "path": str(entry.path),
        "kind": entry.kind,
        "architecture": entry.architecture.label if entry.architecture else None,
        "target_path": entry.target_path,
        "error": entry.error,
    }


def _cmd_pe(args: argparse.Namespace) -> int:
    status = EXIT_OK
    for path in args.files:
        data = _read(path)
        if data is None:
            status = EXIT_DECODE_FAILED
            continue
        image = decode_pe(data)
        if isinstance(image, DecodeFailure):
            status = EXIT_DECODE_FAILED
            if args.json:
                print(json.dumps({"path": path, "error": image.message}, indent=2))
            else:
                print(f"[-] {path}: {image.message}", file=sys.stderr)
            continue
        if args.json:
            print(json.dumps({"path": path, **_serialize_pe(image)}, indent=2))
        else:
            _print_banner(path)
            print(format_pe(image))
            print()
    return status


def _cmd_lnk(args: argparse.Namespace) -> int:
    status = EXIT_OK
    for path in args.files:
        data = _read(path)
        if data is None:
            status = EXIT_DECODE_FAILED
            continue
        link = decode_shell_link(data, codepage=args.codepage)
        if isinstance(link, DecodeFailure):
            status = EXIT_DECODE_FAILED
            if args.json:
                print(json.dumps({"path": path, "error": link.message}, indent=2))
            else:
                print(f"[-] {path}: {link.message}", file=sys.stderr)
            continue
        if args.json:
            print(json.dumps({"path": path, **_serialize_link(link)}, indent=2))
        else:
            _print_banner(path)
            print(format_shell_link(link))
            print()
    return status


def _cmd_scan(args: argparse.Namespace) -> int:
    root = Path(args.root)
    if not root.exists():
        print(f"[-] {root}: no such file or directory", file=sys.stderr)
        return EXIT_DECODE_FAILED

    extensions = args.ext or DEFAULT_EXTENSIONS
    entries = list(scan(root, extensions=extensions, codepage=args.codepage))
    if args.json:
        print(json.dumps([_serialize_entry(e) for e in entries], indent=2))
    else:
        for e in entries:
            if e.error:
                print(f"[-] {e.path}: {e.error}")
            elif e.kind == "shortcut":
                print(f"[+] {e.path} -> {e.target_path or '(unresolved)'}")
            else:
                print(f"[+] {e.path} [{e.architecture.label or 'unknown'}]")
    return EXIT_DECODE_FAILED if any(not e.ok for e in entries) else EXIT_OK


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="bottleprobe",
        description="Classify Windows PE executables and resolve .lnk shortcuts",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging on stderr"
    )
    sub = parser.add_subparsers(dest="command")

    # -- pe --
    pp = sub.add_parser("pe", help="Decode PE executable header(s)")
    pp.add_argument("files", nargs="+", help="Executable(s) to decode")
    pp.add_argument("--json", action="store_true", help="Output as JSON")

    # -- lnk --
    lp = sub.add_parser("lnk", help="Decode .lnk shortcut file(s)")
    lp.add_argument("files", nargs="+", help="LNK file(s) to decode")
    lp.add_argument("--json", action="store_true", help="Output as JSON")
    lp.add_argument(
        "--codepage",
        type=_codepage,
        default=ANSI_CODEPAGE,
        help=f"Code page for non-Unicode strings (default: {ANSI_CODEPAGE})",
    )

    # -- scan --
    sp = sub.add_parser("scan", help="Decode every executable and shortcut under a directory")
    sp.add_argument("root", help="Directory (or single file) to scan")
    sp.add_argument("--json", action="store_true", help="Output as JSON")
    sp.add_argument(
        "--ext",
        action="append",
        default=None,
        metavar="SUFFIX",
        help="File suffix to include, repeatable (default: .exe and .lnk)",
    )
    sp.add_argument(
        "--codepage",
        type=_codepage,
        default=ANSI_CODEPAGE,
        help=f"Code page for non-Unicode strings (default: {ANSI_CODEPAGE})",
    )

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(EXIT_USAGE)

    commands = {"pe": _cmd_pe, "lnk": _cmd_lnk, "scan": _cmd_scan}
    status = commands[args.command](args)
    if status != EXIT_OK:
        sys.exit(status)


if __name__ == "__main__":
    main()
