"""Integration tests for the bottleprobe CLI."""

import json
import subprocess
import sys


def run_cli(*args):
    """Run ``bottleprobe`` as a subprocess and return CompletedProcess."""
    return subprocess.run(
        [sys.executable, "-m", "bottleprobe", *args],
        capture_output=True,
        text=True,
        timeout=30,
    )


def _write(tmp_path, data, name):
    """Write *data* to *tmp_path/name* and return the path string."""
    p = tmp_path / name
    p.write_bytes(data)
    return str(p)


class TestPeSubcommand:
    """Test ``bottleprobe pe``."""

    def test_text_output(self, tmp_path, pe32plus_bytes):
        path = _write(tmp_path, pe32plus_bytes, "app.exe")
        result = run_cli("pe", path)
        assert result.returncode == 0
        assert f"FILE: {path}" in result.stdout
        assert "64-bit" in result.stdout
        assert ".rdata" in result.stdout

    def test_json_output(self, tmp_path, pe32_bytes):
        path = _write(tmp_path, pe32_bytes, "app.exe")
        result = run_cli("pe", path, "--json")
        assert result.returncode == 0
        data = json.loads(result.stdout)
        assert data["path"] == path
        assert data["magic"] == "PE32"
        assert data["architecture"] == "32-bit"
        assert data["coff_header"]["machine_name"] == "x86"
        assert data["sections"][0]["name"] == ".text"

    def test_invalid_file(self, tmp_path):
        path = _write(tmp_path, b"not a PE", "bad.exe")
        result = run_cli("pe", path)
        assert result.returncode == 2
        assert "Invalid PE file" in result.stderr

    def test_invalid_file_json(self, tmp_path):
        path = _write(tmp_path, b"", "empty.exe")
        result = run_cli("pe", path, "--json")
        assert result.returncode == 2
        assert json.loads(result.stdout) == {"path": path, "error": "Invalid PE file"}

    def test_missing_file(self, tmp_path):
        result = run_cli("pe", str(tmp_path / "nope.exe"))
        assert result.returncode == 2
        assert "[-]" in result.stderr


class TestLnkSubcommand:
    """Test ``bottleprobe lnk``."""

    def test_text_output(self, tmp_path, notepad_lnk_bytes):
        path = _write(tmp_path, notepad_lnk_bytes, "notepad.lnk")
        result = run_cli("lnk", path)
        assert result.returncode == 0
        assert r"TargetPath:      C:\Windows\notepad.exe" in result.stdout
        assert '"Notepad"' in result.stdout

    def test_json_output(self, tmp_path, notepad_lnk_bytes):
        path = _write(tmp_path, notepad_lnk_bytes, "notepad.lnk")
        result = run_cli("lnk", path, "--json")
        assert result.returncode == 0
        data = json.loads(result.stdout)
        assert data["target_path"] == r"C:\Windows\notepad.exe"
        assert data["header"]["clsid_valid"] is True
        assert "HAS_LINK_INFO" in data["header"]["flag_names"]
        assert data["string_data"]["arguments"] == "--flag value"
        assert data["link_info"]["volume"]["volume_label"] == "SYSTEM"
        assert data["issues"] == []

    def test_partial_link_is_success(self, tmp_path, make_header):
        path = _write(tmp_path, make_header(0x02), "partial.lnk")
        result = run_cli("lnk", path, "--json")
        assert result.returncode == 0
        data = json.loads(result.stdout)
        assert data["link_info"] is None
        assert data["issues"]

    def test_codepage(self, tmp_path, make_lnk):
        data = make_lnk(strings={"name": "\u0434"}, unicode=False, codepage="cp1251")
        path = _write(tmp_path, data, "ru.lnk")
        result = run_cli("lnk", path, "--json", "--codepage", "cp1251")
        assert result.returncode == 0
        assert json.loads(result.stdout)["string_data"]["name"] == "\u0434"

    def test_unknown_codepage(self, tmp_path, notepad_lnk_bytes):
        path = _write(tmp_path, notepad_lnk_bytes, "notepad.lnk")
        result = run_cli("lnk", path, "--codepage", "bogus")
        assert result.returncode != 0
        assert "unknown code page: bogus" in result.stderr
        assert "Traceback" not in result.stderr

    def test_invalid_file(self, tmp_path):
        path = _write(tmp_path, bytes(10), "bad.lnk")
        result = run_cli("lnk", path)
        assert result.returncode == 2
        assert "Invalid shell link file" in result.stderr


class TestScanSubcommand:
    """Test ``bottleprobe scan``."""

    def test_text_output(self, tmp_path, pe32plus_bytes, notepad_lnk_bytes):
        _write(tmp_path, pe32plus_bytes, "game.exe")
        _write(tmp_path, notepad_lnk_bytes, "Notepad.lnk")
        result = run_cli("scan", str(tmp_path))
        assert result.returncode == 0
        lines = result.stdout.splitlines()
        assert lines[0].endswith("game.exe [64-bit]")
        assert lines[1].endswith(r"Notepad.lnk -> C:\Windows\notepad.exe")

    def test_json_with_failure(self, tmp_path, pe32_bytes):
        _write(tmp_path, pe32_bytes, "a.exe")
        _write(tmp_path, b"junk", "b.exe")
        result = run_cli("scan", str(tmp_path), "--json")
        assert result.returncode == 2
        entries = json.loads(result.stdout)
        assert [e["architecture"] for e in entries] == ["32-bit", None]
        assert entries[1]["error"] == "Invalid PE file"

    def test_ext_filter(self, tmp_path, pe32_bytes, notepad_lnk_bytes):
        _write(tmp_path, pe32_bytes, "a.exe")
        _write(tmp_path, notepad_lnk_bytes, "n.lnk")
        result = run_cli("scan", str(tmp_path), "--json", "--ext", ".lnk")
        entries = json.loads(result.stdout)
        assert [e["kind"] for e in entries] == ["shortcut"]

    def test_unknown_codepage(self, tmp_path):
        result = run_cli("scan", str(tmp_path), "--codepage", "bogus")
        assert result.returncode != 0
        assert "Traceback" not in result.stderr

    def test_missing_root(self, tmp_path):
        result = run_cli("scan", str(tmp_path / "nope"))
        assert result.returncode == 2


class TestGlobalOptions:
    """Options and behaviour shared by all subcommands."""

    def test_no_command(self):
        result = run_cli()
        assert result.returncode == 1
        assert "usage" in result.stdout.lower()

    def test_verbose_logs_to_stderr(self, tmp_path):
        path = _write(tmp_path, b"", "empty.exe")
        result = run_cli("-v", "pe", path, "--json")
        assert "Rejected PE image" in result.stderr
        # stdout stays parseable
        json.loads(result.stdout)

    def test_quiet_by_default(self, tmp_path):
        path = _write(tmp_path, b"", "empty.exe")
        result = run_cli("pe", path, "--json")
        assert "Rejected PE image" not in result.stderr
