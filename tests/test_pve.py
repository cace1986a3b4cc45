"""Tests for pvelxc_runner.pve: pct/pvesh wrapper and template download."""

import io
import subprocess
import urllib.error
from pathlib import Path
from unittest.mock import patch

import pytest

from pvelxc_runner.config import RunnerSettings
from pvelxc_runner.pve import CommandError, PctClient, download_template


def _completed(
    returncode: int = 0, stdout: str = "", stderr: str = ""
) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess([], returncode, stdout=stdout, stderr=stderr)


# ── PctClient ──────────────────────────────────────────────────────────────────


class TestNextVmid:
    def test_parses_pvesh_output(self, console) -> None:
        with patch("subprocess.run", return_value=_completed(stdout="104\n")) as mock_run:
            assert PctClient(console).next_vmid() == 104
        assert mock_run.call_args.args[0] == ["pvesh", "get", "/cluster/nextid"]

    def test_rejects_non_numeric_output(self, console) -> None:
        with patch("subprocess.run", return_value=_completed(stdout="oops")):
            with pytest.raises(RuntimeError, match="Unexpected VMID"):
                PctClient(console).next_vmid()


class TestCreateLxc:
    def test_passes_sizing_and_network(self, console, network) -> None:
        settings = RunnerSettings(cores=8, memory_mib=8192, swap_mib=2048, storage="fast")
        with patch("subprocess.run", return_value=_completed()) as mock_run:
            PctClient(console).create_lxc(
                101,
                Path("debian.tar.zst"),
                hostname="gh-runner-proxmox-abc123",
                network=network,
                settings=settings,
            )
        command = mock_run.call_args.args[0]
        assert command[:4] == ["pct", "create", "101", "debian.tar.zst"]
        options = dict(zip(command[4::2], command[5::2]))
        assert options == {
            "-arch": "amd64",
            "-ostype": "debian",
            "-hostname": "gh-runner-proxmox-abc123",
            "-cores": "8",
            "-memory": "8192",
            "-swap": "2048",
            "-storage": "fast",
            "-features": "nesting=1,keyctl=1",
            "-net0": "name=eth0,bridge=vmbr0,gw=10.0.0.1,ip=10.0.0.50/24,type=veth",
        }


class TestRunFailures:
    def test_non_zero_exit_raises_command_error(self, console) -> None:
        failed = _completed(returncode=2, stdout="partial", stderr="unable to start")
        with patch("subprocess.run", return_value=failed):
            with pytest.raises(CommandError) as exc_info:
                PctClient(console).start_lxc(101)
        err = exc_info.value
        assert err.returncode == 2
        assert err.command == ["pct", "start", "101"]
        assert "start failed with exit code 2" in str(err)
        assert "unable to start" in str(err)

    def test_missing_binary_maps_to_127(self, console) -> None:
        with patch("subprocess.run", side_effect=FileNotFoundError("pct")):
            with pytest.raises(CommandError) as exc_info:
                PctClient(console).resize_lxc(101, "rootfs", "20G")
        assert exc_info.value.returncode == 127

    def test_output_is_echoed_with_label(self, console) -> None:
        with patch("subprocess.run", return_value=_completed(stdout="ok\n", stderr="warn\n")):
            PctClient(console).exec(101, "os-packages", "true")
        out = console.stream.getvalue()
        assert "[os-packages] running..." in out
        assert "[os-packages] ok" in out
        assert "[os-packages][stderr] warn" in out


class TestExec:
    def test_wraps_script_in_bash(self, console) -> None:
        with patch("subprocess.run", return_value=_completed(stdout="done")) as mock_run:
            response = PctClient(console).exec(101, "probe", "echo done")
        assert mock_run.call_args.args[0] == [
            "pct", "exec", "101", "--", "bash", "-c", "echo done"
        ]
        assert response.exit_code == 0
        assert response.stdout == "done"


# ── download_template ──────────────────────────────────────────────────────────


class TestDownloadTemplate:
    URL = "http://download.example.com/images/debian.tar.zst"

    def test_writes_new_file(self, console, workdir, make_response) -> None:
        dest = workdir / "debian.tar.zst"
        with patch("urllib.request.urlopen", return_value=make_response(b"template-bytes")) as mock_open:
            download_template(self.URL, dest, console=console)
        assert dest.read_bytes() == b"template-bytes"
        assert mock_open.call_args.args[0].get_header("Range") is None

    def test_resumes_partial_file(self, console, workdir, make_response) -> None:
        dest = workdir / "debian.tar.zst"
        dest.write_bytes(b"templ")
        with patch("urllib.request.urlopen", return_value=make_response(b"ate-bytes", 206)) as mock_open:
            download_template(self.URL, dest, console=console)
        assert mock_open.call_args.args[0].get_header("Range") == "bytes=5-"
        assert dest.read_bytes() == b"template-bytes"

    def test_full_response_replaces_partial_file(self, console, workdir, make_response) -> None:
        dest = workdir / "debian.tar.zst"
        dest.write_bytes(b"stale")
        with patch("urllib.request.urlopen", return_value=make_response(b"template-bytes", 200)):
            download_template(self.URL, dest, console=console)
        assert dest.read_bytes() == b"template-bytes"

    def test_range_not_satisfiable_means_complete(self, console, workdir) -> None:
        dest = workdir / "debian.tar.zst"
        dest.write_bytes(b"template-bytes")
        error = urllib.error.HTTPError(self.URL, 416, "Range Not Satisfiable", {}, io.BytesIO())
        with patch("urllib.request.urlopen", side_effect=error):
            download_template(self.URL, dest, console=console)
        assert dest.read_bytes() == b"template-bytes"

    def test_http_error_raises(self, console, workdir) -> None:
        dest = workdir / "debian.tar.zst"
        error = urllib.error.HTTPError(self.URL, 404, "Not Found", {}, io.BytesIO())
        with patch("urllib.request.urlopen", side_effect=error):
            with pytest.raises(RuntimeError, match="404"):
                download_template(self.URL, dest, console=console)
