from __future__ import annotations

import shutil
import subprocess
import typing as t
import urllib.error
import urllib.request

from dataclasses import dataclass
from pathlib import Path

from pvelxc_runner.config import CONTAINER_FEATURES, NetworkConfig, RunnerSettings
from pvelxc_runner.console import Console

DOWNLOAD_CHUNK_SIZE = 1024 * 1024


class CommandError(RuntimeError):
    """A hypervisor command exited non-zero."""

    def __init__(
        self,
        label: str,
        command: t.Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self.label = label
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        error_parts = [f"{label} failed with exit code {returncode}"]
        if stdout.strip():
            error_parts.append(f"stdout:\n{stdout.rstrip()}")
        if stderr.strip():
            error_parts.append(f"stderr:\n{stderr.rstrip()}")
        super().__init__("\n".join(error_parts))


@dataclass(slots=True)
class PveExecResponse:
    """Response from a pct/pvesh invocation."""
    exit_code: int
    stdout: str
    stderr: str


# ---------------------------------------------------------------------------
# pct / pvesh wrapper
# ---------------------------------------------------------------------------


class PctClient:
    """Runs Proxmox container commands on the local node."""

    def __init__(
        self,
        console: Console,
        *,
        pct: str = "pct",
        pvesh: str = "pvesh",
    ) -> None:
        self.console = console
        self.pct = pct
        self.pvesh = pvesh

    def _run(
        self,
        label: str,
        command: list[str],
        *,
        timeout: float | None = None,
    ) -> PveExecResponse:
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise TimeoutError(f"{label} timed out after {timeout}s") from e
        except FileNotFoundError as e:
            raise CommandError(label, command, 127, stderr=f"{command[0]}: not found") from e

        self.console.output(label, result.stdout, result.stderr)

        if result.returncode != 0:
            raise CommandError(
                label, command, result.returncode, result.stdout, result.stderr
            )

        return PveExecResponse(
            exit_code=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    def next_vmid(self) -> int:
        """Ask the cluster for the next free VMID."""
        response = self._run("nextid", [self.pvesh, "get", "/cluster/nextid"])
        raw = response.stdout.strip().strip('"')
        try:
            return int(raw)
        except ValueError as e:
            raise RuntimeError(f"Unexpected VMID from pvesh: {raw!r}") from e

    def create_lxc(
        self,
        vmid: int,
        template: Path | str,
        *,
        hostname: str,
        network: NetworkConfig,
        settings: RunnerSettings,
    ) -> None:
        command = [
            self.pct, "create", str(vmid), str(template),
            "-arch", settings.arch,
            "-ostype", settings.ostype,
            "-hostname", hostname,
            "-cores", str(settings.cores),
            "-memory", str(settings.memory_mib),
            "-swap", str(settings.swap_mib),
            "-storage", settings.storage,
            "-features", CONTAINER_FEATURES,
            "-net0", network.net0(settings.bridge),
        ]
        self._run("create", command)

    def resize_lxc(self, vmid: int, disk: str, size: str) -> None:
        self._run("resize", [self.pct, "resize", str(vmid), disk, size])

    def start_lxc(self, vmid: int) -> None:
        self._run("start", [self.pct, "start", str(vmid)])

    def exec(
        self,
        vmid: int,
        label: str,
        script: str,
        *,
        timeout: float | None = None,
    ) -> PveExecResponse:
        """Run a bash script inside the container via pct exec."""
        self.console.info(f"[{label}] running...")
        command = [self.pct, "exec", str(vmid), "--", "bash", "-c", script]
        return self._run(label, command, timeout=timeout)


# ---------------------------------------------------------------------------
# Template download
# ---------------------------------------------------------------------------


def download_template(url: str, dest: Path, *, console: Console) -> Path:
    """Download ``url`` to ``dest``, resuming a partial file if present."""
    offset = dest.stat().st_size if dest.exists() else 0
    headers: dict[str, str] = {}
    if offset:
        headers["Range"] = f"bytes={offset}-"
        console.info(f"Resuming {dest.name} from byte {offset}")

    req = urllib.request.Request(url, headers=headers)
    try:
        with urllib.request.urlopen(req, timeout=60) as response:
            # 200 means the server ignored the range and sent the whole file.
            mode = "ab" if offset and response.status == 206 else "wb"
            with dest.open(mode) as handle:
                shutil.copyfileobj(response, handle, DOWNLOAD_CHUNK_SIZE)
    except urllib.error.HTTPError as e:
        if e.code == 416 and offset:
            console.info(f"{dest.name} already fully downloaded")
            return dest
        raise RuntimeError(f"Template download failed {e.code}: {e.reason} ({url})") from e
    except urllib.error.URLError as e:
        raise RuntimeError(f"Template download failed: {e.reason} ({url})") from e

    console.info(f"Saved {dest} ({dest.stat().st_size} bytes)")
    return dest
