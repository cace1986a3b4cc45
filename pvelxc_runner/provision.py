"""
The provisioning flow, one step after another.

1. Allocate a VMID and download the container template
2. Create, resize and start the LXC container
3. Install the runner's OS dependencies inside it
4. Fetch a registration token and install the runner as a service
5. Remove the downloaded template

Every step raises on failure, so nothing after a failed step runs. The
template file is only removed once the runner service has started.
"""

from __future__ import annotations

import shlex
import textwrap
import time

from dataclasses import dataclass
from pathlib import Path

from pvelxc_runner.config import (
    GITHUB_URL,
    OS_PACKAGES,
    Credentials,
    NetworkConfig,
    RunnerSettings,
    random_hostname,
    runner_archive_filename,
    runner_archive_url,
    template_filename,
)
from pvelxc_runner.console import Console
from pvelxc_runner.github import GitHubClient
from pvelxc_runner.pve import PctClient, download_template

RUNNER_DIR = "actions-runner"
ROOTFS_DISK = "rootfs"


@dataclass(slots=True)
class ProvisionResult:
    vmid: int
    hostname: str
    runner_version: str
    owner_repo: str
    ip_addr: str


# ---------------------------------------------------------------------------
# In-container scripts
# ---------------------------------------------------------------------------


def os_packages_script(packages: tuple[str, ...] = OS_PACKAGES) -> str:
    package_list = " ".join(shlex.quote(pkg) for pkg in packages)
    return f"apt update -y && apt install -y {package_list} && passwd -d root"


def runner_install_script(
    *,
    runner_version: str,
    owner_repo: str,
    registration_token: str,
) -> str:
    archive = shlex.quote(runner_archive_filename(runner_version))
    archive_url = shlex.quote(runner_archive_url(runner_version))
    repo_url = shlex.quote(f"{GITHUB_URL}/{owner_repo}")
    token = shlex.quote(registration_token)
    return textwrap.dedent(
        f"""
        mkdir {RUNNER_DIR} && cd {RUNNER_DIR} &&
        curl -o {archive} -L {archive_url} &&
        tar xzf {archive} &&
        RUNNER_ALLOW_RUNASROOT=1 ./config.sh --unattended --url {repo_url} --token {token} &&
        ./svc.sh install root &&
        ./svc.sh start
        """
    ).strip()


# ---------------------------------------------------------------------------
# Main flow
# ---------------------------------------------------------------------------


def provision(
    settings: RunnerSettings,
    *,
    console: Console,
    pct: PctClient,
    github: GitHubClient,
    credentials: Credentials,
    network: NetworkConfig,
    runner_version: str,
    workdir: Path,
) -> ProvisionResult:
    """Create the container and register it as a runner for ``credentials.owner_repo``."""
    template_path = workdir / template_filename(settings.template_url)

    vmid = pct.next_vmid()

    console.step(f"-- Downloading {template_path.name} template...")
    download_template(settings.template_url, template_path, console=console)

    hostname = random_hostname()
    console.step(f"-- Creating LXC container with ID:{vmid}")
    pct.create_lxc(
        vmid,
        template_path,
        hostname=hostname,
        network=network,
        settings=settings,
    )

    console.step(f"-- Resizing container to {settings.rootfs_size}")
    pct.resize_lxc(vmid, ROOTFS_DISK, settings.rootfs_size)

    console.step("-- Starting container")
    pct.start_lxc(vmid)
    if settings.boot_wait > 0:
        time.sleep(settings.boot_wait)

    console.step("-- Running updates")
    pct.exec(vmid, "os-packages", os_packages_script())

    console.step("-- Getting runner installation token")
    registration_token = github.registration_token(credentials.owner_repo)

    console.step("-- Installing runner")
    pct.exec(
        vmid,
        "install-runner",
        runner_install_script(
            runner_version=runner_version,
            owner_repo=credentials.owner_repo,
            registration_token=registration_token,
        ),
    )

    template_path.unlink()

    return ProvisionResult(
        vmid=vmid,
        hostname=hostname,
        runner_version=runner_version,
        owner_repo=credentials.owner_repo,
        ip_addr=network.ip_addr,
    )
