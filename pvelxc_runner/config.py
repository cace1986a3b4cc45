from __future__ import annotations

import os
import posixpath
import secrets
import typing as t
import urllib.parse

from dataclasses import dataclass

import dotenv

from pvelxc_runner.console import Console

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

GITHUB_API_URL = "https://api.github.com"
GITHUB_URL = "https://github.com"
RUNNER_RELEASE_URL = (
    "https://github.com/actions/runner/releases/download/"
    "v{version}/actions-runner-linux-x64-{version}.tar.gz"
)

DEFAULT_TEMPLATE_URL = (
    "http://download.proxmox.com/images/system/debian-12-standard_12.7-1_amd64.tar.zst"
)
DEFAULT_ROOTFS_SIZE = "20G"
DEFAULT_ARCH = "amd64"
DEFAULT_OSTYPE = "debian"
DEFAULT_CORES = 4
DEFAULT_MEMORY_MIB = 4096
DEFAULT_SWAP_MIB = 4096
DEFAULT_STORAGE = "local-lvm"
DEFAULT_BRIDGE = "vmbr0"
DEFAULT_IP_ADDR = "192.168.1.101/24"
DEFAULT_GATEWAY = "192.168.1.1"
DEFAULT_BOOT_WAIT = 10.0

HOSTNAME_PREFIX = "gh-runner-proxmox"
CONTAINER_FEATURES = "nesting=1,keyctl=1"

OS_PACKAGES = (
    "git",
    "curl",
    "zip",
    "liblttng-ust1",
    "libkrb5-3",
    "zlib1g",
    "libicu-dev",
    "libssl-dev",
)

ENV_GH_TOKEN = "GH_TOKEN"
ENV_OWNERREPO = "OWNERREPO"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class RunnerSettings:
    template_url: str = DEFAULT_TEMPLATE_URL
    arch: str = DEFAULT_ARCH
    ostype: str = DEFAULT_OSTYPE
    cores: int = DEFAULT_CORES
    memory_mib: int = DEFAULT_MEMORY_MIB
    swap_mib: int = DEFAULT_SWAP_MIB
    storage: str = DEFAULT_STORAGE
    rootfs_size: str = DEFAULT_ROOTFS_SIZE
    bridge: str = DEFAULT_BRIDGE
    boot_wait: float = DEFAULT_BOOT_WAIT
    runner_version: str | None = None
    default_ip_addr: str = DEFAULT_IP_ADDR
    default_gateway: str = DEFAULT_GATEWAY


@dataclass(slots=True, frozen=True)
class Credentials:
    token: str
    owner_repo: str


@dataclass(slots=True, frozen=True)
class NetworkConfig:
    ip_addr: str
    gateway: str

    def net0(self, bridge: str = DEFAULT_BRIDGE) -> str:
        """Render the ``-net0`` option for ``pct create``."""
        return f"name=eth0,bridge={bridge},gw={self.gateway},ip={self.ip_addr},type=veth"


# ---------------------------------------------------------------------------
# Resolution helpers
# ---------------------------------------------------------------------------


def load_environment() -> None:
    dotenv.load_dotenv()


def resolve_credentials(
    console: Console,
    environ: t.Mapping[str, str] | None = None,
) -> Credentials:
    """Read the GitHub token and owner/repo, prompting for whichever is unset."""
    env = os.environ if environ is None else environ
    token = env.get(ENV_GH_TOKEN, "")
    if not token:
        token = console.prompt("Enter github token")
    owner_repo = env.get(ENV_OWNERREPO, "")
    if not owner_repo:
        owner_repo = console.prompt("Enter github owner/repo")
    if not token or not owner_repo:
        raise ValueError(f"{ENV_GH_TOKEN} and {ENV_OWNERREPO} must not be empty")
    if owner_repo.count("/") != 1:
        raise ValueError(
            f"Invalid {ENV_OWNERREPO} {owner_repo!r}. Expected 'owner/repo'"
        )
    return Credentials(token=token, owner_repo=owner_repo)


def resolve_network(
    console: Console,
    settings: RunnerSettings,
    *,
    ip_addr: str | None = None,
    gateway: str | None = None,
) -> NetworkConfig:
    if not ip_addr:
        ip_addr = console.prompt(
            "Container Address IP (CIDR format)", settings.default_ip_addr
        )
    if not gateway:
        gateway = console.prompt("Container Gateway IP", settings.default_gateway)
    return NetworkConfig(ip_addr=ip_addr, gateway=gateway)


def url_basename(url: str) -> str:
    return posixpath.basename(urllib.parse.urlparse(url).path)


def template_filename(url: str) -> str:
    return url_basename(url)


def runner_archive_url(version: str) -> str:
    return RUNNER_RELEASE_URL.format(version=version)


def runner_archive_filename(version: str) -> str:
    return url_basename(runner_archive_url(version))


def random_hostname() -> str:
    return f"{HOSTNAME_PREFIX}-{secrets.token_hex(3)}"
