"""
Create a Proxmox VE LXC container and register it as a self-hosted GitHub
Actions runner. Run this on the Proxmox node itself, since it shells out to
``pct`` and ``pvesh``.

Environment variables (prompted for when unset, may live in .env):
    GH_TOKEN - GitHub token allowed to create runner registration tokens
    OWNERREPO - Repository to register the runner with, as owner/repo

Examples:
    pvelxc-gh-runner
    GH_TOKEN=ghp_... OWNERREPO=octo/app pvelxc-gh-runner --ip 10.0.0.50/24 --gateway 10.0.0.1
    pvelxc-gh-runner --cores 8 --memory 8192 --disk-size 40G
"""

from __future__ import annotations

import argparse
import sys
import traceback
import typing as t

from pathlib import Path

from pvelxc_runner.config import (
    DEFAULT_BOOT_WAIT,
    DEFAULT_BRIDGE,
    DEFAULT_CORES,
    DEFAULT_MEMORY_MIB,
    DEFAULT_ROOTFS_SIZE,
    DEFAULT_STORAGE,
    DEFAULT_SWAP_MIB,
    DEFAULT_TEMPLATE_URL,
    RunnerSettings,
    load_environment,
    resolve_credentials,
    resolve_network,
)
from pvelxc_runner.console import Console
from pvelxc_runner.github import GitHubClient
from pvelxc_runner.provision import ProvisionResult, provision
from pvelxc_runner.pve import CommandError, PctClient


def parse_args(argv: t.Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Provision a PVE LXC container as a GitHub Actions runner"
    )
    parser.add_argument(
        "--template-url",
        default=DEFAULT_TEMPLATE_URL,
        help="LXC template to download (default: Debian 12 standard)",
    )
    parser.add_argument(
        "--cores",
        type=int,
        default=DEFAULT_CORES,
        help=f"CPU cores for the container (default: {DEFAULT_CORES})",
    )
    parser.add_argument(
        "--memory",
        type=int,
        default=DEFAULT_MEMORY_MIB,
        help=f"Memory (MiB) for the container (default: {DEFAULT_MEMORY_MIB})",
    )
    parser.add_argument(
        "--swap",
        type=int,
        default=DEFAULT_SWAP_MIB,
        help=f"Swap (MiB) for the container (default: {DEFAULT_SWAP_MIB})",
    )
    parser.add_argument(
        "--storage",
        default=DEFAULT_STORAGE,
        help=f"Storage for the root filesystem (default: {DEFAULT_STORAGE})",
    )
    parser.add_argument(
        "--disk-size",
        default=DEFAULT_ROOTFS_SIZE,
        help=f"Root filesystem size after resize (default: {DEFAULT_ROOTFS_SIZE})",
    )
    parser.add_argument(
        "--bridge",
        default=DEFAULT_BRIDGE,
        help=f"Network bridge for eth0 (default: {DEFAULT_BRIDGE})",
    )
    parser.add_argument(
        "--ip",
        dest="ip_addr",
        help="Container address in CIDR format (prompted when omitted)",
    )
    parser.add_argument(
        "--gateway",
        help="Container gateway (prompted when omitted)",
    )
    parser.add_argument(
        "--runner-version",
        help="Runner version to install (default: latest release)",
    )
    parser.add_argument(
        "--boot-wait",
        type=float,
        default=DEFAULT_BOOT_WAIT,
        help=f"Seconds to wait after starting the container (default: {DEFAULT_BOOT_WAIT:g})",
    )
    parser.add_argument(
        "--workdir",
        type=Path,
        default=Path("."),
        help="Directory the template is downloaded into (default: current directory)",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Hide command output, only print step headers",
    )
    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace) -> RunnerSettings:
    return RunnerSettings(
        template_url=args.template_url,
        cores=args.cores,
        memory_mib=args.memory,
        swap_mib=args.swap,
        storage=args.storage,
        rootfs_size=args.disk_size,
        bridge=args.bridge,
        boot_wait=args.boot_wait,
        runner_version=args.runner_version,
    )


def print_summary(console: Console, result: ProvisionResult) -> None:
    console.always("\n" + "=" * 60)
    console.always("GitHub Runner Summary")
    console.always("=" * 60)
    console.always(f"  VMID: {result.vmid}")
    console.always(f"  Hostname: {result.hostname}")
    console.always(f"  Address: {result.ip_addr}")
    console.always(f"  Runner: v{result.runner_version}")
    console.always(f"  Repository: {result.owner_repo}")
    console.always("")
    console.always("To inspect the runner:")
    console.always(f"  pct enter {result.vmid}")
    console.always("  cd actions-runner && ./svc.sh status")


def run(args: argparse.Namespace, console: Console) -> ProvisionResult:
    settings = settings_from_args(args)

    runner_version = settings.runner_version
    if not runner_version:
        runner_version = GitHubClient().latest_runner_version()
        console.always(f"Latest github runner version: {runner_version}")

    credentials = resolve_credentials(console)
    network = resolve_network(
        console, settings, ip_addr=args.ip_addr, gateway=args.gateway
    )

    return provision(
        settings,
        console=console,
        pct=PctClient(console),
        github=GitHubClient(token=credentials.token),
        credentials=credentials,
        network=network,
        runner_version=runner_version,
        workdir=args.workdir,
    )


def main(argv: t.Sequence[str] | None = None) -> None:
    load_environment()
    args = parse_args(argv)
    console = Console(quiet=args.quiet)
    try:
        result = run(args, console)
    except KeyboardInterrupt:
        console.always("\nAborted")
        sys.exit(130)
    except CommandError as exc:
        console.always(f"ERROR: {exc}")
        sys.exit(exc.returncode)
    except (RuntimeError, TimeoutError, ValueError) as exc:
        console.always(f"ERROR: {exc}")
        sys.exit(1)
    except Exception:
        traceback.print_exc()
        sys.exit(1)
    print_summary(console, result)


if __name__ == "__main__":
    main()
