#!/usr/bin/env python3
"""
Provision a Proxmox VE LXC container and register it as a self-hosted GitHub
Actions runner. Must run on the PVE node (uses pct and pvesh).

Examples:
    ./scripts/pvelxc-gh-runner.py
    uv run --env-file .env ./scripts/pvelxc-gh-runner.py --ip 10.0.0.50/24 --gateway 10.0.0.1
"""

from pvelxc_runner.cli import main

if __name__ == "__main__":
    main()
