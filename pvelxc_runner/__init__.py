"""Provision a Proxmox VE LXC container as a self-hosted GitHub Actions runner."""

__version__ = "0.1.0"
