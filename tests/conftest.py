"""Shared fixtures for pvelxc_runner unit tests."""

import io
from pathlib import Path

import pytest

from pvelxc_runner.config import Credentials, NetworkConfig, RunnerSettings
from pvelxc_runner.console import Console


class FakeResponse(io.BytesIO):
    """Stand-in for the object ``urllib.request.urlopen`` returns."""

    def __init__(self, body: bytes = b"", status: int = 200) -> None:
        super().__init__(body)
        self.status = status


@pytest.fixture()
def console() -> Console:
    return Console(stream=io.StringIO())


@pytest.fixture()
def settings() -> RunnerSettings:
    return RunnerSettings(
        template_url="http://download.example.com/images/debian-12-standard_12.7-1_amd64.tar.zst",
        boot_wait=0,
    )


@pytest.fixture()
def credentials() -> Credentials:
    return Credentials(token="ghp_testtoken", owner_repo="octo/app")


@pytest.fixture()
def network() -> NetworkConfig:
    return NetworkConfig(ip_addr="10.0.0.50/24", gateway="10.0.0.1")


@pytest.fixture()
def workdir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture()
def make_response():
    """Factory for fake ``urlopen`` responses."""
    return FakeResponse
