from __future__ import annotations

import json
import re
import typing as t
import urllib.error
import urllib.request

from pvelxc_runner.config import GITHUB_API_URL

GITHUB_API_VERSION = "2022-11-28"
RUNNER_REPO = "actions/runner"

_TOKEN_PATTERN = re.compile(r'"token"\s*:\s*"([^"]*)"')


class GitHubError(RuntimeError):
    """Raised when the GitHub API rejects a request or answers unexpectedly."""


def extract_registration_token(body: str) -> str:
    """Pull the bare token value out of a registration-token response body."""
    match = _TOKEN_PATTERN.search(body)
    if match is None or not match.group(1):
        raise GitHubError("No registration token found in GitHub response")
    return match.group(1)


class GitHubClient:
    """Minimal GitHub REST client for runner registration."""

    def __init__(
        self,
        token: str | None = None,
        api_url: str = GITHUB_API_URL,
        timeout: float = 60,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def _request(self, method: str, endpoint: str) -> str:
        """Make an API request and return the decoded response body."""
        url = f"{self.api_url}{endpoint}"
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        body = b"" if method == "POST" else None
        req = urllib.request.Request(url, data=body, headers=headers, method=method)

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                return response.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8", errors="replace")
            raise GitHubError(
                f"GitHub API error {e.code}: {e.reason}\n{error_body}"
            ) from e
        except urllib.error.URLError as e:
            raise GitHubError(f"GitHub API unreachable: {e.reason}") from e

    def latest_runner_version(self) -> str:
        """Return the latest actions/runner release without its leading ``v``."""
        body = self._request("GET", f"/repos/{RUNNER_REPO}/releases/latest")
        try:
            release: dict[str, t.Any] = json.loads(body)
        except json.JSONDecodeError as exc:
            raise GitHubError(f"Malformed release response: {exc}") from exc
        tag = release.get("tag_name")
        if not tag:
            raise GitHubError("Latest runner release has no tag_name")
        return tag.removeprefix("v")

    def registration_token(self, owner_repo: str) -> str:
        """Request a short-lived runner registration token for ``owner/repo``."""
        if not self.token:
            raise GitHubError("A GitHub token is required to request a registration token")
        body = self._request(
            "POST", f"/repos/{owner_repo}/actions/runners/registration-token"
        )
        return extract_registration_token(body)
