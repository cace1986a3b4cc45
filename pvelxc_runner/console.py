from __future__ import annotations

import sys
import typing as t

from dataclasses import dataclass, field

YELLOW = "\033[33m"
RESET = "\033[0m"


@dataclass(slots=True)
class Console:
    """Line-oriented console output for the provisioning flow."""

    quiet: bool = False
    stream: t.TextIO = field(default_factory=lambda: sys.stdout)

    def info(self, message: str) -> None:
        if self.quiet:
            return
        print(message, file=self.stream)

    def always(self, message: str) -> None:
        print(message, file=self.stream)

    def step(self, message: str) -> None:
        """Print a step header in yellow."""
        print(f"{YELLOW}{message}{RESET}", file=self.stream)

    def output(self, label: str, stdout: str, stderr: str) -> None:
        """Echo captured command output, one prefixed line at a time."""
        for line in stdout.splitlines():
            self.info(f"[{label}] {line}")
        for line in stderr.splitlines():
            self.info(f"[{label}][stderr] {line}")

    def prompt(self, question: str, default: str | None = None) -> str:
        """Read a line from the terminal, falling back to ``default`` when blank."""
        if default is not None:
            question = f"{question} [{default}]"
        answer = input(f"{question}: ").strip()
        if not answer and default is not None:
            return default
        return answer
