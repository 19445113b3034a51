"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from easy_npm.console import Log
from easy_npm.errors import CommandFailedError, CommandNotFoundError
from easy_npm.models import ProcessResult


@dataclass
class Call:
    argv: list[str]
    cwd: Path | None


@dataclass
class Response:
    stdout: str = ""
    returncode: int = 0
    effect: Callable[[list[str], Path | None], None] | None = None


@dataclass
class FakeRunner:
    """Stands in for ProcessRunner; records calls and replays scripted results.

    Responses are matched on the longest registered argv prefix. Unmatched
    commands succeed with empty output.
    """

    calls: list[Call] = field(default_factory=list)
    responses: dict[tuple[str, ...], Response] = field(default_factory=dict)
    missing: set[str] = field(default_factory=set)

    def respond(
        self,
        *prefix: str,
        stdout: str = "",
        returncode: int = 0,
        effect: Callable[[list[str], Path | None], None] | None = None,
    ) -> None:
        self.responses[prefix] = Response(stdout, returncode, effect)

    def fail(self, *prefix: str, returncode: int = 1) -> None:
        self.respond(*prefix, returncode=returncode)

    def ensure_commands(self, commands) -> None:
        for command in commands:
            if command in self.missing:
                raise CommandNotFoundError(command)

    def run(
        self,
        command: str,
        *args: str,
        cwd: Path | None = None,
        env=None,
        echo: bool = True,
        on_line=None,
        check: bool = True,
    ) -> ProcessResult:
        argv = [command, *args]
        self.calls.append(Call(argv, cwd))
        response = self._match(argv)
        if response.effect is not None:
            response.effect(argv, cwd)
        if on_line is not None:
            for line in response.stdout.splitlines():
                on_line(line)
        if check and response.returncode != 0:
            raise CommandFailedError(argv, response.returncode)
        return ProcessResult(
            argv=argv, returncode=response.returncode, stdout=response.stdout
        )

    def git(self, *args: str, cwd: Path | None = None, check: bool = True) -> str:
        return self.run("git", *args, cwd=cwd, echo=False, check=check).stdout.strip()

    def _match(self, argv: list[str]) -> Response:
        best: tuple[str, ...] | None = None
        for prefix in self.responses:
            if tuple(argv[: len(prefix)]) == prefix and (
                best is None or len(prefix) > len(best)
            ):
                best = prefix
        return self.responses[best] if best is not None else Response()

    # Query helpers

    @property
    def argvs(self) -> list[list[str]]:
        return [call.argv for call in self.calls]

    def commands(self, *prefix: str) -> list[Call]:
        return [c for c in self.calls if tuple(c.argv[: len(prefix)]) == prefix]

    def ran(self, *prefix: str) -> bool:
        return bool(self.commands(*prefix))


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def log() -> MagicMock:
    """A Log whose channels can be asserted on."""
    return MagicMock(spec=Log)


def write_package(directory: Path, **manifest) -> Path:
    """Create ``directory`` with a package.json holding ``manifest``."""
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "package.json").write_text(json.dumps(manifest))
    return directory


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A root with an app linked to a lib, both buildable and testable.

    proj/            (no scripts)
    proj/app  → file:../lib
    proj/lib
    """
    root = tmp_path / "proj"
    write_package(root)
    write_package(
        root / "app",
        name="app",
        scripts={"build": "tsc", "test": "jest", "deploy": "ansible-playbook x"},
        dependencies={"lib": "file:../lib", "react": "^18.0.0"},
    )
    write_package(
        root / "lib",
        name="lib",
        scripts={"build": "tsc"},
        keywords=["library"],
    )
    return root
