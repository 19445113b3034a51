"""Tests for easy_npm.shell."""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from easy_npm.console import Log
from easy_npm.errors import CommandFailedError, CommandNotFoundError
from easy_npm.shell import ProcessRunner


@pytest.fixture
def process_runner() -> ProcessRunner:
    return ProcessRunner(MagicMock(spec=Log))


def _python(code: str) -> tuple[str, ...]:
    return (sys.executable, "-c", code)


class TestRun:
    """Tests for ProcessRunner.run()."""

    def test_captures_stdout(self, process_runner: ProcessRunner) -> None:
        """Stdout is returned line for line."""
        result = process_runner.run(
            *_python("print('one'); print('two')"), echo=False
        )

        assert result.ok
        assert result.stdout.splitlines() == ["one", "two"]

    def test_captures_stderr(self, process_runner: ProcessRunner) -> None:
        """Stderr is captured separately from stdout."""
        code = "import sys; sys.stderr.write('oops\\n')"
        result = process_runner.run(*_python(code), echo=False)
        assert result.stderr == "oops\n"

    def test_keeps_output_without_trailing_newline(
        self, process_runner: ProcessRunner
    ) -> None:
        """A final partial line is still captured."""
        code = "import sys; sys.stdout.write('a\\nb')"
        result = process_runner.run(*_python(code), echo=False)
        assert result.stdout == "a\nb"

    def test_very_long_line(self, process_runner: ProcessRunner) -> None:
        """A line far larger than one read chunk is captured whole."""
        result = process_runner.run(
            *_python("print('x' * 2_000_000); print('done')"), echo=False
        )

        first, second = result.stdout.splitlines()
        assert len(first) == 2_000_000
        assert second == "done"

    def test_echoes_lines_to_log(self, process_runner: ProcessRunner) -> None:
        """With echo on, each output line goes to the info channel."""
        process_runner.run(*_python("print('building')"))
        process_runner.log.info.assert_any_call("building")

    def test_on_line_receives_stdout(self, process_runner: ProcessRunner) -> None:
        """An on_line callback gets stdout lines without their newlines."""
        lines: list[str] = []
        process_runner.run(
            *_python("print('ok: a'); print('changed: b')"), on_line=lines.append
        )
        assert lines == ["ok: a", "changed: b"]

    def test_failing_line_handler_propagates(
        self, process_runner: ProcessRunner
    ) -> None:
        """An error raised by a line handler reaches the caller."""

        def explode(line: str) -> None:
            raise RuntimeError(line)

        with pytest.raises(RuntimeError, match="first"):
            process_runner.run(*_python("print('first')"), on_line=explode)

    def test_runs_in_cwd(self, process_runner: ProcessRunner, tmp_path: Path) -> None:
        """The command starts in the requested directory."""
        result = process_runner.run(
            *_python("import os; print(os.getcwd())"), cwd=tmp_path, echo=False
        )
        assert Path(result.stdout.strip()).resolve() == tmp_path.resolve()

    def test_env_is_layered_over_environment(
        self, process_runner: ProcessRunner
    ) -> None:
        """Extra variables are added without dropping the inherited ones."""
        code = "import os; print(os.environ['EASY_TEST'], 'PATH' in os.environ)"
        result = process_runner.run(
            *_python(code), env={"EASY_TEST": "yes"}, echo=False
        )
        assert result.stdout.strip() == "yes True"

    def test_non_zero_exit_raises(self, process_runner: ProcessRunner) -> None:
        """A failing command raises with its exit code and stderr."""
        code = "import sys; sys.stderr.write('bad things\\n'); sys.exit(3)"
        with pytest.raises(CommandFailedError) as excinfo:
            process_runner.run(*_python(code), echo=False)
        assert excinfo.value.returncode == 3
        assert "bad things" in str(excinfo.value)

    def test_non_zero_exit_without_check(self, process_runner: ProcessRunner) -> None:
        """With check off, the failure is only reported in the result."""
        result = process_runner.run(*_python("raise SystemExit(2)"), check=False)
        assert result.returncode == 2
        assert not result.ok

    def test_missing_executable(self, process_runner: ProcessRunner) -> None:
        """An executable that does not exist is a CommandNotFoundError."""
        with pytest.raises(CommandNotFoundError):
            process_runner.run("definitely-not-a-real-command-xyz")


class TestEnsureCommands:
    """Tests for ProcessRunner.ensure_commands()."""

    def test_present_command(self, process_runner: ProcessRunner) -> None:
        """A command on PATH passes."""
        process_runner.ensure_commands([sys.executable])

    def test_missing_command(self, process_runner: ProcessRunner) -> None:
        """The missing command is named in the error."""
        with pytest.raises(CommandNotFoundError, match="no-such-tool"):
            process_runner.ensure_commands(["no-such-tool"])
