"""Console output helpers.

All progress and diagnostics go to stderr through click so they stay out of
any captured stdout. Each channel has its own colour.
"""

from __future__ import annotations

import click


class Log:
    """Coloured log channels.

    Args:
        debug: If True, ``debug()`` messages are shown.
    """

    def __init__(self, *, debug: bool = False) -> None:
        self.show_debug = debug

    def _emit(self, message: str, **style: object) -> None:
        click.echo(click.style(message, **style) if style else message, err=True)

    def info(self, message: str) -> None:
        self._emit(message)

    def step(self, message: str) -> None:
        """Progress through a multi-step command."""
        self._emit(message, fg="green")

    def warning(self, message: str) -> None:
        self._emit(f"warning: {message}", fg="yellow")

    def error(self, message: str) -> None:
        self._emit(f"error: {message}", fg="red")

    def debug(self, message: str) -> None:
        if self.show_debug:
            self._emit(message, dim=True)

    # Deployment tool channels
    def ok(self, message: str) -> None:
        self._emit(message, fg="green")

    def changed(self, message: str) -> None:
        self._emit(message, fg="yellow")

    def skipping(self, message: str) -> None:
        self._emit(message, fg="cyan")

    def failed(self, message: str) -> None:
        self._emit(message, fg="red")


class OutputClassifier:
    """Routes each line of a command's stdout to a log channel."""

    def __init__(self, log: Log) -> None:
        self.log = log

    def __call__(self, line: str) -> None:
        self.log.info(line)


PlainClassifier = OutputClassifier


class AnsibleClassifier(OutputClassifier):
    """Colours Ansible task results by their status prefix."""

    def __call__(self, line: str) -> None:
        text = line.strip()
        if text.startswith("ok: "):
            self.log.ok(text)
        elif text.startswith("changed: "):
            self.log.changed(text)
        elif text.startswith("skipping: "):
            self.log.skipping(text)
        elif text.startswith("error: "):
            self.log.failed(text)
        else:
            self.log.info(text)
