"""Open one iTerm2 tab per startable package (macOS only).

Each tab cds into the package, sets its title and tab colour, then runs the
package's start script, or its actor scripts when those are preferred.
"""

from __future__ import annotations

import shlex
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .console import Log
from .filestore import FileStore, LocalFileStore
from .models import DependencyGraph, Package
from .shell import ProcessRunner

ACTOR_PREFIX = "actor:"
LIBRARY_COLOR = "0 255 0"
APP_COLOR = "0 198 255"
ACTOR_COLOR = "255 198 0"

HELPER_SCRIPT = r"""# function for setting iTerm2 titles
function title {
  printf "\x1b]0;%s\x7" "$1"
}

# function for setting iTerm2 tab colors
function tab-color {
  printf "\x1b]6;1;bg;red;brightness;%s\x7" "$1"
  printf "\x1b]6;1;bg;green;brightness;%s\x7" "$2"
  printf "\x1b]6;1;bg;blue;brightness;%s\x7" "$3"
}
"""


@dataclass(frozen=True)
class Tab:
    directory: Path
    script: str
    title: str
    color: str

    @property
    def command(self) -> str:
        return (
            f"cd {shlex.quote(str(self.directory))}; "
            f"title {shlex.quote(self.title)}; "
            f"tab-color {self.color}; npm run {shlex.quote(self.script)}"
        )


def tabs_for(package: Package, *, prefer_actors: bool = False) -> list[Tab]:
    """Tabs to open for one package; empty if it has nothing to start."""
    scripts = package.manifest.scripts
    if prefer_actors:
        actors = [
            name
            for name in scripts
            if name.startswith(ACTOR_PREFIX) and not name.endswith(":debug")
        ]
        if actors:
            return [
                Tab(package.path, name, name[len(ACTOR_PREFIX) :], ACTOR_COLOR)
                for name in actors
            ]

    if "start" not in scripts:
        return []
    color = LIBRARY_COLOR if package.manifest.is_library else APP_COLOR
    return [Tab(package.path, "start", package.path.name, color)]


def build_applescript(tabs: list[Tab]) -> str:
    """AppleScript that opens a new iTerm2 window with one tab per entry."""
    lines = [
        'tell application "iTerm"',
        "  tell (create window with default profile)",
    ]
    for i, tab in enumerate(tabs):
        text = tab.command.replace("\\", "\\\\").replace('"', '\\"')
        if i == 0:
            lines += [
                "    tell current session of current tab",
                f'      write text "{text}"',
                "    end tell",
            ]
        else:
            lines += [
                "    set newTab to (create tab with default profile)",
                "    tell newTab",
                "      tell current session of newTab",
                f'        write text "{text}"',
                "      end tell",
                "    end tell",
            ]
    lines += ["  end tell", "end tell"]
    return "\n".join(lines) + "\n"


def start_all(
    graph: DependencyGraph,
    runner: ProcessRunner,
    log: Log,
    *,
    prefer_actors: bool = False,
    store: FileStore | None = None,
) -> list[Tab]:
    """Open terminal tabs for every startable package, in dependency order."""
    store = store or LocalFileStore()
    runner.ensure_commands(["osascript", "bash"])

    tabs = [
        tab
        for package in graph.targets()
        for tab in tabs_for(package, prefer_actors=prefer_actors)
    ]
    if not tabs:
        log.warning("No packages with a start script were found")
        return tabs

    script = build_applescript(tabs)
    log.debug(script)

    with tempfile.TemporaryDirectory(prefix="easy-npm-") as tmp:
        helper = Path(tmp) / "helpers.sh"
        main = Path(tmp) / "tabs.applescript"
        store.write_text(helper, HELPER_SCRIPT)
        store.write_text(main, script)
        runner.run(
            "bash",
            "-c",
            f"source {shlex.quote(str(helper))}; osascript < {shlex.quote(str(main))}",
        )

    return tabs
