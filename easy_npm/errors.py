"""Exception types raised by easy-npm.

Library code raises these; only the CLI turns them into exit codes. Every
error derives from EasyError so callers can catch the whole family.
"""

from __future__ import annotations

from pathlib import Path


class EasyError(Exception):
    """Base class for all easy-npm failures."""


# Configuration errors


class NotAProjectRootError(EasyError):
    def __init__(self, root: Path) -> None:
        super().__init__(f"'{root}' does not contain a package.json file")
        self.root = root


class InvalidVersionKindError(EasyError):
    def __init__(self, value: str | None) -> None:
        super().__init__(
            "Major, minor, patch or revision must be incremented for release"
            + (f" (got '{value}')" if value else "")
        )
        self.value = value


class CommandNotFoundError(EasyError):
    def __init__(self, command: str) -> None:
        super().__init__(f"Command '{command}' does not exist. Please install it.")
        self.command = command


# Precondition errors


class DirtyWorkingTreeError(EasyError):
    def __init__(self) -> None:
        super().__init__(
            "There are uncommitted changes - commit or stash them and try again"
        )


class DetachedHeadError(EasyError):
    def __init__(self) -> None:
        super().__init__("Cannot do release from a detached HEAD state")


# Structural errors


class ManifestError(EasyError):
    """A package.json could not be read or parsed."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Reading {path}: {reason}")
        self.path = path
        self.reason = reason


class CycleDetectedError(EasyError):
    """The dependency edges contain a cycle.

    Attributes:
        node: A node that lies on the cycle.
        cycle: The cycle's members, each a predecessor of the next.
    """

    def __init__(self, node: object, cycle: list) -> None:
        path = " → ".join(str(n) for n in [*cycle, cycle[0]])
        super().__init__(f"Dependency cycle detected: {path}")
        self.node = node
        self.cycle = cycle


# External command failures


class CommandFailedError(EasyError):
    def __init__(self, argv: list[str], returncode: int, stderr: str = "") -> None:
        message = f"'{' '.join(argv)}' returned {returncode}"
        if stderr.strip():
            message += f"\n{stderr.strip()}"
        super().__init__(message)
        self.argv = argv
        self.returncode = returncode
        self.stderr = stderr


class PackageOperationError(EasyError):
    """A lifecycle operation failed for one package."""

    def __init__(self, package: str, operation: str, cause: Exception) -> None:
        super().__init__(f"Failed to {operation} '{package}': {cause}")
        self.package = package
        self.operation = operation


class ReleaseError(EasyError):
    """A release step failed after the working tree was touched."""


class ReleaseBuildError(ReleaseError):
    def __init__(self, package: str, branch: str) -> None:
        super().__init__(f"Failed to build '{package}' on branch '{branch}'")
        self.package = package
        self.branch = branch


class NoPreviousReleaseError(EasyError):
    def __init__(self, ref: str) -> None:
        super().__init__(f"No release tag precedes the last tag reachable from '{ref}'")
        self.ref = ref


class RollbackBuildError(EasyError):
    def __init__(self, tag: str, package: str) -> None:
        super().__init__(f"Failed to build '{package}' at '{tag}'")
        self.tag = tag
        self.package = package
