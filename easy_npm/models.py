"""Data models for easy-npm.

These Pydantic models represent the package graph, the per-command options
passed down through each operation, and the transient release state.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

LOCAL_LINK_PREFIX = "file:"


class Manifest(BaseModel):
    """Parsed content of a package.json.

    Only the keys easy-npm acts on are modelled; anything else in the file
    is accepted and ignored. An empty object is a valid manifest, which is
    how a bare project root is usually marked.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str | None = None
    scripts: dict[str, str] = Field(default_factory=dict)
    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(
        default_factory=dict, alias="devDependencies"
    )
    keywords: list[str] | dict[str, Any] = Field(default_factory=list)
    private: bool = False

    def has_script(self, name: str) -> bool:
        return name in self.scripts

    @property
    def is_library(self) -> bool:
        """True when keywords mark the package as a library."""
        return "library" in self.keywords

    def local_links(self) -> dict[str, str]:
        """Map of dependency name → relative path for every file: dependency."""
        return {
            name: spec[len(LOCAL_LINK_PREFIX) :]
            for name, spec in self.dependencies.items()
            if spec.startswith(LOCAL_LINK_PREFIX)
        }

    def depends_on(self, package_name: str) -> bool:
        return (
            package_name in self.dependencies
            or package_name in self.dev_dependencies
        )


class Package(BaseModel):
    """One discovered package.

    Attributes:
        path: Absolute real path of the directory holding package.json.
              Unique within a graph.
        manifest: The parsed package.json.
    """

    model_config = ConfigDict(frozen=True)

    path: Path
    manifest: Manifest

    @property
    def name(self) -> str:
        return self.manifest.name or self.path.name


class DependencyGraph(BaseModel):
    """Packages under a root plus the order to process them in.

    Attributes:
        packages: Map of package path → Package, in discovery order.
        edges: (dependency, dependent) pairs; the dependency is processed
               first. Both ends are always keys of ``packages``.
        root: The package at the root directory, if there is one.
        order: Every package path, dependencies before dependents.
    """

    model_config = ConfigDict(frozen=True)

    packages: dict[Path, Package]
    edges: list[tuple[Path, Path]] = Field(default_factory=list)
    root: Package | None = None
    order: list[Path] = Field(default_factory=list)

    def targets(self) -> list[Package]:
        """Packages that lifecycle operations act on, in execution order.

        A root package with no scripts only anchors the scan; it is skipped
        unless it is the only package found.
        """
        skip_root = (
            self.root is not None
            and not self.root.manifest.scripts
            and len(self.packages) > 1
        )
        return [
            self.packages[path]
            for path in self.order
            if not (skip_root and self.root is not None and path == self.root.path)
        ]


class VersionKind(str, Enum):
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    REVISION = "revision"


class ToolSettings(BaseModel):
    """Fixed names and locations the tool works with."""

    model_config = ConfigDict(frozen=True)

    manifest_name: str = "package.json"
    default_branch: str = "master"
    scratch_dir: str = "scratch"
    tag_file: str = "version.tag.txt"
    desc_file: str = "version.desc.txt"
    excluded_dirs: frozenset[str] = frozenset({"node_modules", "scratch", ".git"})
    clean_targets: tuple[str, ...] = (
        "node_modules",
        "package-lock.json",
        "dist",
        "build",
    )


class RunOptions(BaseModel):
    """Options shared by every command."""

    model_config = ConfigDict(frozen=True)

    root: Path = Field(default_factory=Path.cwd)
    debug: bool = False


class InstallOptions(RunOptions):
    clean: bool = False


class BuildOptions(InstallOptions):
    install: bool = False


class DeployOptions(RunOptions):
    ansible: bool = False


class UpdateOptions(RunOptions):
    packages: list[str] = Field(default_factory=list)


class ReleaseOptions(DeployOptions):
    """Options for the release workflow.

    ``version_kind`` is kept as the raw user input so that an invalid value
    is reported by the release preflight rather than by the option parser.
    """

    version_kind: str | None = None
    branch: str | None = None
    deploy: bool = False
    clean: bool = False


class RollbackOptions(DeployOptions):
    branch: str | None = None
    deploy: bool = False
    clean: bool = False


class ReleaseState(BaseModel):
    """What a release invocation has decided so far."""

    branch: str
    version_kind: VersionKind
    tag_name: str = ""
    tag_description: str = ""
    is_new_tag: bool = True


class ProcessResult(BaseModel):
    """Outcome of one external command."""

    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0
