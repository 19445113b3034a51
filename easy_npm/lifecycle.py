"""Lifecycle operations applied to every package in dependency order.

Operations run strictly one package at a time. The first failure stops the
walk; packages after it are left untouched.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from enum import Enum
from functools import partial

from .console import AnsibleClassifier, Log, OutputClassifier, PlainClassifier
from .errors import CommandFailedError, CommandNotFoundError, PackageOperationError
from .filestore import FileStore, LocalFileStore
from .models import DependencyGraph, Package, RunOptions, ToolSettings
from .shell import ProcessRunner


class Operation(str, Enum):
    INSTALL = "install"
    BUILD = "build"
    TEST = "test"
    DEPLOY = "deploy"
    CLEAN = "clean"
    UPDATE = "update"


class LifecycleRunner:
    """Runs npm lifecycle scripts across a package graph.

    Args:
        runner: Executes npm.
        log: Progress output.
        store: File access for ``clean``.
        settings: Which paths ``clean`` removes.
    """

    def __init__(
        self,
        runner: ProcessRunner,
        log: Log,
        *,
        store: FileStore | None = None,
        settings: ToolSettings | None = None,
    ) -> None:
        self.runner = runner
        self.log = log
        self.store = store or LocalFileStore()
        self.settings = settings or ToolSettings()

    def run_all(
        self,
        graph: DependencyGraph,
        operation: Operation | str,
        options: RunOptions | None = None,
    ) -> None:
        """Apply one operation to every target package in order."""
        self.run_sequence(graph, [Operation(operation)], options)

    def run_sequence(
        self,
        graph: DependencyGraph,
        operations: Sequence[Operation],
        options: RunOptions | None = None,
    ) -> None:
        """Apply several operations, finishing all of them per package first.

        For [install, build] a library is installed and built before any
        package that links to it is installed.

        Raises:
            PackageOperationError: Wrapping the first failure, naming the
                package and operation.
        """
        options = options or RunOptions()
        if any(op is not Operation.CLEAN for op in operations):
            self.runner.ensure_commands(["npm"])

        steps = [(op, self._bind(op, options)) for op in operations]
        for package in graph.targets():
            for operation, step in steps:
                try:
                    step(package)
                except (CommandFailedError, CommandNotFoundError, OSError) as exc:
                    raise PackageOperationError(
                        package.name, operation.value, exc
                    ) from exc

    def _bind(
        self, operation: Operation, options: RunOptions
    ) -> Callable[[Package], None]:
        if operation is Operation.INSTALL:
            return partial(self.install, clean=getattr(options, "clean", False))
        if operation is Operation.BUILD:
            return partial(
                self.build,
                install=getattr(options, "install", False),
                clean=getattr(options, "clean", False),
            )
        if operation is Operation.TEST:
            return self.test
        if operation is Operation.DEPLOY:
            classifier: OutputClassifier = (
                AnsibleClassifier(self.log)
                if getattr(options, "ansible", False)
                else PlainClassifier(self.log)
            )
            return partial(self.deploy, classifier=classifier)
        if operation is Operation.CLEAN:
            return self.clean
        return partial(self.update, names=list(getattr(options, "packages", [])))

    def clean(self, package: Package) -> None:
        """Remove dependency caches, the lockfile and build output."""
        self.log.step(f"Cleaning '{package.name}'...")
        for target in self.settings.clean_targets:
            self.store.remove_recursive(package.path / target)

    def install(self, package: Package, *, clean: bool = False) -> None:
        if clean:
            self.clean(package)
        self.log.step(f"Installing modules in '{package.name}'...")
        self.runner.run("npm", "install", cwd=package.path)

    def build(
        self, package: Package, *, install: bool = False, clean: bool = False
    ) -> None:
        if install:
            self.install(package, clean=clean)
        if not package.manifest.has_script("build"):
            self.log.debug(f"No build script in '{package.name}'")
            return
        self.log.step(f"Building '{package.name}'...")
        self.runner.run("npm", "run", "build", cwd=package.path)

    def test(self, package: Package) -> None:
        if not package.manifest.has_script("test"):
            self.log.debug(f"No test script in '{package.name}'")
            return
        self.log.step(f"Testing '{package.name}'...")
        self.runner.run("npm", "test", cwd=package.path)

    def deploy(
        self, package: Package, *, classifier: OutputClassifier | None = None
    ) -> None:
        if not package.manifest.has_script("deploy"):
            self.log.debug(f"No deploy script in '{package.name}'")
            return
        self.log.step(f"Deploying '{package.name}'...")
        self.runner.run(
            "npm",
            "run",
            "deploy",
            cwd=package.path,
            on_line=classifier or PlainClassifier(self.log),
        )

    def update(self, package: Package, *, names: Sequence[str]) -> None:
        """Run ``npm update <name>`` for each requested dependency it declares."""
        for name in names:
            if package.manifest.depends_on(name):
                self.log.step(f"Updating '{name}' in '{package.name}'...")
                self.runner.run("npm", "update", name, cwd=package.path)
