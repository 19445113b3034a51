"""Release and rollback workflows.

Release: check → sync → bump → verify → commit/tag → push → deploy.

1. Refuse to start unless the version kind is valid and the tree is clean
2. Check out and pull the target branch
3. Run the versioning tool (stampver) and read back the tag and description
4. Install, build and test every package in dependency order
5. Commit the version changes and tag them
6. Push the branch with its tags, then optionally deploy

If anything fails after the version bump and before the push, the working
tree is put back exactly as it was before the bump. A release either
completes or leaves nothing behind.

Rollback checks out the tag before the latest one reachable from a ref and
rebuilds it, with the same protection.
"""

from __future__ import annotations

import os
from pathlib import Path

from .console import Log
from .errors import (
    CommandFailedError,
    DetachedHeadError,
    DirtyWorkingTreeError,
    InvalidVersionKindError,
    NoPreviousReleaseError,
    PackageOperationError,
    ReleaseBuildError,
    ReleaseError,
    RollbackBuildError,
)
from .filestore import FileStore, LocalFileStore
from .lifecycle import LifecycleRunner, Operation
from .models import (
    DependencyGraph,
    DeployOptions,
    ReleaseOptions,
    ReleaseState,
    RollbackOptions,
    RunOptions,
    ToolSettings,
    VersionKind,
)
from .shell import ProcessRunner

VERIFY_STEPS = [Operation.INSTALL, Operation.BUILD, Operation.TEST]


def parse_version_kind(value: str | None) -> VersionKind:
    """Map user input to a VersionKind.

    Raises:
        InvalidVersionKindError: If ``value`` is not major/minor/patch/revision.
    """
    try:
        return VersionKind((value or "").lower())
    except ValueError as exc:
        raise InvalidVersionKindError(value) from exc


class _GitWorkflow:
    """Shared plumbing for the release and rollback workflows."""

    required_commands: tuple[str, ...] = ("git", "npm")

    def __init__(
        self,
        runner: ProcessRunner,
        log: Log,
        *,
        lifecycle: LifecycleRunner | None = None,
        store: FileStore | None = None,
        settings: ToolSettings | None = None,
    ) -> None:
        self.runner = runner
        self.log = log
        self.store = store or LocalFileStore()
        self.settings = settings or ToolSettings()
        self.lifecycle = lifecycle or LifecycleRunner(
            runner, log, store=self.store, settings=self.settings
        )

    def _git(self, root: Path, *args: str, check: bool = True) -> str:
        return self.runner.git(*args, cwd=root, check=check)

    def _require_clean_tree(self, root: Path) -> None:
        self.log.step("Checking for uncommitted changes...")
        status = self._git(root, "status", "--porcelain", "--untracked-files=no")
        if status:
            raise DirtyWorkingTreeError()

    def _current_branch(self, root: Path) -> str:
        return self._git(root, "rev-parse", "--abbrev-ref", "HEAD")

    def _current_ref(self, root: Path) -> str:
        """The checked-out branch, or the commit when HEAD is detached."""
        branch = self._current_branch(root)
        if branch != "HEAD":
            return branch
        return self._git(root, "rev-parse", "HEAD")

    def _restore(self, root: Path, ref: str) -> None:
        """Discard working tree changes, resetting files to ``ref``."""
        self.log.warning(f"Restoring working tree to '{ref}'")
        try:
            self._git(root, "checkout", ref, "--", ".")
        except CommandFailedError as exc:
            self.log.error(f"Could not restore working tree: {exc}")

    def _verify(self, graph: DependencyGraph, clean: bool) -> None:
        steps = ([Operation.CLEAN] if clean else []) + VERIFY_STEPS
        self.lifecycle.run_sequence(graph, steps, RunOptions())

    def _deploy(self, graph: DependencyGraph, options: DeployOptions) -> None:
        self.lifecycle.run_all(graph, Operation.DEPLOY, options)


class ReleaseOrchestrator(_GitWorkflow):
    """Version, verify, tag and push a release of the project at a root."""

    required_commands = ("git", "npx", "npm")

    def release(
        self, graph: DependencyGraph, options: ReleaseOptions
    ) -> ReleaseState:
        """Run the release workflow.

        Args:
            graph: Packages to verify, discovered once for this invocation.
            options: Version kind, branch, clean/deploy flags and the root.

        Returns:
            The final ReleaseState.

        Raises:
            InvalidVersionKindError: Before anything runs.
            DirtyWorkingTreeError: Uncommitted changes; nothing was touched.
            DetachedHeadError: No branch to release from; nothing was touched.
            ReleaseBuildError: Verification failed; the bump was undone.
            ReleaseError: Versioning, commit, tag or push failed.
        """
        kind = parse_version_kind(options.version_kind)
        root = Path(os.path.realpath(options.root))
        self.runner.ensure_commands(self.required_commands)

        self._require_clean_tree(root)
        branch = options.branch or self._current_branch(root)
        if branch == "HEAD":
            raise DetachedHeadError()

        state = ReleaseState(branch=branch, version_kind=kind)
        self.log.step(f"Starting release of '{root.name}' on branch '{branch}'...")

        self.log.step(f"Checking out '{branch}'...")
        self._git(root, "checkout", branch)
        self.log.step("Pulling latest...")
        self._git(root, "pull")

        self._bump_version(root, state)
        self._check_tag(root, state)

        try:
            self._verify(graph, options.clean)
        except PackageOperationError as exc:
            self._restore(root, branch)
            raise ReleaseBuildError(exc.package, branch) from exc

        self._commit_and_tag(root, state)

        self.log.step("Pushing to Git...")
        try:
            self._git(root, "push", "--follow-tags")
        except CommandFailedError as exc:
            raise ReleaseError(
                f"Failed to push '{state.tag_name}' on branch '{branch}'; the "
                "release commit is kept locally, retry with 'git push --follow-tags'"
            ) from exc

        if options.deploy:
            self._deploy(graph, options)

        self.log.info(f"Finished release of '{root.name}' on branch '{branch}'")
        return state

    def _bump_version(self, root: Path, state: ReleaseState) -> None:
        """Run stampver and read the tag name and description it writes."""
        self.log.step("Updating version...")
        scratch = root / self.settings.scratch_dir
        created_scratch = not self.store.exists(scratch)
        self.store.ensure_directory(scratch)

        args = ["stampver"]
        if state.version_kind is not VersionKind.REVISION:
            args += ["-i", state.version_kind.value]
        args += ["-u", "-s"]

        try:
            self.runner.run("npx", *args, cwd=root)
            tag_name = self.store.read_text(scratch / self.settings.tag_file).strip()
            description = self.store.read_text(
                scratch / self.settings.desc_file
            ).strip()
        except (CommandFailedError, OSError, UnicodeDecodeError) as exc:
            self._restore(root, state.branch)
            raise ReleaseError(
                f"Failed to update version on branch '{state.branch}': {exc}"
            ) from exc
        finally:
            if created_scratch:
                self.store.remove_recursive(scratch)
            else:
                self.store.remove_recursive(scratch / self.settings.tag_file)
                self.store.remove_recursive(scratch / self.settings.desc_file)

        # Branch suffix keeps parallel release branches from sharing tags
        if state.branch != self.settings.default_branch:
            suffix = f"-{state.branch}"
            tag_name += suffix
            description += suffix

        state.tag_name = tag_name
        state.tag_description = description
        self.log.info(f"Version tag is '{tag_name}'")

    def _check_tag(self, root: Path, state: ReleaseState) -> None:
        result = self.runner.run(
            "git",
            "rev-parse",
            "--verify",
            "--quiet",
            f"refs/tags/{state.tag_name}",
            cwd=root,
            echo=False,
            check=False,
        )
        state.is_new_tag = not result.ok
        if state.is_new_tag:
            self.log.info(f"Confirmed that '{state.tag_name}' is a new tag")
        else:
            self.log.warning(
                f"Tag '{state.tag_name}' already exists and will not be overwritten"
            )

    def _commit_and_tag(self, root: Path, state: ReleaseState) -> None:
        self.log.step("Staging version changes...")
        try:
            self._git(root, "add", "-A")
            self.log.step("Committing version changes...")
            self._git(root, "commit", "-m", state.tag_description)
        except CommandFailedError as exc:
            self._git(root, "reset", "--quiet", check=False)
            self._restore(root, state.branch)
            raise ReleaseError(
                f"Failed to commit release on branch '{state.branch}'"
            ) from exc

        if not state.is_new_tag:
            return

        self.log.step("Tagging...")
        try:
            self._git(
                root, "tag", "-a", state.tag_name, "-m", state.tag_description
            )
        except CommandFailedError as exc:
            self.log.warning("Dropping the release commit")
            self._git(root, "reset", "--hard", "HEAD~1", check=False)
            raise ReleaseError(f"Failed to create tag '{state.tag_name}'") from exc


class RollbackOrchestrator(_GitWorkflow):
    """Check out the previous release tag and rebuild it."""

    def rollback(self, graph: DependencyGraph, options: RollbackOptions) -> str:
        """Run the rollback workflow.

        Returns:
            The tag that was checked out.

        Raises:
            DirtyWorkingTreeError: Uncommitted changes; nothing was touched.
            NoPreviousReleaseError: Fewer than two tags reachable from the ref.
            RollbackBuildError: The previous release failed to build or test.
                The ref checked out before the rollback is checked out again.
        """
        root = Path(os.path.realpath(options.root))
        self.runner.ensure_commands(self.required_commands)

        self._require_clean_tree(root)
        ref = options.branch or self._current_branch(root)
        self.log.step(f"Starting rollback of '{root.name}' from ref '{ref}'...")

        try:
            last_tag = self._git(root, "describe", "--tags", "--abbrev=0", ref)
            previous_tag = self._git(
                root, "describe", "--tags", "--abbrev=0", f"{last_tag}~1"
            )
        except CommandFailedError as exc:
            raise NoPreviousReleaseError(ref) from exc

        original = self._current_ref(root)
        self.log.step(f"Rolling back to tag '{previous_tag}'...")
        self._git(root, "checkout", previous_tag)

        try:
            self._verify(graph, options.clean)
        except PackageOperationError as exc:
            self._restore(root, previous_tag)
            self._return_to(root, original)
            raise RollbackBuildError(previous_tag, exc.package) from exc

        if options.deploy:
            self._deploy(graph, options)

        self.log.info(
            f"Finished rollback of '{root.name}' from '{ref}' to '{previous_tag}'"
        )
        return previous_tag

    def _return_to(self, root: Path, ref: str) -> None:
        self.log.warning(f"Checking out '{ref}' again")
        try:
            self._git(root, "checkout", ref)
        except CommandFailedError as exc:
            self.log.error(f"Could not check out '{ref}': {exc}")
