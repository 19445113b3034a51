"""CLI entry point for easy-npm."""

from __future__ import annotations

import traceback
from pathlib import Path

import click

from easy_npm.console import Log
from easy_npm.discovery import discover
from easy_npm.errors import EasyError
from easy_npm.lifecycle import LifecycleRunner, Operation
from easy_npm.models import (
    BuildOptions,
    DependencyGraph,
    DeployOptions,
    InstallOptions,
    ReleaseOptions,
    RollbackOptions,
    RunOptions,
    UpdateOptions,
)
from easy_npm.release import ReleaseOrchestrator, RollbackOrchestrator
from easy_npm.shell import ProcessRunner
from easy_npm.terminal import start_all

EXIT_FAILURE = 200


class Session:
    """Per-invocation state shared by every subcommand."""

    def __init__(self, root: Path, debug: bool) -> None:
        self.root = root
        self.debug = debug
        self.log = Log(debug=debug)
        self.runner = ProcessRunner(self.log)
        self._graph: DependencyGraph | None = None

    @property
    def graph(self) -> DependencyGraph:
        """Packages under the root, discovered once per invocation."""
        if self._graph is None:
            self._graph = discover(self.root, log=self.log)
        return self._graph

    def lifecycle(self) -> LifecycleRunner:
        return LifecycleRunner(self.runner, self.log)


class EasyGroup(click.Group):
    """Group that reports any failure as a one-line message and exit code 200.

    click's own exceptions (usage errors, aborts, explicit exits) keep their
    usual handling.
    """

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except (click.ClickException, click.exceptions.Exit, click.Abort):
            raise
        except EasyError as exc:
            self._fail(ctx, str(exc))
        except Exception as exc:
            self._fail(ctx, str(exc) or type(exc).__name__)

    @staticmethod
    def _fail(ctx: click.Context, message: str) -> None:
        session = ctx.find_object(Session)
        log = session.log if session else Log()
        log.error(message)
        if session and session.debug:
            click.echo(traceback.format_exc(), err=True)
        ctx.exit(EXIT_FAILURE)


pass_session = click.make_pass_decorator(Session)


@click.group(cls=EasyGroup, invoke_without_command=True)
@click.version_option(package_name="easy-npm", prog_name="easy")
@click.option(
    "-r",
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=Path("."),
    show_default="current directory",
    help="Root directory for the project.",
)
@click.option("--debug", is_flag=True, help="Enable debugging output.")
@click.pass_context
def cli(ctx: click.Context, root: Path, debug: bool) -> None:
    """Easily install, build, test, release or deploy npm based packages.

    The root directory must contain a package.json, which can be empty.
    Commands operate on every package.json found below it, libraries linked
    with "file:" dependencies first.
    """
    ctx.obj = Session(root.resolve(), debug)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command("help")
@click.pass_context
def help_(ctx: click.Context) -> None:
    """Show this help."""
    click.echo(ctx.parent.get_help() if ctx.parent else ctx.get_help())


@cli.command()
@click.option(
    "-a",
    "--actors",
    is_flag=True,
    help="Run 'actor:*' scripts instead of 'start' where a package has them.",
)
@pass_session
def start(session: Session, actors: bool) -> None:
    """Run 'npm start' for each package in new iTerm2 tabs."""
    start_all(session.graph, session.runner, session.log, prefer_actors=actors)


@cli.command()
@pass_session
def clean(session: Session) -> None:
    """Remove 'node_modules', lock files, 'dist' and 'build' directories."""
    session.lifecycle().run_all(
        session.graph, Operation.CLEAN, RunOptions(root=session.root)
    )


@cli.command()
@click.option(
    "--clean", "clean_first", is_flag=True, help="Clean before installing."
)
@pass_session
def install(session: Session, clean_first: bool) -> None:
    """Run 'npm install' in every package."""
    options = InstallOptions(root=session.root, clean=clean_first)
    session.lifecycle().run_all(session.graph, Operation.INSTALL, options)


@cli.command()
@click.option(
    "--install", "install_first", is_flag=True, help="Install before building."
)
@click.option(
    "--clean", "clean_first", is_flag=True, help="With --install, clean first."
)
@pass_session
def build(session: Session, install_first: bool, clean_first: bool) -> None:
    """Run 'npm run build' in every package that has a build script."""
    options = BuildOptions(
        root=session.root, install=install_first, clean=clean_first
    )
    session.lifecycle().run_all(session.graph, Operation.BUILD, options)


@cli.command()
@pass_session
def test(session: Session) -> None:
    """Run 'npm test' in every package that has a test script."""
    session.lifecycle().run_all(
        session.graph, Operation.TEST, RunOptions(root=session.root)
    )


@cli.command()
@click.option("--ansible", is_flag=True, help="Colorize Ansible output.")
@pass_session
def deploy(session: Session, ansible: bool) -> None:
    """Run 'npm run deploy' in every package that has a deploy script."""
    options = DeployOptions(root=session.root, ansible=ansible)
    session.lifecycle().run_all(session.graph, Operation.DEPLOY, options)


@cli.command()
@click.argument("packages", nargs=-1, required=True)
@pass_session
def update(session: Session, packages: tuple[str, ...]) -> None:
    """Run 'npm update PKG' in every package that depends on PKG."""
    options = UpdateOptions(root=session.root, packages=list(packages))
    session.lifecycle().run_all(session.graph, Operation.UPDATE, options)


def _workflow_options(func):
    """Options shared by release and rollback."""
    func = click.option(
        "--ansible", is_flag=True, help="Colorize Ansible output when deploying."
    )(func)
    func = click.option(
        "--clean", "clean_first", is_flag=True, help="Clean before installing."
    )(func)
    func = click.option(
        "--deploy",
        "deploy_after",
        is_flag=True,
        help="Deploy after a successful build.",
    )(func)
    func = click.option(
        "--branch",
        default=None,
        help="Branch or ref to operate on. Defaults to the current one.",
    )(func)
    return func
@cli.command()
@click.argument("version_kind", required=False, metavar="[major|minor|patch|revision]")
@_workflow_options
@pass_session
def release(
    session: Session,
    version_kind: str | None,
    branch: str | None,
    deploy_after: bool,
    clean_first: bool,
    ansible: bool,
) -> None:
    """Bump the version, install, build and test, then tag and push.

    Any failure before the push restores the working tree.
    """
    options = ReleaseOptions(
        root=session.root,
        version_kind=version_kind,
        branch=branch,
        deploy=deploy_after,
        clean=clean_first,
        ansible=ansible,
    )
    orchestrator = ReleaseOrchestrator(session.runner, session.log)
    orchestrator.release(session.graph, options)


@cli.command()
@_workflow_options
@pass_session
def rollback(
    session: Session,
    branch: str | None,
    deploy_after: bool,
    clean_first: bool,
    ansible: bool,
) -> None:
    """Check out the previous release tag, then install, build and test it."""
    options = RollbackOptions(
        root=session.root,
        branch=branch,
        deploy=deploy_after,
        clean=clean_first,
        ansible=ansible,
    )
    orchestrator = RollbackOrchestrator(session.runner, session.log)
    orchestrator.rollback(session.graph, options)


def main() -> None:
    cli(prog_name="easy")
