"""Command-line interface for modbuild."""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import BuildConfig, load_config
from .discovery import discover
from .errors import ModbuildError
from .pipeline import USAGE_ERROR_EXIT_CODE, Pipeline, RunOutcome
from .process import run_process
from .reporting import ConsoleReporter, write_json_report
from .version import __version__


logger = logging.getLogger(__name__)

console = Console()


def _configure_logging(verbosity: int) -> None:
    level = logging.DEBUG if verbosity > 0 else logging.WARNING
    package_logger = logging.getLogger("modbuild")
    package_logger.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))


def _absolute(path: str | None) -> Path | None:
    return Path(path).resolve() if path else None


def _build_config(
    config_path: str | None,
    root: str | None,
    target: str | None,
    profile: str | None,
    release: bool,
    jobs: int | None,
    fail_fast: bool,
    harness_manifest: str | None,
) -> BuildConfig:
    """Layer CLI options over the config file, env vars and defaults."""
    if release and profile == "debug":
        raise click.UsageError("--release conflicts with --profile debug")
    base = BuildConfig.from_file(config_path) if config_path else load_config()
    return base.with_overrides(
        root_directory=_absolute(root),
        target=target,
        profile="release" if release else profile,
        jobs=jobs,
        fail_fast=True if fail_fast else None,
        harness_manifest=_absolute(harness_manifest),
    )


def build_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that discovers or builds modules."""
    options = [
        click.option("--config", "config_path", help="Path to a YAML or JSON configuration file",
                     type=click.Path(exists=True, file_okay=True, dir_okay=False)),
        click.option("--root", help="Directory whose subdirectories are modules (default: modules)"),
        click.option("--target", help="Compilation target (default: wasm32-unknown-unknown)"),
        click.option("--profile", type=click.Choice(["debug", "release"]), help="Optimization profile"),
        click.option("--release", is_flag=True, help="Shorthand for --profile release"),
        click.option("--jobs", "-j", type=click.IntRange(min=0), help="Parallel module builds (0 = one per CPU)"),
        click.option("--fail-fast", is_flag=True, help="Stop starting builds after the first failure"),
        click.option("--harness-manifest", help="Manifest of the harness test suite"),
        click.option("--report", "report_path", type=click.Path(dir_okay=False),
                     help="Write a JSON report of the run to this path"),
        click.option("--verbose", "-v", count=True, help="Show toolchain commands and debug logs"),
        click.option("--quiet", "-q", is_flag=True, help="Only print failures and the summary"),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


def _run_task(task: str, module_names: tuple[str, ...], **kwargs: Any) -> None:
    ctx = click.get_current_context()
    report_path = kwargs.pop("report_path")
    quiet = kwargs.pop("quiet")
    verbose = kwargs.pop("verbose")
    verbosity = -1 if quiet else verbose
    _configure_logging(verbosity)

    try:
        config = _build_config(**kwargs)
        logger.debug("Resolved configuration: %s", config.model_dump(mode="json"))
        reporter = ConsoleReporter(console, verbosity=verbosity)
        pipeline = Pipeline(config, reporter, module_names=module_names, launcher=run_process)
        outcome = asyncio.run(pipeline.run(task))
    except ModbuildError as e:
        console.print(f"[red]Error: {e}[/red]")
        if report_path:
            write_json_report(RunOutcome.aborted(task, e), report_path)
        ctx.exit(USAGE_ERROR_EXIT_CODE)
    except KeyboardInterrupt:
        console.print("[red]Interrupted.[/red]")
        ctx.exit(130)

    if report_path:
        written = write_json_report(outcome, report_path)
        console.print(f"[dim]Report written to {written}[/dim]")
    ctx.exit(outcome.exit_code)


@click.group(invoke_without_command=True)
@click.version_option(__version__, prog_name="modbuild")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """modbuild - build sandboxed bytecode modules and verify them with the harness."""
    load_dotenv(Path.cwd() / ".env")
    if ctx.invoked_subcommand is None:
        ctx.invoke(help_command)


@cli.command("help")
@click.pass_context
def help_command(ctx: click.Context) -> None:
    """Display this help screen."""
    group = ctx.find_root().command
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="cyan")
    table.add_column()
    for name in sorted(group.commands):  # type: ignore[attr-defined]
        command = group.commands[name]  # type: ignore[attr-defined]
        if command.hidden:
            continue
        table.add_row(name, command.get_short_help_str(limit=80))
    console.print(table)


@cli.command("list")
@click.option("--config", "config_path", help="Path to a YAML or JSON configuration file",
              type=click.Path(exists=True, file_okay=True, dir_okay=False))
@click.option("--root", help="Directory whose subdirectories are modules (default: modules)")
@click.option("--target", help="Compilation target (default: wasm32-unknown-unknown)")
@click.option("--profile", type=click.Choice(["debug", "release"]), help="Optimization profile")
@click.option("--release", is_flag=True, help="Shorthand for --profile release")
@click.pass_context
def list_command(
    ctx: click.Context,
    config_path: str | None,
    root: str | None,
    target: str | None,
    profile: str | None,
    release: bool,
) -> None:
    """List discovered modules and whether their artifacts exist."""
    try:
        config = _build_config(config_path, root, target, profile, release, None, False, None)
        modules = discover(config)
    except ModbuildError as e:
        console.print(f"[red]Error: {e}[/red]")
        ctx.exit(2)

    if not modules:
        console.print(f"[yellow]No modules found under {config.module_root}.[/yellow]")
        return

    build_target = config.build_target
    table = Table(title=f"Modules ({build_target.target}, {build_target.profile})")
    table.add_column("Module", style="cyan")
    table.add_column("Manifest")
    table.add_column("Artifact")
    for module in modules:
        manifest = "[green]✓[/green]" if module.has_manifest else "[red]missing[/red]"
        artifact_path = module.artifact_path(build_target)
        artifact = "[green]built[/green]" if artifact_path.is_file() else "[dim]not built[/dim]"
        table.add_row(module.name, manifest, artifact)
    console.print(table)


@cli.command("modules")
@click.argument("names", nargs=-1)
@build_options
def modules_command(names: tuple[str, ...], **kwargs: Any) -> None:
    """Build every module (or the NAMES given) for the configured target."""
    _run_task("modules", names, **kwargs)


@cli.command("test")
@build_options
def run_tests_command(**kwargs: Any) -> None:
    """Run the module tests (builds all modules first)."""
    _run_task("test", (), **kwargs)


def main() -> None:
    """Console script entry point."""
    cli(prog_name="modbuild")


if __name__ == "__main__":
    main()


__all__ = ["cli", "main"]
