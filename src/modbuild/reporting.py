"""Console and JSON reporting for orchestration runs using Rich."""

from __future__ import annotations

import json
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from modbuild.builder import BuildResult, BuildStatus, ModuleBuildResult
from modbuild.pipeline import PhaseStatus


if TYPE_CHECKING:
    from modbuild.config import BuildTarget
    from modbuild.discovery import ModuleRef
    from modbuild.harness import HarnessResult
    from modbuild.pipeline import RunOutcome, Task


_STATUS_CONFIG: dict[BuildStatus, tuple[str, str, str]] = {
    BuildStatus.PASSED: ("✓", "green", "OK"),
    BuildStatus.FAILED: ("✗", "red", "FAILED"),
    BuildStatus.ERROR: ("!", "yellow", "ERROR"),
    BuildStatus.SKIPPED: ("-", "yellow", "SKIPPED"),
}

# Captured toolchain output shown per failed module
MAX_OUTPUT_LINES = 40


class Reporter(ABC):
    """Receives progress events from the pipeline phases."""

    @abstractmethod
    def task_started(self, task: Task) -> None: ...

    @abstractmethod
    def no_modules(self, root: Path) -> None: ...

    @abstractmethod
    def build_started(self, modules: list[ModuleRef], build_target: BuildTarget, workers: int) -> None: ...

    @abstractmethod
    def module_started(self, module: ModuleRef) -> None: ...

    @abstractmethod
    def module_finished(self, result: ModuleBuildResult) -> None: ...

    @abstractmethod
    def build_finished(self, result: BuildResult) -> None: ...

    @abstractmethod
    def harness_started(self, argv: list[str]) -> None: ...

    @abstractmethod
    def harness_finished(self, result: HarnessResult) -> None: ...

    @abstractmethod
    def run_finished(self, outcome: RunOutcome) -> None: ...


class ConsoleReporter(Reporter):
    """Reporter that prints phase progress and outcomes with Rich formatting.

    verbosity < 0 prints only failures and the final summary.
    """

    def __init__(self, console: Console | None = None, verbosity: int = 0) -> None:
        self.console = console or Console(file=sys.__stdout__)
        self.verbosity = verbosity

    def _status_symbol(self, status: BuildStatus) -> str:
        return _STATUS_CONFIG[status][0]

    def _status_color(self, status: BuildStatus) -> str:
        return _STATUS_CONFIG[status][1]

    def _status_label(self, status: BuildStatus) -> str:
        return _STATUS_CONFIG[status][2]

    def _print_section_header(self, title: str) -> None:
        width = self.console.width
        header_title = f" {title} "
        fill = max(width - len(header_title), 0)
        left = fill // 2
        right = fill - left
        self.console.print("=" * left + header_title + "=" * right)

    def task_started(self, task: Task) -> None:
        if self.verbosity < 0:
            return
        self._print_section_header(task.name.upper())
        self.console.print(f"[dim]{escape(task.description)}[/dim]")

    def no_modules(self, root: Path) -> None:
        if self.verbosity < 0:
            return
        self.console.print(f"[yellow]No modules found under {escape(str(root))}.[/yellow]")

    def build_started(self, modules: list[ModuleRef], build_target: BuildTarget, workers: int) -> None:
        if self.verbosity < 0:
            return
        jobs = f", {workers} jobs" if workers > 1 else ""
        self.console.print(
            f"[bold]Building {len(modules)} module(s)[/bold] "
            f"for {build_target.target} ({build_target.profile}{jobs})\n"
        )

    def module_started(self, module: ModuleRef) -> None:
        if self.verbosity > 0:
            self.console.print(f"[cyan]→ {escape(module.name)}[/cyan]")

    def module_finished(self, result: ModuleBuildResult) -> None:
        if self.verbosity < 0 and not result.status.is_failure:
            return

        symbol = self._status_symbol(result.status)
        color = self._status_color(result.status)
        name = escape(result.module.name)
        if result.status == BuildStatus.SKIPPED:
            self.console.print(f"  [{color}]{symbol}[/{color}] {name} [dim]not started[/dim]")
            return

        line = f"  [{color}]{symbol}[/{color}] {name} [dim]({result.duration_ms:.0f}ms)[/dim]"
        if result.status.is_failure:
            line += f" [{color}]{self._status_label(result.status)} (exit {result.returncode})[/{color}]"
        self.console.print(line)

        if result.status == BuildStatus.ERROR and result.error:
            self.console.print(f"    [yellow]{type(result.error).__name__}: {escape(str(result.error))}[/yellow]")
        if result.status.is_failure and result.output:
            self._print_output_panel(result.module.name, result.output, color)

    def _print_output_panel(self, title: str, output: str, color: str) -> None:
        lines = output.rstrip().splitlines()
        if len(lines) > MAX_OUTPUT_LINES:
            hidden = len(lines) - MAX_OUTPUT_LINES
            lines = [f"... {hidden} earlier line(s) omitted", *lines[-MAX_OUTPUT_LINES:]]
        self.console.print(
            Panel(
                escape("\n".join(lines)),
                title=escape(title),
                title_align="left",
                border_style=color,
                expand=True,
            )
        )

    def build_finished(self, result: BuildResult) -> None:
        parts = []
        if result.passed:
            parts.append(f"[green]{result.passed} built[/green]")
        if result.failed:
            parts.append(f"[red]{result.failed} failed[/red]")
        if result.errors:
            parts.append(f"[yellow]{result.errors} errors[/yellow]")
        if result.skipped:
            parts.append(f"[yellow]{result.skipped} skipped[/yellow]")

        summary = ", ".join(parts) if parts else "[dim]0 modules[/dim]"
        self.console.print()
        self.console.print(f"[bold]{summary}[/bold] in {result.total_duration_ms:.0f}ms")
        if result.stopped_early:
            self.console.print("[yellow]Build stopped after the first failure (--fail-fast).[/yellow]")

    def harness_started(self, argv: list[str]) -> None:
        if self.verbosity < 0:
            return
        self.console.print(f"[bold]Running harness tests[/bold] [dim]{escape(' '.join(argv))}[/dim]\n")

    def harness_finished(self, result: HarnessResult) -> None:
        if result.error:
            self.console.print(f"[yellow]Could not start harness: {escape(str(result.error))}[/yellow]")
        elif result.ok:
            self.console.print(f"\n[green]✓ harness tests passed[/green] [dim]({result.duration_ms:.0f}ms)[/dim]")
        else:
            self.console.print(f"\n[red]✗ harness tests failed (exit {result.returncode})[/red]")

    def run_finished(self, outcome: RunOutcome) -> None:
        self.console.print()
        self._print_section_header("SUMMARY")

        if outcome.ok:
            self.console.print(f"[bold green]{outcome.task}: success[/bold green]", justify="center")
        else:
            message = f"{outcome.task}: failed in phase '{outcome.failed_phase}' (exit {outcome.exit_code})"
            self.console.print(f"[bold red]{escape(message)}[/bold red]", justify="center")
            build = outcome.build
            if build and build.failed_modules:
                modules = ", ".join(build.failed_modules)
                self.console.print(f"[red]failing module(s): {escape(modules)}[/red]", justify="center")
            skipped = [phase.name for phase in outcome.phases if phase.status == PhaseStatus.NOT_RUN]
            if skipped:
                self.console.print(f"[dim]not run: {', '.join(skipped)}[/dim]", justify="center")
        self.console.print("=" * self.console.width)


def write_json_report(outcome: RunOutcome, path: Path | str) -> Path:
    """Write the run outcome as JSON and return the path written."""
    report_path = Path(path)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    with open(report_path, "w", encoding="utf-8") as f:
        json.dump(outcome.to_dict(), f, indent=2)
    return report_path
