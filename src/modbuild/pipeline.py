"""Declared tasks and their prerequisites.

``test`` requires ``modules``: the harness only runs after every module in
the same invocation compiled. A failed task stops the run and every task that
depends on it is recorded as not run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from modbuild.builder import Builder, BuildResult
from modbuild.config import BuildConfig
from modbuild.discovery import discover_names
from modbuild.errors import ModbuildError, PrerequisiteFailed
from modbuild.harness import HarnessResult, HarnessRunner
from modbuild.process import Launcher, run_process


if TYPE_CHECKING:
    from modbuild.reporting import Reporter


logger = logging.getLogger(__name__)

# Exit status for configuration and discovery errors, matching click's usage errors
USAGE_ERROR_EXIT_CODE = 2


class PhaseStatus(Enum):
    """Outcome of one task in a run."""

    PASSED = "passed"
    FAILED = "failed"
    NOT_RUN = "not_run"


@dataclass
class PhaseOutcome:
    """Result of one task, with the phase-specific detail attached."""

    name: str
    status: PhaseStatus
    exit_code: int = 0
    detail: BuildResult | HarnessResult | None = None

    @property
    def ok(self) -> bool:
        return self.status == PhaseStatus.PASSED

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "exit_code": self.exit_code,
            "detail": self.detail.to_dict() if self.detail else None,
        }


@dataclass
class RunOutcome:
    """Result of running a task and its prerequisites."""

    task: str
    phases: list[PhaseOutcome] = field(default_factory=list)
    error: str | None = None

    @classmethod
    def aborted(cls, task: str, error: Exception) -> RunOutcome:
        """Outcome of a run stopped by a configuration or discovery error."""
        return cls(task=task, error=str(error))

    @property
    def ok(self) -> bool:
        return self.error is None and all(phase.ok for phase in self.phases)

    @property
    def failed_phase(self) -> str | None:
        """Name of the first task that failed."""
        for phase in self.phases:
            if phase.status == PhaseStatus.FAILED:
                return phase.name
        return None

    @property
    def exit_code(self) -> int:
        """Zero, or the first nonzero status from an external invocation."""
        if self.error is not None:
            return USAGE_ERROR_EXIT_CODE
        for phase in self.phases:
            if phase.status == PhaseStatus.FAILED:
                return phase.exit_code or 1
        return 0

    def phase(self, name: str) -> PhaseOutcome | None:
        for phase in self.phases:
            if phase.name == name:
                return phase
        return None

    @property
    def build(self) -> BuildResult | None:
        outcome = self.phase("modules")
        if outcome and isinstance(outcome.detail, BuildResult):
            return outcome.detail
        return None

    @property
    def harness(self) -> HarnessResult | None:
        outcome = self.phase("test")
        if outcome and isinstance(outcome.detail, HarnessResult):
            return outcome.detail
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "task": self.task,
            "ok": self.ok,
            "exit_code": self.exit_code,
            "failed_phase": self.failed_phase,
            "error": self.error,
            "phases": [phase.to_dict() for phase in self.phases],
        }


TaskAction = Callable[[], Awaitable[PhaseOutcome]]


@dataclass
class Task:
    """A named unit of work with declared prerequisites."""

    name: str
    description: str
    action: TaskAction
    requires: tuple[str, ...] = ()


class Pipeline:
    """Runs declared tasks in prerequisite order.

    Example:
        outcome = await Pipeline(config).run("test")
        sys.exit(outcome.exit_code)
    """

    def __init__(
        self,
        config: BuildConfig,
        reporter: Reporter | None = None,
        *,
        module_names: Iterable[str] = (),
        launcher: Launcher = run_process,
    ) -> None:
        self.config = config
        self.reporter = reporter
        self.module_names = list(module_names)
        self.launcher = launcher
        self._build_result: BuildResult | None = None
        self.tasks: dict[str, Task] = {}
        self.register(Task("modules", "Build every module for the configured target", self._run_modules))
        self.register(Task("test", "Build the modules, then run the harness tests", self._run_tests, ("modules",)))

    def register(self, task: Task) -> None:
        self.tasks[task.name] = task

    def plan(self, name: str) -> list[Task]:
        """Tasks to run for ``name``, prerequisites first, each once."""
        ordered: list[Task] = []
        visiting: set[str] = set()

        def visit(task_name: str) -> None:
            if any(task.name == task_name for task in ordered):
                return
            if task_name in visiting:
                raise ModbuildError(f"Circular prerequisite involving '{task_name}'")
            task = self.tasks.get(task_name)
            if task is None:
                raise ModbuildError(f"Unknown task: {task_name}")
            visiting.add(task_name)
            for prerequisite in task.requires:
                visit(prerequisite)
            visiting.discard(task_name)
            ordered.append(task)

        visit(name)
        return ordered

    async def run(self, name: str) -> RunOutcome:
        """Run ``name`` after its prerequisites.

        Raises:
            DiscoveryError: The module root cannot be enumerated.
            ModbuildError: ``name`` is not a declared task.
        """
        plan = self.plan(name)
        outcome = RunOutcome(task=name)
        self._build_result = None

        for task in plan:
            if not outcome.ok:
                outcome.phases.append(PhaseOutcome(name=task.name, status=PhaseStatus.NOT_RUN))
                continue
            logger.debug("Running task %s", task.name)
            if self.reporter:
                self.reporter.task_started(task)
            outcome.phases.append(await task.action())

        if self.reporter:
            self.reporter.run_finished(outcome)
        return outcome

    async def _run_modules(self) -> PhaseOutcome:
        modules = discover_names(self.config, self.module_names)
        builder = Builder(self.config, self.reporter, launcher=self.launcher)
        build_result = await builder.build(modules)
        self._build_result = build_result
        return PhaseOutcome(
            name="modules",
            status=PhaseStatus.PASSED if build_result.ok else PhaseStatus.FAILED,
            exit_code=build_result.exit_code,
            detail=build_result,
        )

    async def _run_tests(self) -> PhaseOutcome:
        if self._build_result is None:
            raise PrerequisiteFailed("test", "modules")
        runner = HarnessRunner(self.config, self.reporter, launcher=self.launcher)
        harness_result = await runner.run(self._build_result)
        return PhaseOutcome(
            name="test",
            status=PhaseStatus.PASSED if harness_result.ok else PhaseStatus.FAILED,
            exit_code=harness_result.returncode,
            detail=harness_result,
        )


def run_pipeline(
    config: BuildConfig,
    task: str,
    reporter: Reporter | None = None,
    *,
    module_names: Iterable[str] = (),
    launcher: Launcher = run_process,
) -> RunOutcome:
    """Run a task synchronously (convenience wrapper)."""
    pipeline = Pipeline(config, reporter, module_names=module_names, launcher=launcher)
    return asyncio.run(pipeline.run(task))
