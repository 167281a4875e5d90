"""Builder phase: compile every discovered module."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from modbuild.config import BuildConfig, BuildTarget
from modbuild.discovery import ModuleRef
from modbuild.process import Launcher, ProcessResult, run_process
from modbuild.toolchain import build_command


if TYPE_CHECKING:
    from modbuild.reporting import Reporter


logger = logging.getLogger(__name__)


class BuildStatus(Enum):
    """Outcome of a single module build."""

    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"
    SKIPPED = "skipped"

    @property
    def is_failure(self) -> bool:
        """The toolchain ran and failed, or could not be launched."""
        return self in {BuildStatus.FAILED, BuildStatus.ERROR}


@dataclass
class ModuleBuildResult:
    """Result of building one module."""

    module: ModuleRef
    status: BuildStatus
    returncode: int | None = None
    duration_ms: float = 0
    output: str | None = None
    error: Exception | None = None

    @classmethod
    def from_process(cls, module: ModuleRef, process: ProcessResult) -> ModuleBuildResult:
        if not process.launched:
            status = BuildStatus.ERROR
        elif process.ok:
            status = BuildStatus.PASSED
        else:
            status = BuildStatus.FAILED
        return cls(
            module=module,
            status=status,
            returncode=process.returncode,
            duration_ms=process.duration_ms,
            output=process.output,
            error=process.error,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "module": self.module.name,
            "path": str(self.module.path),
            "status": self.status.value,
            "returncode": self.returncode,
            "duration_ms": round(self.duration_ms, 1),
            "error": str(self.error) if self.error else None,
        }


@dataclass
class BuildResult:
    """Aggregate outcome of the builder phase."""

    build_target: BuildTarget
    results: list[ModuleBuildResult] = field(default_factory=list)
    total_duration_ms: float = 0
    stopped_early: bool = False

    @property
    def ok(self) -> bool:
        """True only if every module compiled. Vacuously true for no modules."""
        return all(r.status == BuildStatus.PASSED for r in self.results)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.status == BuildStatus.PASSED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == BuildStatus.FAILED)

    @property
    def errors(self) -> int:
        return sum(1 for r in self.results if r.status == BuildStatus.ERROR)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status == BuildStatus.SKIPPED)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def failed_modules(self) -> list[str]:
        """Names of modules whose build failed or could not be launched."""
        return [r.module.name for r in self.results if r.status.is_failure]

    @property
    def exit_code(self) -> int:
        """Zero, or the status of the first failing module in discovery order."""
        for r in self.results:
            if r.status.is_failure:
                return r.returncode or 1
        if not self.ok:
            return 1
        return 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.build_target.target,
            "profile": self.build_target.profile,
            "ok": self.ok,
            "exit_code": self.exit_code,
            "stopped_early": self.stopped_early,
            "total_duration_ms": round(self.total_duration_ms, 1),
            "failed_modules": self.failed_modules,
            "modules": [r.to_dict() for r in self.results],
        }


class Builder:
    """Compiles modules with the configured target descriptor.

    Examples:
        # Sequential build, toolchain output streams to the terminal
        builder = Builder(config)
        result = await builder.build(discover(config))

        # Four modules at a time, output captured per module
        builder = Builder(config.with_overrides(jobs=4))
        result = await builder.build(modules)
    """

    def __init__(
        self,
        config: BuildConfig,
        reporter: Reporter | None = None,
        *,
        launcher: Launcher = run_process,
    ) -> None:
        self.config = config
        self.reporter = reporter
        self.launcher = launcher
        self.workers = config.worker_count
        self.fail_fast = config.fail_fast

    async def build(self, modules: list[ModuleRef]) -> BuildResult:
        """Build every module and return the aggregate result."""
        build_result = BuildResult(build_target=self.config.build_target)

        if not modules:
            logger.debug("No modules to build")
            if self.reporter:
                self.reporter.no_modules(self.config.module_root)
            return build_result

        if self.reporter:
            self.reporter.build_started(modules, build_result.build_target, self.workers)

        start = time.perf_counter()
        if self.workers == 1:
            await self._build_sequential(modules, build_result)
        else:
            await self._build_concurrent(modules, build_result)
        build_result.total_duration_ms = (time.perf_counter() - start) * 1000

        if self.reporter:
            self.reporter.build_finished(build_result)
        return build_result

    async def _build_sequential(self, modules: list[ModuleRef], build_result: BuildResult) -> None:
        """Build modules one at a time, streaming toolchain output."""
        for idx, module in enumerate(modules):
            if self.reporter:
                self.reporter.module_started(module)
            result = await self._build_one(module, capture=False)
            build_result.results.append(result)
            if self.reporter:
                self.reporter.module_finished(result)

            if result.status.is_failure and self.fail_fast:
                build_result.stopped_early = True
                build_result.results.extend(self._skipped(modules[idx + 1 :]))
                break

    async def _build_concurrent(self, modules: list[ModuleRef], build_result: BuildResult) -> None:
        """Build modules on a bounded worker pool, capturing output per module."""
        semaphore = asyncio.Semaphore(self.workers)
        stop_flag = False

        async def build_one(module: ModuleRef) -> ModuleBuildResult:
            nonlocal stop_flag
            async with semaphore:
                if stop_flag:
                    return ModuleBuildResult(module=module, status=BuildStatus.SKIPPED)
                result = await self._build_one(module, capture=True)
                if result.status.is_failure and self.fail_fast:
                    stop_flag = True
                    build_result.stopped_early = True
                return result

        # gather preserves input order, so results stay in discovery order
        results = await asyncio.gather(*[build_one(module) for module in modules])

        for result in results:
            build_result.results.append(result)
            if self.reporter:
                self.reporter.module_finished(result)

    async def _build_one(self, module: ModuleRef, capture: bool) -> ModuleBuildResult:
        argv = build_command(self.config, module)
        process = await self.launcher(argv, self.config.workspace, capture)
        result = ModuleBuildResult.from_process(module, process)
        if result.status.is_failure:
            logger.debug("Module %s failed with status %s", module.name, result.returncode)
        return result

    @staticmethod
    def _skipped(modules: list[ModuleRef]) -> list[ModuleBuildResult]:
        return [ModuleBuildResult(module=module, status=BuildStatus.SKIPPED) for module in modules]


def build_modules(
    config: BuildConfig,
    modules: list[ModuleRef],
    reporter: Reporter | None = None,
    *,
    launcher: Launcher = run_process,
) -> BuildResult:
    """Build modules synchronously (convenience wrapper)."""
    return asyncio.run(Builder(config, reporter, launcher=launcher).build(modules))
