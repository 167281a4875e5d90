"""Test runner phase: the harness's own test suite."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from modbuild.builder import BuildResult
from modbuild.config import BuildConfig
from modbuild.errors import PrerequisiteFailed
from modbuild.process import Launcher, run_process
from modbuild.toolchain import harness_command


if TYPE_CHECKING:
    from modbuild.reporting import Reporter


logger = logging.getLogger(__name__)


@dataclass
class HarnessResult:
    """Aggregate exit signal of one harness test run."""

    argv: list[str]
    returncode: int
    duration_ms: float
    error: OSError | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "argv": self.argv,
            "ok": self.ok,
            "returncode": self.returncode,
            "duration_ms": round(self.duration_ms, 1),
            "error": str(self.error) if self.error else None,
        }


class HarnessRunner:
    """Runs the harness test suite once, after a successful build phase."""

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

    async def run(self, build_result: BuildResult) -> HarnessResult:
        """Invoke the harness tests.

        The pass/fail of the harness is taken from its exit status only;
        individual test results are not inspected.

        Raises:
            PrerequisiteFailed: ``build_result`` is not a successful build.
        """
        if not build_result.ok:
            raise PrerequisiteFailed("test", "modules")

        argv = harness_command(self.config)
        if self.reporter:
            self.reporter.harness_started(argv)

        process = await self.launcher(argv, self.config.workspace, False)
        result = HarnessResult(
            argv=process.argv,
            returncode=process.returncode,
            duration_ms=process.duration_ms,
            error=process.error,
        )
        logger.debug("Harness finished with status %d", result.returncode)

        if self.reporter:
            self.reporter.harness_finished(result)
        return result
