"""Tests for modbuild.pipeline module."""

import subprocess

import pytest
from rich.console import Console

from fakes import FakeLauncher, make_workspace
from modbuild.config import load_config
from modbuild.errors import DiscoveryError, ModbuildError
from modbuild.pipeline import PhaseStatus, Pipeline, RunOutcome, Task, run_pipeline
from modbuild.reporting import ConsoleReporter


class TestPlan:
    def test_test_requires_modules(self, config):
        plan = Pipeline(config).plan("test")
        assert [task.name for task in plan] == ["modules", "test"]

    def test_modules_alone(self, config):
        assert [task.name for task in Pipeline(config).plan("modules")] == ["modules"]

    def test_unknown_task(self, config):
        with pytest.raises(ModbuildError, match="Unknown task"):
            Pipeline(config).plan("deploy")

    def test_circular_prerequisites(self, config):
        pipeline = Pipeline(config)

        async def noop():
            raise AssertionError("never runs")

        pipeline.register(Task("x", "x", noop, ("y",)))
        pipeline.register(Task("y", "y", noop, ("x",)))

        with pytest.raises(ModbuildError, match="Circular"):
            pipeline.plan("x")

    def test_shared_prerequisite_runs_once(self, config):
        pipeline = Pipeline(config)

        async def noop():
            raise AssertionError("never runs")

        pipeline.register(Task("all", "everything", noop, ("modules", "test")))
        assert [task.name for task in pipeline.plan("all")] == ["modules", "test", "all"]


class TestScenarios:
    """End-to-end task runs against a fake toolchain."""

    @pytest.mark.asyncio
    async def test_all_modules_build_then_harness_runs(self, config):
        launcher = FakeLauncher()
        outcome = await Pipeline(config, launcher=launcher).run("test")

        assert outcome.ok
        assert outcome.exit_code == 0
        assert outcome.failed_phase is None
        assert launcher.harness_runs == 1
        # The harness runs strictly after every module build
        assert launcher.calls[-1][1] == "test"

    @pytest.mark.asyncio
    async def test_failing_module_blocks_harness(self, config):
        # Modules {a, b, c}; c fails to compile
        launcher = FakeLauncher(fail={"c": 101})
        outcome = await Pipeline(config, launcher=launcher).run("test")

        assert not outcome.ok
        assert outcome.exit_code == 101
        assert outcome.failed_phase == "modules"
        assert outcome.build.failed_modules == ["c"]
        assert outcome.phase("test").status == PhaseStatus.NOT_RUN
        assert outcome.harness is None
        assert launcher.harness_runs == 0

    @pytest.mark.asyncio
    async def test_empty_root_still_runs_harness(self, tmp_path):
        config = load_config({"workspace": make_workspace(tmp_path, [])})
        launcher = FakeLauncher()

        outcome = await Pipeline(config, launcher=launcher).run("test")

        assert outcome.ok
        assert outcome.build.total == 0
        assert launcher.built == []
        assert launcher.harness_runs == 1

    @pytest.mark.asyncio
    async def test_harness_failure_is_attributed_to_test_phase(self, tmp_path):
        config = load_config({"workspace": make_workspace(tmp_path, ["x"])})
        launcher = FakeLauncher(fail={"harness": 3})

        outcome = await Pipeline(config, launcher=launcher).run("test")

        assert outcome.exit_code == 3
        assert outcome.failed_phase == "test"
        assert outcome.build.ok
        assert not outcome.harness.ok

    @pytest.mark.asyncio
    async def test_modules_task_never_runs_harness(self, config):
        launcher = FakeLauncher()
        outcome = await Pipeline(config, launcher=launcher).run("modules")

        assert outcome.ok
        assert [phase.name for phase in outcome.phases] == ["modules"]
        assert launcher.harness_runs == 0

    @pytest.mark.asyncio
    async def test_named_modules_only(self, config):
        launcher = FakeLauncher()
        outcome = await Pipeline(config, module_names=["b"], launcher=launcher).run("modules")

        assert outcome.ok
        assert launcher.built == ["b"]

    @pytest.mark.asyncio
    async def test_missing_root_is_fatal(self, tmp_path):
        config = load_config({"workspace": tmp_path})
        launcher = FakeLauncher()

        with pytest.raises(DiscoveryError):
            await Pipeline(config, launcher=launcher).run("test")
        assert launcher.calls == []

    @pytest.mark.asyncio
    async def test_repeated_runs_agree(self, config):
        launcher = FakeLauncher(fail={"a": 1})
        pipeline = Pipeline(config, launcher=launcher)

        first = await pipeline.run("test")
        second = await pipeline.run("test")

        assert first.exit_code == second.exit_code == 1
        assert launcher.harness_runs == 0

    @pytest.mark.asyncio
    async def test_outcome_serializes(self, config):
        outcome = await Pipeline(config, launcher=FakeLauncher(fail={"b": 2})).run("test")
        data = outcome.to_dict()

        assert data["exit_code"] == 2
        assert data["failed_phase"] == "modules"
        assert [p["status"] for p in data["phases"]] == ["failed", "not_run"]
        assert data["phases"][0]["detail"]["failed_modules"] == ["b"]
        assert data["error"] is None

    @pytest.mark.asyncio
    async def test_run_launches_only_the_toolchain(self, config, monkeypatch):
        def unexpected(*args, **kwargs):
            raise AssertionError(f"unexpected subprocess: {args}")

        monkeypatch.setattr(subprocess, "run", unexpected)
        launcher = FakeLauncher()

        outcome = await Pipeline(config, launcher=launcher).run("test")

        assert outcome.ok
        assert len(launcher.calls) == 4

    def test_aborted_outcome(self):
        outcome = RunOutcome.aborted("test", DiscoveryError("Module root does not exist: /x"))

        assert not outcome.ok
        assert outcome.exit_code == 2
        assert outcome.failed_phase is None
        assert outcome.to_dict()["error"] == "Module root does not exist: /x"


class TestRunPipeline:
    def test_sync_wrapper(self, config):
        launcher = FakeLauncher(fail={"harness": 5})

        outcome = run_pipeline(config, "test", launcher=launcher)

        assert outcome.exit_code == 5
        assert launcher.built == ["a", "b", "c"]

    def test_sync_wrapper_with_names(self, config):
        launcher = FakeLauncher()

        outcome = run_pipeline(config, "modules", module_names=["c"], launcher=launcher)

        assert outcome.ok
        assert launcher.built == ["c"]


class TestReporting:
    @pytest.mark.asyncio
    async def test_summary_names_failing_module(self, config):
        console = Console(record=True, width=120)
        reporter = ConsoleReporter(console)

        await Pipeline(config, reporter, launcher=FakeLauncher(fail={"c": 101})).run("test")
        text = console.export_text()

        assert "failed in phase 'modules'" in text
        assert "failing module(s): c" in text
        assert "not run: test" in text

    @pytest.mark.asyncio
    async def test_quiet_reporter_hides_passing_modules(self, config):
        console = Console(record=True, width=120)
        reporter = ConsoleReporter(console, verbosity=-1)

        await Pipeline(config, reporter, launcher=FakeLauncher(fail={"b": 1})).run("modules")
        text = console.export_text()

        assert "✗ b" in text
        assert "✓ a" not in text
