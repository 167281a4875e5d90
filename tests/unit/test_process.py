"""Tests for modbuild.process module."""

import sys

import pytest

from modbuild.process import LAUNCH_FAILURE_EXIT_CODE, run_process


class TestRunProcess:
    """Runs the current interpreter as a stand-in toolchain."""

    @pytest.mark.asyncio
    async def test_success(self, tmp_path):
        result = await run_process([sys.executable, "-c", "pass"], tmp_path)

        assert result.ok
        assert result.launched
        assert result.returncode == 0
        assert result.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, tmp_path):
        result = await run_process([sys.executable, "-c", "import sys; sys.exit(3)"], tmp_path)

        assert not result.ok
        assert result.returncode == 3

    @pytest.mark.asyncio
    async def test_capture_merges_stderr(self, tmp_path):
        script = "import sys; print('out'); print('err', file=sys.stderr)"
        result = await run_process([sys.executable, "-c", script], tmp_path, capture=True)

        assert "out" in result.output
        assert "err" in result.output

    @pytest.mark.asyncio
    async def test_runs_in_cwd(self, tmp_path):
        script = "import os; print(os.getcwd())"
        result = await run_process([sys.executable, "-c", script], tmp_path, capture=True)
        assert result.output.strip().endswith(tmp_path.name)

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path):
        result = await run_process([str(tmp_path / "no-such-cargo"), "build"], tmp_path)

        assert not result.launched
        assert not result.ok
        assert result.returncode == LAUNCH_FAILURE_EXIT_CODE
        assert isinstance(result.error, OSError)
