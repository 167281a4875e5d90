import os
from pathlib import Path

import pytest

from fakes import make_workspace
from modbuild.config import BuildConfig, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep MODBUILD_* variables from the developer's shell out of tests."""
    for key in list(os.environ):
        if key.startswith("MODBUILD_"):
            monkeypatch.delenv(key)


@pytest.fixture
def workspace(tmp_path) -> Path:
    return make_workspace(tmp_path, ["a", "b", "c"])


@pytest.fixture
def config(workspace) -> BuildConfig:
    return load_config({"workspace": workspace})
