"""Tests for modbuild.toolchain module."""

from modbuild.config import load_config
from modbuild.discovery import ModuleRef
from modbuild.toolchain import build_command, harness_command


def test_release_build_command(tmp_path):
    config = load_config({"workspace": tmp_path})
    module = ModuleRef(name="counter", path=tmp_path / "modules" / "counter")

    assert build_command(config, module) == [
        "cargo",
        "build",
        f"--manifest-path={tmp_path / 'modules' / 'counter' / 'Cargo.toml'}",
        "--color=always",
        "--target",
        "wasm32-unknown-unknown",
        "--release",
    ]


def test_debug_build_has_no_release_flag(tmp_path):
    config = load_config({"workspace": tmp_path, "profile": "debug", "cargo": "/opt/cargo", "color": "never"})
    argv = build_command(config, ModuleRef(name="box", path=tmp_path / "box"))

    assert argv[0] == "/opt/cargo"
    assert "--release" not in argv
    assert "--color=never" in argv


def test_same_target_for_every_module(tmp_path):
    config = load_config({"workspace": tmp_path, "target": "wasm32-wasi"})
    commands = [build_command(config, ModuleRef(name=n, path=tmp_path / n)) for n in ("a", "b")]
    assert all(argv[argv.index("--target") + 1] == "wasm32-wasi" for argv in commands)


def test_harness_command(tmp_path):
    config = load_config({"workspace": tmp_path})
    assert harness_command(config) == [
        "cargo",
        "test",
        f"--manifest-path={tmp_path / 'hatchery' / 'Cargo.toml'}",
        "--color=always",
    ]
