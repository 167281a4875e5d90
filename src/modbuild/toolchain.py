"""Command lines for the external toolchain."""

from modbuild.config import BuildConfig
from modbuild.discovery import ModuleRef


def build_command(config: BuildConfig, module: ModuleRef) -> list[str]:
    """Compile one module for the configured target and profile."""
    build_target = config.build_target
    argv = [
        config.cargo,
        "build",
        f"--manifest-path={module.manifest_path}",
        f"--color={config.color}",
        "--target",
        build_target.target,
    ]
    if build_target.is_release:
        argv.append("--release")
    return argv


def harness_command(config: BuildConfig) -> list[str]:
    """Run the harness test suite."""
    return [
        config.cargo,
        "test",
        f"--manifest-path={config.harness_manifest_path}",
        f"--color={config.color}",
    ]
