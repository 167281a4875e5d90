"""Build configuration."""

import json
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from modbuild.errors import ConfigError


DEFAULT_TARGET = "wasm32-unknown-unknown"
MAX_AUTO_JOBS = 8

Profile = Literal["debug", "release"]


class BuildTarget(BaseModel):
    """Target triple and optimization profile applied to every module."""

    target: str = DEFAULT_TARGET
    profile: Profile = "release"

    model_config = {"frozen": True}

    @property
    def is_release(self) -> bool:
        return self.profile == "release"


class BuildConfig(BaseSettings):
    """Configuration threaded through discovery, build and test.

    Loads from environment variables automatically:
        MODBUILD_ROOT_DIRECTORY, MODBUILD_TARGET, MODBUILD_PROFILE, MODBUILD_JOBS, ...

    Relative paths are resolved against ``workspace``.
    """

    workspace: Path = Field(default_factory=Path.cwd, description="Workspace root, used as cwd for the toolchain")
    root_directory: Path = Field(default=Path("modules"), description="Directory whose subdirectories are modules")
    target: str = Field(default=DEFAULT_TARGET, description="Compilation target identifier")
    profile: Profile = Field(default="release", description="Optimization profile (debug/release)")
    harness_manifest: Path = Field(
        default=Path("hatchery/Cargo.toml"), description="Manifest of the harness whose tests verify the modules"
    )
    cargo: str = Field(default="cargo", description="Toolchain executable")
    color: Literal["always", "auto", "never"] = Field(default="always", description="Toolchain color mode")
    jobs: int = Field(default=1, ge=0, description="Parallel module builds (0 = one per CPU)")
    fail_fast: bool = Field(default=False, description="Stop starting builds after the first failure")

    model_config = SettingsConfigDict(
        env_prefix="MODBUILD_",
        case_sensitive=False,
        extra="forbid",
    )

    @field_validator("target")
    @classmethod
    def _target_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("target must not be empty")
        return value.strip()

    @property
    def build_target(self) -> BuildTarget:
        """The target descriptor shared by all module builds."""
        return BuildTarget(target=self.target, profile=self.profile)

    @property
    def module_root(self) -> Path:
        return self._resolve(self.root_directory)

    @property
    def harness_manifest_path(self) -> Path:
        return self._resolve(self.harness_manifest)

    @property
    def worker_count(self) -> int:
        """Effective size of the build worker pool."""
        if self.jobs > 0:
            return self.jobs
        return min(os.cpu_count() or 1, MAX_AUTO_JOBS)

    def _resolve(self, path: Path) -> Path:
        if path.is_absolute():
            return path
        return self.workspace / path

    def with_overrides(self, **overrides: Any) -> "BuildConfig":
        """Return a copy with the non-None overrides applied and validated."""
        values = self.model_dump()
        values.update({key: value for key, value in overrides.items() if value is not None})
        return load_config(values)

    @classmethod
    def from_file(cls, config_path: str | Path) -> "BuildConfig":
        """Load configuration from a YAML or JSON file."""
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.suffix.lower() in [".yaml", ".yml"]:
                    data = yaml.safe_load(f) or {}
                else:
                    data = json.load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read configuration file {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file {config_path} must contain a mapping")

        # Relative paths in the file are anchored at the file's directory
        data.setdefault("workspace", str(path.resolve().parent))
        return load_config(data)

    def save(self, config_path: str | Path) -> None:
        """Save configuration to file."""
        path = Path(config_path)
        data = self.model_dump(mode="json")

        with open(path, "w", encoding="utf-8") as f:
            if path.suffix.lower() in [".yaml", ".yml"]:
                yaml.dump(data, f, default_flow_style=False, indent=2)
            else:
                json.dump(data, f, indent=2)


def load_config(values: dict[str, Any] | None = None) -> BuildConfig:
    """Build a config from explicit values layered over env vars and defaults."""
    try:
        return BuildConfig(**(values or {}))
    except ValidationError as e:
        raise ConfigError(str(e)) from e
