"""modbuild - build-and-verify orchestration for sandboxed bytecode modules."""

from .builder import Builder, BuildResult, BuildStatus, ModuleBuildResult, build_modules
from .config import BuildConfig, BuildTarget, load_config
from .discovery import ModuleRef, discover, discover_names
from .errors import ConfigError, DiscoveryError, ModbuildError, PrerequisiteFailed
from .harness import HarnessResult, HarnessRunner
from .pipeline import PhaseOutcome, PhaseStatus, Pipeline, RunOutcome, run_pipeline
from .version import __version__


__all__ = [
    # Configuration
    "BuildConfig",
    "BuildTarget",
    "load_config",
    # Discovery
    "ModuleRef",
    "discover",
    "discover_names",
    # Phases
    "Builder",
    "BuildResult",
    "BuildStatus",
    "ModuleBuildResult",
    "build_modules",
    "HarnessResult",
    "HarnessRunner",
    "Pipeline",
    "PhaseOutcome",
    "PhaseStatus",
    "RunOutcome",
    "run_pipeline",
    # Errors
    "ModbuildError",
    "ConfigError",
    "DiscoveryError",
    "PrerequisiteFailed",
]
