"""Module discovery under the workspace's module root."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from modbuild.config import BuildConfig, BuildTarget
from modbuild.errors import DiscoveryError


logger = logging.getLogger(__name__)

MANIFEST_NAME = "Cargo.toml"
ARTIFACT_SUFFIX = ".wasm"


@dataclass(frozen=True)
class ModuleRef:
    """A candidate module: one immediate subdirectory of the module root.

    The directory contents are opaque here. Interpreting the manifest is left
    entirely to the toolchain.
    """

    name: str
    path: Path

    @property
    def manifest_path(self) -> Path:
        return self.path / MANIFEST_NAME

    @property
    def has_manifest(self) -> bool:
        return self.manifest_path.is_file()

    @property
    def artifact_stem(self) -> str:
        """File stem of the compiled artifact.

        Assumes the crate is named after its directory. The toolchain names
        library artifacts with ``-`` replaced by ``_``.
        """
        return self.name.replace("-", "_")

    def artifact_path(self, build_target: BuildTarget) -> Path:
        """Where the toolchain places this module's compiled bytecode."""
        return self.path / "target" / build_target.target / build_target.profile / f"{self.artifact_stem}{ARTIFACT_SUFFIX}"


def discover(config: BuildConfig) -> list[ModuleRef]:
    """Enumerate the module directories under ``config.module_root``.

    Every immediate subdirectory is a candidate, with or without a manifest.
    The result is sorted by name so that logs are reproducible; nothing else
    depends on the order.

    Raises:
        DiscoveryError: The root does not exist, is not a directory, or cannot be read.
    """
    root = config.module_root
    if not root.exists():
        raise DiscoveryError(f"Module root does not exist: {root}", path=root)
    if not root.is_dir():
        raise DiscoveryError(f"Module root is not a directory: {root}", path=root)

    try:
        entries = list(root.iterdir())
    except OSError as e:
        raise DiscoveryError(f"Cannot list module root {root}: {e}", path=root) from e

    modules = sorted(
        (ModuleRef(name=entry.name, path=entry) for entry in entries if entry.is_dir()),
        key=lambda module: module.name,
    )
    logger.debug("Discovered %d module(s) under %s", len(modules), root)
    return modules


def select(modules: list[ModuleRef], names: Iterable[str]) -> list[ModuleRef]:
    """Restrict ``modules`` to ``names``, keeping discovery order.

    Raises:
        DiscoveryError: A requested name is not a discovered module.
    """
    wanted = list(dict.fromkeys(names))
    if not wanted:
        return modules

    by_name = {module.name: module for module in modules}
    unknown = [name for name in wanted if name not in by_name]
    if unknown:
        raise DiscoveryError(f"Unknown module(s): {', '.join(unknown)}")
    return [module for module in modules if module.name in wanted]


def discover_names(config: BuildConfig, names: Iterable[str]) -> list[ModuleRef]:
    """Discover modules, then keep only the named ones."""
    return select(discover(config), names)
