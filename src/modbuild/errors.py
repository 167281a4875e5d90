"""Errors raised by the orchestration layer."""


class ModbuildError(Exception):
    """Base class for orchestration errors."""


class ConfigError(ModbuildError):
    """Configuration could not be loaded or is invalid."""


class DiscoveryError(ModbuildError):
    """The module root cannot be enumerated."""

    def __init__(self, message: str, path: object | None = None) -> None:
        self.path = path
        super().__init__(message)


class PrerequisiteFailed(ModbuildError):
    """A task was started while one of its prerequisites had failed."""

    def __init__(self, task: str, prerequisite: str) -> None:
        self.task = task
        self.prerequisite = prerequisite
        super().__init__(f"'{task}' requires '{prerequisite}', which did not succeed")
