"""Domain errors for Orbit RaaS."""


class OrbitError(RuntimeError):
    """Raised when an orchestrator operation cannot continue safely."""

    def __init__(self, message: str):
        super().__init__(message)
        self.stage = None
        self.record = None


class ConfigurationError(OrbitError):
    """Missing or invalid required settings."""


class CommandError(OrbitError):
    """An external command could not be spawned, timed out or exited non-zero."""


class ArtifactMissingError(OrbitError):
    """A tool reported success but an expected generated file is absent."""


class NotDeployedError(OrbitError):
    """The operation requires a successful deploy first."""


class FileSystemError(OrbitError):
    """Directory or file I/O failed."""


class DeploymentInProgressError(OrbitError):
    """Another deploy is already running against the same context."""
