"""Exceptions raised by the collectors. Anything here aborts the run."""


class ConsulDiagError(Exception):
    """Base class for fatal environment errors."""


class AgentUnreachableError(ConsulDiagError):
    """The Consul agent did not answer the preflight check."""

    def __init__(self, address, cause=None):
        self.address = address
        self.cause = cause
        message = f"Unable to reach Consul agent at {address}"
        if cause:
            message += f": {cause}"
        super().__init__(message)


class DependencyInstallError(ConsulDiagError):
    """A required CLI is missing and could not be installed."""


class UnsupportedPlatformError(DependencyInstallError):
    """No installer is known for the detected OS or distribution."""


class OutputDirectoryExistsError(ConsulDiagError):
    """Another run already owns the timestamped output directory."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Output directory {path} already exists; retry in a moment")
