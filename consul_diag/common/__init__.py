"""Common utilities for Consul diagnostics collection."""

from .utils import setup_logging, log_to_file, run_to_file, save_to_file, create_archive
from .errors import (
    ConsulDiagError,
    AgentUnreachableError,
    DependencyInstallError,
    UnsupportedPlatformError,
    OutputDirectoryExistsError
)
from .config import CaptureJob, GatherJob
from .consul_client import ConsulAgentClient
from .consul_k8s import ConsulK8sCLI

__all__ = [
    'setup_logging',
    'log_to_file',
    'run_to_file',
    'save_to_file',
    'create_archive',
    'ConsulDiagError',
    'AgentUnreachableError',
    'DependencyInstallError',
    'UnsupportedPlatformError',
    'OutputDirectoryExistsError',
    'CaptureJob',
    'GatherJob',
    'ConsulAgentClient',
    'ConsulK8sCLI'
]
