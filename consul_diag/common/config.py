#!/usr/bin/env python3
"""Run configuration for the profile and proxy diagnostics collectors."""

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from .errors import OutputDirectoryExistsError

DEFAULT_CONSUL_ADDR = "http://localhost:8500"
DEFAULT_DURATION = 30
DEFAULT_NAMESPACE = "default"
DEFAULT_PPROF_BASE_DIR = "/tmp"

TRUE_VALUES = ("1", "true", "yes", "on")


def env_flag(name, default=False, environ=None):
    """Read a boolean environment variable."""
    environ = os.environ if environ is None else environ
    value = environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in TRUE_VALUES


def normalize_address(address):
    """Add a scheme to bare host:port addresses and drop trailing slashes."""
    address = address.strip().rstrip("/")
    if "://" not in address:
        address = f"http://{address}"
    return address


def create_run_dir(path):
    """
    Create a run's output directory, which must not exist yet.

    Parents are created as needed. Timestamps have one-second resolution, so
    a second run started in the same second fails here instead of mixing its
    files into the first run's directory.

    Raises:
        OutputDirectoryExistsError
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        path.mkdir()
    except FileExistsError as e:
        raise OutputDirectoryExistsError(path) from e
    return path


@dataclass(frozen=True)
class CaptureJob:
    """A single pprof capture run against one Consul agent."""

    address: str
    duration_seconds: int
    output_dir: Path
    timestamp: str
    token: Optional[str] = None
    verify_tls: bool = False

    @classmethod
    def from_args(
        cls,
        address=None,
        duration=None,
        token=None,
        output_dir=None,
        verify_tls=None,
        environ=None
    ):
        """
        Resolve a capture job from CLI arguments and the environment.

        Args:
            address: Agent address (falls back to CONSUL_HTTP_ADDR, then localhost)
            duration: CPU profile and trace window in seconds
            token: ACL token (falls back to CONSUL_HTTP_TOKEN)
            output_dir: Base directory for the timestamped output folder
            verify_tls: Verify TLS certificates (falls back to CONSUL_HTTP_SSL_VERIFY)
            environ: Environment mapping (defaults to os.environ)

        Returns:
            CaptureJob: Resolved job
        """
        environ = os.environ if environ is None else environ
        address = address or environ.get("CONSUL_HTTP_ADDR") or DEFAULT_CONSUL_ADDR
        duration = DEFAULT_DURATION if duration is None else int(duration)
        if duration <= 0:
            raise ValueError(f"Duration must be a positive number of seconds, got {duration}")
        if verify_tls is None:
            verify_tls = env_flag("CONSUL_HTTP_SSL_VERIFY", default=False, environ=environ)

        timestamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
        base = Path(output_dir or DEFAULT_PPROF_BASE_DIR)

        return cls(
            address=normalize_address(address),
            duration_seconds=duration,
            output_dir=base / f"consul-pprof-{timestamp}",
            timestamp=timestamp,
            token=token or environ.get("CONSUL_HTTP_TOKEN") or None,
            verify_tls=verify_tls
        )

    def create_output_dir(self):
        return create_run_dir(self.output_dir)


@dataclass(frozen=True)
class GatherJob:
    """A single consul-k8s proxy diagnostics run for one namespace."""

    namespace: str
    output_dir: Path
    timestamp: str
    context: Optional[str] = None
    service_filter: Optional[str] = None
    archive: bool = True

    @classmethod
    def from_args(
        cls,
        namespace=None,
        context=None,
        service=None,
        output_dir=None,
        archive=True
    ):
        """
        Resolve a gather job from CLI arguments.

        The output folder is consul_k8s_support_<namespace>_<timestamp>,
        created under output_dir (default: current directory).
        """
        namespace = namespace or DEFAULT_NAMESPACE
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        base = Path(output_dir) if output_dir else Path.cwd()

        return cls(
            namespace=namespace,
            output_dir=base / f"consul_k8s_support_{namespace}_{timestamp}",
            timestamp=timestamp,
            context=context or None,
            service_filter=service or None,
            archive=archive
        )

    def create_output_dir(self):
        return create_run_dir(self.output_dir)

    def matches(self, proxy_name):
        """Substring filter on the proxy name; no filter matches everything."""
        if not self.service_filter:
            return True
        return self.service_filter in proxy_name
