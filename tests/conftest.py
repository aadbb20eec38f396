"""
Pytest config and shared fakes.

Nothing here talks to a real Consul agent or runs consul-k8s: the agent
client and the command runner are replaced by in-memory fakes.
"""

from pathlib import Path

import pytest
import requests

from consul_diag.common.config import CaptureJob, GatherJob
from consul_diag.common.errors import AgentUnreachableError


PROXY_LIST_OUTPUT = """\
Namespace: default

Name                    Type
web-sidecar             sidecar-proxy
api-sidecar             sidecar-proxy

"""


class FakeAgentClient:
    """Stands in for ConsulAgentClient; profiles maps kind -> bytes or exception."""

    def __init__(self, profiles=None, agent_self='{"DebugConfig": {"EnableDebug": true}}', unreachable=False):
        self.profiles = profiles if profiles is not None else {}
        self._agent_self = agent_self
        self.unreachable = unreachable
        self.fetched = []

    def status_leader(self):
        if self.unreachable:
            raise AgentUnreachableError("http://consul.invalid:8500", "connection refused")
        return '"10.0.0.1:8300"'

    def agent_self(self):
        return self._agent_self

    def fetch_to_file(self, path, destination):
        self.fetched.append(path)
        kind = path.rsplit("/", 1)[-1].split("?", 1)[0]
        body = self.profiles.get(kind, b"\x1f\x8b binary profile data")
        if isinstance(body, Exception):
            raise body
        Path(destination).write_bytes(body)
        return 200


class FakeRunner:
    """Stands in for run_to_file; records commands and writes canned output."""

    def __init__(self, listing=PROXY_LIST_OUTPUT, failing=()):
        self.listing = listing
        self.failing = set(failing)
        self.commands = []

    def __call__(self, command, output_file):
        self.commands.append(command)
        if command[1:3] == ["proxy", "list"]:
            Path(output_file).write_text(self.listing)
            return 0
        subcommand = command[2] if len(command) > 2 else command[1]
        if subcommand in self.failing:
            Path(output_file).write_text(f"Error: {subcommand} failed\n")
            return 1
        Path(output_file).write_text(f"output of {' '.join(command)}\n")
        return 0


class FakeResponse:
    def __init__(self, body=b"", status_code=200):
        self.body = body if isinstance(body, bytes) else body.encode()
        self.status_code = status_code

    @property
    def ok(self):
        return self.status_code < 400

    @property
    def text(self):
        return self.body.decode()

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i:i + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeSession:
    """Minimal requests.Session replacement keyed by URL path."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.calls = []

    def get(self, url, timeout=None, stream=False):
        self.calls.append({'url': url, 'timeout': timeout, 'stream': stream})
        for path, response in self.routes.items():
            if url.endswith(path):
                if isinstance(response, Exception):
                    raise response
                return response
        raise requests.ConnectionError(f"no route for {url}")


@pytest.fixture
def capture_job(tmp_path):
    return CaptureJob.from_args(address="http://localhost:8500", duration=5, output_dir=tmp_path, environ={})


@pytest.fixture
def gather_job(tmp_path):
    return GatherJob.from_args(namespace="default", output_dir=tmp_path)
