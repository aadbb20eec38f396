#!/usr/bin/env python3
"""
Consul pprof collection.

Fetches heap, CPU profile, execution trace and goroutine dumps from an
agent's /debug/pprof endpoints. Each profile is fetched and validated on its
own: a failed or suspicious capture is reported and the run moves on, since
CPU profiles and traces block the agent for the whole window and partial
results are still worth keeping.
"""

import logging
import re
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import List, Optional

import requests
from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from ..common.utils import log_to_file, save_to_file

logger = logging.getLogger(__name__)

# Case-insensitive signatures of a proxy/agent error page instead of a profile
ERROR_MARKERS = (b"stream timeout", b"<html", b"usage:")

ENABLE_DEBUG_PATTERN = re.compile(r'"EnableDebug"\s*:\s*([^,}\s]*)')

VALIDATION_REPORT = "validation_report.json"


@dataclass(frozen=True)
class ProfileRequest:
    kind: str
    url_path: str
    output_filename: str


@dataclass
class ValidationResult:
    kind: str
    passed: bool
    reason: Optional[str] = None
    path: Optional[str] = None


@dataclass
class CaptureResult:
    job: object
    debug_enabled: bool
    results: List[ValidationResult]

    @property
    def passed(self):
        return [r for r in self.results if r.passed]

    @property
    def failed(self):
        return [r for r in self.results if not r.passed]


def profile_requests(duration_seconds):
    """The fixed, ordered set of profiles captured per run."""
    return [
        ProfileRequest("heap", "heap", "heap.prof"),
        ProfileRequest("profile", f"profile?seconds={duration_seconds}", "profile.prof"),
        ProfileRequest("trace", f"trace?seconds={duration_seconds}", "trace.out"),
        ProfileRequest("goroutine", "goroutine", "goroutine.prof"),
    ]


def extract_debug_enabled(agent_self_text):
    """
    Pull the EnableDebug flag out of a /v1/agent/self body.

    Matches on the raw text so a truncated or oddly shaped document still
    works; a missing field reads as False.
    """
    if not agent_self_text:
        return False
    match = ENABLE_DEBUG_PATTERN.search(agent_self_text)
    if not match:
        return False
    return match.group(1).strip().strip('"').lower() == "true"


def validate_profile_file(path, kind):
    """
    Check a captured profile is non-empty and not an error page.

    Args:
        path: Captured file
        kind: Profile kind, for reporting

    Returns:
        ValidationResult
    """
    path = Path(path)
    if not path.is_file() or path.stat().st_size == 0:
        return ValidationResult(kind, False, "empty or missing", str(path))

    content = path.read_bytes().lower()
    for marker in ERROR_MARKERS:
        if marker in content:
            return ValidationResult(
                kind, False,
                f"contains a potential error message ({marker.decode()!r})",
                str(path)
            )
    return ValidationResult(kind, True, None, str(path))


class ProfileCollector:
    """Collects and validates the four pprof profiles from one agent."""

    def __init__(self, job, client):
        """
        Args:
            job: CaptureJob
            client: ConsulAgentClient (or anything with the same methods)
        """
        self.job = job
        self.client = client

    def preflight(self):
        """
        Fail fast if the agent is unreachable, then read the debug flag.

        Returns:
            bool: Whether the agent reports enable_debug (informational only)

        Raises:
            AgentUnreachableError
        """
        self.client.status_leader()
        return extract_debug_enabled(self.client.agent_self())

    def collect(self, debug_enabled=None):
        """
        Run a full capture.

        Args:
            debug_enabled: Result of an earlier preflight() (None = run it now)

        Returns:
            CaptureResult

        Raises:
            AgentUnreachableError: Preflight failed; no output directory is created
            OutputDirectoryExistsError: Another run already owns the output directory
        """
        if debug_enabled is None:
            debug_enabled = self.preflight()
        output_dir = self.job.create_output_dir()
        with log_to_file(output_dir):
            return self._collect(output_dir, debug_enabled)

    def _collect(self, output_dir, debug_enabled):
        logger.info(f"🔍 Collecting pprof from: {self.job.address}")
        logger.info(f"⏱️ Duration: {self.job.duration_seconds}s")
        logger.info(f"📁 Output Dir: {output_dir}")
        if debug_enabled:
            logger.info("🐞 Debug Enabled: true")
        else:
            logger.info("🐞 Debug Enabled: false (enable_debug=false)")
        if self.job.token:
            logger.info("🔐 Using CONSUL_HTTP_TOKEN for authentication.")

        results = []
        profiles = profile_requests(self.job.duration_seconds)
        with logging_redirect_tqdm():
            for request in tqdm(profiles, desc="Capturing profiles", unit="profile", disable=None):
                results.append(self._capture(request, output_dir))

        save_to_file(
            {
                'address': self.job.address,
                'duration_seconds': self.job.duration_seconds,
                'timestamp': self.job.timestamp,
                'debug_enabled': debug_enabled,
                'profiles': [asdict(r) for r in results]
            },
            output_dir / VALIDATION_REPORT
        )

        logger.info("🧪 Profile capture complete.")
        logger.info(f"📁 Results: {output_dir}")
        return CaptureResult(self.job, debug_enabled, results)

    def _capture(self, request, output_dir):
        path = output_dir / request.output_filename
        logger.info(f"📦 Fetching {request.kind} profile...")
        try:
            self.client.fetch_to_file(f"/debug/pprof/{request.url_path}", path)
        except (requests.RequestException, OSError) as e:
            logger.error(f"❌ Failed to fetch {request.kind} profile: {e}")
            return ValidationResult(request.kind, False, f"fetch failed: {e}", str(path))

        result = validate_profile_file(path, request.kind)
        if result.passed:
            logger.info(f"✅ {request.kind} profile validated")
        elif result.reason == "empty or missing":
            logger.warning(f"❌ {request.kind} profile is empty or missing: {path}")
            logger.warning("   Possible causes: network timeout, reverse proxy cutoff, system resource exhaustion")
        else:
            logger.warning(f"⚠️ {request.kind} profile {result.reason}")
            logger.warning(f"⚠️ Skipping invalid {request.kind} capture")
        return result
