#!/usr/bin/env python3
"""HTTP client wrapper for the Consul agent API."""

import logging
import socket
import threading
import time

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import AgentUnreachableError

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10
# Added to the capture duration for the read timeout and total fetch deadline
TIMEOUT_MARGIN = 15
RETRY_ATTEMPTS = 3
RETRY_DELAY = 2
RETRY_STATUSES = (408, 429, 500, 502, 503, 504)


class FixedDelayRetry(Retry):
    """Retry policy that waits a constant delay before every retry."""

    def get_backoff_time(self):
        return RETRY_DELAY if self.history else 0


class ConsulAgentClient:
    """Wrapper for the Consul agent HTTP endpoints used by the collectors."""

    def __init__(self, address, token=None, duration_seconds=30, verify_tls=False, session=None):
        """
        Initialize the agent client.

        Args:
            address: Agent base URL (scheme://host:port)
            token: Optional ACL token sent as X-Consul-Token
            duration_seconds: Capture window, used to size the read timeout
            verify_tls: Verify TLS certificates
            session: Pre-built requests session (mainly for tests)
        """
        self.address = address.rstrip("/")
        self.timeout = (CONNECT_TIMEOUT, duration_seconds + TIMEOUT_MARGIN)
        self.session = session or self._build_session(token, verify_tls)

    @classmethod
    def from_job(cls, job):
        return cls(
            job.address,
            token=job.token,
            duration_seconds=job.duration_seconds,
            verify_tls=job.verify_tls
        )

    @staticmethod
    def _build_session(token, verify_tls):
        retry = FixedDelayRetry(
            total=RETRY_ATTEMPTS,
            connect=RETRY_ATTEMPTS,
            read=RETRY_ATTEMPTS,
            status=RETRY_ATTEMPTS,
            status_forcelist=RETRY_STATUSES,
            allowed_methods=frozenset(["GET"]),
            raise_on_status=False
        )
        adapter = HTTPAdapter(max_retries=retry)

        session = requests.Session()
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.verify = verify_tls
        if token:
            session.headers["X-Consul-Token"] = token
        if not verify_tls:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        return session

    def _get(self, path, **kwargs):
        url = f"{self.address}{path}"
        logger.debug(f"GET {url}")
        return self.session.get(url, timeout=self.timeout, **kwargs)

    def status_leader(self):
        """
        Check the agent answers on /v1/status/leader.

        Any HTTP answer counts as reachable; only transport failures are fatal.

        Returns:
            str: Raw response body (the leader address when ACLs allow it)

        Raises:
            AgentUnreachableError: The agent could not be contacted
        """
        try:
            response = self._get("/v1/status/leader")
        except requests.RequestException as e:
            raise AgentUnreachableError(self.address, e) from e

        if not response.ok:
            logger.warning(f"/v1/status/leader returned HTTP {response.status_code}")
        return response.text.strip()

    def agent_self(self):
        """
        Fetch the raw /v1/agent/self document.

        Returns:
            str: Response body, or None if the request failed
        """
        try:
            response = self._get("/v1/agent/self")
        except requests.RequestException as e:
            logger.warning(f"Could not query /v1/agent/self: {e}")
            return None

        if not response.ok:
            logger.warning(f"/v1/agent/self returned HTTP {response.status_code}")
        return response.text

    def fetch_to_file(self, path, destination):
        """
        Stream a GET response body into a file.

        Non-2xx bodies are written as-is so validation can flag them. The
        whole fetch, retries and body included, must finish within the read
        timeout (duration + margin); a server trickling bytes past that
        deadline is cut off.

        Args:
            path: URL path relative to the agent address
            destination: Output file path

        Returns:
            int: HTTP status code

        Raises:
            requests.Timeout: The deadline passed before the body was complete
            requests.RequestException: Transport failure after retries
        """
        budget = self.timeout[1]
        deadline = time.monotonic() + budget
        expired = threading.Event()

        with self._get(path, stream=True) as response:
            if not response.ok:
                logger.warning(f"{path} returned HTTP {response.status_code}")

            # A blocked socket read never returns to the loop, so a timer
            # shuts the connection down once the deadline passes
            watchdog = threading.Timer(
                max(deadline - time.monotonic(), 0),
                _interrupt_stream,
                args=(response, expired)
            )
            watchdog.daemon = True
            watchdog.start()
            try:
                with open(destination, "wb") as f:
                    for chunk in response.iter_content(chunk_size=64 * 1024):
                        if time.monotonic() > deadline:
                            expired.set()
                            break
                        if chunk:
                            f.write(chunk)
            except OSError as e:
                if expired.is_set():
                    raise requests.Timeout(f"{path} did not complete within {budget}s") from e
                raise
            finally:
                watchdog.cancel()

            if expired.is_set():
                raise requests.Timeout(f"{path} did not complete within {budget}s")
            return response.status_code


def _interrupt_stream(response, expired):
    """Shut down the socket behind a streaming response to unblock its reader."""
    expired.set()
    raw = getattr(response, "raw", None)
    connection = getattr(raw, "connection", None) or getattr(raw, "_connection", None)
    sock = getattr(connection, "sock", None)
    if sock is None:
        return
    logger.debug("Fetch deadline passed, closing the connection")
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as e:
        logger.debug(f"Connection already closed: {e}")
