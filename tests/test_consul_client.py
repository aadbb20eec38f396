"""Tests for the Consul agent HTTP client."""

import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import requests
from urllib3.util.retry import RequestHistory

from conftest import FakeResponse, FakeSession
from consul_diag.common import consul_client
from consul_diag.common.consul_client import (
    CONNECT_TIMEOUT,
    ConsulAgentClient,
    FixedDelayRetry,
    RETRY_DELAY,
)
from consul_diag.common.errors import AgentUnreachableError


class TrickleHandler(BaseHTTPRequestHandler):
    """Answers at once, then sends a 12 byte body one byte every half second."""

    protocol_version = "HTTP/1.0"

    def do_GET(self):
        self.send_response(200)
        self.send_header("Content-Type", "application/octet-stream")
        if "sized" in self.path:
            self.send_header("Content-Length", "12")
        self.end_headers()
        try:
            for _ in range(12):
                self.wfile.write(b"x")
                self.wfile.flush()
                time.sleep(0.5)
        except OSError:
            # client hung up
            pass

    def log_message(self, format, *args):
        pass


@pytest.fixture
def trickle_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), TrickleHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def make_client(routes, duration=30):
    return ConsulAgentClient("http://localhost:8500/", duration_seconds=duration, session=FakeSession(routes))


class TestSession:
    def test_token_header_and_tls(self):
        client = ConsulAgentClient("https://consul:8501", token="s3cr3t", verify_tls=False)
        assert client.session.headers["X-Consul-Token"] == "s3cr3t"
        assert client.session.verify is False

    def test_no_token_header_without_token(self):
        client = ConsulAgentClient("http://consul:8500", verify_tls=True)
        assert "X-Consul-Token" not in client.session.headers
        assert client.session.verify is True

    def test_retry_policy_mounted(self):
        client = ConsulAgentClient("http://consul:8500")
        retry = client.session.get_adapter("http://consul:8500/v1/status/leader").max_retries
        assert isinstance(retry, FixedDelayRetry)
        assert retry.total == 3

    def test_timeouts_follow_duration(self):
        client = make_client({}, duration=5)
        assert client.timeout == (CONNECT_TIMEOUT, 20)


class TestFixedDelayRetry:
    def test_no_delay_before_first_attempt(self):
        assert FixedDelayRetry(total=3).get_backoff_time() == 0

    def test_constant_delay_between_retries(self):
        history = (RequestHistory("GET", "/debug/pprof/heap", None, 503, None),) * 2
        assert FixedDelayRetry(total=3, history=history).get_backoff_time() == RETRY_DELAY


class TestStatusLeader:
    def test_reachable(self):
        client = make_client({"/v1/status/leader": FakeResponse('"10.0.0.1:8300"')})
        assert client.status_leader() == '"10.0.0.1:8300"'

    def test_http_error_still_reachable(self):
        client = make_client({"/v1/status/leader": FakeResponse("Permission denied", status_code=403)})
        assert client.status_leader() == "Permission denied"

    def test_transport_failure_is_fatal(self):
        client = make_client({"/v1/status/leader": requests.ConnectionError("refused")})
        with pytest.raises(AgentUnreachableError, match="localhost:8500"):
            client.status_leader()


class TestAgentSelf:
    def test_body_returned(self):
        client = make_client({"/v1/agent/self": FakeResponse('{"EnableDebug": true}')})
        assert client.agent_self() == '{"EnableDebug": true}'

    def test_failure_returns_none(self):
        client = make_client({"/v1/agent/self": requests.ConnectTimeout("slow")})
        assert client.agent_self() is None


class TestFetchToFile:
    def test_streams_body(self, tmp_path):
        body = b"\x1f\x8b" + b"x" * 200000
        session = FakeSession({"/debug/pprof/profile?seconds=5": FakeResponse(body)})
        client = ConsulAgentClient("http://localhost:8500", duration_seconds=5, session=session)

        status = client.fetch_to_file("/debug/pprof/profile?seconds=5", tmp_path / "profile.prof")

        assert status == 200
        assert (tmp_path / "profile.prof").read_bytes() == body
        call = session.calls[0]
        assert call['url'] == "http://localhost:8500/debug/pprof/profile?seconds=5"
        assert call['stream'] is True
        assert call['timeout'] == (10, 20)

    def test_error_body_kept(self, tmp_path):
        client = make_client({"/debug/pprof/heap": FakeResponse("<html>404</html>", status_code=404)})
        assert client.fetch_to_file("/debug/pprof/heap", tmp_path / "heap.prof") == 404
        assert (tmp_path / "heap.prof").read_text() == "<html>404</html>"

    def test_transport_failure_raises(self, tmp_path):
        client = make_client({"/debug/pprof/heap": requests.ConnectionError("reset")})
        with pytest.raises(requests.RequestException):
            client.fetch_to_file("/debug/pprof/heap", tmp_path / "heap.prof")

    @pytest.mark.parametrize("path", ["/debug/pprof/heap", "/debug/pprof/heap?sized=1"])
    def test_slow_body_cut_off_at_deadline(self, monkeypatch, tmp_path, trickle_server, path):
        # 1s window + 1s margin = 2s budget against a 6s trickle
        monkeypatch.setattr(consul_client, "TIMEOUT_MARGIN", 1)
        client = ConsulAgentClient(trickle_server, duration_seconds=1)

        started = time.monotonic()
        with pytest.raises(requests.Timeout, match="within 2s"):
            client.fetch_to_file(path, tmp_path / "heap.prof")

        assert time.monotonic() - started < 4
