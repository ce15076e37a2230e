import pytest
import requests
from databricks.sdk._base_client import _BaseClient
from databricks.sdk.clock import Clock
from databricks.sdk.errors import TooManyRequests

from dbcomply.core import auth
from dbcomply.core.auth import _format_auth_error, _sanitize_host, get_client
from dbcomply.core.environments import Environment
from dbcomply.core.transport import RateLimitedTransport, is_rate_limited


def test_sanitize_host_strips_query_and_trailing_slash():
    assert _sanitize_host("https://adb-1.azuredatabricks.net/?o=123") == (
        "https://adb-1.azuredatabricks.net"
    )
    assert _sanitize_host(None) is None


def test_format_auth_error_suggests_login_with_profile():
    message = _format_auth_error(
        "token expired, run databricks auth login https://host", "prod"
    )
    assert "databricks auth login --profile prod" in message


def test_format_auth_error_passes_other_messages_through():
    assert _format_auth_error("no host", None) == "Databricks authentication failed: no host"


class _RecordingConfig:
    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.host = kwargs.get("host")


def test_get_client_bounds_sdk_retries(monkeypatch):
    monkeypatch.setattr(auth, "Config", _RecordingConfig)
    monkeypatch.setattr(auth, "WorkspaceClient", lambda config: config)
    env = Environment(
        id="prod", display_name="Prod", base_url="https://h/?o=1", auth_token="t"
    )

    cfg = get_client(env, http_timeout=30, retry_timeout=0)

    assert cfg.kwargs["retry_timeout_seconds"] == 1
    assert cfg.kwargs["http_timeout_seconds"] == 30
    assert cfg.host == "https://h"


def test_get_client_uses_profile(monkeypatch):
    monkeypatch.setattr(auth, "Config", _RecordingConfig)
    monkeypatch.setattr(auth, "WorkspaceClient", lambda config: config)
    env = Environment(id="dev", display_name="Dev", base_url=None, profile="dev")

    cfg = get_client(env, retry_timeout=5)

    assert cfg.kwargs == {
        "profile": "dev",
        "http_timeout_seconds": 30,
        "retry_timeout_seconds": 5,
    }


class _FakeClock(Clock):
    def __init__(self):
        self.now = 1000.0

    def time(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


def _throttled_response(method, url, **kwargs):
    resp = requests.Response()
    resp.status_code = 429
    resp._content = b'{"error_code": "TOO_MANY_REQUESTS", "message": "slow down"}'
    resp.headers["Content-Type"] = "application/json"
    resp.url = url
    resp.request = requests.Request(method, url).prepare()
    return resp


def test_sdk_rate_limit_reaches_the_transport(monkeypatch):
    client = _BaseClient(retry_timeout_seconds=1, clock=_FakeClock())
    calls = []

    def request(method, url, **kwargs):
        calls.append(url)
        return _throttled_response(method, url)

    monkeypatch.setattr(client._session, "request", request)
    sleeps = []
    transport = RateLimitedTransport(
        min_interval=0.0, max_retries=2, base_delay=1.0, sleep=sleeps.append
    )

    with pytest.raises(Exception) as excinfo:
        transport.execute(
            lambda: client.do("GET", "https://h/api/2.1/unity-catalog/catalogs")
        )

    assert is_rate_limited(excinfo.value)
    assert isinstance(excinfo.value.__cause__, TooManyRequests)
    # one HTTP attempt per transport attempt: the SDK window closes after its first sleep
    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]
    assert transport.consecutive_errors == 3
