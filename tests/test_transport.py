"""Tests for ordertrack.transport: JSON transport with retry."""

from __future__ import annotations

import json
from typing import Any, Optional
from unittest.mock import MagicMock

import pytest
import requests

from ordertrack.errors import AuthError, InvalidResponseError, UpstreamError
from ordertrack.transport import JsonTransport

URL = "https://api.example.com/orders"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _mock_response(
    status_code: int = 200,
    json_data: Optional[Any] = None,
    text: Optional[str] = None,
) -> MagicMock:
    """Create a mock requests.Response."""
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 400
    if text is None:
        text = json.dumps(json_data) if json_data is not None else ""
    resp.text = text
    resp.content = text.encode("utf-8")
    if json_data is not None:
        resp.json.return_value = json_data
    else:
        resp.json.side_effect = ValueError("No JSON object could be decoded")
    return resp


def _transport(*outcomes: Any, **kwargs: Any) -> tuple[JsonTransport, MagicMock, list[float]]:
    """Build a transport whose session returns/raises *outcomes* in order."""
    session = requests.Session()
    session.request = MagicMock(side_effect=list(outcomes))
    sleeps: list[float] = []
    transport = JsonTransport("Test", session=session, sleep=sleeps.append, **kwargs)
    return transport, session.request, sleeps


# ---------------------------------------------------------------------------
# Success paths
# ---------------------------------------------------------------------------


class TestSuccess:
    def test_returns_parsed_json(self):
        transport, request, sleeps = _transport(_mock_response(json_data={"orders": []}))
        assert transport.request("GET", URL) == {"orders": []}
        assert request.call_count == 1
        assert sleeps == []

    def test_passes_params_headers_and_timeout(self):
        transport, request, _ = _transport(_mock_response(json_data={}), timeout=7.5)
        transport.request(
            "GET", URL, headers={"Authorization": "Basic x"}, params={"orderNumber": "A1"}
        )
        _, kwargs = request.call_args
        assert kwargs["params"] == {"orderNumber": "A1"}
        assert kwargs["headers"] == {"Authorization": "Basic x"}
        assert kwargs["timeout"] == 7.5

    def test_posts_json_body(self):
        transport, request, _ = _transport(_mock_response(json_data={"code": 0}))
        transport.request("POST", URL, json=[{"number": "T1"}])
        args, kwargs = request.call_args
        assert args == ("POST", URL)
        assert kwargs["json"] == [{"number": "T1"}]

    def test_empty_body_returns_empty_dict(self):
        transport, _, _ = _transport(_mock_response(200, text=""))
        assert transport.request("GET", URL) == {}

    def test_204_returns_empty_dict(self):
        transport, _, _ = _transport(_mock_response(204, text=""))
        assert transport.request("GET", URL) == {}

    def test_invalid_json_raises(self):
        transport, request, _ = _transport(_mock_response(200, text="<html>oops</html>"))
        with pytest.raises(InvalidResponseError) as exc_info:
            transport.request("GET", URL)
        assert exc_info.value.code == "INVALID_RESPONSE"
        assert request.call_count == 1

    def test_session_accepts_json(self):
        transport, _, _ = _transport()
        assert transport._session.headers["Accept"] == "application/json"


# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------


class TestRetry:
    def test_retries_503_then_succeeds(self):
        transport, request, sleeps = _transport(
            _mock_response(503, text="unavailable"),
            _mock_response(json_data={"ok": True}),
        )
        assert transport.request("GET", URL) == {"ok": True}
        assert request.call_count == 2
        assert sleeps == [0.5]

    def test_retries_429_until_exhausted(self):
        transport, request, sleeps = _transport(
            _mock_response(429, text="slow down"),
            _mock_response(429, text="slow down"),
            _mock_response(429, text="slow down"),
        )
        with pytest.raises(UpstreamError) as exc_info:
            transport.request("GET", URL)
        assert exc_info.value.code == "HTTP_429"
        assert exc_info.value.status_code == 429
        assert request.call_count == 3
        assert sleeps == [0.5, 1.0]

    def test_backoff_base_is_configurable(self):
        transport, _, sleeps = _transport(
            _mock_response(500, text="boom"),
            _mock_response(500, text="boom"),
            _mock_response(json_data={}),
            backoff_base=2.0,
        )
        transport.request("GET", URL)
        assert sleeps == [2.0, 4.0]

    def test_max_attempts_of_one_never_sleeps(self):
        transport, request, sleeps = _transport(_mock_response(502, text="bad gateway"), max_attempts=1)
        with pytest.raises(UpstreamError):
            transport.request("GET", URL)
        assert request.call_count == 1
        assert sleeps == []

    def test_timeout_retried_then_raises(self):
        transport, request, sleeps = _transport(
            requests.exceptions.ReadTimeout("read timed out"),
            requests.exceptions.ReadTimeout("read timed out"),
            requests.exceptions.ReadTimeout("read timed out"),
        )
        with pytest.raises(UpstreamError) as exc_info:
            transport.request("GET", URL)
        assert exc_info.value.code == "TIMEOUT"
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, requests.exceptions.Timeout)
        assert request.call_count == 3
        assert len(sleeps) == 2

    def test_connection_error_retried_then_succeeds(self):
        transport, request, _ = _transport(
            requests.exceptions.ConnectionError("refused"),
            _mock_response(json_data={"shipments": []}),
        )
        assert transport.request("GET", URL) == {"shipments": []}
        assert request.call_count == 2

    def test_connection_error_code(self):
        transport, _, _ = _transport(
            requests.exceptions.ConnectionError("refused"),
            max_attempts=1,
        )
        with pytest.raises(UpstreamError) as exc_info:
            transport.request("GET", URL)
        assert exc_info.value.code == "CONNECTION_ERROR"

    def test_other_request_exception_not_retried(self):
        transport, request, sleeps = _transport(requests.exceptions.InvalidURL("bad url"))
        with pytest.raises(UpstreamError) as exc_info:
            transport.request("GET", URL)
        assert exc_info.value.code == "REQUEST_ERROR"
        assert request.call_count == 1
        assert sleeps == []


# ---------------------------------------------------------------------------
# Non-retryable statuses
# ---------------------------------------------------------------------------


class TestNonRetryable:
    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_errors_fail_fast(self, status):
        transport, request, sleeps = _transport(_mock_response(status, text="denied"))
        with pytest.raises(AuthError) as exc_info:
            transport.request("GET", URL)
        assert exc_info.value.code == "AUTH_ERROR"
        assert exc_info.value.status_code == status
        assert request.call_count == 1
        assert sleeps == []

    def test_404_carries_status(self):
        transport, request, _ = _transport(_mock_response(404, text="not found"))
        with pytest.raises(UpstreamError) as exc_info:
            transport.request("GET", URL)
        assert not isinstance(exc_info.value, AuthError)
        assert exc_info.value.status_code == 404
        assert exc_info.value.code == "HTTP_404"
        assert request.call_count == 1

    def test_400_not_retried(self):
        transport, request, _ = _transport(_mock_response(400, text="bad request"))
        with pytest.raises(UpstreamError):
            transport.request("GET", URL)
        assert request.call_count == 1


class TestRepr:
    def test_repr_has_name_and_attempts(self):
        transport, _, _ = _transport(max_attempts=4)
        assert "Test" in repr(transport)
        assert "attempts=4" in repr(transport)
