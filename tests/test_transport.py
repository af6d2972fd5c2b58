import threading

import pytest
import requests

from renderscreenshot import (
    BinaryResponse,
    HttpClient,
    RateLimitError,
    ServerError,
    TimeoutError,
    TransportError,
    ValidationError,
)
from renderscreenshot import http as http_mod

from conftest import TEST_API_KEY, TEST_BASE_URL, StubResponse, StubSession, json_body

_SERVER_ERROR = StubResponse(500, {"error": {"message": "Server error"}})
_IMAGE = StubResponse(200, b"image_data", {"Content-Type": "image/png"})


def _http(session, **kwargs):
    kwargs.setdefault("retry_delay", 0.01)
    return HttpClient(TEST_API_KEY, session=session, base_url=TEST_BASE_URL, **kwargs)


def test_sets_default_headers_and_json_body():
    session = StubSession(StubResponse(200, {"ok": True}))
    result = _http(session).post("/v1/batch", body={"urls": ["https://example.com"]})

    assert result == {"ok": True}
    call = session.calls[0]
    assert call.method == "POST"
    assert call.url == f"{TEST_BASE_URL}/v1/batch"
    assert call.headers["Authorization"] == f"Bearer {TEST_API_KEY}"
    assert call.headers["User-Agent"].startswith("renderscreenshot-python/")
    assert call.headers["Content-Type"] == "application/json"
    assert json_body(call) == {"urls": ["https://example.com"]}
    assert call.timeout == (http_mod.CONNECT_TIMEOUT, 30.0)


def test_get_without_body_has_no_content_type():
    session = StubSession(StubResponse(200, {}))
    _http(session).get("/v1/usage", params={"full": True, "skip": None})
    call = session.calls[0]
    assert "Content-Type" not in call.headers
    assert call.params == {"full": "true"}
    assert call.data is None


def test_caller_headers_are_applied_last():
    session = StubSession(StubResponse(200, {}))
    _http(session).post("/x", body={}, headers={"Accept": "application/json", "User-Agent": "custom/1.0"})
    headers = session.calls[0].headers
    assert headers["Accept"] == "application/json"
    assert headers["User-Agent"] == "custom/1.0"


def test_binary_mode_returns_bytes_and_headers():
    session = StubSession(StubResponse(200, b"\x89PNG", {"Content-Type": "image/png", "X-Cache": "HIT"}))
    result = _http(session).post_binary("/v1/screenshot", body={"url": "https://example.com"})
    assert isinstance(result, BinaryResponse)
    assert result.body == b"\x89PNG"
    assert result.headers["X-Cache"] == "HIT"


@pytest.mark.parametrize(
    "response,expected",
    [
        (StubResponse(200, b"", {"Content-Type": "application/json"}), {}),
        (StubResponse(204), {}),
        (StubResponse(200, b"plain text", {"Content-Type": "text/plain"}), "plain text"),
        (StubResponse(200, b"{not json", {"Content-Type": "application/json; charset=utf-8"}), "{not json"),
        (StubResponse(200, b'{"a": 1}', {"Content-Type": "application/json; charset=utf-8"}), {"a": 1}),
    ],
)
def test_structured_decoding(response, expected):
    assert _http(StubSession(response)).get("/x") == expected


def test_error_response_carries_request_id_and_retry_after():
    session = StubSession(
        StubResponse(429, {"error": {"message": "Rate limited"}}, {"Retry-After": "60", "X-Request-Id": "req_1"})
    )
    with pytest.raises(RateLimitError) as excinfo:
        _http(session).get("/x")
    err = excinfo.value
    assert err.retry_after == 60
    assert err.request_id == "req_1"
    assert err.http_status == 429


def test_unparsable_retry_after_is_ignored():
    session = StubSession(StubResponse(429, {}, {"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}))
    with pytest.raises(RateLimitError) as excinfo:
        _http(session).get("/x")
    assert excinfo.value.retry_after is None


def test_retry_then_success(sleeps):
    session = StubSession(_SERVER_ERROR, _SERVER_ERROR, _IMAGE)
    result = _http(session, max_retries=2).post_binary("/v1/screenshot", body={})
    assert result.body == b"image_data"
    assert len(session.calls) == 3
    assert len(sleeps) == 2


def test_retries_exhausted_surface_last_error(sleeps):
    session = StubSession(_SERVER_ERROR)
    with pytest.raises(ServerError):
        _http(session, max_retries=2).post_binary("/v1/screenshot", body={})
    assert len(session.calls) == 3


def test_non_retryable_error_is_not_retried(sleeps):
    session = StubSession(StubResponse(400, {"error": {"message": "Invalid URL"}}))
    with pytest.raises(ValidationError):
        _http(session, max_retries=5).post("/v1/screenshot", body={})
    assert len(session.calls) == 1
    assert sleeps == []


def test_no_retries_by_default(sleeps):
    session = StubSession(_SERVER_ERROR)
    with pytest.raises(ServerError):
        _http(session).get("/x")
    assert len(session.calls) == 1


def test_render_failed_is_retried_but_other_422_is_not(sleeps):
    render_failed = StubResponse(422, {"error": {"code": "render_failed", "message": "crashed"}})
    session = StubSession(render_failed, _IMAGE)
    assert _http(session, max_retries=1).get_binary("/x").body == b"image_data"
    assert len(session.calls) == 2

    invalid = StubSession(StubResponse(422, {"error": {"code": "invalid_selector"}}))
    with pytest.raises(ValidationError):
        _http(invalid, max_retries=1).get("/x")
    assert len(invalid.calls) == 1


def test_rate_limit_uses_retry_after_verbatim(sleeps, monkeypatch):
    monkeypatch.setattr(http_mod.random, "random", lambda: 0.9)
    limited = StubResponse(429, {"error": {"message": "Rate limited"}}, {"Retry-After": "7"})
    session = StubSession(limited, limited, _IMAGE)
    _http(session, max_retries=2, retry_delay=1.0).get_binary("/x")
    assert sleeps == [7.0, 7.0]
    assert sum(sleeps) == 14.0


def test_exponential_backoff_with_jitter(sleeps, monkeypatch):
    monkeypatch.setattr(http_mod.random, "random", lambda: 0.5)
    session = StubSession(_SERVER_ERROR, _SERVER_ERROR, _SERVER_ERROR, _IMAGE)
    _http(session, max_retries=3, retry_delay=2.0).get_binary("/x")
    # base * 2**(n-1) + 0.5 * base * 0.5
    assert sleeps == [2.5, 4.5, 8.5]


def test_backoff_is_capped(sleeps, monkeypatch):
    monkeypatch.setattr(http_mod.random, "random", lambda: 0.0)
    session = StubSession(_SERVER_ERROR, _SERVER_ERROR, _IMAGE)
    _http(session, max_retries=2, retry_delay=20.0).get_binary("/x")
    assert sleeps == [20.0, http_mod.MAX_RETRY_DELAY]


def test_timeout_is_converted_and_retried(sleeps):
    session = StubSession(requests.ReadTimeout("read timed out"), _IMAGE)
    assert _http(session, max_retries=1).get_binary("/x").body == b"image_data"

    failing = StubSession(requests.ReadTimeout("read timed out"))
    with pytest.raises(TimeoutError) as excinfo:
        _http(failing).get("/x")
    assert excinfo.value.http_status == 408
    assert isinstance(excinfo.value.__cause__, requests.ReadTimeout)


def test_connection_failure_is_converted(sleeps):
    session = StubSession(requests.ConnectionError("connection refused"))
    with pytest.raises(TransportError) as excinfo:
        _http(session, max_retries=2).get("/x")
    assert excinfo.value.code == "connection_error"
    assert "connection refused" in str(excinfo.value)
    assert len(session.calls) == 3


def test_session_is_created_once_under_concurrency():
    client = HttpClient(TEST_API_KEY)
    barrier = threading.Barrier(8)
    seen = []

    def grab():
        barrier.wait()
        seen.append(client.session)

    threads = [threading.Thread(target=grab) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len({id(s) for s in seen}) == 1
    assert isinstance(seen[0], requests.Session)
    client.close()


def test_injected_session_is_not_closed():
    session = StubSession(StubResponse(200, {}))
    with _http(session) as http:
        http.get("/x")
    assert session.closed is False


def test_negative_retry_after_falls_back_to_backoff(sleeps, monkeypatch):
    monkeypatch.setattr(http_mod.random, "random", lambda: 0.0)
    limited = StubResponse(429, {"error": {"message": "Rate limited"}}, {"Retry-After": "-1"})
    session = StubSession(limited, _IMAGE)
    assert _http(session, max_retries=1, retry_delay=0.5).get_binary("/x").body == b"image_data"
    assert sleeps == [0.5]


def test_binary_headers_are_case_insensitive():
    session = StubSession(StubResponse(200, b"\x89PNG", {"Content-Type": "image/png"}))
    result = _http(session).get_binary("/x")
    assert result.headers["content-type"] == "image/png"
    assert result.headers["CONTENT-TYPE"] == "image/png"
