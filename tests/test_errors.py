import pytest

from renderscreenshot import (
    AuthenticationError,
    AuthorizationError,
    ErrorKind,
    NotFoundError,
    RateLimitError,
    RenderFailedError,
    SDKError,
    ServerError,
    TimeoutError,
    TransportError,
    ValidationError,
)


@pytest.mark.parametrize(
    "status,expected",
    [
        (400, ValidationError),
        (401, AuthenticationError),
        (403, AuthorizationError),
        (404, NotFoundError),
        (408, TimeoutError),
        (429, RateLimitError),
        (500, ServerError),
        (503, ServerError),
        (599, ServerError),
        (418, SDKError),
    ],
)
def test_from_response_maps_status(status, expected):
    err = SDKError.from_response(status, {"error": {"message": "boom"}})
    assert type(err) is expected
    assert err.http_status == status
    assert str(err) == "boom"


def test_422_render_failed_is_retryable():
    err = SDKError.from_response(422, {"error": {"code": "render_failed", "message": "page crashed"}})
    assert isinstance(err, RenderFailedError)
    assert err.kind is ErrorKind.RENDER_FAILED
    assert err.retryable is True
    assert err.code == "render_failed"


@pytest.mark.parametrize("body", [{"error": {"code": "invalid_selector"}}, {"error": {}}, {}, "unprocessable"])
def test_422_other_codes_are_validation(body):
    err = SDKError.from_response(422, body)
    assert isinstance(err, ValidationError)
    assert err.retryable is False


def test_rate_limit_carries_retry_after_and_request_id():
    err = SDKError.from_response(429, {"error": {"message": "slow down"}}, retry_after=60, request_id="req_abc")
    assert isinstance(err, RateLimitError)
    assert err.retry_after == 60
    assert err.request_id == "req_abc"
    assert err.retryable


def test_request_id_falls_back_to_body():
    nested = SDKError.from_response(400, {"error": {"message": "bad", "request_id": "req_nested"}})
    top = SDKError.from_response(400, {"error": {"message": "bad"}, "request_id": "req_top"})
    assert nested.request_id == "req_nested"
    assert top.request_id == "req_top"


def test_default_message_and_flat_body():
    assert str(SDKError.from_response(500, "")) == "HTTP 500 error"
    flat = SDKError.from_response(400, {"message": "Invalid URL", "code": "invalid_url"})
    assert str(flat) == "Invalid URL"
    assert flat.code == "invalid_url"
    assert flat.details == {"message": "Invalid URL", "code": "invalid_url"}


def test_retryability_is_a_property_of_the_kind():
    retryable = {kind for kind in ErrorKind if kind.retryable}
    assert retryable == {
        ErrorKind.RATE_LIMIT,
        ErrorKind.TIMEOUT,
        ErrorKind.RENDER_FAILED,
        ErrorKind.SERVER,
        ErrorKind.CONNECTION,
    }
    assert TransportError.connection_failed().retryable
    assert TimeoutError.timeout().retryable
    assert not NotFoundError.not_found().retryable
    assert not SDKError("generic").retryable


def test_named_constructors():
    assert AuthenticationError.unauthorized().code == "unauthorized"
    assert AuthenticationError.unauthorized().http_status == 401
    assert ValidationError.missing_required("url").message == "Missing required parameter: url"
    assert RateLimitError.rate_limited(30).retry_after == 30
    assert TransportError.connection_failed("refused").http_status is None
    assert AuthorizationError.insufficient_credits().code == "insufficient_credits"
    assert ServerError.internal().http_status == 500
