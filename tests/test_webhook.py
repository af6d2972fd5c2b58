import hashlib
import hmac
import json
import time

import pytest

from renderscreenshot import ValidationError, WebhookEvent, webhook

SECRET = "whsec_test_secret"
PAYLOAD = json.dumps(
    {
        "type": "screenshot.completed",
        "id": "evt_123",
        "timestamp": 1705600000,
        "data": {"url": "https://example.com", "image_url": "https://cdn.example.com/img.png"},
    }
)


def _sign(payload, timestamp, secret=SECRET):
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def _now():
    return str(int(time.time()))


def test_valid_signature():
    ts = _now()
    assert webhook.verify(PAYLOAD, _sign(PAYLOAD, ts), ts, SECRET) is True


def test_bytes_payload():
    ts = _now()
    assert webhook.verify(PAYLOAD.encode(), _sign(PAYLOAD, ts), ts, SECRET) is True


def test_compute_signature_matches_reference():
    assert webhook.compute_signature(PAYLOAD, "1705600000", SECRET) == _sign(PAYLOAD, "1705600000")


def test_tampered_payload_or_signature():
    ts = _now()
    signature = _sign(PAYLOAD, ts)
    assert webhook.verify(PAYLOAD + " ", signature, ts, SECRET) is False
    tampered = signature[:-1] + ("0" if signature[-1] != "0" else "1")
    assert webhook.verify(PAYLOAD, tampered, ts, SECRET) is False
    assert webhook.verify(PAYLOAD, signature, ts, "other_secret") is False
    assert webhook.verify(PAYLOAD, signature[len("sha256="):], ts, SECRET) is False


def test_expired_timestamp():
    old = str(int(time.time()) - 600)
    assert webhook.verify(PAYLOAD, _sign(PAYLOAD, old), old, SECRET) is False


def test_future_timestamp():
    future = str(int(time.time()) + 600)
    assert webhook.verify(PAYLOAD, _sign(PAYLOAD, future), future, SECRET) is False


def test_custom_tolerance():
    old = str(int(time.time()) - 600)
    assert webhook.verify(PAYLOAD, _sign(PAYLOAD, old), old, SECRET, tolerance=900) is True


@pytest.mark.parametrize("missing", ["payload", "signature", "timestamp", "secret"])
def test_missing_inputs_return_false(missing):
    ts = _now()
    kwargs = {"payload": PAYLOAD, "signature": _sign(PAYLOAD, ts), "timestamp": ts, "secret": SECRET}
    kwargs[missing] = None
    assert webhook.verify(**kwargs) is False


def test_unparsable_timestamp_returns_false():
    assert webhook.verify(PAYLOAD, _sign(PAYLOAD, "soon"), "soon", SECRET) is False


def test_parse_json_string():
    event = webhook.parse(PAYLOAD)
    assert event == WebhookEvent(
        event="screenshot.completed",
        id="evt_123",
        timestamp=1705600000,
        data={"url": "https://example.com", "image_url": "https://cdn.example.com/img.png"},
    )


def test_parse_mapping_with_event_field_and_no_data():
    event = webhook.parse({"event": "batch.completed", "id": "evt_456"})
    assert event.event == "batch.completed"
    assert event.data == {}
    assert event.timestamp is None


def test_type_wins_over_event():
    assert webhook.parse({"type": "a", "event": "b"}).event == "a"


@pytest.mark.parametrize("payload", ["not json", b"{broken", "[1, 2]"])
def test_parse_invalid_payload_raises(payload):
    with pytest.raises(ValidationError) as excinfo:
        webhook.parse(payload)
    assert "Invalid webhook payload" in str(excinfo.value)


def test_extract_headers_any_format():
    expected = webhook.WebhookHeaders(signature="sha256=abc", timestamp="1705600000", id="wh_1")
    assert (
        webhook.extract_headers(
            {"X-Webhook-Signature": "sha256=abc", "X-Webhook-Timestamp": "1705600000", "X-Webhook-ID": "wh_1"}
        )
        == expected
    )
    assert (
        webhook.extract_headers(
            {"x_webhook_signature": "sha256=abc", "X_WEBHOOK_TIMESTAMP": "1705600000", "x-webhook-id": "wh_1"}
        )
        == expected
    )
    assert (
        webhook.extract_headers(
            {
                "HTTP_X_WEBHOOK_SIGNATURE": "sha256=abc",
                "HTTP_X_WEBHOOK_TIMESTAMP": "1705600000",
                "HTTP_X_WEBHOOK_ID": "wh_1",
            }
        )
        == expected
    )
    assert (
        webhook.extract_headers(
            [(b"x-webhook-signature", b"sha256=abc"), (b"x-webhook-timestamp", b"1705600000"), (b"x-webhook-id", b"wh_1")]
        )
        == expected
    )


def test_extract_headers_missing_values():
    assert webhook.extract_headers({"Content-Type": "application/json"}) == webhook.WebhookHeaders()


def test_round_trip_through_headers():
    ts = _now()
    headers = {"X-Webhook-Signature": webhook.compute_signature(PAYLOAD, ts, SECRET), "X-Webhook-Timestamp": ts}
    extracted = webhook.extract_headers(headers)
    assert webhook.verify(PAYLOAD, extracted.signature, extracted.timestamp, SECRET)
