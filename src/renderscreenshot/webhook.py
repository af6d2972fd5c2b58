"""Webhook verification and parsing utilities.

Typical use inside a request handler::

    headers = webhook.extract_headers(request.headers)
    if not webhook.verify(
        payload=request.get_data(),
        signature=headers.signature,
        timestamp=headers.timestamp,
        secret=WEBHOOK_SECRET,
    ):
        abort(401)
    event = webhook.parse(request.get_data())

`verify` never raises: a bad, stale or missing signature is simply False.
`parse` raises `ValidationError` on malformed JSON since it is expected to run
only after the signature checked out.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from .errors import ValidationError
from .signing import hmac_sha256_hex, secure_compare

SIGNATURE_HEADER = "X-Webhook-Signature"
TIMESTAMP_HEADER = "X-Webhook-Timestamp"
ID_HEADER = "X-Webhook-ID"
DEFAULT_TOLERANCE = 300

Payload = Union[str, bytes]


@dataclass(frozen=True)
class WebhookEvent:
    event: Optional[str]
    id: Optional[str] = None
    timestamp: Any = None
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WebhookHeaders:
    signature: Optional[str] = None
    timestamp: Optional[str] = None
    id: Optional[str] = None


def _as_bytes(value: Payload) -> bytes:
    return value if isinstance(value, bytes) else str(value).encode("utf-8")


def compute_signature(payload: Payload, timestamp: Union[str, int], secret: str) -> str:
    """Return the ``sha256=<hex>`` value the service sends for `payload`."""
    signed_payload = f"{timestamp}.".encode("utf-8") + _as_bytes(payload)
    return "sha256=" + hmac_sha256_hex(secret, signed_payload)


def verify(
    payload: Optional[Payload],
    signature: Optional[str],
    timestamp: Optional[Union[str, int]],
    secret: Optional[str],
    tolerance: int = DEFAULT_TOLERANCE,
) -> bool:
    """Check a webhook signature and its timestamp freshness.

    Rejects timestamps more than `tolerance` seconds away from now in either
    direction, which bounds both clock skew and the replay window.
    """
    if payload is None or signature is None or timestamp is None or secret is None:
        return False
    try:
        ts = int(timestamp)
    except (TypeError, ValueError):
        return False
    if abs(int(time.time()) - ts) > tolerance:
        return False
    return secure_compare(compute_signature(payload, timestamp, secret), signature)


def parse(payload: Union[Payload, Mapping[str, Any]]) -> WebhookEvent:
    if isinstance(payload, Mapping):
        data = payload
    else:
        try:
            data = json.loads(payload)
        except (TypeError, ValueError) as e:
            raise ValidationError.invalid_request("Invalid webhook payload") from e
        if not isinstance(data, dict):
            raise ValidationError.invalid_request("Invalid webhook payload")
    return WebhookEvent(
        event=data.get("type") or data.get("event"),
        id=data.get("id"),
        timestamp=data.get("timestamp"),
        data=data.get("data") or {},
    )


def _normalize_key(key: Any) -> str:
    if isinstance(key, bytes):
        key = key.decode("latin-1")
    normalized = str(key).lower().replace("_", "-")
    # WSGI environ style: HTTP_X_WEBHOOK_SIGNATURE
    if normalized.startswith("http-"):
        normalized = normalized[len("http-") :]
    return normalized


def _normalize_headers(headers: Union[Mapping[Any, Any], Iterable[Tuple[Any, Any]]]) -> Dict[str, Any]:
    items = headers.items() if isinstance(headers, Mapping) else headers
    result: Dict[str, Any] = {}
    for key, value in items:
        if isinstance(value, bytes):
            value = value.decode("latin-1")
        result[_normalize_key(key)] = value
    return result


def extract_headers(headers: Union[Mapping[Any, Any], Iterable[Tuple[Any, Any]]]) -> WebhookHeaders:
    """Pull signature, timestamp and id out of headers in any casing/format."""
    normalized = _normalize_headers(headers)
    return WebhookHeaders(
        signature=normalized.get(SIGNATURE_HEADER.lower()),
        timestamp=normalized.get(TIMESTAMP_HEADER.lower()),
        id=normalized.get(ID_HEADER.lower()),
    )
