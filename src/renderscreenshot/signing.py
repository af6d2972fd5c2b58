"""Canonical parameter serialization and HMAC-SHA256 signing.

Signed URLs and webhook signatures share the same primitives. The service
recomputes signed URL signatures independently, so parameter ordering and
value encoding here are part of the wire contract:

- keys sorted lexicographically
- values form-encoded (space becomes ``+``)
- booleans rendered as ``true``/``false``
"""

from __future__ import annotations

import hashlib
import hmac
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Union
from urllib.parse import quote_plus

from .errors import ValidationError

ExpiresAt = Union[datetime, int]

_CONTENT_KEYS = ("url", "html")


def stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(stringify(v) for v in value)
    return str(value)


def flatten_params(config: Mapping[str, Any]) -> Dict[str, str]:
    """Return the canonical parameter set for `config`.

    One level of nested mappings becomes ``parent_child`` keys, lists are
    joined with commas and ``None`` values are dropped.
    """
    result: Dict[str, str] = {}
    for key, value in config.items():
        if value is None:
            continue
        str_key = str(key)
        if isinstance(value, Mapping):
            for sub_key, sub_value in value.items():
                if sub_value is not None:
                    result[f"{str_key}_{sub_key}"] = stringify(sub_value)
        else:
            result[str_key] = stringify(value)
    return result


def canonical_query(params: Mapping[str, Any]) -> str:
    return "&".join(f"{key}={quote_plus(stringify(params[key]), safe='')}" for key in sorted(params))


def hmac_sha256_hex(secret: str | bytes, message: str | bytes) -> str:
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret, message, hashlib.sha256).hexdigest()


def secure_compare(a: str | bytes, b: str | bytes) -> bool:
    """Timing-safe comparison.

    A length mismatch returns immediately; equal-length inputs are compared
    over every byte.
    """
    if isinstance(a, str):
        a = a.encode("utf-8")
    if isinstance(b, str):
        b = b.encode("utf-8")
    if len(a) != len(b):
        return False
    return hmac.compare_digest(a, b)


def expires_timestamp(expires_at: ExpiresAt) -> int:
    if isinstance(expires_at, datetime):
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return int(expires_at.timestamp())
    if isinstance(expires_at, bool) or not isinstance(expires_at, int):
        raise ValidationError.invalid_request("expires_at must be a datetime or a Unix timestamp")
    return expires_at


def build_signed_params(config: Mapping[str, Any], key_id: str, expires: int) -> Dict[str, str]:
    params: Dict[str, str] = {"expires": str(expires), "key_id": key_id}
    for key in _CONTENT_KEYS:
        if config.get(key):
            params[key] = stringify(config[key])
    for key, value in flatten_params(config).items():
        if key in _CONTENT_KEYS:
            continue
        params[key] = value
    return params


def sign_url(
    base_url: str,
    config: Mapping[str, Any],
    *,
    expires_at: ExpiresAt,
    secret: str | None,
    key_id: str | None,
) -> str:
    """Return ``{base_url}/v1/screenshot?{sorted params}&signature={hex}``."""
    if not secret or not key_id:
        raise ValidationError.invalid_request(
            "Signed URLs require signing_key (rs_secret_*) and public_key_id (rs_pub_*). "
            "Pass them to Client() or to generate_url directly."
        )
    params = build_signed_params(config, key_id, expires_timestamp(expires_at))
    query_string = canonical_query(params)
    signature = hmac_sha256_hex(secret, query_string)
    return f"{base_url.rstrip('/')}/v1/screenshot?{query_string}&signature={signature}"
