from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, asdict, replace
from typing import Any
import os

DEFAULT_BASE_URL = "https://api.renderscreenshot.com"
DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRY_DELAY = 1.0


@dataclass
class Settings:
    """SDK configuration with environment overlay.

    Clients copy the effective settings when they are constructed, so changing
    the process-wide defaults later never affects a live client.
    """

    base_url: str = DEFAULT_BASE_URL
    api_key: str | None = None

    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = 0
    retry_delay: float = DEFAULT_RETRY_DELAY

    # signed URL credentials (rs_secret_* / rs_pub_*)
    signing_key: str | None = None
    public_key_id: str | None = None


_global_settings = Settings()
_stack: list[Settings] = []


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _from_env(s: Settings) -> Settings:
    return replace(
        s,
        base_url=os.getenv("RENDERSCREENSHOT_BASE_URL") or s.base_url,
        api_key=os.getenv("RENDERSCREENSHOT_API_KEY", s.api_key),
        timeout=_env_float("RENDERSCREENSHOT_TIMEOUT", s.timeout),
        signing_key=os.getenv("RENDERSCREENSHOT_SIGNING_KEY", s.signing_key),
        public_key_id=os.getenv("RENDERSCREENSHOT_PUBLIC_KEY_ID", s.public_key_id),
    )


def configure(**kwargs: Any) -> None:
    """Configure global SDK defaults.

    Example:
        configure(base_url="https://staging.renderscreenshot.com", timeout=60)
    """
    global _global_settings
    for k, v in kwargs.items():
        if not hasattr(_global_settings, k):
            raise AttributeError(f"Unknown setting: {k}")
        setattr(_global_settings, k, v)


@contextmanager
def config(**kwargs: Any):
    """Temporarily apply settings within a context."""
    global _global_settings
    _stack.append(Settings(**asdict(_global_settings)))
    try:
        configure(**kwargs)
        yield
    finally:
        prev = _stack.pop()
        _global_settings = prev


def reset() -> None:
    """Restore the built-in defaults."""
    global _global_settings
    _global_settings = Settings()


def settings() -> Settings:
    """Return the effective merged settings (env overlaid on current)."""
    return _from_env(_global_settings)
