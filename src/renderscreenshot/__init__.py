"""
renderscreenshot – Python SDK for the RenderScreenshot API

Public surface:
- Clients: Client, AsyncClient
- Options: TakeOptions (immutable fluent builder)
- Webhooks: webhook.verify, webhook.parse, webhook.extract_headers
- Config: configure, config (context manager), settings
- Errors: SDKError and one subclass per failure kind

Example:
    from renderscreenshot import Client, TakeOptions

    client = Client("rs_live_...")
    png = client.take(TakeOptions.url("https://example.com").preset("og_card"))
"""

__version__ = "1.0.0"

from .config import configure, config, settings, Settings
from .errors import (
    ErrorKind,
    SDKError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    TimeoutError,
    RenderFailedError,
    RateLimitError,
    ServerError,
    TransportError,
)
from .options import TakeOptions
from .http import BinaryResponse, HttpClient, AsyncHttpClient
from .cache import CacheManager, AsyncCacheManager
from .client import Client, AsyncClient, Credentials
from . import webhook
from .webhook import WebhookEvent, WebhookHeaders

__all__ = [
    # Config
    "configure",
    "config",
    "settings",
    "Settings",
    # Clients
    "Client",
    "AsyncClient",
    "Credentials",
    "HttpClient",
    "AsyncHttpClient",
    "BinaryResponse",
    "CacheManager",
    "AsyncCacheManager",
    # Options
    "TakeOptions",
    # Webhooks
    "webhook",
    "WebhookEvent",
    "WebhookHeaders",
    # Errors
    "ErrorKind",
    "SDKError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "TimeoutError",
    "RenderFailedError",
    "RateLimitError",
    "ServerError",
    "TransportError",
    "__version__",
]
