import json
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
from requests.structures import CaseInsensitiveDict

# Ensure the src layout is importable as top-level `renderscreenshot`
PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_ROOT = PROJECT_ROOT / "src"
if SRC_ROOT.exists() and str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

TEST_API_KEY = "rs_live_test_key_123"
TEST_BASE_URL = "https://api.renderscreenshot.com"


class StubResponse:
    def __init__(self, status=200, body=b"", headers=None):
        headers = dict(headers or {})
        if isinstance(body, (dict, list)):
            body = json.dumps(body).encode("utf-8")
            headers.setdefault("Content-Type", "application/json")
        elif isinstance(body, str):
            body = body.encode("utf-8")
        self.status_code = status
        self.content = body
        self.headers = CaseInsensitiveDict(headers)


class StubSession:
    """Stands in for requests.Session; replays queued responses (the last one repeats)."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls = []
        self.closed = False

    def request(self, method, url, params=None, data=None, headers=None, timeout=None):
        self.calls.append(
            SimpleNamespace(method=method, url=url, params=params, data=data, headers=headers, timeout=timeout)
        )
        item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True


def json_body(call):
    return json.loads(call.data)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "RENDERSCREENSHOT_API_KEY",
        "RENDERSCREENSHOT_BASE_URL",
        "RENDERSCREENSHOT_TIMEOUT",
        "RENDERSCREENSHOT_SIGNING_KEY",
        "RENDERSCREENSHOT_PUBLIC_KEY_ID",
        "RENDERSCREENSHOT_WEBHOOK_SECRET",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    from renderscreenshot.config import reset

    reset()


@pytest.fixture
def sleeps(monkeypatch):
    """Record retry delays instead of sleeping."""
    from renderscreenshot import http as http_mod

    recorded = []
    monkeypatch.setattr(http_mod.time, "sleep", recorded.append)
    return recorded
