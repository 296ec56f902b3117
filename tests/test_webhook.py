from __future__ import annotations

import io
import json
import urllib.error
import urllib.request

import pytest

from nostr_sentinel.errors import DeliveryFailure
from nostr_sentinel.webhook import WebhookConfig, post_alert


class _Resp:
    def __init__(self, status: int) -> None:
        self.status = status

    def __enter__(self) -> "_Resp":
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None


def test_post_alert_sends_json(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def _urlopen(req, timeout):
        seen["req"] = req
        seen["timeout"] = timeout
        return _Resp(204)

    monkeypatch.setattr(urllib.request, "urlopen", _urlopen)
    status = post_alert("ALERT: quiet", WebhookConfig(url="https://hooks.example/x", timeout_seconds=3))

    assert status == 204
    req = seen["req"]
    assert req.get_method() == "POST"
    assert req.get_header("Content-type") == "application/json"
    assert json.loads(req.data.decode("utf-8")) == {"text": "ALERT: quiet"}
    assert seen["timeout"] == 3


def test_non_2xx_is_a_delivery_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(urllib.request, "urlopen", lambda req, timeout: _Resp(302))
    with pytest.raises(DeliveryFailure):
        post_alert("x", WebhookConfig(url="https://hooks.example/x"))


def test_http_error_is_a_delivery_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def _urlopen(req, timeout):
        raise urllib.error.HTTPError(req.full_url, 500, "boom", {}, io.BytesIO(b""))

    monkeypatch.setattr(urllib.request, "urlopen", _urlopen)
    with pytest.raises(DeliveryFailure, match="500"):
        post_alert("x", WebhookConfig(url="https://hooks.example/x"))


def test_unreachable_is_a_delivery_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def _urlopen(req, timeout):
        raise urllib.error.URLError("connection refused")

    monkeypatch.setattr(urllib.request, "urlopen", _urlopen)
    with pytest.raises(DeliveryFailure):
        post_alert("x", WebhookConfig(url="https://hooks.example/x"))
