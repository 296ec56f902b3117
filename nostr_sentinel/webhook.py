"""Webhook delivery for liveness alerts.

Uses only the standard library HTTP client, like the rest of the project's
outbound calls.
"""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from dataclasses import dataclass

from nostr_sentinel.errors import DeliveryFailure


@dataclass(frozen=True, slots=True)
class WebhookConfig:
    url: str
    timeout_seconds: float = 10.0
    user_agent: str = "nostr-sentinel/0.1.0 (liveness-alert)"


def post_alert(text: str, cfg: WebhookConfig) -> int:
    """POST ``{"text": text}`` as JSON to the webhook.

    Returns:
        HTTP status code.

    Raises:
        DeliveryFailure: Connection error, timeout or non-2xx response.
    """

    body = json.dumps({"text": text}, ensure_ascii=False).encode("utf-8")
    req = urllib.request.Request(
        cfg.url,
        data=body,
        headers={
            "User-Agent": cfg.user_agent,
            "Content-Type": "application/json",
        },
        method="POST",
    )
    try:
        with urllib.request.urlopen(req, timeout=cfg.timeout_seconds) as resp:  # noqa: S310
            status = int(resp.status)
    except urllib.error.HTTPError as exc:
        raise DeliveryFailure(f"webhook {cfg.url!r} answered HTTP {exc.code}") from exc
    except (urllib.error.URLError, OSError, ValueError) as exc:
        raise DeliveryFailure(f"webhook {cfg.url!r} unreachable: {exc}") from exc
    if status >= 300:
        raise DeliveryFailure(f"webhook {cfg.url!r} answered HTTP {status}")
    return status
