"""Tracking configuration: JSON file + command-line overrides."""

from __future__ import annotations

import json
import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Mapping

from nostr_sentinel.errors import InvalidConfig
from nostr_sentinel.models import TrackingConfig

SECRET_KEY_ENV = "SENTINEL_SECRET_KEY"

# camelCase keys as stored by the mobile app
_ALIASES = {
    "intervalSecs": "interval_secs",
    "recipientPubkeys": "recipient_pubkeys",
    "dTag": "d_tag",
    "expirationSecs": "expiration_secs",
}


def _normalize_keys(raw: Mapping[str, Any]) -> dict[str, Any]:
    known = {f.name for f in fields(TrackingConfig)}
    out: dict[str, Any] = {}
    for k, v in raw.items():
        name = _ALIASES.get(k, k)
        if name not in known:
            raise InvalidConfig(f"未知配置项：{k!r}（可用：{sorted(known)}）")
        out[name] = v
    return out


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Read a JSON config file into TrackingConfig field names.

    Raises:
        InvalidConfig: File missing, not JSON, not an object, or unknown keys.
    """

    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as exc:
        raise InvalidConfig(f"无法读取配置文件：{str(p)!r}") from exc
    try:
        raw = json.loads(text) if text.strip() else {}
    except json.JSONDecodeError as exc:
        raise InvalidConfig(f"配置文件不是合法 JSON：{str(p)!r}（{exc}）") from exc
    if not isinstance(raw, dict):
        raise InvalidConfig(f"配置文件顶层必须是 JSON 对象：{str(p)!r}")
    return _normalize_keys(raw)


def build_tracking_config(
    file_values: Mapping[str, Any] | None = None,
    **overrides: Any,
) -> TrackingConfig:
    """Merge defaults < file values < non-None overrides, then validate.

    Raises:
        InvalidConfig / InvalidPrecision: The merged config is invalid.
    """

    merged: dict[str, Any] = dict(file_values or {})
    for k, v in _normalize_keys(overrides).items():
        if v is not None:
            merged[k] = v
    try:
        return TrackingConfig(**merged)
    except TypeError as exc:
        raise InvalidConfig(f"配置项类型错误：{exc}") from exc


def secret_key_from_env(explicit: str | None = None) -> str | None:
    """``--secret-key`` wins over the SENTINEL_SECRET_KEY environment variable."""

    if explicit:
        return explicit
    return os.environ.get(SECRET_KEY_ENV) or None
