from __future__ import annotations

import json
from pathlib import Path

import pytest

from nostr_sentinel.config import (
    SECRET_KEY_ENV,
    build_tracking_config,
    load_config_file,
    secret_key_from_env,
)
from nostr_sentinel.errors import InvalidConfig, InvalidPrecision, InvalidRecipient


def test_file_values_and_overrides(tmp_path: Path) -> None:
    p = tmp_path / "sentinel.json"
    p.write_text(json.dumps({"intervalSecs": 30, "dTag": "car", "precision": 6}), encoding="utf-8")
    cfg = build_tracking_config(load_config_file(p), precision=9, d_tag=None)
    assert cfg.interval_secs == 30
    assert cfg.d_tag == "car"
    assert cfg.precision == 9


def test_defaults() -> None:
    cfg = build_tracking_config()
    assert cfg.precision == 8
    assert cfg.expiration_secs == 3600
    assert not cfg.encrypted


def test_recipient_list_becomes_tuple() -> None:
    cfg = build_tracking_config({"encrypted": True, "recipient_pubkeys": ["a" * 64]})
    assert cfg.recipient_pubkeys == ("a" * 64,)


@pytest.mark.parametrize(
    "values",
    [
        {"encrypted": True},
        {"recipient_pubkeys": ["a" * 64]},
        {"relays": []},
        {"expiration_secs": 0},
        {"colour": "red"},
    ],
)
def test_invalid_config(values: dict) -> None:
    with pytest.raises(InvalidConfig):
        build_tracking_config(values)


def test_invalid_precision() -> None:
    with pytest.raises(InvalidPrecision):
        build_tracking_config({"precision": 13})


def test_bad_files(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfig):
        load_config_file(tmp_path / "missing.json")
    p = tmp_path / "list.json"
    p.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(InvalidConfig):
        load_config_file(p)


def test_secret_key_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(SECRET_KEY_ENV, raising=False)
    assert secret_key_from_env() is None
    monkeypatch.setenv(SECRET_KEY_ENV, "env-key")
    assert secret_key_from_env() == "env-key"
    assert secret_key_from_env("flag-key") == "flag-key"


@pytest.mark.parametrize("recipient", ["not-a-pubkey", "npub1xyz", "a" * 63, 42])
def test_recipients_are_checked_at_config_time(recipient: object) -> None:
    with pytest.raises(InvalidRecipient):
        build_tracking_config({"encrypted": True, "recipient_pubkeys": ["b" * 64, recipient]})


def test_recipients_are_lowercased() -> None:
    cfg = build_tracking_config({"encrypted": True, "recipient_pubkeys": ["AB" * 32]})
    assert cfg.recipient_pubkeys == ("ab" * 32,)
