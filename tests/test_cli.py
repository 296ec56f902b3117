from __future__ import annotations

import json

import pytest

from nostr_sentinel import geohash
from nostr_sentinel.cli import main
from nostr_sentinel.models import KIND_PUBLIC_LOCATION


def test_encode(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["encode", "--lat", "57.64911", "--lon", "10.40744", "--precision", "11"]) == 0
    assert capsys.readouterr().out.strip() == "u4pruydqqvj"


def test_decode(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["decode", "--geohash", "ezs42"]) == 0
    assert "lat=42.6" in capsys.readouterr().out


def test_template_outputs_public_event(capsys: pytest.CaptureFixture[str]) -> None:
    rc = main(["template", "--lat", "60.17", "--lon", "24.94", "--accuracy", "10", "--d-tag", "phone"])
    assert rc == 0
    event = json.loads(capsys.readouterr().out)
    assert event["kind"] == KIND_PUBLIC_LOCATION
    assert [t[0] for t in event["tags"]] == ["g", "d", "expiration", "accuracy"]
    assert event["tags"][0][1] == geohash.encode(60.17, 24.94, 8)
    assert event["tags"][1] == ["d", "phone"]
    assert event["tags"][3] == ["accuracy", "10"]


@pytest.mark.parametrize(
    "argv",
    [
        ["encode", "--lat", "91", "--lon", "0"],
        ["encode", "--lat", "0", "--lon", "0", "--precision", "13"],
        ["decode", "--geohash", "u4pa"],
        ["template", "--lat", "0", "--lon", "0", "--expiration-secs", "0"],
        ["follow", "--pubkey", "a" * 64, "--alert-after", "5x"],
        ["follow", "--pubkey", "not-a-key", "--alert-after", "5m"],
    ],
)
def test_input_errors_exit_2(argv: list[str], capsys: pytest.CaptureFixture[str]) -> None:
    assert main(argv) == 2
    assert "输入错误" in capsys.readouterr().err


def test_whoami_without_identity(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.delenv("SENTINEL_SECRET_KEY", raising=False)
    assert main(["whoami"]) == 0
    assert "No identity" in capsys.readouterr().err


class _NoRelay:
    def __init__(self, relays) -> None:
        raise AssertionError(f"relay session opened for {relays!r}")


def test_bad_recipient_is_rejected_before_connecting(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    from nostr_sdk import Keys

    from nostr_sentinel import relay

    monkeypatch.setattr(relay, "RelaySession", _NoRelay)
    monkeypatch.setenv("SENTINEL_SECRET_KEY", Keys.generate().secret_key().to_hex())
    good = Keys.generate().public_key().to_hex()

    rc = main(["publish", "--lat", "60.17", "--lon", "24.94", "--recipient", good, "--recipient", "not-a-pubkey"])
    assert rc == 2
    assert "输入错误" in capsys.readouterr().err


def test_bad_recipient_in_config_file(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    from nostr_sentinel import relay

    monkeypatch.setattr(relay, "RelaySession", _NoRelay)
    p = tmp_path / "sentinel.json"
    p.write_text(json.dumps({"encrypted": True, "recipientPubkeys": ["nope"]}), encoding="utf-8")
    assert main(["track", "--config", str(p), "--secret-key", "x"]) == 2


def test_npub_recipient_resolves_to_hex() -> None:
    from nostr_sdk import Keys

    from nostr_sentinel.cli import _tracking_config, build_parser

    pk = Keys.generate().public_key()
    args = build_parser().parse_args(
        ["publish", "--lat", "0", "--lon", "0", "--recipient", pk.to_bech32(), "--recipient", pk.to_hex().upper()]
    )
    cfg = _tracking_config(args)
    assert cfg.encrypted
    assert cfg.recipient_pubkeys == (pk.to_hex(), pk.to_hex())
