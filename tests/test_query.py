from __future__ import annotations

from nostr_sentinel.errors import DecryptionFailure, MissingTag, WrongKind
from nostr_sentinel.models import KIND_ENCRYPTED_LOCATION, KIND_PUBLIC_LOCATION, ReceivedEvent
from nostr_sentinel.query import latest_by_identifier, scan_events


def _public(created_at: int, d: str = "phone", g: str | None = "u4pru") -> ReceivedEvent:
    tags: tuple[tuple[str, ...], ...] = (("d", d),)
    if g is not None:
        tags = (("g", g),) + tags
    return ReceivedEvent(kind=KIND_PUBLIC_LOCATION, tags=tags, created_at=created_at, id=f"pub{created_at}")


def _encrypted(created_at: int, content: str) -> ReceivedEvent:
    return ReceivedEvent(
        kind=KIND_ENCRYPTED_LOCATION,
        content=content,
        tags=(("d", "car"),),
        created_at=created_at,
        id=f"enc{created_at}",
    )


def _fake_decrypt(event: ReceivedEvent) -> str:
    if event.content == "garbage":
        raise DecryptionFailure("bad mac")
    return event.content


def test_one_bad_event_does_not_abort_the_scan() -> None:
    events = [
        _public(10),
        _public(20, g=None),
        _encrypted(30, '[["g","ezs42"],["accuracy","4"]]'),
        _encrypted(40, "garbage"),
        ReceivedEvent(kind=1, created_at=50),
    ]
    results = list(scan_events(events, _fake_decrypt))

    assert [r.event.created_at for r in results] == [40, 30, 20, 10]
    assert isinstance(results[0].error, DecryptionFailure)
    assert results[1].ok and results[1].record is not None and results[1].record.accuracy == 4.0
    assert isinstance(results[2].error, MissingTag)
    assert results[3].ok


def test_encrypted_without_key_is_locked() -> None:
    results = list(scan_events([_encrypted(1, "ciphertext")]))
    assert results[0].locked
    assert results[0].record is None and results[0].error is None


def test_latest_by_identifier() -> None:
    results = scan_events([_public(1, d="phone"), _public(5, d="phone", g="ezs42"), _public(3, d="car")])
    latest = latest_by_identifier(results)
    assert set(latest) == {"phone", "car"}
    assert latest["phone"].geohash == "ezs42"
    assert latest["car"].timestamp == 3


def test_wrong_kind_never_surfaces_from_scan() -> None:
    # kinds are dispatched before parsing
    results = list(scan_events([_public(1)]))
    assert not any(isinstance(r.error, WrongKind) for r in results)
