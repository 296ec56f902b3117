"""Scan fetched location events into records, one event at a time."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator

from nostr_sentinel.errors import DecryptionFailure, SentinelError
from nostr_sentinel.event_parser import parse_encrypted_record, parse_public_record
from nostr_sentinel.models import (
    KIND_ENCRYPTED_LOCATION,
    KIND_PUBLIC_LOCATION,
    LocationRecord,
    ReceivedEvent,
)

logger = logging.getLogger(__name__)

# (event) -> plaintext; raises DecryptionFailure
Decryptor = Callable[[ReceivedEvent], str]


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Outcome for one fetched event.

    Exactly one of ``record`` / ``error`` is set, unless the event is
    encrypted and no key was given (``locked``).
    """

    event: ReceivedEvent
    record: LocationRecord | None = None
    error: SentinelError | None = None
    locked: bool = False

    @property
    def ok(self) -> bool:
        return self.record is not None


def scan_events(
    events: Iterable[ReceivedEvent],
    decrypt: Decryptor | None = None,
) -> Iterator[QueryResult]:
    """Parse each event, newest first; a bad event never stops the scan.

    Args:
        events: Fetched events (any kinds; non-location kinds are skipped).
        decrypt: Turns a kind 30473 event into its plaintext payload. Without
            it encrypted events are reported as locked.
    """

    for event in sorted(events, key=lambda e: e.created_at, reverse=True):
        if event.kind == KIND_PUBLIC_LOCATION:
            try:
                yield QueryResult(event=event, record=parse_public_record(event))
            except SentinelError as exc:
                logger.warning("跳过事件 %s：%s", event.id or "?", exc)
                yield QueryResult(event=event, error=exc)
        elif event.kind == KIND_ENCRYPTED_LOCATION:
            if decrypt is None:
                yield QueryResult(event=event, locked=True)
                continue
            try:
                plaintext = decrypt(event)
                yield QueryResult(event=event, record=parse_encrypted_record(event, plaintext))
            except DecryptionFailure as exc:
                logger.warning("解密失败，跳过事件 %s：%s", event.id or "?", exc)
                yield QueryResult(event=event, error=exc)
            except SentinelError as exc:
                logger.warning("跳过事件 %s：%s", event.id or "?", exc)
                yield QueryResult(event=event, error=exc)
        else:
            logger.debug("忽略非位置事件 kind=%s", event.kind)


def latest_by_identifier(results: Iterable[QueryResult]) -> dict[str, LocationRecord]:
    """Newest record per ``d`` tag (addressable-event semantics)."""

    out: dict[str, LocationRecord] = {}
    for res in results:
        rec = res.record
        if rec is None:
            continue
        cur = out.get(rec.d_tag)
        if cur is None or rec.timestamp > cur.timestamp:
            out[rec.d_tag] = rec
    return out
