"""Wrap location payloads into unsigned, addressable event templates."""

from __future__ import annotations

from typing import Sequence

from nostr_sentinel.models import (
    KIND_ENCRYPTED_LOCATION,
    KIND_PUBLIC_LOCATION,
    EventTemplate,
    TrackingConfig,
)
from nostr_sentinel.payload import build_encrypted_envelope, build_public_payload


def assemble(kind: int, payload: tuple[str, Sequence[Sequence[str]]]) -> EventTemplate:
    content, tags = payload
    return EventTemplate(kind=kind, content=content, tags=tuple(tuple(t) for t in tags))


def assemble_public_event(
    lat: float,
    lon: float,
    accuracy: float | None,
    config: TrackingConfig,
    *,
    now: int | None = None,
) -> EventTemplate:
    return assemble(KIND_PUBLIC_LOCATION, build_public_payload(lat, lon, accuracy, config, now=now))


def assemble_encrypted_event(
    ciphertext: str,
    recipient: str,
    config: TrackingConfig,
    *,
    now: int | None = None,
) -> EventTemplate:
    return assemble(
        KIND_ENCRYPTED_LOCATION,
        build_encrypted_envelope(ciphertext, recipient, config, now=now),
    )
