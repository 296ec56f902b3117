"""Adapter around the nostr-sdk bindings: relays, keys, signing and NIP-44.

Everything that talks to a relay or touches key material lives here so the
codec/parser/monitor modules stay pure.
"""

from __future__ import annotations

import json
import logging
from datetime import timedelta
from typing import Awaitable, Callable, Sequence

from nostr_sdk import (
    Client,
    Event,
    EventBuilder,
    Filter,
    HandleNotification,
    Keys,
    Kind,
    Nip44Version,
    PublicKey,
    RelayMessage,
    Tag,
    Timestamp,
    nip44_decrypt,
    nip44_encrypt,
)

from nostr_sentinel.errors import DecryptionFailure, InvalidIdentity
from nostr_sentinel.models import HEX_PUBKEY_RE, LOCATION_KINDS, EventTemplate, ReceivedEvent

logger = logging.getLogger(__name__)

EventCallback = Callable[[ReceivedEvent], Awaitable[None] | None]


def load_keys(secret: str) -> Keys:
    """Parse a secret key given as hex or ``nsec``.

    Raises:
        InvalidIdentity: Not a valid secret key.
    """

    try:
        return Keys.parse(secret.strip())
    except Exception as exc:  # nostr_sdk raises NostrSdkError.Generic
        raise InvalidIdentity("无效私钥（需要 hex 或 nsec）") from exc


def parse_public_identity(text: str) -> str:
    """Return the hex public key for a hex or ``npub`` identity.

    Raises:
        InvalidIdentity: Neither form parses.
    """

    s = text.strip()
    if HEX_PUBKEY_RE.match(s):
        return s.lower()
    try:
        return PublicKey.parse(s).to_hex()
    except Exception as exc:  # nostr_sdk raises NostrSdkError.Generic
        raise InvalidIdentity(f"无效公钥：{text!r}（需要 hex 或 npub）") from exc


def to_npub(pubkey_hex: str) -> str:
    return PublicKey.parse(pubkey_hex).to_bech32()


def sign_template(template: EventTemplate, keys: Keys) -> Event:
    builder = EventBuilder(Kind(template.kind), template.content).tags(
        [Tag.parse(list(t)) for t in template.tags]
    )
    return builder.sign_with_keys(keys)


def to_received_event(event: Event) -> ReceivedEvent:
    return ReceivedEvent.from_dict(json.loads(event.as_json()))


def nip44_encrypt_payload(keys: Keys, peer_pubkey: str, plaintext: str) -> str:
    """NIP-44 v2 encrypt ``plaintext`` from ``keys`` to ``peer_pubkey`` (hex)."""

    return nip44_encrypt(keys.secret_key(), PublicKey.parse(peer_pubkey), plaintext, Nip44Version.V2)


def nip44_decrypt_payload(keys: Keys, peer_pubkey: str, ciphertext: str) -> str:
    """NIP-44 decrypt ``ciphertext`` sent by ``peer_pubkey`` (hex) to ``keys``.

    Raises:
        DecryptionFailure: Wrong key, corrupted payload or unsupported version.
    """

    try:
        return nip44_decrypt(keys.secret_key(), PublicKey.parse(peer_pubkey), ciphertext)
    except Exception as exc:  # nostr_sdk raises NostrSdkError.Generic
        raise DecryptionFailure(f"NIP-44 解密失败：{exc}") from exc


def location_filter(
    author: str,
    *,
    d_tag: str | None = None,
    limit: int | None = None,
    since_now: bool = False,
) -> Filter:
    """Filter for both location kinds published by ``author`` (hex)."""

    f = Filter().author(PublicKey.parse(author)).kinds([Kind(k) for k in LOCATION_KINDS])
    if d_tag is not None:
        f = f.identifier(d_tag)
    if limit is not None:
        f = f.limit(limit)
    if since_now:
        f = f.since(Timestamp.now())
    return f


class _NotificationHandler(HandleNotification):
    def __init__(self, callback: EventCallback) -> None:
        super().__init__()
        self._callback = callback

    async def handle(self, relay_url: str, subscription_id: str, event: Event) -> None:
        logger.debug("event from %s (sub=%s)", relay_url, subscription_id)
        res = self._callback(to_received_event(event))
        if res is not None:
            await res

    async def handle_msg(self, relay_url: str, msg: RelayMessage) -> None:
        return None


class RelaySession:
    """A connected set of relays.

    Usage:
        async with RelaySession(relays) as session:
            events = await session.fetch_events(flt, timeout_seconds=10)
    """

    def __init__(self, relays: Sequence[str]) -> None:
        self._relays = tuple(relays)
        self._client = Client()

    @property
    def relays(self) -> tuple[str, ...]:
        return self._relays

    async def connect(self) -> None:
        for url in self._relays:
            await self._client.add_relay(url)
        await self._client.connect()
        logger.info("connected to %s relay(s)", len(self._relays))

    async def disconnect(self) -> None:
        await self._client.disconnect()

    async def __aenter__(self) -> "RelaySession":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect()

    async def publish(self, event: Event) -> None:
        out = await self._client.send_event(event)
        logger.info("published kind=%s id=%s", event.kind().as_u16(), out.id.to_hex())

    async def fetch_events(self, flt: Filter, *, timeout_seconds: float = 10.0) -> list[ReceivedEvent]:
        events = await self._client.fetch_events(flt, timedelta(seconds=timeout_seconds))
        return [to_received_event(e) for e in events.to_vec()]

    async def subscribe(self, flt: Filter) -> None:
        await self._client.subscribe(flt, None)

    async def handle_events(self, callback: EventCallback) -> None:
        """Deliver subscription events to ``callback`` until the client shuts down."""

        await self._client.handle_notifications(_NotificationHandler(callback))
