"""Publish location samples as public or encrypted events."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from nostr_sentinel.assembler import assemble_encrypted_event, assemble_public_event
from nostr_sentinel.models import EventTemplate, TrackingConfig, TrackPoint
from nostr_sentinel.payload import build_encrypted_plaintext_payload

logger = logging.getLogger(__name__)

# EventTemplate -> signed event (opaque to this module)
Signer = Callable[[EventTemplate], Any]
# (recipient hex, plaintext) -> NIP-44 ciphertext
Encryptor = Callable[[str, str], str]
# signed event -> None
Publish = Callable[[Any], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class PublishReport:
    published: int
    failed: int


class LocationPublisher:
    """Turn location samples into signed events and hand them to the relays.

    In encrypted mode one event is published per recipient; a recipient whose
    encryption or publish fails is logged and skipped.
    """

    def __init__(
        self,
        config: TrackingConfig,
        *,
        sign: Signer,
        publish: Publish,
        encrypt: Encryptor | None = None,
        now: Callable[[], int] | None = None,
    ) -> None:
        if config.encrypted and encrypt is None:
            raise ValueError("encrypted tracking requires an encryptor")
        self._config = config
        self._sign = sign
        self._publish = publish
        self._encrypt = encrypt
        self._now = now
        self._stop = asyncio.Event()

    @property
    def config(self) -> TrackingConfig:
        return self._config

    def templates_for(self, lat: float, lon: float, accuracy: float | None) -> list[EventTemplate]:
        """Unsigned templates for one sample (one per recipient when encrypted)."""

        cfg = self._config
        now = self._now() if self._now is not None else None
        if not cfg.encrypted:
            return [assemble_public_event(lat, lon, accuracy, cfg, now=now)]

        assert self._encrypt is not None
        plaintext = build_encrypted_plaintext_payload(lat, lon, accuracy, cfg.precision)
        out: list[EventTemplate] = []
        for recipient in cfg.recipient_pubkeys:
            try:
                ciphertext = self._encrypt(recipient, plaintext)
            except Exception as exc:  # crypto collaborator errors are per recipient
                logger.warning("加密失败，跳过接收者 %s：%s", recipient, exc)
                continue
            out.append(assemble_encrypted_event(ciphertext, recipient, cfg, now=now))
        return out

    async def publish_location(self, lat: float, lon: float, accuracy: float | None = None) -> PublishReport:
        templates = self.templates_for(lat, lon, accuracy)
        expected = len(self._config.recipient_pubkeys) if self._config.encrypted else 1
        published = 0
        for template in templates:
            try:
                await self._publish(self._sign(template))
            except Exception as exc:  # relay/signer errors must not stop the other recipients
                logger.warning("发布失败 kind=%s：%s", template.kind, exc)
                continue
            published += 1
        return PublishReport(published=published, failed=expected - published)

    async def run(self, points: Iterable[TrackPoint]) -> PublishReport:
        """Publish samples one per ``interval_secs`` until exhausted or stopped."""

        published = 0
        failed = 0
        first = True
        for pt in points:
            if not first:
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=self._config.interval_secs)
                except asyncio.TimeoutError:
                    pass
            first = False
            if self._stop.is_set():
                break
            report = await self.publish_location(pt.latitude, pt.longitude, pt.accuracy)
            published += report.published
            failed += report.failed
            logger.info("已发布位置 geoTime=%s（成功=%s，失败=%s）", pt.geo_time_ms, report.published, report.failed)
        return PublishReport(published=published, failed=failed)

    def stop(self) -> None:
        self._stop.set()
