"""Liveness monitor: alert when a followed identity stops publishing.

Two activities share the "last seen" timestamp:
  - the notification consumer calls ``observe()`` once per location event
  - the checker thread calls ``check()`` every ``check_interval_seconds``

Both go through one lock. An alert resets the timer, so a new silence period
must fully elapse before the next alert. Webhook delivery runs on a thread pool
after the lock is released and is never awaited.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from nostr_sentinel.errors import InvalidConfig
from nostr_sentinel.models import LOCATION_KINDS, ReceivedEvent
from nostr_sentinel.timeutils import format_duration
from nostr_sentinel.webhook import WebhookConfig, post_alert

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class MonitorState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    ACTIVE = "active"
    SILENT = "silent"


@dataclass(frozen=True, slots=True)
class MonitorParams:
    """Parameters of the liveness check."""

    threshold_seconds: float
    check_interval_seconds: float = 10.0

    def __post_init__(self) -> None:
        if self.threshold_seconds <= 0:
            raise InvalidConfig(f"threshold_seconds must be > 0, got {self.threshold_seconds!r}")
        if self.check_interval_seconds <= 0:
            raise InvalidConfig(f"check_interval_seconds must be > 0, got {self.check_interval_seconds!r}")


@dataclass(slots=True)
class AlertState:
    """Mutable state shared by the consumer and the checker (guarded by the monitor lock)."""

    target: str
    threshold_seconds: float
    last_seen: float
    webhook_url: str | None = None


@dataclass(frozen=True, slots=True)
class Alert:
    target: str
    silent_seconds: float
    threshold_seconds: float
    raised_at: float

    @property
    def text(self) -> str:
        return (
            f"ALERT: No location update from {self.target} for {format_duration(self.silent_seconds)} "
            f"(threshold {format_duration(self.threshold_seconds)})"
        )


class AlertDispatcher:
    """Log alerts and POST them to an optional webhook (best-effort)."""

    def __init__(self, webhook: WebhookConfig | None = None, *, max_workers: int = 2) -> None:
        self._webhook = webhook
        self._executor: ThreadPoolExecutor | None = None
        if webhook is not None:
            self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="sentinel-webhook")

    @property
    def webhook_url(self) -> str | None:
        return self._webhook.url if self._webhook is not None else None

    def dispatch(self, alert: Alert) -> Future[int] | None:
        logger.warning("%s", alert.text)
        if self._webhook is None or self._executor is None:
            return None
        try:
            fut = self._executor.submit(post_alert, alert.text, self._webhook)
        except RuntimeError:
            # executor already shut down (monitor stopping)
            logger.warning("webhook skipped, dispatcher closed")
            return None
        fut.add_done_callback(self._log_delivery)
        return fut

    def _log_delivery(self, fut: Future[int]) -> None:
        exc = fut.exception()
        if exc is not None:
            logger.warning("webhook delivery failed: %s", exc)
        else:
            logger.debug("webhook delivered, status=%s", fut.result())

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)


class LivenessMonitor:
    """Watchdog over the time since the last observed location update.

    Args:
        target: Identity being followed (used in alert text).
        params: Threshold and check interval.
        dispatcher: Alert sink; defaults to log-only.
        clock: Monotonic seconds source, injectable for tests.
        wall_clock: Unix seconds source for ``Alert.raised_at``.
    """

    def __init__(
        self,
        target: str,
        params: MonitorParams,
        *,
        dispatcher: AlertDispatcher | None = None,
        clock: Clock = time.monotonic,
        wall_clock: Clock = time.time,
    ) -> None:
        self.params = params
        self._dispatcher = dispatcher if dispatcher is not None else AlertDispatcher()
        self._clock = clock
        self._wall_clock = wall_clock
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._state = MonitorState.IDLE
        self._alerts = 0
        self._observed = 0
        self._alert_state = AlertState(
            target=target,
            threshold_seconds=params.threshold_seconds,
            last_seen=clock(),
            webhook_url=self._dispatcher.webhook_url,
        )

    @property
    def target(self) -> str:
        return self._alert_state.target

    @property
    def state(self) -> MonitorState:
        with self._lock:
            return self._state

    @property
    def alerts_raised(self) -> int:
        with self._lock:
            return self._alerts

    @property
    def updates_observed(self) -> int:
        with self._lock:
            return self._observed

    def arm(self) -> None:
        """Enter ARMED with ``last_seen = now`` (no checker thread)."""

        with self._lock:
            self._alert_state.last_seen = self._clock()
            self._state = MonitorState.ARMED

    def start(self) -> None:
        """Arm the monitor and launch the periodic checker thread."""

        if self._thread is not None:
            raise RuntimeError("monitor already started")
        self.arm()
        self._thread = threading.Thread(target=self._run_checker, name="sentinel-liveness", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._dispatcher.close()

    def __enter__(self) -> "LivenessMonitor":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def seconds_since_last_update(self) -> float:
        with self._lock:
            return self._clock() - self._alert_state.last_seen

    def observe(self) -> None:
        """Record a qualifying update: reset ``last_seen`` to now."""

        with self._lock:
            self._state = MonitorState.ACTIVE
            self._alert_state.last_seen = self._clock()
            self._observed += 1
            self._state = MonitorState.ARMED

    def check(self) -> Alert | None:
        """Compare elapsed silence with the threshold; alert and reset if exceeded.

        Returns:
            The alert raised by this check, or None.
        """

        with self._lock:
            if self._state is MonitorState.IDLE:
                return None
            now = self._clock()
            elapsed = now - self._alert_state.last_seen
            if elapsed < self._alert_state.threshold_seconds:
                return None
            self._state = MonitorState.SILENT
            alert = Alert(
                target=self._alert_state.target,
                silent_seconds=elapsed,
                threshold_seconds=self._alert_state.threshold_seconds,
                raised_at=self._wall_clock(),
            )
            self._alert_state.last_seen = now
            self._alerts += 1

        self._dispatcher.dispatch(alert)

        with self._lock:
            if self._state is MonitorState.SILENT:
                self._state = MonitorState.ARMED
        return alert

    def _run_checker(self) -> None:
        while not self._stop.wait(self.params.check_interval_seconds):
            try:
                self.check()
            except Exception:
                logger.exception("liveness check failed")


def follow_handler(monitor: LivenessMonitor, target_pubkey: str) -> Callable[[ReceivedEvent], None]:
    """Notification consumer: reset the monitor on location events by ``target_pubkey``."""

    def _on_event(event: ReceivedEvent) -> None:
        if event.kind not in LOCATION_KINDS or event.pubkey != target_pubkey:
            return
        logger.info("收到位置更新 (kind %s)", event.kind)
        monitor.observe()

    return _on_event
