"""Keyboard-wedge scanner input classification.

Barcode and QR scanners at the packing stations behave like keyboards: a scan
arrives as a fast burst of key presses followed by Enter. ``ScanClassifier``
separates those bursts from slow human typing on the same input using only
key timing, then classifies each completed scan as a product, rack or order
identifier.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable

from granthalaya.qr_payload import ScanKind, decode_payload

logger = logging.getLogger(__name__)

DEFAULT_BURST_THRESHOLD_MS = 100.0
DEFAULT_MIN_SCAN_LENGTH = 2
TERMINATOR_KEYS = frozenset({"Enter", "\r", "\n"})

_PREFIX_KINDS: tuple[tuple[str, str], ...] = (
    ("RACK-", ScanKind.RACK),
    ("ORD-", ScanKind.ORDER),
    ("GG-", ScanKind.PRODUCT),
)


@dataclass(frozen=True)
class ScanEvent:
    kind: str
    identifier: str


@dataclass(frozen=True)
class KeyEvent:
    key: str
    at: float | None = None


def classify_scan(raw: str | None) -> ScanEvent | None:
    """Classify one completed scan.

    Returns ``None`` only for blank input and for JSON payloads that cannot be
    decoded; anything else without a known prefix is a legacy product barcode.
    """

    original = (raw or "").strip()
    value = original.upper()
    if not value:
        return None

    for prefix, kind in _PREFIX_KINDS:
        if value.startswith(prefix):
            return ScanEvent(kind=kind, identifier=value)

    if "{" in value and "}" in value:
        # JSON keys are case sensitive, so decode the text as scanned.
        decoded = decode_payload(original)
        if decoded is None:
            logger.warning("Scanner: failed to decode QR payload %r", original)
            return None
        return ScanEvent(kind=decoded.kind, identifier=decoded.identifier)

    return ScanEvent(kind=ScanKind.PRODUCT, identifier=value)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class ScanClassifier:
    """Buffers keystrokes from one scanner and emits classified scans.

    The classifier is either idle (empty buffer) or accumulating a burst. A
    printable key arriving more than ``burst_threshold_ms`` after the previous
    one discards the buffered characters as human typing. Enter completes the
    scan when the buffer is longer than ``min_scan_length`` and always empties
    the buffer.
    """

    def __init__(
        self,
        on_scan: Callable[[ScanEvent], None] | None = None,
        *,
        burst_threshold_ms: float = DEFAULT_BURST_THRESHOLD_MS,
        min_scan_length: int = DEFAULT_MIN_SCAN_LENGTH,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        self.on_scan = on_scan
        self.burst_threshold_ms = burst_threshold_ms
        self.min_scan_length = min_scan_length
        self._clock = clock
        self._buffer: list[str] = []
        self._last_key_at: float | None = None
        self._active = True

    @property
    def buffer(self) -> str:
        return "".join(self._buffer)

    @property
    def is_active(self) -> bool:
        return self._active

    def activate(self) -> None:
        self._active = True

    def deactivate(self) -> None:
        # A partial scan must not survive into the next activation.
        self._active = False
        self.reset()

    def reset(self) -> None:
        self._buffer.clear()
        self._last_key_at = None

    def feed_key(self, key: str, at: float | None = None) -> ScanEvent | None:
        """Process one key press; ``at`` is a timestamp in milliseconds."""

        if not self._active or not key:
            return None

        if key in TERMINATOR_KEYS:
            return self._complete()

        if len(key) != 1 or not key.isprintable():
            return None

        now = self._clock() if at is None else float(at)
        if (
            self._buffer
            and self._last_key_at is not None
            and now - self._last_key_at > self.burst_threshold_ms
        ):
            self._buffer.clear()

        self._buffer.append(key)
        self._last_key_at = now
        return None

    def feed(self, events: Iterable[KeyEvent]) -> list[ScanEvent]:
        scans: list[ScanEvent] = []
        for event in events:
            scan = self.feed_key(event.key, event.at)
            if scan is not None:
                scans.append(scan)
        return scans

    def _complete(self) -> ScanEvent | None:
        raw = self.buffer
        self._buffer.clear()
        if len(raw) <= self.min_scan_length:
            return None

        event = classify_scan(raw)
        if event is not None and self.on_scan is not None:
            self.on_scan(event)
        return event


class ScannerRegistry:
    """One ``ScanClassifier`` per station, created on first use."""

    def __init__(
        self,
        *,
        burst_threshold_ms: float = DEFAULT_BURST_THRESHOLD_MS,
        min_scan_length: int = DEFAULT_MIN_SCAN_LENGTH,
    ) -> None:
        self.burst_threshold_ms = burst_threshold_ms
        self.min_scan_length = min_scan_length
        self._stations: dict[str, ScanClassifier] = {}
        self._lock = threading.Lock()

    def get(self, station: str) -> ScanClassifier:
        with self._lock:
            return self._get_locked(station)

    def _get_locked(self, station: str) -> ScanClassifier:
        classifier = self._stations.get(station)
        if classifier is None:
            classifier = ScanClassifier(
                burst_threshold_ms=self.burst_threshold_ms,
                min_scan_length=self.min_scan_length,
            )
            self._stations[station] = classifier
        return classifier

    def feed(self, station: str, events: Iterable[KeyEvent]) -> list[ScanEvent]:
        with self._lock:
            classifier = self._get_locked(station)
            classifier.activate()
            return classifier.feed(events)

    def release(self, station: str) -> bool:
        with self._lock:
            classifier = self._stations.pop(station, None)
        if classifier is None:
            return False
        classifier.deactivate()
        return True

    def stations(self) -> list[str]:
        with self._lock:
            return sorted(self._stations)
