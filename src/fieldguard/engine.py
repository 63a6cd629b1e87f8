"""Engine: the main API.  Layered: built-ins, then custom patterns, then
(optionally) the remote classifier.

Usage:
    from fieldguard import Engine, FieldDescriptor

    engine = Engine()                      # one per host, owns all state
    engine.register_custom_patterns(patterns_from_host)

    spans = engine.scan("card 4242 4242 4242 4242", FieldDescriptor(name="comments"))
    engine.mask(spans[0])                  # "•••• •••• •••• 4242"

    outcome = await engine.classify(text, field, context="example.com",
                                    local_spans=spans)
"""

from __future__ import annotations
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from .cache import DEFAULT_MAX_ENTRIES, DEFAULT_TTL, ResultCache
from .custom import CustomPattern, PatternRegistry, scan_custom
from .events import DEFAULT_BATCH_SIZE, DEFAULT_CAPACITY, DetectionQueue, TelemetrySink
from .field_context import expected_categories, filter_expected
from .gate import CancellationToken, Classifier, GateConfig, ScanGate
from .masking import mask, mask_text
from .merge import merge
from .middleware import FieldSession
from .patterns import scan_builtin
from .types import (
    Action,
    FieldDescriptor,
    QueueItem,
    RegistrationReport,
    RemoteOutcome,
    Span,
)

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """Configuration for the Engine."""
    gate: GateConfig = field(default_factory=GateConfig)
    cache_ttl: float = DEFAULT_TTL          # seconds a remote result stays valid
    cache_size: int = DEFAULT_MAX_ENTRIES
    queue_capacity: int = DEFAULT_CAPACITY
    batch_size: int = DEFAULT_BATCH_SIZE
    sweep_interval: float = 30.0            # seconds between cache sweeps / queue flushes
    debounce: float = 0.5                   # seconds, used by FieldSession.schedule
    # Category labels never reported (e.g. don't flag IP addresses)
    skip_types: set[str] = field(default_factory=set)
    # Allow-list: values that should NEVER be reported
    allow_list: set[str] = field(default_factory=set)


class Engine:
    """Detection, merge, filtering, masking and scan gating for one host."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        classifier: Classifier | None = None,
        sink: TelemetrySink | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or EngineConfig()
        self._classifier = classifier
        self._registry = PatternRegistry()
        self.registration = RegistrationReport()
        self._cache = ResultCache(self.config.cache_ttl, max_entries=self.config.cache_size, clock=clock)
        self._queue = DetectionQueue(
            sink,
            capacity=self.config.queue_capacity,
            batch_size=self.config.batch_size,
        )
        self._gate = ScanGate(classifier, self._cache, self.config.gate)

    # ------------------------------------------------------------------
    # Patterns
    # ------------------------------------------------------------------

    def register_custom_patterns(
        self,
        patterns: Iterable[CustomPattern | dict[str, Any]],
    ) -> RegistrationReport:
        """Replace the custom pattern set.  Bad patterns are reported, not raised.

        The latest report stays available as ``engine.registration``.
        """
        self.registration = self._registry.register(patterns)
        return self.registration

    # ------------------------------------------------------------------
    # Local detection
    # ------------------------------------------------------------------

    def detect(self, text: str) -> list[Span]:
        """Built-in and custom matches, merged.  No field filtering."""
        if not text:
            return []
        builtin = scan_builtin(text)
        custom = scan_custom(text, self._registry.active)
        spans = merge(builtin, custom)
        return [s for s in spans if self._reportable(s)]

    def scan(self, text: str, field: FieldDescriptor | None = None) -> list[Span]:
        """Spans worth warning about for text typed into field."""
        spans = self.detect(text)
        spans = filter_expected(spans, expected_categories(field))
        if spans:
            logger.debug("scan found %d spans: %s", len(spans), [s.label for s in spans])
        return spans

    # ------------------------------------------------------------------
    # Remote classification
    # ------------------------------------------------------------------

    async def classify(
        self,
        text: str,
        field: FieldDescriptor | None = None,
        *,
        context: str = "",
        local_spans: Iterable[Span] | None = None,
        token: CancellationToken | None = None,
        gate: ScanGate | None = None,
    ) -> RemoteOutcome:
        """Ask the remote classifier about text, if the gate allows it."""
        if local_spans is None:
            local_spans = self.scan(text, field)
        outcome = await (gate or self._gate).classify(
            text,
            local_spans=local_spans,
            field=field,
            context=context,
            token=token,
        )
        outcome.spans = [s for s in outcome.spans if self._reportable(s)]
        return outcome

    def new_gate(self) -> ScanGate:
        """A gate with its own last-decision state, sharing this engine's cache."""
        return ScanGate(self._classifier, self._cache, self.config.gate)

    # ------------------------------------------------------------------
    # Masking
    # ------------------------------------------------------------------

    def mask(self, span: Span) -> str:
        return mask(span)

    def mask_text(self, text: str, spans: Iterable[Span]) -> str:
        return mask_text(text, spans)

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    def report(
        self,
        spans: Iterable[Span],
        context: str,
        action: Action = Action.OBSERVED,
        metadata: dict[str, Any] | None = None,
    ) -> int:
        """Queue one event per span.  Returns how many were queued."""
        count = 0
        for span in spans:
            self._queue.enqueue(QueueItem(
                category=span.label,
                context=context,
                action=action,
                metadata={"source": span.source, "confidence": span.confidence, **(metadata or {})},
            ))
            count += 1
        return count

    def flush(self) -> int:
        return self._queue.flush()

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def sweep(self) -> dict[str, int]:
        """Evict expired cache entries and flush queued events."""
        evicted = self._cache.sweep()
        delivered = self._queue.flush()
        return {"evicted": evicted, "delivered": delivered}

    def session(self, context: str = "") -> FieldSession:
        return FieldSession(self, context=context)

    @property
    def stats(self) -> dict[str, int]:
        return {
            "custom_patterns": len(self._registry),
            "cache_size": self._cache.size,
            "queue_size": self._queue.size,
            "queue_dropped": self._queue.dropped,
        }

    def _reportable(self, span: Span) -> bool:
        if span.label.upper() in {t.upper() for t in self.config.skip_types}:
            return False
        return span.value not in self.config.allow_list


class Sweeper:
    """Background thread calling ``engine.sweep()`` on a fixed interval."""

    __slots__ = ("_engine", "_interval", "_stop", "_thread")

    def __init__(self, engine: Engine, interval: float | None = None) -> None:
        self._engine = engine
        self._interval = interval if interval is not None else engine.config.sweep_interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> "Sweeper":
        if self._thread is None or not self._thread.is_alive():
            self._stop.clear()
            self._thread = threading.Thread(target=self._run, name="fieldguard-sweeper", daemon=True)
            self._thread.start()
        return self

    def stop(self, *, final_sweep: bool = True) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        if final_sweep:
            self._engine.sweep()

    def __enter__(self) -> "Sweeper":
        return self.start()

    def __exit__(self, *exc: object) -> None:
        self.stop()

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._engine.sweep()
            except Exception:
                logger.exception("sweep failed")
