"""Host-facing adapter. Sits between one input field and the engine.

The engine's scan is a pure function.  Everything time-dependent about a
live field lives here: debouncing keystrokes, discarding superseded scans,
and abandoning a pending remote call when the field loses focus.

Usage:

    session = engine.session(context="example.com")
    session.focus(FieldDescriptor(name="comments"), text=current_value)

    # on every input event (inside the host's event loop)
    task = session.schedule(new_value)
    result = await task          # None if superseded or the field was left
    if result:
        render(result.spans)

    # on user "mask" action
    new_value = session.mask(new_value, result.spans)

    # on focus loss
    session.blur()
"""

from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from .gate import CancellationToken
from .types import Action, FieldDescriptor, RemoteOutcome, Span

if TYPE_CHECKING:
    from .engine import Engine

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FieldResult:
    """Local and remote findings for one version of a field's text."""
    text: str
    local: list[Span] = field(default_factory=list)
    remote: RemoteOutcome = field(default_factory=RemoteOutcome)

    @property
    def spans(self) -> list[Span]:
        return [*self.local, *self.remote.spans]


class FieldSession:
    """Tracks one focused field: its descriptor, scan generations and pending work."""

    def __init__(self, engine: Engine, *, context: str = "", debounce: float | None = None) -> None:
        self._engine = engine
        self._context = context
        self._debounce = engine.config.debounce if debounce is None else debounce
        self._gate = engine.new_gate()
        self._field: FieldDescriptor | None = None
        self._token = CancellationToken()
        self._generation = 0
        self._pending: asyncio.Task | None = None
        self._reported: set[tuple[str, str]] = set()
        self._active = False

    # ------------------------------------------------------------------
    # Focus lifetime
    # ------------------------------------------------------------------

    def focus(self, field: FieldDescriptor | None = None, text: str = "") -> list[Span]:
        """Start tracking a field.  Scans its current value immediately."""
        if self._active:
            self.blur()
        self._field = field
        self._token = CancellationToken()
        self._gate.reset()
        self._reported.clear()
        self._active = True
        if not text:
            return []
        return self.scan(text)

    def blur(self) -> None:
        """Abandon the field: pending debounced work and late responses are dropped."""
        self._token.cancel()
        self._generation += 1
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def descriptor(self) -> FieldDescriptor | None:
        return self._field

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def scan(self, text: str) -> list[Span]:
        """Local scan.  Supersedes any ``scan_and_classify`` still in flight."""
        self._next_generation()
        spans = self._engine.scan(text, self._field)
        self._report_new(spans)
        return spans

    async def scan_and_classify(self, text: str) -> FieldResult | None:
        """Local scan plus gated remote classification.

        Returns None when superseded by a newer scan or when the field was
        left while the remote call was in flight.
        """
        generation = self._next_generation()
        token = self._token
        local = self._engine.scan(text, self._field)
        outcome = await self._engine.classify(
            text,
            self._field,
            context=self._context,
            local_spans=local,
            token=token,
            gate=self._gate,
        )
        if token.cancelled or generation != self._generation:
            logger.debug("discarding superseded scan result")
            return None
        result = FieldResult(text=text, local=local, remote=outcome)
        self._report_new(result.spans)
        return result

    def schedule(self, text: str) -> asyncio.Task:
        """Debounced ``scan_and_classify``; any earlier pending call is cancelled."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._debounced(text))
        return self._pending

    async def _debounced(self, text: str) -> FieldResult | None:
        await asyncio.sleep(self._debounce)
        return await self.scan_and_classify(text)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def mask(self, text: str, spans: Iterable[Span]) -> str:
        """Mask spans in text and record the action."""
        spans = list(spans)
        masked = self._engine.mask_text(text, spans)
        applied = [s for s in spans if s.value in text]
        self._engine.report(applied, self._context, Action.MASKED)
        return masked

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _report_new(self, spans: Iterable[Span]) -> None:
        fresh = []
        for span in spans:
            key = (span.label, span.value)
            if key not in self._reported:
                self._reported.add(key)
                fresh.append(span)
        if fresh:
            self._engine.report(fresh, self._context, Action.OBSERVED)
