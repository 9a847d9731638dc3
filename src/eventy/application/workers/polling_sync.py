"""Polling Sync - periodic fetch/compare/notify loop for one resource collection.

Hey future me - this is the ONE place that knows how to poll. Conversations, notifications,
whatever comes next: build a PollCycle with a fetch fn, a compare fn and an interval instead
of writing yet another "while True: sleep" loop in a service.

Rules the cycle enforces:
1. start() fires one fetch right away, then ticks every `interval` seconds
2. a tick while the previous fetch is still running is SKIPPED (no overlap, no queue)
3. on_new only fires when the signal value goes UP compared to the last observation
4. focus is judged per item: of the items whose count went up, the focused ones are
   dropped and on_new gets the most relevant of the rest. Only when every grown item
   is focused is on_new suppressed (the snapshot still updates silently)
5. stop() is idempotent; an in-flight fetch may finish but its result is thrown away
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PollSignal:
    """Diff signal produced by a compare function.

    Attributes:
        value: Monotonic "amount of new stuff" (e.g. total unread count)
        item_id: Most relevant item behind the signal (used for focus suppression)
        snapshot: item id -> last seen mutable fields
        counts: Optional item id -> unread count, most relevant item first. Lets the
            cycle see WHICH items grew instead of only the total
    """

    value: int = 0
    item_id: str | None = None
    snapshot: Mapping[str, Any] = field(default_factory=dict)
    counts: Mapping[str, int] = field(default_factory=dict)


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


def _grown_items(signal: PollSignal, previous: PollSignal) -> list[str]:
    """Item ids whose count went up since `previous`, most relevant first."""
    if signal.counts:
        return [
            item_id
            for item_id, count in signal.counts.items()
            if count > previous.counts.get(item_id, 0)
        ]
    # Without per-item counts the best we know is the signal's own item
    return [signal.item_id] if signal.item_id is not None else []


class PollCycle(Generic[T]):
    """Cancellable repeating fetch-and-compare task."""

    def __init__(
        self,
        name: str,
        fetch: Callable[[], Awaitable[T]],
        compare: Callable[[T], PollSignal],
        on_new: Callable[[PollSignal, T], Awaitable[None] | None],
        interval: float,
        is_focused: Callable[[str], bool] | None = None,
        on_update: Callable[[PollSignal, T], Awaitable[None] | None] | None = None,
    ) -> None:
        """Initialize the cycle.

        Args:
            name: Name used in log lines
            fetch: Coroutine function returning the latest collection
            compare: Turns a collection into a PollSignal
            on_new: Called when the signal shows more new items than before
            interval: Seconds between ticks (must be > 0)
            is_focused: Optional predicate "user is already looking at item_id"
            on_update: Optional callback for every accepted result (silent state update)
        """
        if interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {interval}")
        self.name = name
        self._fetch = fetch
        self._compare = compare
        self._on_new = on_new
        self._interval = interval
        self._is_focused = is_focused
        self._on_update = on_update

        self._running = False
        self._loop_task: asyncio.Task[None] | None = None
        self._in_flight: asyncio.Task[None] | None = None
        # Bumped on every stop(); a fetch started under an older generation is discarded
        self._generation = 0
        # Baseline is "nothing seen yet", so items that are already unread surface once
        self._last_signal = PollSignal()

        self.fetch_count = 0
        self.skipped_ticks = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def fetch_in_flight(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    @property
    def last_signal(self) -> PollSignal:
        return self._last_signal

    @property
    def last_snapshot(self) -> Mapping[str, Any]:
        return self._last_signal.snapshot

    def start(self) -> None:
        """Start ticking. Calling start() on a running cycle does nothing."""
        if self._running:
            return
        self._running = True
        self._loop_task = asyncio.create_task(self._run(), name=f"poll-{self.name}")
        logger.debug("PollCycle %s started (interval=%.1fs)", self.name, self._interval)

    def stop(self) -> None:
        """Stop ticking. Safe to call twice and from inside a callback."""
        if not self._running:
            return
        self._running = False
        self._generation += 1
        if self._loop_task is not None and self._loop_task is not asyncio.current_task():
            self._loop_task.cancel()
        self._loop_task = None
        logger.debug("PollCycle %s stopped", self.name)

    async def drain(self) -> None:
        """Wait for an outstanding fetch (if any) to settle."""
        task = self._in_flight
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def _run(self) -> None:
        while self._running:
            self._tick()
            await asyncio.sleep(self._interval)

    def _tick(self) -> None:
        # Listen up, this guard is what keeps a slow network from piling up requests.
        # We don't queue the tick either; the next one comes one interval later.
        if self.fetch_in_flight:
            self.skipped_ticks += 1
            logger.debug("PollCycle %s: previous fetch still running, tick skipped", self.name)
            return
        self._in_flight = asyncio.create_task(
            self._fetch_and_compare(self._generation), name=f"poll-{self.name}-fetch"
        )

    async def _fetch_and_compare(self, generation: int) -> None:
        self.fetch_count += 1
        try:
            result = await self._fetch()
        except Exception as e:
            # Background task: nobody awaits us, so log and wait for the next tick
            logger.warning("PollCycle %s: fetch failed: %s", self.name, e)
            return

        if not self._running or generation != self._generation:
            logger.debug("PollCycle %s: discarding result fetched before stop()", self.name)
            return

        try:
            await self._apply(self._compare(result), result)
        except Exception:
            logger.exception("PollCycle %s: processing fetched data failed", self.name)

    async def _apply(self, signal: PollSignal, result: T) -> None:
        previous = self._last_signal
        # Always move the baseline, also DOWN (user read something elsewhere) so the next
        # increase is measured from what is really unread now
        self._last_signal = signal

        if self._on_update is not None:
            await _maybe_await(self._on_update(signal, result))

        if signal.value <= previous.value:
            return

        if self._is_focused is not None:
            grown = _grown_items(signal, previous)
            unfocused = [item_id for item_id in grown if not self._is_focused(item_id)]
            if grown and not unfocused:
                logger.debug(
                    "PollCycle %s: new data only for focused item(s) %s, not surfacing",
                    self.name,
                    ", ".join(grown),
                )
                return
            if unfocused and unfocused[0] != signal.item_id:
                signal = replace(signal, item_id=unfocused[0])

        await _maybe_await(self._on_new(signal, result))
