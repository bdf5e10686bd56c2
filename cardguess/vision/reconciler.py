"""
Detection Reconciler - Turns noisy detector output into one candidate.

The reconciler is the bridge between the detector (noisy, intermittent)
and the game (needs one stable guess). Per tick it:

1. Requests one detection pass (never more than one in flight)
2. Drops samples below the confidence threshold
3. Picks the most confident survivor (first seen wins ties)
4. Parses its label; a card becomes the new candidate
5. Otherwise keeps the previous candidate ("sticky")

Key principle: absence of a detection never clears the candidate.
Only the game clears it (new game, after a non-terminal guess).

The DetectionPoller drives ticks on a fixed cadence that does not
depend on detector latency; a tick that fires while the previous
detection is still running is skipped, not queued.
"""

from __future__ import annotations
from typing import Any, Callable, Iterable
import asyncio

from ..engine_core.cards import Card, parse_card_label
from ..logging_utils import get_logger
from .processor import Detector
from .proposal import DetectionSample, TickResult

logger = get_logger(__name__)


DEFAULT_CONFIDENCE_THRESHOLD = 0.5


def select_best_sample(
    samples: Iterable[DetectionSample],
    threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> tuple[DetectionSample | None, int]:
    """
    Pick the most confident sample at or above threshold.

    Returns (best, number of qualifying samples). Ties keep the
    first sample seen.
    """
    best = None
    qualifying = 0
    for sample in samples:
        if sample.confidence < threshold:
            continue
        qualifying += 1
        if best is None or sample.confidence > best.confidence:
            best = sample
    return best, qualifying


class DetectionReconciler:
    """
    Maintains the sticky candidate across detection ticks.

    Usage:
        reconciler = DetectionReconciler(detector, frame_source=lambda: camera.frame_source)
        result = await reconciler.tick()
        if result.fresh:
            show(result.candidate)
    """

    def __init__(
        self,
        detector: Detector,
        frame_source: Callable[[], Any] | None = None,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    ):
        self.detector = detector
        self._frame_source = frame_source or (lambda: None)
        self.confidence_threshold = confidence_threshold

        self.candidate: Card | None = None
        self._in_flight = False

        # Counters (for diagnostics)
        self.requests_issued = 0
        self.ticks_skipped = 0
        self.detector_failures = 0

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def tick(self) -> TickResult:
        """
        Run one reconciliation tick.

        If a detection is already outstanding the tick is skipped and
        no request is issued. Detector failures count as zero samples.
        """
        if self._in_flight:
            self.ticks_skipped += 1
            return TickResult(candidate=self.candidate, skipped=True)

        self._in_flight = True
        self.requests_issued += 1
        try:
            samples = await self.detector.detect(self._frame_source())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.detector_failures += 1
            logger.warning("Detection failed, treating as empty: %s", e)
            return TickResult(candidate=self.candidate, error=str(e) or type(e).__name__)
        finally:
            self._in_flight = False

        return self.reconcile(samples)

    def reconcile(self, samples: Iterable[DetectionSample]) -> TickResult:
        """
        Apply one batch of samples to the sticky candidate.

        Synchronous; tick() calls this once the detector resolves.
        """
        samples = list(samples)
        best, qualifying = select_best_sample(samples, self.confidence_threshold)

        if best is None:
            return TickResult(
                candidate=self.candidate,
                samples_seen=len(samples),
            )

        card = parse_card_label(best.label)
        if card is None:
            logger.debug("Ignoring unparseable label %r", best.label)
            return TickResult(
                candidate=self.candidate,
                samples_seen=len(samples),
                samples_qualifying=qualifying,
                rejected_labels=[best.label],
            )

        if card != self.candidate:
            logger.debug("Candidate %s (confidence %.2f)", card, best.confidence)
        self.candidate = card
        return TickResult(
            candidate=card,
            fresh=True,
            samples_seen=len(samples),
            samples_qualifying=qualifying,
        )

    def clear(self) -> None:
        """Drop the candidate. Called by game transitions only."""
        self.candidate = None


class DetectionPoller:
    """
    Fires reconciler ticks on a fixed interval.

    The timer never waits for a tick: each tick runs as its own task,
    and a timer fire while that task is running is skipped. After
    stop(), no further results are delivered.
    """

    def __init__(
        self,
        reconciler: DetectionReconciler,
        interval: float,
        on_result: Callable[[TickResult], None],
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.reconciler = reconciler
        self.interval = interval
        self._on_result = on_result

        self._timer_task: asyncio.Task | None = None
        self._tick_task: asyncio.Task | None = None
        self._stopped = False

        self.ticks_fired = 0
        self.ticks_skipped = 0

    @property
    def running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    @property
    def tick_in_flight(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    def start(self) -> None:
        """Start the timer. Must be called from a running event loop."""
        if self._stopped:
            raise RuntimeError("poller has been stopped")
        if self.running:
            return
        self._timer_task = asyncio.get_running_loop().create_task(self._run())

    def fire(self) -> bool:
        """
        One timer fire: launch a tick unless one is in flight.

        Returns True if a tick was launched.
        """
        if self._stopped:
            return False

        self.ticks_fired += 1
        if self.tick_in_flight:
            self.ticks_skipped += 1
            logger.debug("Tick skipped, detection still in flight")
            return False

        self._tick_task = asyncio.get_running_loop().create_task(self._run_tick())
        return True

    def stop(self) -> None:
        """Halt the timer and cancel any in-flight detection."""
        self._stopped = True
        for task in (self._timer_task, self._tick_task):
            if task is not None and not task.done():
                task.cancel()

    async def wait_closed(self) -> None:
        """Wait for cancelled tasks to finish unwinding."""
        tasks = [t for t in (self._timer_task, self._tick_task) if t is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self.interval)
            self.fire()

    async def _run_tick(self) -> None:
        result = await self.reconciler.tick()
        if self._stopped:
            return
        self._on_result(result)
