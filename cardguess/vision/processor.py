"""
Detector and Camera Collaborators.

The core never inspects pixels. It needs:
1. A camera that exposes an opaque, continuously updating frame source
2. A detector that turns that frame source into DetectionSamples

Both are external; this module defines their interfaces and the
implementations the project ships:
- StaticCamera: a camera stand-in with a fixed frame source
- ScriptedDetector: replays a fixed sequence of detection batches
- PushDetector: returns the latest batch posted by a client-side model
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Iterable, Union
import asyncio

from ..logging_utils import get_logger
from .proposal import DetectionSample, FacingMode

logger = get_logger(__name__)


class SetupError(Exception):
    """A collaborator failed during setup; the game cannot start."""


class CameraSource(ABC):
    """
    Abstract camera.

    Implementations wrap a real video stream; the core only passes
    frame_source through to the detector.
    """

    @abstractmethod
    async def open(self, facing: FacingMode) -> None:
        """Open (or re-open) the stream with the given facing mode."""

    @abstractmethod
    async def close(self) -> None:
        """Stop the stream. Safe to call when not open."""

    @property
    @abstractmethod
    def frame_source(self) -> Any:
        """Opaque frame source handed to the detector."""

    @property
    @abstractmethod
    def facing(self) -> FacingMode | None:
        """Current facing mode, None if closed."""


class Detector(ABC):
    """
    Abstract object detector.

    detect() may be slower than the poll interval and may raise;
    the reconciler handles both.
    """

    async def load(self) -> None:
        """Load the model. Raise on failure."""

    @abstractmethod
    async def detect(self, frame_source: Any) -> list[DetectionSample]:
        """Run one detection pass over the current frame."""


class StaticCamera(CameraSource):
    """
    Camera with a fixed frame source.

    Used by the CLI, the API (frames live on the client) and tests.
    """

    def __init__(self, frame: Any = None, fail_on_open: bool = False):
        self._frame = frame
        self._fail_on_open = fail_on_open
        self._facing: FacingMode | None = None
        self.open_count = 0

    async def open(self, facing: FacingMode) -> None:
        if self._fail_on_open:
            raise PermissionError("camera permission denied")
        self._facing = facing
        self.open_count += 1

    async def close(self) -> None:
        self._facing = None

    @property
    def frame_source(self) -> Any:
        return self._frame

    @property
    def facing(self) -> FacingMode | None:
        return self._facing


# One scripted poll: samples to return, or an exception to raise
ScriptStep = Union[list[DetectionSample], Exception]


class ScriptedDetector(Detector):
    """
    Detector that replays a fixed script, one step per detect() call.

    Once the script runs out every call returns no samples.

    Usage:
        detector = ScriptedDetector([
            [DetectionSample("10h", 0.9)],
            [],
            RuntimeError("model crashed"),
        ])
    """

    def __init__(
        self,
        script: Iterable[ScriptStep] = (),
        latency: float = 0.0,
        fail_on_load: bool = False,
    ):
        self._script: deque[ScriptStep] = deque(script)
        self.latency = latency
        self.fail_on_load = fail_on_load
        self.loaded = False
        self.calls = 0

    async def load(self) -> None:
        if self.fail_on_load:
            raise RuntimeError("model weights unavailable")
        self.loaded = True

    def extend(self, steps: Iterable[ScriptStep]) -> None:
        self._script.extend(steps)

    @property
    def remaining(self) -> int:
        return len(self._script)

    async def detect(self, frame_source: Any) -> list[DetectionSample]:
        self.calls += 1
        if self.latency:
            await asyncio.sleep(self.latency)

        if not self._script:
            return []

        step = self._script.popleft()
        if isinstance(step, Exception):
            raise step
        return list(step)


class PushDetector(Detector):
    """
    Detector fed from outside.

    The model runs elsewhere (e.g. in the browser); predictions are
    posted with push() and the next detect() consumes the latest batch.
    A batch is returned at most once, so a client that stops posting
    produces empty ticks.
    """

    def __init__(self):
        self._latest: list[DetectionSample] | None = None
        self.batches_received = 0

    def push(self, samples: Iterable[DetectionSample]) -> None:
        self._latest = list(samples)
        self.batches_received += 1

    def push_predictions(self, predictions: Iterable[dict[str, Any]]) -> None:
        """Push raw prediction dicts ({"class", "confidence", "bbox"})."""
        self.push(DetectionSample.from_prediction(p) for p in predictions)

    async def detect(self, frame_source: Any) -> list[DetectionSample]:
        samples, self._latest = self._latest, None
        return samples or []
