"""
Pytest fixtures for Card Guesser tests.
"""

import asyncio
import random

import pytest

from ..config import GameConfig
from ..engine_core.cards import Card
from ..engine_core.state import GameSession
from ..session import GameController
from ..vision.processor import Detector, ScriptedDetector, StaticCamera
from ..vision.proposal import DetectionSample


def card(label: str) -> Card:
    """Shorthand: card("10h") -> 10♥."""
    return Card.from_label(label)


def sample(label: str, confidence: float = 0.9) -> DetectionSample:
    return DetectionSample(label=label, confidence=confidence)


async def drain(steps: int = 5) -> None:
    """Let pending tasks run a few event loop iterations."""
    for _ in range(steps):
        await asyncio.sleep(0)


class GatedDetector(Detector):
    """
    Detector whose detect() blocks until release() is called.

    Lets tests hold a detection "in flight" deterministically.
    """

    def __init__(self):
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._gate: asyncio.Event | None = None
        self._pending: list[DetectionSample] = []

    async def detect(self, frame_source):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self._gate = asyncio.Event()
        try:
            await self._gate.wait()
        finally:
            self.active -= 1
        samples, self._pending = self._pending, []
        return samples

    def release(self, samples=()):
        self._pending = list(samples)
        self._gate.set()


class ConcurrencyProbeDetector(Detector):
    """Slow detector that records the peak number of overlapping calls."""

    def __init__(self, latency: float, samples=()):
        self.latency = latency
        self.samples = list(samples)
        self.calls = 0
        self.active = 0
        self.max_active = 0

    async def detect(self, frame_source):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.latency)
            return list(self.samples)
        finally:
            self.active -= 1


@pytest.fixture
def config() -> GameConfig:
    """Default config with a long poll interval so the timer never fires on its own."""
    return GameConfig(max_attempts=3, confidence_threshold=0.5, poll_interval_ms=60_000)


@pytest.fixture
def session() -> GameSession:
    """A fresh 3-attempt session with target 7♦."""
    return GameSession.create(max_attempts=3, target_card=card("7d"))


@pytest.fixture
def scripted_detector() -> ScriptedDetector:
    return ScriptedDetector()


@pytest.fixture
def make_controller(config):
    """Factory for controllers wired to a StaticCamera."""

    def factory(detector=None, camera=None, **overrides):
        return GameController(
            detector=detector or ScriptedDetector(),
            camera=camera or StaticCamera(),
            config=config.with_overrides(**overrides),
            rng=random.Random(7),
        )

    return factory
