"""
Game Configuration.

All tunables recognised by the core live in GameConfig. Values can be
taken from the environment with GameConfig.from_env():

    CARDGUESS_MAX_ATTEMPTS          (default 3)
    CARDGUESS_CONFIDENCE_THRESHOLD  (default 0.5)
    CARDGUESS_POLL_INTERVAL_MS      (default 400)
    CARDGUESS_FACING_MODE           environment | user (default environment)
"""

from __future__ import annotations
from dataclasses import dataclass, replace
import os

from .engine_core.state import DEFAULT_MAX_ATTEMPTS
from .vision.proposal import FacingMode
from .vision.reconciler import DEFAULT_CONFIDENCE_THRESHOLD


DEFAULT_POLL_INTERVAL_MS = 400


@dataclass(frozen=True)
class GameConfig:
    """
    Configuration for a guessing game controller.
    """
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS

    # Camera to open at setup
    facing_mode: FacingMode = FacingMode.ENVIRONMENT

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError("confidence_threshold must be in [0, 1]")
        if self.poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be positive")

    @property
    def poll_interval(self) -> float:
        """Poll interval in seconds."""
        return self.poll_interval_ms / 1000.0

    def with_overrides(self, **overrides) -> GameConfig:
        """Return a copy with the given non-None fields replaced."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> GameConfig:
        """Build a config from CARDGUESS_* environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            max_attempts=int(env.get("CARDGUESS_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)),
            confidence_threshold=float(
                env.get("CARDGUESS_CONFIDENCE_THRESHOLD", DEFAULT_CONFIDENCE_THRESHOLD)
            ),
            poll_interval_ms=int(env.get("CARDGUESS_POLL_INTERVAL_MS", DEFAULT_POLL_INTERVAL_MS)),
            facing_mode=FacingMode(env.get("CARDGUESS_FACING_MODE", FacingMode.ENVIRONMENT.value)),
        )
