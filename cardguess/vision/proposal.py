"""
Detection Data - What the detector reports per poll.

A DetectionSample is one raw observation from the object detector:
a class label (e.g. "10h") and a confidence score. Samples are
transient - produced once per tick and dropped after reconciliation.

The label is NOT trusted: it may be any string the model was trained
on, and the reconciler decides whether it names a card.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..engine_core.cards import Card


class FacingMode(Enum):
    """Camera facing modes."""
    ENVIRONMENT = "environment"  # Rear camera
    USER = "user"  # Front camera

    def toggled(self) -> FacingMode:
        if self == FacingMode.ENVIRONMENT:
            return FacingMode.USER
        return FacingMode.ENVIRONMENT


@dataclass(frozen=True)
class DetectionSample:
    """
    A single detector observation.

    Bounding box is carried for overlays only; the game never reads it.
    """
    label: str
    confidence: float

    # Position in frame (for debugging/UI)
    bounding_box: tuple[float, float, float, float] | None = None  # x, y, w, h

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")

    @classmethod
    def from_prediction(cls, prediction: dict[str, Any]) -> DetectionSample:
        """
        Build a sample from a detector prediction dict.

        Accepts the {"class": ..., "confidence": ..., "bbox": {...}} shape
        produced by hosted detection models as well as {"label": ...}.
        """
        label = prediction.get("label", prediction.get("class", ""))
        bbox = prediction.get("bbox")
        bounding_box = None
        if isinstance(bbox, dict):
            bounding_box = (
                float(bbox.get("x", 0.0)),
                float(bbox.get("y", 0.0)),
                float(bbox.get("width", 0.0)),
                float(bbox.get("height", 0.0)),
            )
        elif bbox is not None:
            bounding_box = tuple(float(v) for v in bbox)

        return cls(
            label=str(label),
            confidence=float(prediction.get("confidence", 0.0)),
            bounding_box=bounding_box,
        )


@dataclass(frozen=True)
class TickResult:
    """
    Outcome of one reconciliation tick.

    fresh is True only when this tick produced the candidate; it is
    used for UI emphasis and carries no game meaning.
    """
    candidate: Card | None
    fresh: bool = False
    skipped: bool = False  # Previous detection still in flight
    error: str | None = None  # Detector failed, treated as empty
    samples_seen: int = 0
    samples_qualifying: int = 0

    # Raw labels that cleared the threshold but did not parse
    rejected_labels: list[str] = field(default_factory=list)
