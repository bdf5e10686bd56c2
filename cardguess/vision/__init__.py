"""
Vision Layer - Detector-driven guess input.

The vision layer is the ONLY source of guesses.
An external detector looks at the live camera frame and reports
labels with confidences; the reconciler turns that stream into a
single sticky candidate card.

Architecture:
    Camera -> Detector -> DetectionSample[] -> Reconciler -> Candidate

The vision layer is NON-AUTHORITATIVE:
- It proposes a candidate based on what it sees
- The game decides whether the candidate is submittable
- The game clears the candidate, never the vision layer
"""

from .proposal import DetectionSample, FacingMode, TickResult
from .processor import (
    CameraSource,
    Detector,
    PushDetector,
    ScriptedDetector,
    SetupError,
    StaticCamera,
)
from .reconciler import DetectionReconciler, DetectionPoller, select_best_sample

__all__ = [
    "DetectionSample",
    "FacingMode",
    "TickResult",
    "CameraSource",
    "Detector",
    "PushDetector",
    "ScriptedDetector",
    "SetupError",
    "StaticCamera",
    "DetectionReconciler",
    "DetectionPoller",
    "select_best_sample",
]
