"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the exact contract between the client (which owns
the camera and runs the detection model) and the game engine.

Error Codes:
- SESSION_NOT_FOUND: Session does not exist or has ended
- SETUP_FAILED: Camera or model could not be set up; game cannot start
- INVALID_LABEL: A card label could not be parsed
- VALIDATION_ERROR: Request body failed validation
"""

from __future__ import annotations
from enum import Enum
from typing import Optional
from pydantic import AliasChoices, BaseModel, Field

from ..engine_core.cards import Card
from ..engine_core.feedback import Feedback
from ..engine_core.state import GameSnapshot, GuessRecord
from ..vision.proposal import DetectionSample


# =============================================================================
# Enums
# =============================================================================

class GameStatusValue(str, Enum):
    """Game status values."""
    SCANNING = "scanning"
    READY_TO_SUBMIT = "ready_to_submit"
    WON = "won"
    LOST = "lost"


class RankRelationValue(str, Enum):
    HIT = "HIT"
    HIGHER = "HIGHER"
    LOWER = "LOWER"


class ErrorCode(str, Enum):
    """Structured error codes."""
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SETUP_FAILED = "SETUP_FAILED"
    INVALID_LABEL = "INVALID_LABEL"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Shared Models
# =============================================================================

class CardInfo(BaseModel):
    """Card information for display."""
    label: str = Field(description="Detector-style label, e.g. 10h")
    rank: str
    suit: str
    color: str
    display: str = Field(description="Rank plus suit glyph, e.g. 10♥")

    @classmethod
    def from_card(cls, card: Card) -> CardInfo:
        return cls(
            label=card.label,
            rank=card.rank.value,
            suit=card.suit.value,
            color=card.color.value,
            display=str(card),
        )


class FeedbackInfo(BaseModel):
    """Feedback for one guess."""
    rank_relation: RankRelationValue
    color_match: bool
    suit_match: bool
    is_win: bool
    indicators: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_feedback(cls, feedback: Feedback) -> FeedbackInfo:
        return cls(
            rank_relation=RankRelationValue(feedback.rank_relation.value),
            color_match=feedback.color_match,
            suit_match=feedback.suit_match,
            is_win=feedback.is_win,
            indicators=feedback.indicators(),
        )


class GuessInfo(BaseModel):
    """A submitted guess and its feedback."""
    attempt: int = Field(description="1-based attempt number")
    card: CardInfo
    feedback: FeedbackInfo

    @classmethod
    def from_record(cls, attempt: int, record: GuessRecord) -> GuessInfo:
        return cls(
            attempt=attempt,
            card=CardInfo.from_card(record.card),
            feedback=FeedbackInfo.from_feedback(record.feedback),
        )


class BoundingBox(BaseModel):
    x: float
    y: float
    width: float
    height: float


class Prediction(BaseModel):
    """One detector prediction as produced by the client-side model."""
    label: str = Field(validation_alias=AliasChoices("label", "class"))
    confidence: float = Field(ge=0.0, le=1.0)
    bbox: Optional[BoundingBox] = None

    def to_sample(self) -> DetectionSample:
        box = None
        if self.bbox is not None:
            box = (self.bbox.x, self.bbox.y, self.bbox.width, self.bbox.height)
        return DetectionSample(label=self.label, confidence=self.confidence, bounding_box=box)


# =============================================================================
# Requests
# =============================================================================

class CreateSessionRequest(BaseModel):
    """Request to open a session and start the first game."""
    max_attempts: Optional[int] = Field(None, ge=1, le=10)
    start_polling: bool = Field(True, description="Run the background poller")


class DetectionsRequest(BaseModel):
    """Batch of predictions for the current frame."""
    predictions: list[Prediction] = Field(default_factory=list)


# =============================================================================
# Responses
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error body."""
    error: str
    error_code: ErrorCode
    details: Optional[dict] = None


class SnapshotResponse(BaseModel):
    """Read-only game snapshot. target_card is only set once the game is over."""
    session_id: str
    game_id: Optional[str] = None
    status: Optional[GameStatusValue] = None
    status_message: str
    candidate: Optional[CardInfo] = None
    fresh_detection: bool = False
    attempts_remaining: int
    max_attempts: int
    history: list[GuessInfo] = Field(default_factory=list)
    target_card: Optional[CardInfo] = None
    error: Optional[str] = None

    @classmethod
    def from_snapshot(cls, session_id: str, snapshot: GameSnapshot) -> SnapshotResponse:
        return cls(
            session_id=session_id,
            game_id=snapshot.game_id,
            status=GameStatusValue(snapshot.status.value) if snapshot.status else None,
            status_message=snapshot.status_message,
            candidate=CardInfo.from_card(snapshot.candidate) if snapshot.candidate else None,
            fresh_detection=snapshot.fresh_detection,
            attempts_remaining=snapshot.attempts_remaining,
            max_attempts=snapshot.max_attempts,
            history=[
                GuessInfo.from_record(i, record)
                for i, record in enumerate(snapshot.history, start=1)
            ],
            target_card=CardInfo.from_card(snapshot.target_card) if snapshot.target_card else None,
            error=snapshot.error,
        )


class DetectionsResponse(BaseModel):
    session_id: str
    received: int
    batches_received: int


class SubmitResponse(BaseModel):
    """Result of a submission. accepted=false means nothing happened."""
    accepted: bool
    reason: Optional[str] = None
    guess: Optional[GuessInfo] = None
    snapshot: SnapshotResponse


class EvaluateResponse(BaseModel):
    guess: CardInfo
    target: CardInfo
    feedback: FeedbackInfo


class SessionListResponse(BaseModel):
    sessions: list[str]
    count: int


class EndSessionResponse(BaseModel):
    success: bool
    session_id: str


class HealthResponse(BaseModel):
    status: str
    version: str
    active_sessions: int
