"""
API Module - Client interface.

Exposes the game via REST and WebSocket. The client:
1. Opens a session (a game starts immediately)
2. Runs the detection model on its own camera frames
3. Posts predictions; the engine keeps a sticky candidate card
4. Submits guesses and renders the feedback snapshots
5. Starts a new game or ends the session

All state is session-scoped and in-memory.
"""

from .schemas import (
    # Requests
    CreateSessionRequest,
    DetectionsRequest,
    Prediction,
    # Responses
    SnapshotResponse,
    SubmitResponse,
    DetectionsResponse,
    EvaluateResponse,
    ErrorResponse,
    # Shared
    CardInfo,
    FeedbackInfo,
    GuessInfo,
    ErrorCode,
)
from .service import APIService
from .app import create_app

__all__ = [
    # Requests
    "CreateSessionRequest",
    "DetectionsRequest",
    "Prediction",
    # Responses
    "SnapshotResponse",
    "SubmitResponse",
    "DetectionsResponse",
    "EvaluateResponse",
    "ErrorResponse",
    # Shared
    "CardInfo",
    "FeedbackInfo",
    "GuessInfo",
    "ErrorCode",
    # Service
    "APIService",
    "create_app",
]
