"""
API Service - Business logic layer between API and engine.

The service:
1. Translates API requests to controller calls
2. Manages sessions
3. Feeds client-side predictions to the detector
4. Formats snapshots for the client

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Union

from ..config import GameConfig
from ..engine_core.cards import Card
from ..engine_core.feedback import evaluate
from ..engine_core.state import GameSnapshot
from ..session import Session, SessionManager
from .schemas import (
    CardInfo,
    CreateSessionRequest,
    DetectionsRequest,
    DetectionsResponse,
    ErrorCode,
    ErrorResponse,
    EvaluateResponse,
    FeedbackInfo,
    GuessInfo,
    SnapshotResponse,
    SubmitResponse,
)


def _not_found(session_id: str) -> ErrorResponse:
    return ErrorResponse(
        error=f"Session not found: {session_id}",
        error_code=ErrorCode.SESSION_NOT_FOUND,
    )


@dataclass
class APIService:
    """
    Main API service.

    Usage:
        service = APIService()

        snapshot = await service.create_session(CreateSessionRequest())
        service.post_detections(snapshot.session_id, DetectionsRequest(...))
        await service.tick(snapshot.session_id)
        result = service.submit_guess(snapshot.session_id)

    Lookups on unknown sessions return ErrorResponse instead of raising.
    """
    config: GameConfig = field(default_factory=GameConfig.from_env)
    session_manager: SessionManager | None = None

    def __post_init__(self):
        if self.session_manager is None:
            self.session_manager = SessionManager(config=self.config)

    def _session(self, session_id: str) -> Session | None:
        session = self.session_manager.get_session(session_id)
        if session:
            session.touch()
        return session

    async def create_session(self, request: CreateSessionRequest) -> SnapshotResponse:
        """
        Open a session and start its first game.

        Raises SetupError if the camera or model cannot be set up.
        """
        session = await self.session_manager.create_session(
            max_attempts=request.max_attempts,
            start_polling=request.start_polling,
        )
        return self._snapshot_response(session)

    def get_snapshot(self, session_id: str) -> Union[SnapshotResponse, ErrorResponse]:
        session = self._session(session_id)
        if not session:
            return _not_found(session_id)
        return self._snapshot_response(session)

    def post_detections(
        self,
        session_id: str,
        request: DetectionsRequest,
    ) -> Union[DetectionsResponse, ErrorResponse]:
        """
        Hand a batch of client-side predictions to the session's detector.

        The batch is consumed by the next poll tick.
        """
        session = self._session(session_id)
        if not session:
            return _not_found(session_id)

        session.detector.push(p.to_sample() for p in request.predictions)
        return DetectionsResponse(
            session_id=session_id,
            received=len(request.predictions),
            batches_received=session.detector.batches_received,
        )

    async def tick(self, session_id: str) -> Union[SnapshotResponse, ErrorResponse]:
        """Run one reconciliation tick immediately."""
        session = self._session(session_id)
        if not session:
            return _not_found(session_id)

        await session.controller.tick_once()
        return self._snapshot_response(session)

    def submit_guess(self, session_id: str) -> Union[SubmitResponse, ErrorResponse]:
        session = self._session(session_id)
        if not session:
            return _not_found(session_id)

        result = session.controller.submit_guess()
        guess = None
        if result.record is not None:
            attempt = len(session.controller.session.history)
            guess = GuessInfo.from_record(attempt, result.record)

        return SubmitResponse(
            accepted=result.accepted,
            reason=result.reason.value if result.reason else None,
            guess=guess,
            snapshot=self._snapshot_response(session),
        )

    def new_game(self, session_id: str) -> Union[SnapshotResponse, ErrorResponse]:
        """Replace the session's game with a fresh one."""
        session = self._session(session_id)
        if not session:
            return _not_found(session_id)

        session.controller.start_new_game(
            start_polling=session.metadata.get("start_polling", True),
        )
        return self._snapshot_response(session)

    async def end_session(self, session_id: str) -> bool:
        return await self.session_manager.end_session(session_id)

    def list_sessions(self) -> list[str]:
        return self.session_manager.list_active_sessions()

    def subscribe(
        self,
        session_id: str,
        listener: Callable[[SnapshotResponse], None],
    ) -> Callable[[], None] | None:
        """Forward every snapshot of a session to listener. None if no session."""
        session = self._session(session_id)
        if not session:
            return None

        def forward(snapshot: GameSnapshot):
            listener(SnapshotResponse.from_snapshot(session_id, snapshot))

        return session.controller.subscribe(forward)

    def evaluate_labels(self, guess_label: str, target_label: str) -> Union[EvaluateResponse, ErrorResponse]:
        """Score two labels without a session (for clients showing hints)."""
        try:
            guess = Card.from_label(guess_label)
            target = Card.from_label(target_label)
        except ValueError as e:
            return ErrorResponse(error=str(e), error_code=ErrorCode.INVALID_LABEL)

        return EvaluateResponse(
            guess=CardInfo.from_card(guess),
            target=CardInfo.from_card(target),
            feedback=FeedbackInfo.from_feedback(evaluate(guess, target)),
        )

    async def close(self) -> None:
        await self.session_manager.close_all()

    def _snapshot_response(self, session: Session) -> SnapshotResponse:
        return SnapshotResponse.from_snapshot(session.session_id, session.controller.snapshot())
