"""
FastAPI Application - REST/WebSocket presentation surface.

Endpoints:
    POST   /api/v1/sessions                    Open a session, start a game
    GET    /api/v1/sessions                    List active sessions
    GET    /api/v1/sessions/{id}               Current snapshot
    DELETE /api/v1/sessions/{id}               End session
    POST   /api/v1/sessions/{id}/detections    Post client-side predictions
    POST   /api/v1/sessions/{id}/tick          Run one reconciliation tick now
    POST   /api/v1/sessions/{id}/submit        Submit the current candidate
    POST   /api/v1/sessions/{id}/new-game      Play again
    WS     /api/v1/sessions/{id}/ws            Snapshot stream
    GET    /api/v1/evaluate                    Score two labels

Detection Flow:
    1. The client runs the detection model on its camera frames
    2. It posts each batch of predictions to /detections
    3. The session's poller consumes the latest batch every poll interval
    4. Snapshots are pushed over the WebSocket after every tick

All responses are JSON with explicit Pydantic schemas.
"""

from contextlib import asynccontextmanager
from typing import Annotated, Optional
import asyncio
import json
import os

from .. import __version__
from ..logging_utils import get_logger, setup_logging

# Environment configuration
CARDGUESS_ENV = os.getenv("CARDGUESS_ENV", "development")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

logger = get_logger(__name__)


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    try:
        from fastapi import Body, FastAPI, Query, WebSocket, WebSocketDisconnect
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import JSONResponse
    except ImportError:
        raise ImportError(
            "FastAPI not installed. Install with: pip install fastapi uvicorn"
        )

    from ..vision.processor import SetupError
    from .service import APIService
    from .schemas import (
        CreateSessionRequest,
        DetectionsRequest,
        DetectionsResponse,
        EndSessionResponse,
        ErrorCode,
        ErrorResponse,
        EvaluateResponse,
        HealthResponse,
        SessionListResponse,
        SnapshotResponse,
        SubmitResponse,
    )

    api_service = service or APIService()

    @asynccontextmanager
    async def lifespan(app):
        setup_logging()
        logger.info("cardguess API starting (%s)", CARDGUESS_ENV)
        yield
        await api_service.close()

    app = FastAPI(
        title="Card Guesser API",
        description="""
Mastermind-style card guessing driven by live card detection.

## Game Flow

1. `POST /sessions` starts a game with a hidden target card
2. Post detector predictions to `/detections`; the best confident
   card label becomes the **candidate** and stays until replaced
3. `POST /submit` scores the candidate: rank `HIT`/`HIGHER`/`LOWER`,
   color match, suit match
4. Find the card within the attempt budget to win

## Error Codes

| Code | Description |
|------|-------------|
| `SESSION_NOT_FOUND` | Session does not exist |
| `SETUP_FAILED` | Camera or model could not be set up |
| `INVALID_LABEL` | Label is not a card |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    def respond(result, status_code: int = 404):
        """Pass successful responses through, turn ErrorResponse into JSON."""
        if isinstance(result, ErrorResponse):
            return make_error_response(result.error_code, result.error, status_code=status_code)
        return result

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions",
        response_model=SnapshotResponse,
        responses={503: {"model": ErrorResponse, "description": "Setup failed"}},
        tags=["Sessions"],
        summary="Open a session and start a game",
    )
    async def create_session(
        request: Annotated[Optional[CreateSessionRequest], Body()] = None,
    ):
        try:
            return await api_service.create_session(request or CreateSessionRequest())
        except SetupError as e:
            return make_error_response(ErrorCode.SETUP_FAILED, str(e), status_code=503)

    @app.get(
        "/api/v1/sessions",
        response_model=SessionListResponse,
        tags=["Sessions"],
        summary="List active sessions",
    )
    async def list_sessions() -> SessionListResponse:
        sessions = api_service.list_sessions()
        return SessionListResponse(sessions=sessions, count=len(sessions))

    @app.get(
        "/api/v1/sessions/{session_id}",
        response_model=SnapshotResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Get the current game snapshot",
    )
    async def get_session(session_id: str):
        return respond(api_service.get_snapshot(session_id))

    @app.delete(
        "/api/v1/sessions/{session_id}",
        response_model=EndSessionResponse,
        tags=["Sessions"],
        summary="End a session",
    )
    async def end_session(session_id: str) -> EndSessionResponse:
        success = await api_service.end_session(session_id)
        return EndSessionResponse(success=success, session_id=session_id)

    # =========================================================================
    # Game Loop Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions/{session_id}/detections",
        response_model=DetectionsResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game Loop"],
        summary="Post detector predictions for the current frame",
    )
    async def post_detections(session_id: str, request: DetectionsRequest):
        return respond(api_service.post_detections(session_id, request))

    @app.post(
        "/api/v1/sessions/{session_id}/tick",
        response_model=SnapshotResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game Loop"],
        summary="Run one reconciliation tick now",
    )
    async def tick(session_id: str):
        return respond(await api_service.tick(session_id))

    @app.post(
        "/api/v1/sessions/{session_id}/submit",
        response_model=SubmitResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game Loop"],
        summary="Submit the current candidate",
    )
    async def submit_guess(session_id: str):
        """
        Submit the candidate card.

        Submitting with no candidate, or after the game is over, is not
        an error: the response has `accepted=false` and a reason.
        """
        return respond(api_service.submit_guess(session_id))

    @app.post(
        "/api/v1/sessions/{session_id}/new-game",
        response_model=SnapshotResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game Loop"],
        summary="Start a new game in this session",
    )
    async def new_game(session_id: str):
        return respond(api_service.new_game(session_id))

    @app.get(
        "/api/v1/evaluate",
        response_model=EvaluateResponse,
        responses={400: {"model": ErrorResponse}},
        tags=["Cards"],
        summary="Score a guess label against a target label",
    )
    async def evaluate_labels(
        guess: Annotated[str, Query(description="Guess label, e.g. 10h")],
        target: Annotated[str, Query(description="Target label, e.g. 7d")],
    ):
        return respond(api_service.evaluate_labels(guess, target), status_code=400)

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/api/v1/sessions/{session_id}/ws")
    async def websocket_endpoint(websocket: WebSocket, session_id: str):
        """
        WebSocket for real-time snapshots.

        Messages sent:
        - {"type": "snapshot", "data": {...}} after every tick or transition
        - {"type": "pong"} in reply to {"type": "ping"}

        Messages accepted:
        - {"type": "ping"}
        - {"type": "submit"}
        """
        await websocket.accept()

        queue: asyncio.Queue = asyncio.Queue()
        unsubscribe = api_service.subscribe(session_id, queue.put_nowait)
        if unsubscribe is None:
            await websocket.send_json({
                "type": "error",
                "error_code": ErrorCode.SESSION_NOT_FOUND.value,
            })
            await websocket.close()
            return

        async def forward_snapshots():
            while True:
                snapshot = await queue.get()
                await websocket.send_json({
                    "type": "snapshot",
                    "data": snapshot.model_dump(mode="json"),
                })

        initial = api_service.get_snapshot(session_id)
        queue.put_nowait(initial)
        sender = asyncio.create_task(forward_snapshots())

        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    message = json.loads(raw)
                except ValueError:
                    await websocket.send_json({
                        "type": "error",
                        "error_code": ErrorCode.VALIDATION_ERROR.value,
                        "error": "Message is not valid JSON",
                    })
                    continue

                message_type = message.get("type") if isinstance(message, dict) else None
                if message_type == "ping":
                    await websocket.send_json({"type": "pong"})
                elif message_type == "submit":
                    api_service.submit_guess(session_id)
                else:
                    await websocket.send_json({
                        "type": "error",
                        "error_code": ErrorCode.VALIDATION_ERROR.value,
                        "error": f"Unknown message type: {message_type}",
                    })
        except WebSocketDisconnect:
            pass
        finally:
            unsubscribe()
            sender.cancel()
            await asyncio.gather(sender, return_exceptions=True)

    # =========================================================================
    # System Endpoints
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
    )
    async def health_check() -> HealthResponse:
        return HealthResponse(
            status="healthy",
            version=__version__,
            active_sessions=len(api_service.list_sessions()),
        )

    @app.get("/", tags=["System"])
    async def root():
        return {
            "name": "Card Guesser API",
            "version": __version__,
            "docs": "/api/docs",
            "health": "/health",
        }

    return app


def build_default_app():
    """
    App for `uvicorn cardguess.api.app:app`.

    Returns None when FastAPI is missing or the CARDGUESS_* environment
    is malformed; importing this module never fails on either.
    """
    try:
        return create_app()
    except ImportError:
        # FastAPI not installed
        return None
    except ValueError as e:
        logger.error("Invalid configuration, API app not created: %s", e)
        return None


# For running directly: uvicorn cardguess.api.app:app
app = build_default_app()
