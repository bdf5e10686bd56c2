"""
Session Manager - Creates and tracks player sessions.

LIFECYCLE:
1. Client opens a session -> controller created, camera/model set up
2. Client posts detector predictions -> polled into candidates
3. Client submits guesses -> feedback, win/lose
4. Client asks for a new game -> game replaced wholesale, session kept
5. Client ends the session -> polling stopped, everything dropped

PERSISTENCE RULES:
- NO database
- Sessions are in-memory only and vanish on restart
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any
import random
import time
import uuid

from ..config import GameConfig
from ..logging_utils import get_logger
from ..vision.processor import CameraSource, PushDetector, StaticCamera
from .game_loop import ControllerState, GameController

logger = get_logger(__name__)


@dataclass
class Session:
    """
    One player's connection to the game.

    Contains:
    - The controller (which owns the current game)
    - The push detector the client feeds predictions into
    - Session metadata

    Survives across "play again"; the game inside it does not.
    """
    session_id: str
    controller: GameController
    detector: PushDetector
    created_at: float
    last_activity: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    def is_active(self) -> bool:
        """Check if the controller can still run games."""
        return self.controller.state == ControllerState.RUNNING

    def touch(self) -> None:
        self.last_activity = time.time()


class SessionManager:
    """
    Manages player sessions.

    Responsibilities:
    - Create sessions with their controller and detector
    - Look sessions up by ID
    - Close and drop ended or stale sessions

    No persistence - sessions are in-memory only.
    """

    def __init__(self, config: GameConfig | None = None, rng: random.Random | None = None):
        self.config = config or GameConfig()
        self.rng = rng or random.Random()
        self._sessions: dict[str, Session] = {}

    async def create_session(
        self,
        max_attempts: int | None = None,
        start_polling: bool = True,
        camera: CameraSource | None = None,
    ) -> Session:
        """
        Create a session and start its first game.

        Args:
            max_attempts: Override the configured attempt budget
            start_polling: Run the background poller (False for step-by-step clients)
            camera: Camera collaborator (frames stay on the client by default)

        Raises:
            SetupError: camera or model could not be set up
        """
        session_id = str(uuid.uuid4())
        config = self.config.with_overrides(max_attempts=max_attempts)

        detector = PushDetector()
        controller = GameController(
            detector=detector,
            camera=camera or StaticCamera(),
            config=config,
            rng=self.rng,
        )
        await controller.setup(start_game=False)
        controller.start_new_game(start_polling=start_polling)

        now = time.time()
        session = Session(
            session_id=session_id,
            controller=controller,
            detector=detector,
            created_at=now,
            last_activity=now,
            metadata={"start_polling": start_polling},
        )
        self._sessions[session_id] = session
        logger.info("Session %s created", session_id)
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        return self._sessions.get(session_id)

    async def end_session(self, session_id: str) -> bool:
        """
        End a session and clean up.

        Polling is stopped and the session removed from memory.
        """
        session = self._sessions.pop(session_id, None)
        if not session:
            return False

        await session.controller.close()
        logger.info("Session %s ended", session_id)
        return True

    def list_active_sessions(self) -> list[str]:
        """List IDs of active sessions."""
        return [
            sid for sid, session in self._sessions.items()
            if session.is_active()
        ]

    async def cleanup_stale_sessions(self, max_idle_seconds: int = 3600) -> list[str]:
        """
        End sessions idle for longer than max_idle_seconds.

        Called periodically to free memory.
        """
        now = time.time()
        stale = [
            sid for sid, session in self._sessions.items()
            if now - session.last_activity > max_idle_seconds
        ]
        for session_id in stale:
            await self.end_session(session_id)
        return stale

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.end_session(session_id)
