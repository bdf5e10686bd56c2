"""
Session Module - Owns running games.

A GameController drives one game at a time:
- Sets up the camera and detector
- Polls detections into a candidate guess
- Applies submissions and emits snapshots
- Replaces the game wholesale on "play again"

A Session wraps a controller for API clients. Sessions are
EPHEMERAL: in-memory only, gone when ended or on restart.
"""

from .manager import SessionManager, Session
from .game_loop import GameController, ControllerState

__all__ = [
    "SessionManager",
    "Session",
    "GameController",
    "ControllerState",
]
