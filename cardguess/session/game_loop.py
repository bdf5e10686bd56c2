"""
Game Controller - The detection-driven gameplay loop.

The loop:
1. Camera opens, detector model loads (setup)
2. A new game draws a hidden target card
3. The poller ticks the reconciler every poll interval
4. Each tick result updates the candidate guess
5. Player submits the candidate, engine scores it
6. Repeat from 3 until won or out of attempts

One controller, one event loop, one actor: submissions are
synchronous and never interleave with a tick's result application.
"""

from __future__ import annotations
from enum import Enum
from typing import Callable
import asyncio
import random

from ..config import GameConfig
from ..engine_core.action import RejectReason, TransitionResult
from ..engine_core.cards import Card
from ..engine_core.reducer import GameReducer
from ..engine_core.state import GameSession, GameSnapshot, GameStatus, StatusMessage
from ..logging_utils import get_logger
from ..vision.processor import CameraSource, Detector, SetupError
from ..vision.proposal import FacingMode, TickResult
from ..vision.reconciler import DetectionPoller, DetectionReconciler

logger = get_logger(__name__)


SnapshotListener = Callable[[GameSnapshot], None]


class ControllerState(Enum):
    """Lifecycle of the controller (not of a single game)."""
    CREATED = "created"  # Setup not run yet
    SETTING_UP = "setting_up"
    RUNNING = "running"  # A game exists
    SETUP_FAILED = "setup_failed"
    CLOSED = "closed"


class GameController:
    """
    Owns the current GameSession and everything tied to it.

    Usage:
        controller = GameController(detector, camera)
        controller.subscribe(render)

        await controller.setup()       # opens camera, loads model, starts a game
        ...
        controller.submit_guess()      # when the player presses submit
        ...
        controller.start_new_game()    # play again
        await controller.close()

    A new game replaces the session, reconciler and poller wholesale;
    results from the previous game's poller are discarded.
    """

    def __init__(
        self,
        detector: Detector,
        camera: CameraSource | None = None,
        config: GameConfig | None = None,
        rng: random.Random | None = None,
    ):
        self.detector = detector
        self.camera = camera
        self.config = config or GameConfig()
        self.rng = rng or random.Random()
        self.reducer = GameReducer()

        self.state = ControllerState.CREATED
        self.session: GameSession | None = None
        self.setup_error: str | None = None
        self.facing = self.config.facing_mode

        self._generation = 0
        self._reconciler: DetectionReconciler | None = None
        self._poller: DetectionPoller | None = None
        self._retired_pollers: list[DetectionPoller] = []
        self._manual_ticks: set[asyncio.Task] = set()
        self._listeners: list[SnapshotListener] = []

    # =========================================================================
    # Presentation
    # =========================================================================

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a snapshot listener. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> GameSnapshot:
        if self.session is None:
            if self.setup_error:
                return GameSnapshot.setup_failure(self.setup_error, self.config.max_attempts)
            return GameSnapshot(
                game_id=None,
                status=None,
                candidate=None,
                fresh_detection=False,
                attempts_remaining=self.config.max_attempts,
                max_attempts=self.config.max_attempts,
                history=(),
                status_message=StatusMessage.SCAN_A_CARD,
            )
        return self.session.snapshot()

    def _emit(self, snapshot: GameSnapshot | None = None) -> GameSnapshot:
        snapshot = snapshot or self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener failed")
        return snapshot

    # =========================================================================
    # Setup
    # =========================================================================

    async def setup(self, start_game: bool = True) -> GameSnapshot:
        """
        Open the camera, load the model, then start the first game.

        Raises SetupError with a human-readable message if either
        collaborator fails; the failure is also emitted once as an
        error snapshot. Calling setup() again retries.
        """
        self.state = ControllerState.SETTING_UP
        self.setup_error = None

        try:
            if self.camera is not None:
                logger.info(StatusMessage.CAMERA_ACCESS)
                await self._open_camera(self.facing)

            logger.info(StatusMessage.LOADING_MODEL)
            try:
                await self.detector.load()
            except Exception as e:
                raise SetupError("Model load failed") from e
        except SetupError as e:
            self.state = ControllerState.SETUP_FAILED
            self.setup_error = str(e)
            logger.error("Setup failed: %s (%s)", e, e.__cause__)
            self._emit(GameSnapshot.setup_failure(self.setup_error, self.config.max_attempts))
            raise

        self.state = ControllerState.RUNNING
        if start_game:
            return self.start_new_game()
        return self.snapshot()

    async def _open_camera(self, facing: FacingMode) -> None:
        try:
            await self.camera.close()
            await self.camera.open(facing)
        except Exception as e:
            raise SetupError("Camera access denied") from e
        self.facing = facing

    async def switch_camera(self) -> FacingMode:
        """
        Toggle between rear and front camera.

        If the other camera cannot be opened, the previous one is reopened
        and SetupError is re-raised. The game and its polling are left
        untouched either way.
        """
        if self.camera is None:
            raise SetupError("No camera configured")

        previous = self.facing
        try:
            await self._open_camera(previous.toggled())
        except SetupError as e:
            logger.warning("Camera switch failed: %s (%s)", e, e.__cause__)
            try:
                await self._open_camera(previous)
            except SetupError:
                logger.error("Could not reopen the %s camera", previous.value)
            raise

        logger.info("Switched camera to %s", self.facing.value)
        return self.facing

    # =========================================================================
    # Game transitions
    # =========================================================================

    def start_new_game(
        self,
        target_card: Card | None = None,
        start_polling: bool = True,
    ) -> GameSnapshot:
        """
        Replace the current game with a fresh one.

        Polling tied to the previous game is halted before anything
        is reset, so a stale tick cannot resurrect a cleared candidate.
        """
        if self.state in (ControllerState.SETUP_FAILED, ControllerState.CLOSED):
            raise RuntimeError(f"Cannot start a game: controller is {self.state.value}")

        self._halt_polling()
        self._generation += 1

        self.session = GameSession.create(
            max_attempts=self.config.max_attempts,
            rng=self.rng,
            target_card=target_card,
        )
        self._reconciler = DetectionReconciler(
            self.detector,
            frame_source=self._frame_source,
            confidence_threshold=self.config.confidence_threshold,
        )
        self.state = ControllerState.RUNNING

        logger.info("New game %s (%d attempts)", self.session.game_id, self.session.max_attempts)
        logger.debug("Target: %s", self.session.target_card)

        if start_polling:
            self._start_polling()

        return self._emit()

    def submit_guess(self) -> TransitionResult:
        """
        Submit the current candidate.

        A no-op (accepted=False) unless the game is READY_TO_SUBMIT.
        """
        if self.session is None:
            return TransitionResult.rejected(RejectReason.NOT_READY)

        result = self.reducer.submit_guess(self.session)
        if not result.accepted:
            return result

        for change in result.changes:
            logger.info(change)

        if result.is_terminal:
            self._halt_polling()
        elif self._reconciler is not None:
            self._reconciler.clear()

        self._emit()
        return result

    def apply_tick(self, result: TickResult, generation: int | None = None) -> TransitionResult:
        """
        Apply one reconciler result to the current game.

        Results from a previous game, or arriving after the game ended,
        are discarded.
        """
        if self.session is None:
            return TransitionResult.rejected(RejectReason.STALE_TICK)
        if generation is not None and generation != self._generation:
            logger.debug("Discarding tick from a previous game")
            return TransitionResult.rejected(RejectReason.STALE_TICK, self.session.status)
        if self.session.is_terminal:
            logger.debug("Discarding tick after game end")
            return TransitionResult.rejected(RejectReason.GAME_OVER, self.session.status)
        if result.skipped:
            return TransitionResult.applied(self.session.status)

        if result.fresh and result.candidate is not None:
            transition = self.reducer.apply_candidate(self.session, result.candidate)
        else:
            transition = self.reducer.apply_no_detection(self.session)

        for change in transition.changes:
            logger.info(change)

        self._emit()
        return transition

    async def tick_once(self) -> TransitionResult:
        """
        Run a single reconciliation tick now, outside the timer.

        No detection is requested once the game is over or the controller
        is closed. The tick runs as a task owned by the controller, so a
        new game or a terminal guess cancels it like a poller tick.
        """
        if self.state == ControllerState.CLOSED:
            return TransitionResult.rejected(RejectReason.CLOSED, self.status)
        if self._reconciler is None or self.session is None:
            return TransitionResult.rejected(RejectReason.NOT_READY)
        if self.session.is_terminal:
            return TransitionResult.rejected(RejectReason.GAME_OVER, self.session.status)

        generation = self._generation
        task = asyncio.get_running_loop().create_task(self._reconciler.tick())
        self._manual_ticks.add(task)
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            self._manual_ticks.discard(task)

        if task.cancelled():
            if self.state == ControllerState.CLOSED:
                return TransitionResult.rejected(RejectReason.CLOSED, self.status)
            if generation == self._generation and self.session.is_terminal:
                return TransitionResult.rejected(RejectReason.GAME_OVER, self.session.status)
            return TransitionResult.rejected(RejectReason.STALE_TICK, self.status)
        return self.apply_tick(task.result(), generation)

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def status(self) -> GameStatus | None:
        return self.session.status if self.session else None

    @property
    def reconciler(self) -> DetectionReconciler | None:
        return self._reconciler

    @property
    def poller(self) -> DetectionPoller | None:
        return self._poller

    @property
    def is_polling(self) -> bool:
        return self._poller is not None and self._poller.running

    # =========================================================================
    # Polling
    # =========================================================================

    def _frame_source(self):
        return self.camera.frame_source if self.camera is not None else None

    def _start_polling(self) -> None:
        generation = self._generation
        self._poller = DetectionPoller(
            self._reconciler,
            interval=self.config.poll_interval,
            on_result=lambda result: self.apply_tick(result, generation),
        )
        self._poller.start()

    def _halt_polling(self) -> None:
        self._retired_pollers = [
            p for p in self._retired_pollers if p.running or p.tick_in_flight
        ]
        if self._poller is not None:
            self._poller.stop()
            self._retired_pollers.append(self._poller)
            self._poller = None
        for task in self._manual_ticks:
            task.cancel()

    async def close(self) -> None:
        """Stop polling, release the camera, drop listeners."""
        self.state = ControllerState.CLOSED
        self._halt_polling()
        for poller in self._retired_pollers:
            await poller.wait_closed()
        self._retired_pollers.clear()
        if self._manual_ticks:
            await asyncio.gather(*self._manual_ticks, return_exceptions=True)

        if self.camera is not None:
            await self.camera.close()

        self._listeners.clear()
