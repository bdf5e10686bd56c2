"""
Integration tests - End-to-end controller workflow.

Tests the complete flow:
1. Set up camera and detector
2. Start a game
3. Tick detections into candidates
4. Submit guesses until won or lost
5. Play again / tear down
"""

import asyncio

import pytest

from ..engine_core.action import RejectReason
from ..engine_core.state import GameStatus, StatusMessage
from ..session import ControllerState, SessionManager
from ..vision.processor import ScriptedDetector, SetupError, StaticCamera
from ..vision.proposal import FacingMode, TickResult
from .conftest import GatedDetector, card, drain, sample


class FrontCameraUnavailable(StaticCamera):
    """Rear camera works, front camera is refused."""

    async def open(self, facing):
        if facing == FacingMode.USER:
            raise PermissionError("front camera unavailable")
        await super().open(facing)


class TestFullGameFlow:
    """Tests for complete games driven one tick at a time."""

    def test_win_on_second_guess(self, make_controller):
        detector = ScriptedDetector([[sample("10h")], [], [sample("7d")]])
        controller = make_controller(detector)

        async def run():
            await controller.setup(start_game=False)
            controller.start_new_game(target_card=card("7d"), start_polling=False)

            await controller.tick_once()
            assert controller.status == GameStatus.READY_TO_SUBMIT
            first = controller.submit_guess()
            assert first.accepted
            assert controller.status == GameStatus.SCANNING
            assert controller.reconciler.candidate is None

            await controller.tick_once()
            assert controller.status == GameStatus.SCANNING
            assert controller.snapshot().candidate is None

            await controller.tick_once()
            second = controller.submit_guess()
            await controller.close()
            return second

        second = asyncio.run(run())

        assert second.is_terminal
        snapshot = controller.snapshot()
        assert snapshot.status == GameStatus.WON
        assert snapshot.status_message == StatusMessage.YOU_WIN
        assert snapshot.target_card == card("7d")
        assert [r.card for r in snapshot.history] == [card("10h"), card("7d")]

    def test_lose_after_three_misses(self, make_controller):
        detector = ScriptedDetector([[sample("10h")], [sample("2c")], [sample("Kd")]])
        controller = make_controller(detector)

        async def run():
            await controller.setup(start_game=False)
            controller.start_new_game(target_card=card("7d"), start_polling=False)
            for _ in range(3):
                await controller.tick_once()
                controller.submit_guess()
            await controller.close()

        asyncio.run(run())

        snapshot = controller.snapshot()
        assert snapshot.status == GameStatus.LOST
        assert snapshot.attempts_remaining == 0
        assert snapshot.status_message == StatusMessage.GAME_OVER
        assert snapshot.target_card == card("7d")

    def test_submit_before_detection_is_ignored(self, make_controller):
        controller = make_controller()

        async def run():
            await controller.setup(start_game=False)
            controller.start_new_game(start_polling=False)
            return controller.submit_guess()

        result = asyncio.run(run())

        assert not result.accepted
        assert result.reason == RejectReason.NOT_READY
        assert controller.snapshot().attempts_remaining == 3

    def test_listeners_receive_snapshots(self, make_controller):
        detector = ScriptedDetector([[sample("Qs")]])
        controller = make_controller(detector)
        seen = []
        unsubscribe = controller.subscribe(seen.append)

        async def run():
            await controller.setup(start_game=False)
            controller.start_new_game(start_polling=False)
            await controller.tick_once()
            unsubscribe()
            await controller.tick_once()

        asyncio.run(run())

        assert len(seen) == 2
        assert seen[-1].candidate == card("Qs")
        assert seen[-1].fresh_detection

    def test_failing_listener_does_not_break_the_game(self, make_controller):
        controller = make_controller(ScriptedDetector([[sample("Qs")]]))

        def broken(snapshot):
            raise RuntimeError("render failed")

        controller.subscribe(broken)

        async def run():
            await controller.setup(start_game=False)
            controller.start_new_game(start_polling=False)
            await controller.tick_once()

        asyncio.run(run())
        assert controller.status == GameStatus.READY_TO_SUBMIT


class TestPolling:
    """Tests for the background poller wired to the controller."""

    def test_poller_reaches_ready_to_submit(self, make_controller):
        detector = ScriptedDetector([[sample("5c")]])
        controller = make_controller(detector, poll_interval_ms=10)

        async def run():
            await controller.setup()
            assert controller.is_polling
            for _ in range(50):
                if controller.status == GameStatus.READY_TO_SUBMIT:
                    break
                await asyncio.sleep(0.01)
            await controller.close()

        asyncio.run(run())

        assert controller.status == GameStatus.READY_TO_SUBMIT
        assert controller.snapshot().candidate == card("5c")
        assert not controller.is_polling

    def test_polling_stops_when_game_ends(self, make_controller):
        detector = ScriptedDetector([[sample("7d")]])
        controller = make_controller(detector)

        async def run():
            await controller.setup(start_game=False)
            controller.start_new_game(target_card=card("7d"))
            assert controller.is_polling
            await controller.tick_once()
            controller.submit_guess()
            polling_after = controller.is_polling
            await controller.close()
            return polling_after

        assert asyncio.run(run()) is False
        assert controller.status == GameStatus.WON

    def test_tick_after_game_end_is_discarded(self, make_controller):
        controller = make_controller(ScriptedDetector([[sample("7d")]]))

        async def run():
            await controller.setup(start_game=False)
            controller.start_new_game(target_card=card("7d"), start_polling=False)
            await controller.tick_once()
            controller.submit_guess()
            return controller.apply_tick(TickResult(candidate=card("2c"), fresh=True))

        result = asyncio.run(run())

        assert result.reason == RejectReason.GAME_OVER
        assert controller.snapshot().candidate == card("7d")

    def test_stale_tick_from_previous_game_is_discarded(self, make_controller):
        detector = GatedDetector()
        controller = make_controller(detector)

        async def run():
            await controller.setup(start_game=False)
            controller.start_new_game(start_polling=False)

            pending = asyncio.create_task(controller.tick_once())
            await drain()
            assert detector.calls == 1

            controller.start_new_game(start_polling=False)
            detector.release([sample("Jd")])
            result = await pending
            await controller.close()
            return result

        result = asyncio.run(run())

        assert result.reason == RejectReason.STALE_TICK
        assert controller.snapshot().candidate is None
        assert controller.status == GameStatus.SCANNING

    def test_new_game_cancels_in_flight_poll(self, make_controller):
        detector = GatedDetector()
        controller = make_controller(detector)

        async def run():
            await controller.setup(start_game=False)
            controller.start_new_game()
            old_poller = controller.poller
            old_poller.fire()
            await drain()
            assert old_poller.tick_in_flight

            controller.start_new_game(start_polling=False)
            await old_poller.wait_closed()
            state = (old_poller.running, old_poller.tick_in_flight)
            await controller.close()
            return state

        assert asyncio.run(run()) == (False, False)
        assert controller.snapshot().candidate is None


    def test_new_game_cancels_pending_manual_tick(self, make_controller):
        """A manual tick from the previous game never overlaps the next request."""
        detector = GatedDetector()
        controller = make_controller(detector)

        async def run():
            await controller.setup(start_game=False)
            controller.start_new_game(start_polling=False)

            first = asyncio.create_task(controller.tick_once())
            await drain()
            controller.start_new_game(start_polling=False)

            second = asyncio.create_task(controller.tick_once())
            await drain()
            assert detector.calls == 2
            assert detector.active == 1

            detector.release([sample("Qh")])
            results = (await first, await second)
            snapshot = controller.snapshot()
            await controller.close()
            return results, snapshot

        (first, second), snapshot = asyncio.run(run())

        assert detector.max_active == 1
        assert first.reason == RejectReason.STALE_TICK
        assert second.accepted
        assert snapshot.candidate == card("Qh")

    def test_no_detection_requested_after_game_over(self, make_controller):
        detector = ScriptedDetector([[sample("7d")], [sample("2c")]])
        controller = make_controller(detector)

        async def run():
            await controller.setup(start_game=False)
            controller.start_new_game(target_card=card("7d"), start_polling=False)
            await controller.tick_once()
            controller.submit_guess()
            return await controller.tick_once()

        result = asyncio.run(run())

        assert result.reason == RejectReason.GAME_OVER
        assert detector.calls == 1
        assert detector.remaining == 1
        assert controller.snapshot().candidate == card("7d")

    def test_no_detection_requested_after_close(self, make_controller):
        detector = ScriptedDetector([[sample("7d")]])
        controller = make_controller(detector)

        async def run():
            await controller.setup(start_game=False)
            controller.start_new_game(start_polling=False)
            await controller.close()
            return await controller.tick_once()

        result = asyncio.run(run())

        assert result.reason == RejectReason.CLOSED
        assert detector.calls == 0

    def test_close_cancels_pending_manual_tick(self, make_controller):
        detector = GatedDetector()
        controller = make_controller(detector)

        async def run():
            await controller.setup(start_game=False)
            controller.start_new_game(start_polling=False)
            pending = asyncio.create_task(controller.tick_once())
            await drain()
            await controller.close()
            return await pending

        result = asyncio.run(run())

        assert result.reason == RejectReason.CLOSED
        assert detector.active == 0


class TestSetup:
    """Tests for camera/model setup failures."""

    def test_camera_denied(self, make_controller):
        controller = make_controller(camera=StaticCamera(fail_on_open=True))
        seen = []
        controller.subscribe(seen.append)

        async def run():
            with pytest.raises(SetupError, match="Camera access denied"):
                await controller.setup()

        asyncio.run(run())

        assert controller.state == ControllerState.SETUP_FAILED
        assert len(seen) == 1
        assert seen[0].error == "Camera access denied"
        assert controller.snapshot().error == "Camera access denied"
        with pytest.raises(RuntimeError):
            controller.start_new_game(start_polling=False)

    def test_model_load_failure(self, make_controller):
        controller = make_controller(detector=ScriptedDetector(fail_on_load=True))

        async def run():
            with pytest.raises(SetupError, match="Model load failed"):
                await controller.setup()

        asyncio.run(run())

        assert controller.setup_error == "Model load failed"
        assert controller.session is None

    def test_setup_starts_a_game(self, make_controller):
        detector = ScriptedDetector()
        controller = make_controller(detector)

        async def run():
            snapshot = await controller.setup()
            await controller.close()
            return snapshot

        snapshot = asyncio.run(run())

        assert detector.loaded
        assert snapshot.status == GameStatus.SCANNING
        assert snapshot.attempts_remaining == 3
        assert controller.state == ControllerState.CLOSED

    def test_failed_switch_reopens_previous_camera(self, make_controller):
        camera = FrontCameraUnavailable()
        controller = make_controller(camera=camera)

        async def run():
            await controller.setup(start_game=False)
            controller.start_new_game(start_polling=False)
            with pytest.raises(SetupError, match="Camera access denied"):
                await controller.switch_camera()

        asyncio.run(run())

        assert controller.facing == FacingMode.ENVIRONMENT
        assert camera.facing == FacingMode.ENVIRONMENT
        assert camera.open_count == 2
        assert controller.state == ControllerState.RUNNING
        assert controller.status == GameStatus.SCANNING

    def test_switch_camera(self, make_controller):
        camera = StaticCamera()
        controller = make_controller(camera=camera)

        async def run():
            await controller.setup(start_game=False)
            return await controller.switch_camera()

        assert asyncio.run(run()) == FacingMode.USER
        assert camera.facing == FacingMode.USER
        assert camera.open_count == 2


class TestSessionManager:
    """Tests for session lifecycle."""

    def test_create_and_end_session(self, config):
        manager = SessionManager(config)

        async def run():
            session = await manager.create_session(max_attempts=5, start_polling=False)
            active = manager.list_active_sessions()
            ended = await manager.end_session(session.session_id)
            again = await manager.end_session(session.session_id)
            return session, active, ended, again

        session, active, ended, again = asyncio.run(run())

        assert active == [session.session_id]
        assert session.controller.snapshot().max_attempts == 5
        assert ended
        assert not again
        assert manager.get_session(session.session_id) is None

    def test_pushed_predictions_feed_the_game(self, config):
        manager = SessionManager(config)

        async def run():
            session = await manager.create_session(start_polling=False)
            session.detector.push_predictions([{"class": "8s", "confidence": 0.8}])
            await session.controller.tick_once()
            snapshot = session.controller.snapshot()
            await manager.close_all()
            return snapshot

        snapshot = asyncio.run(run())

        assert snapshot.status == GameStatus.READY_TO_SUBMIT
        assert snapshot.candidate == card("8s")

    def test_cleanup_stale_sessions(self, config):
        manager = SessionManager(config)

        async def run():
            fresh = await manager.create_session(start_polling=False)
            stale = await manager.create_session(start_polling=False)
            stale.last_activity -= 7200
            removed = await manager.cleanup_stale_sessions(max_idle_seconds=3600)
            remaining = manager.list_active_sessions()
            await manager.close_all()
            return fresh, stale, removed, remaining

        fresh, stale, removed, remaining = asyncio.run(run())

        assert removed == [stale.session_id]
        assert remaining == [fresh.session_id]
