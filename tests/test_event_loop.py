"""
Unit tests for the polling loop.
"""
import time
from unittest.mock import MagicMock, patch

from spotgrid.exceptions import StateInconsistency
from spotgrid.models.grid import TickReport
from spotgrid.runtime.event_loop import PollingLoop

from conftest import SYMBOL


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestPollingLoop:
    """Test loop scheduling."""

    def test_intervals_default_to_runtime_config(self, controller):
        loop = PollingLoop(controller)

        assert loop.poll_interval == 0.01
        assert loop.health_interval == 60.0

    def test_runs_max_ticks(self, controller):
        controller.start()
        loop = PollingLoop(controller, poll_interval=0)

        loop.run_until_stopped(max_ticks=3)

        assert loop.tick_count == 3

    def test_exits_when_controller_not_running(self, controller):
        loop = PollingLoop(controller, poll_interval=0)

        loop.run_until_stopped()

        assert loop.tick_count == 0

    def test_health_check_on_first_iteration_only(self, controller):
        controller.start()
        loop = PollingLoop(controller, poll_interval=0, health_interval=3600)

        with patch.object(controller, "health_check", return_value=True) as health_check:
            loop.run_until_stopped(max_ticks=3)

        assert health_check.call_count == 1

    def test_fills_processed_by_loop(self, controller, sim):
        controller.start()
        sim.fill_order(controller.run.store.find_level(40000.0).buy_order_ref)
        loop = PollingLoop(controller, poll_interval=0)

        loop.run_until_stopped(max_ticks=1)

        sells = [o for o in sim.get_open_orders(SYMBOL) if o.side.value == "sell"]
        assert len(sells) == 1

    def test_tick_error_does_not_stop_loop(self, controller):
        controller.start()
        loop = PollingLoop(controller, poll_interval=0)

        with patch.object(
            controller, "tick", side_effect=[StateInconsistency("bad level"), TickReport()],
        ):
            loop.run_until_stopped(max_ticks=1)

        assert loop.error_count == 1
        assert loop.tick_count == 1

    def test_on_tick_callback(self, controller):
        controller.start()
        callback = MagicMock()
        loop = PollingLoop(controller, poll_interval=0, on_tick=callback)

        loop.run_until_stopped(max_ticks=2)

        assert callback.call_count == 2
        assert isinstance(callback.call_args[0][0], TickReport)

    def test_background_thread_stops(self, controller):
        controller.start()
        loop = PollingLoop(controller, poll_interval=0.01)

        loop.start_background()
        assert wait_for(lambda: loop.tick_count >= 2)

        loop.stop(timeout=5)

        assert not loop.is_running
        assert loop.stop_requested

    def test_loop_ends_after_controller_stop(self, controller):
        controller.start()
        loop = PollingLoop(controller, poll_interval=0.01)
        loop.start_background()
        assert wait_for(lambda: loop.tick_count >= 1)

        controller.stop()

        assert wait_for(lambda: not loop.is_running)
