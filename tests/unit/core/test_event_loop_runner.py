"""Tests for EventLoopRunner."""

import asyncio
import threading

import pytest

from omnireporter.event_loop_runner import EventLoopRunner


@pytest.fixture
def runner() -> EventLoopRunner:
    runner = EventLoopRunner()
    yield runner
    if runner.is_running():
        runner.stop(timeout=2.0)


def test_initial_state(runner: EventLoopRunner):
    assert runner.loop is None
    assert not runner.is_running()


def test_start_runs_loop_in_named_thread(runner: EventLoopRunner):
    runner.start()

    assert runner.is_running()

    async def thread_name() -> str:
        return threading.current_thread().name

    assert runner.run(thread_name(), timeout=2.0) == "omnireporter-event-loop"


def test_start_twice_raises(runner: EventLoopRunner):
    runner.start()

    with pytest.raises(RuntimeError, match="already started"):
        runner.start()


def test_stop_without_start_raises(runner: EventLoopRunner):
    with pytest.raises(RuntimeError, match="not started"):
        runner.stop()


def test_schedule_when_stopped_raises_and_closes_coroutine(runner: EventLoopRunner):
    async def work() -> None:
        return None

    coroutine = work()

    with pytest.raises(RuntimeError, match="not running"):
        runner.schedule(coroutine)

    assert coroutine.cr_frame is None


def test_run_propagates_exceptions(runner: EventLoopRunner):
    runner.start()

    async def boom() -> None:
        raise ValueError("bad")

    with pytest.raises(ValueError, match="bad"):
        runner.run(boom(), timeout=2.0)


def test_stop_lets_in_flight_tasks_finish(runner: EventLoopRunner):
    runner.start()
    finished = threading.Event()

    async def spawn() -> None:
        async def upload() -> None:
            await asyncio.sleep(0.05)
            finished.set()

        asyncio.get_running_loop().create_task(upload())

    runner.run(spawn(), timeout=2.0)
    runner.stop(timeout=2.0)

    assert finished.is_set()
    assert not runner.is_running()


def test_restart_after_stop(runner: EventLoopRunner):
    runner.start()
    runner.stop(timeout=2.0)
    runner.start()

    async def value() -> int:
        return 7

    assert runner.run(value(), timeout=2.0) == 7
