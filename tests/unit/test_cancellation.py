"""Tests for cancellation state machine."""

import asyncio
import os
import signal
from unittest.mock import MagicMock

import pytest

from boostsec.batch_runner.cancellation import (
    CancellationController,
    CancellationState,
)


class FakeChild:
    """Child process whose exit is controlled by the test."""

    pid = 4242

    def __init__(self) -> None:
        """Create the pending exit future."""
        self.exit: asyncio.Future[int] = asyncio.get_running_loop().create_future()
        self.wait_calls = 0

    async def wait(self) -> int:
        """Wait for the test to set the exit status."""
        self.wait_calls += 1
        return await self.exit


def test_initial_state() -> None:
    """A new controller is running with no flags set."""
    controller = CancellationController(kill_tree=MagicMock())

    assert controller.state is CancellationState.RUNNING
    assert controller.interrupted is False
    assert controller.stop is False


def test_first_interrupt_requests_stop(capsys: pytest.CaptureFixture[str]) -> None:
    """The first interrupt stops the loop but leaves the test running."""
    kill_tree = MagicMock()
    controller = CancellationController(kill_tree=kill_tree)
    controller.attach(4242)

    controller.handle_interrupt()

    assert controller.state is CancellationState.INTERRUPT_REQUESTED
    assert controller.stop is True
    assert controller.interrupted is True
    kill_tree.assert_not_called()
    assert "waiting for current test to complete" in capsys.readouterr().err


def test_second_interrupt_kills_process_tree(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """The second interrupt kills the attached child's process tree."""
    kill_tree = MagicMock()
    controller = CancellationController(kill_tree=kill_tree)
    controller.attach(4242)

    controller.handle_interrupt()
    controller.handle_interrupt()

    assert controller.state is CancellationState.KILL_REQUESTED
    assert controller.stop is True
    kill_tree.assert_called_once_with(4242)
    assert "exiting immediately" in capsys.readouterr().err


def test_second_interrupt_without_child() -> None:
    """Escalating between tests has no process to kill."""
    kill_tree = MagicMock()
    controller = CancellationController(kill_tree=kill_tree)
    controller.attach(4242)
    controller.detach()

    controller.handle_interrupt()
    controller.handle_interrupt()

    assert controller.state is CancellationState.KILL_REQUESTED
    kill_tree.assert_not_called()


def test_attach_after_second_interrupt_kills_at_once() -> None:
    """A child started after the operator asked to exit is killed."""
    kill_tree = MagicMock()
    controller = CancellationController(kill_tree=kill_tree)
    controller.handle_interrupt()
    controller.handle_interrupt()

    controller.attach(4242)

    kill_tree.assert_called_once_with(4242)


def test_attach_after_first_interrupt_does_not_kill() -> None:
    """After one interrupt the next child still runs normally."""
    kill_tree = MagicMock()
    controller = CancellationController(kill_tree=kill_tree)
    controller.handle_interrupt()

    controller.attach(4242)

    kill_tree.assert_not_called()


async def test_wait_for_leaves_no_pending_tasks() -> None:
    """wait_for collects its interrupt waiters before returning."""
    controller = CancellationController(kill_tree=MagicMock())
    child = FakeChild()
    loop = asyncio.get_running_loop()
    loop.call_later(0.01, controller.handle_interrupt)
    loop.call_later(0.05, child.exit.set_result, 0)

    await controller.wait_for(child)  # type: ignore[arg-type]

    assert asyncio.all_tasks() == {asyncio.current_task()}


async def test_wait_for_returns_exit_status() -> None:
    """wait_for returns the child's status when nothing interrupts it."""
    controller = CancellationController(kill_tree=MagicMock())
    child = FakeChild()
    child.exit.set_result(0)

    assert await controller.wait_for(child) == 0  # type: ignore[arg-type]
    assert controller.interrupted is False


async def test_wait_for_rewaits_after_interrupt() -> None:
    """An interrupt preempts the wait but not the child's real status."""
    controller = CancellationController(kill_tree=MagicMock())
    child = FakeChild()
    loop = asyncio.get_running_loop()

    loop.call_later(0.01, controller.handle_interrupt)
    loop.call_later(0.05, child.exit.set_result, 1)

    status = await controller.wait_for(child)  # type: ignore[arg-type]

    assert status == 1
    assert controller.stop is True
    assert controller.interrupted is False
    assert child.wait_calls == 1


async def test_wait_for_after_kill_reports_kill_status() -> None:
    """A second interrupt kills the child and the wait returns its death."""
    child = FakeChild()

    def kill_tree(pid: int) -> None:
        child.exit.set_result(-signal.SIGKILL)

    controller = CancellationController(kill_tree=kill_tree)
    controller.attach(child.pid)
    loop = asyncio.get_running_loop()
    loop.call_later(0.01, controller.handle_interrupt)
    loop.call_later(0.02, controller.handle_interrupt)

    status = await controller.wait_for(child)  # type: ignore[arg-type]

    assert status == -signal.SIGKILL
    assert controller.state is CancellationState.KILL_REQUESTED


async def test_handle_signals_routes_sigint() -> None:
    """SIGINT reaches the state machine while signals are handled."""
    controller = CancellationController(kill_tree=MagicMock())

    with controller.handle_signals():
        os.kill(os.getpid(), signal.SIGINT)
        for _ in range(50):
            if controller.stop:
                break
            await asyncio.sleep(0.01)

    assert controller.state is CancellationState.INTERRUPT_REQUESTED
