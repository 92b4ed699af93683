"""Tests for bounded polling of long-running operations."""

import asyncio

import pytest

from conftest import ScriptedStatusSource, make_operation
from qnakb.core.operation_monitor import OperationMonitor, PollingPolicy
from qnakb.lib.errors import OperationCancelled, OperationFailed, TransportError
from qnakb.models.operation import OperationState

RUNNING = OperationState.RUNNING
SUCCEEDED = OperationState.SUCCEEDED
FAILED = OperationState.FAILED


@pytest.mark.asyncio
async def test_succeeds_after_three_polls(recording_sleep):
    """Running, Running, Succeeded resolves after exactly three polls."""
    source = ScriptedStatusSource([RUNNING, RUNNING, SUCCEEDED])
    monitor = OperationMonitor(source, PollingPolicy(interval=5.0), sleep=recording_sleep)

    result = await monitor.await_completion(make_operation(OperationState.NOT_STARTED))

    assert result.state is SUCCEEDED
    assert source.calls == 3
    assert recording_sleep.delays == [5.0, 5.0, 5.0]


@pytest.mark.asyncio
async def test_gives_up_after_twenty_running_polls(recording_sleep):
    """An operation still running after the attempt budget is a failure."""
    source = ScriptedStatusSource([RUNNING] * 25)
    monitor = OperationMonitor(source, PollingPolicy(), sleep=recording_sleep)

    with pytest.raises(OperationFailed) as exc_info:
        await monitor.await_completion(make_operation(RUNNING))

    assert source.calls == 20
    assert exc_info.value.operation_id == "op-1"
    assert exc_info.value.state == "Running"


@pytest.mark.asyncio
async def test_immediate_failure_after_one_poll(recording_sleep):
    """A Failed status ends polling at once and carries the remote error detail."""
    source = ScriptedStatusSource([FAILED], error_detail='{"code": "BadArgument"}')
    monitor = OperationMonitor(source, PollingPolicy(), sleep=recording_sleep)

    with pytest.raises(OperationFailed) as exc_info:
        await monitor.await_completion(make_operation(RUNNING))

    assert source.calls == 1
    assert exc_info.value.detail == '{"code": "BadArgument"}'
    assert "BadArgument" in str(exc_info.value)


@pytest.mark.asyncio
async def test_already_terminal_operation_is_not_polled(recording_sleep):
    source = ScriptedStatusSource([])
    monitor = OperationMonitor(source, PollingPolicy(), sleep=recording_sleep)

    result = await monitor.await_completion(make_operation(SUCCEEDED))

    assert result.state is SUCCEEDED
    assert source.calls == 0
    assert recording_sleep.delays == []


@pytest.mark.asyncio
async def test_custom_pending_predicate(recording_sleep):
    """The terminal-state predicate is part of the injected policy."""
    source = ScriptedStatusSource([RUNNING, SUCCEEDED])
    policy = PollingPolicy(is_pending=lambda state: state is OperationState.NOT_STARTED)
    monitor = OperationMonitor(source, policy, sleep=recording_sleep)

    with pytest.raises(OperationFailed):
        await monitor.await_completion(make_operation(OperationState.NOT_STARTED))

    assert source.calls == 1


@pytest.mark.asyncio
async def test_transport_errors_are_retried(recording_sleep):
    source = ScriptedStatusSource([TransportError("reset"), RUNNING, SUCCEEDED])
    monitor = OperationMonitor(source, PollingPolicy(), sleep=recording_sleep)

    result = await monitor.await_completion(make_operation(RUNNING))

    assert result.state is SUCCEEDED
    assert source.calls == 3


@pytest.mark.asyncio
async def test_transport_errors_consume_attempts(recording_sleep):
    source = ScriptedStatusSource([TransportError("down")] * 3)
    monitor = OperationMonitor(source, PollingPolicy(max_attempts=3), sleep=recording_sleep)

    with pytest.raises(OperationFailed) as exc_info:
        await monitor.await_completion(make_operation(RUNNING))

    assert source.calls == 3
    assert "down" in exc_info.value.detail


@pytest.mark.asyncio
async def test_transport_errors_propagate_when_not_retried(recording_sleep):
    error = TransportError("unauthorized", status_code=401)
    source = ScriptedStatusSource([error])
    policy = PollingPolicy(retry_transport_errors=False)
    monitor = OperationMonitor(source, policy, sleep=recording_sleep)

    with pytest.raises(TransportError) as exc_info:
        await monitor.await_completion(make_operation(RUNNING))

    assert exc_info.value is error
    assert exc_info.value.is_authorization_error


@pytest.mark.asyncio
async def test_cancel_event_stops_waiting():
    source = ScriptedStatusSource([RUNNING] * 5)
    monitor = OperationMonitor(source, PollingPolicy(interval=10.0))
    cancel = asyncio.Event()
    cancel.set()

    with pytest.raises(OperationCancelled) as exc_info:
        await monitor.await_completion(make_operation(RUNNING), cancel_event=cancel)

    assert exc_info.value.reason == "cancelled"
    assert source.calls == 0


@pytest.mark.asyncio
async def test_cancel_event_set_while_waiting():
    source = ScriptedStatusSource([RUNNING] * 5)
    monitor = OperationMonitor(source, PollingPolicy(interval=10.0))
    cancel = asyncio.Event()

    task = asyncio.create_task(monitor.await_completion(make_operation(RUNNING), cancel_event=cancel))
    await asyncio.sleep(0)
    cancel.set()

    with pytest.raises(OperationCancelled):
        await asyncio.wait_for(task, timeout=1.0)
    assert source.calls == 0


@pytest.mark.asyncio
async def test_cancel_event_still_uses_injected_sleep(recording_sleep):
    """Passing a cancel event must not swap the injected sleep for a real wait."""
    source = ScriptedStatusSource([RUNNING, RUNNING, SUCCEEDED])
    monitor = OperationMonitor(source, PollingPolicy(interval=60.0), sleep=recording_sleep)

    result = await asyncio.wait_for(
        monitor.await_completion(make_operation(RUNNING), cancel_event=asyncio.Event()),
        timeout=1.0,
    )

    assert result.state is SUCCEEDED
    assert recording_sleep.delays == [60.0, 60.0, 60.0]
    assert source.calls == 3


@pytest.mark.asyncio
async def test_timeout_budget_raises_cancelled(recording_sleep):
    """The overall deadline is checked against the injected clock."""
    now = [0.0]

    async def advancing_sleep(delay: float) -> None:
        await recording_sleep(delay)
        now[0] += delay

    source = ScriptedStatusSource([RUNNING] * 20)
    policy = PollingPolicy(interval=5.0, timeout=12.0)
    monitor = OperationMonitor(source, policy, sleep=advancing_sleep, clock=lambda: now[0])

    with pytest.raises(OperationCancelled) as exc_info:
        await monitor.await_completion(make_operation(RUNNING))

    assert exc_info.value.reason == "timeout"
    assert recording_sleep.delays == [5.0, 5.0, 2.0]
    assert source.calls == 3
