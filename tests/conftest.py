"""Pytest configuration and shared fixtures.

Provides:
- A scripted status source for driving the operation monitor
- An AsyncMock remote adapter with realistic defaults
- A polling policy that never really sleeps
"""

from unittest.mock import AsyncMock

import pytest

from qnakb.core.operation_monitor import PollingPolicy
from qnakb.core.remote_adapter import RemoteAdapter
from qnakb.lib.config import ServiceSettings
from qnakb.models.operation import OperationState, RemoteOperation


def make_operation(state: OperationState, operation_id: str = "op-1", **kwargs) -> RemoteOperation:
    return RemoteOperation(operation_id=operation_id, state=state, **kwargs)


class ScriptedStatusSource:
    """Returns a fixed sequence of states, one per poll, and counts polls."""

    def __init__(self, states, operation_id: str = "op-1", error_detail: str | None = None):
        self.states = list(states)
        self.operation_id = operation_id
        self.error_detail = error_detail
        self.calls = 0

    async def get_operation_status(self, operation_id: str) -> RemoteOperation:
        assert operation_id == self.operation_id
        state = self.states[self.calls]
        self.calls += 1
        if isinstance(state, Exception):
            raise state
        detail = self.error_detail if state is OperationState.FAILED else None
        return make_operation(state, operation_id, error_detail=detail)


class RecordingSleep:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fast_policy():
    return PollingPolicy(interval=0.0, max_attempts=20)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def adapter():
    """Remote adapter double whose mutating calls succeed immediately."""
    mock = AsyncMock(spec=RemoteAdapter)
    mock.download_knowledge_base.return_value = []
    mock.update_knowledge_base.return_value = make_operation(OperationState.RUNNING)
    mock.get_operation_status.return_value = make_operation(OperationState.SUCCEEDED)
    mock.get_primary_query_key.return_value = "query-key"
    return mock


@pytest.fixture
def settings():
    return ServiceSettings(
        authoring_key="authoring-key",
        resource_name="contoso-qna",
        application_name="contoso-qna-app",
        knowledge_base_id="kb-1",
    )
