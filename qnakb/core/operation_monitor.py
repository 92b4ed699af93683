"""Bounded polling of long-running remote operations."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Optional, Protocol

from qnakb.lib.config import PollingSettings
from qnakb.lib.errors import OperationCancelled, OperationFailed, TransportError
from qnakb.models.operation import OperationState, RemoteOperation

logger = logging.getLogger(__name__)


class OperationStatusSource(Protocol):
    async def get_operation_status(self, operation_id: str) -> RemoteOperation: ...


def _default_is_pending(state: OperationState) -> bool:
    return state.is_pending


@dataclass
class PollingPolicy:
    """How often, how many times and for how long to poll.

    Attributes:
        interval: Seconds to wait before each status poll
        max_attempts: Maximum number of status polls
        timeout: Overall wall-clock budget in seconds (None for no limit)
        is_pending: Whether a state means "keep polling"
        retry_transport_errors: Count a failed poll as an attempt and keep going
    """

    interval: float = 5.0
    max_attempts: int = 20
    timeout: Optional[float] = None
    is_pending: Callable[[OperationState], bool] = field(default=_default_is_pending)
    retry_transport_errors: bool = True

    @classmethod
    def from_settings(cls, settings: PollingSettings) -> "PollingPolicy":
        return cls(
            interval=settings.interval,
            max_attempts=settings.max_attempts,
            timeout=settings.timeout,
            retry_transport_errors=settings.retry_transport_errors,
        )


class OperationMonitor:
    """Turns an asynchronous server operation into a bounded wait."""

    def __init__(
        self,
        status_source: OperationStatusSource,
        policy: Optional[PollingPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.status_source = status_source
        self.policy = policy or PollingPolicy()
        self._sleep = sleep
        self._clock = clock

    async def await_completion(
        self,
        operation: RemoteOperation,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RemoteOperation:
        """Poll until the operation leaves a pending state.

        Args:
            operation: Operation as returned by the mutating call
            cancel_event: Set it to stop waiting early

        Returns:
            The final operation, which is always Succeeded

        Raises:
            OperationFailed: Final state is not Succeeded, or attempts ran out
            OperationCancelled: cancel_event was set or policy.timeout elapsed
            TransportError: A poll failed and transport errors are not retried
        """
        policy = self.policy
        operation_id = operation.operation_id
        deadline = self._clock() + policy.timeout if policy.timeout is not None else None
        last_error: Optional[TransportError] = None

        for attempt in range(policy.max_attempts):
            if not policy.is_pending(operation.state):
                break

            logger.info(f"Waiting for operation {operation_id} to complete ({operation.state.value})")
            await self._wait(operation_id, cancel_event, deadline)

            try:
                operation = await self.status_source.get_operation_status(operation_id)
                last_error = None
            except TransportError as e:
                if not policy.retry_transport_errors:
                    raise
                last_error = e
                logger.warning(
                    f"Status poll {attempt + 1}/{policy.max_attempts} for {operation_id} failed: {e}"
                )

        if operation.state is not OperationState.SUCCEEDED:
            detail = operation.error_detail
            if last_error is not None:
                detail = f"last status poll failed: {last_error}"
            logger.error(f"Operation {operation_id} ended in {operation.state.value}")
            raise OperationFailed(operation_id, state=operation.state.value, detail=detail)

        logger.info(f"Operation {operation_id} succeeded")
        return operation

    async def _wait(
        self,
        operation_id: str,
        cancel_event: Optional[asyncio.Event],
        deadline: Optional[float],
    ) -> None:
        """Sleep one interval, stopping early on cancellation or deadline."""
        interval = self.policy.interval
        if deadline is not None:
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise OperationCancelled(operation_id, "timeout")
            interval = min(interval, remaining)

        if cancel_event is None:
            await self._sleep(interval)
        else:
            if cancel_event.is_set():
                raise OperationCancelled(operation_id)
            sleeper = asyncio.ensure_future(self._sleep(interval))
            canceller = asyncio.ensure_future(cancel_event.wait())
            try:
                await asyncio.wait({sleeper, canceller}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for task in (sleeper, canceller):
                    task.cancel()
            if cancel_event.is_set():
                raise OperationCancelled(operation_id)
            sleeper.result()
