"""Submit one alteration to the active knowledge base and wait for it."""

import asyncio
import logging
from typing import Optional, Sequence, Tuple, TypeVar

from qnakb.core.operation_monitor import OperationMonitor
from qnakb.core.remote_adapter import RemoteAdapter
from qnakb.core.session import Session
from qnakb.lib.errors import NoActiveKnowledgeBase
from qnakb.models.knowledge import EntryUpdate, KnowledgeBaseEntry, PendingChangeSet
from qnakb.models.operation import OperationState

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _none_if_empty(items: Optional[Sequence[T]]) -> Optional[Sequence[T]]:
    """An empty section means "nothing requested" and is left off the wire."""
    return items if items else None


class ChangeSubmitter:
    """Packages additions, updates and deletions into a single remote transaction."""

    def __init__(self, adapter: RemoteAdapter, monitor: OperationMonitor, session: Session):
        self.adapter = adapter
        self.monitor = monitor
        self.session = session

    async def submit_alteration(
        self,
        additions: Optional[Sequence[KnowledgeBaseEntry]] = None,
        updates: Optional[Sequence[EntryUpdate]] = None,
        deletes: Optional[Sequence[int]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Tuple[OperationState, Optional[str]]:
        """Submit the alteration and wait for the remote to finish it.

        Returns:
            (terminal state, error detail or None)

        Raises:
            NoActiveKnowledgeBase: No knowledge base id is set on the session
            OperationFailed: The remote reported anything but success
        """
        knowledge_base_id = self.session.knowledge_base_id
        if not knowledge_base_id:
            raise NoActiveKnowledgeBase("altering a knowledge base")

        operation = await self.adapter.update_knowledge_base(
            knowledge_base_id,
            additions=_none_if_empty(additions),
            updates=_none_if_empty(updates),
            deletes=_none_if_empty(deletes),
        )
        logger.info(
            f"Submitted alteration to {knowledge_base_id} as operation {operation.operation_id}",
            extra={"extra_fields": {"knowledge_base_id": knowledge_base_id, "operation_id": operation.operation_id}},
        )

        operation = await self.monitor.await_completion(operation, cancel_event=cancel_event)
        return operation.state, operation.error_detail

    async def submit(
        self, change_set: PendingChangeSet, cancel_event: Optional[asyncio.Event] = None
    ) -> Tuple[OperationState, Optional[str]]:
        return await self.submit_alteration(
            change_set.additions,
            change_set.updates,
            change_set.deletions,
            cancel_event=cancel_event,
        )
