"""High-level knowledge-base operations: create, add, update, ask, train, delete."""

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

from qnakb.core.change_submitter import ChangeSubmitter
from qnakb.core.differ import KnowledgeBaseDiffer
from qnakb.core.operation_monitor import OperationMonitor, PollingPolicy
from qnakb.core.providers.qnamaker_provider import QnAMakerProvider
from qnakb.core.remote_adapter import RemoteAdapter
from qnakb.core.session import Session
from qnakb.lib.config import ConfigLoader
from qnakb.lib.errors import NoActiveKnowledgeBase
from qnakb.models.knowledge import (
    CreateKnowledgeBaseRequest,
    Environment,
    KnowledgeBaseEntry,
)
from qnakb.models.operation import OperationState
from qnakb.models.query import FeedbackRecord, QueryResult

logger = logging.getLogger(__name__)

DEFAULT_FEEDBACK_USER = "qnakb"


class QnAService:
    """Orchestrates the remote knowledge base for a single caller."""

    def __init__(
        self,
        session: Session,
        adapter: Optional[RemoteAdapter] = None,
        policy: Optional[PollingPolicy] = None,
        monitor: Optional[OperationMonitor] = None,
    ):
        """Initialize the service.

        Args:
            session: Credentials, active knowledge base id and client handles
            adapter: Remote adapter (default: REST provider bound to the session)
            policy: Polling policy for long-running operations
            monitor: Prebuilt monitor, overrides policy
        """
        self.session = session
        self.adapter = adapter or QnAMakerProvider(session)
        self.monitor = monitor or OperationMonitor(self.adapter, policy)
        self.differ = KnowledgeBaseDiffer(self.adapter)
        self.submitter = ChangeSubmitter(self.adapter, self.monitor, session)

    @classmethod
    def from_config(cls, config: ConfigLoader) -> "QnAService":
        return cls(Session(config.service), policy=PollingPolicy.from_settings(config.polling))

    @property
    def knowledge_base_id(self) -> Optional[str]:
        return self.session.knowledge_base_id

    @knowledge_base_id.setter
    def knowledge_base_id(self, value: Optional[str]) -> None:
        self.session.knowledge_base_id = value

    def _require_knowledge_base(self, action: str) -> str:
        if not self.session.knowledge_base_id:
            raise NoActiveKnowledgeBase(action)
        return self.session.knowledge_base_id

    async def create_knowledge_base(
        self,
        name: str,
        entries: Sequence[KnowledgeBaseEntry],
        urls: Optional[Sequence[str]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Tuple[OperationState, Optional[str]]:
        """Create a knowledge base and make it the active one.

        Returns:
            (terminal state, new knowledge base id)
        """
        request = CreateKnowledgeBaseRequest(name=name, entries=list(entries), urls=list(urls or []))
        operation = await self.adapter.create_knowledge_base(request)
        operation = await self.monitor.await_completion(operation, cancel_event=cancel_event)

        knowledge_base_id = operation.knowledge_base_id
        if knowledge_base_id:
            self.session.knowledge_base_id = knowledge_base_id
            logger.info(f"Created knowledge base {knowledge_base_id}")
        else:
            logger.warning(f"Operation {operation.operation_id} succeeded without a resource location")
        return operation.state, knowledge_base_id

    async def add_entries(
        self,
        entries: Sequence[KnowledgeBaseEntry],
        published: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Tuple[OperationState, Optional[str]]:
        """Add entries, merging questions into entries whose answer already exists."""
        return await self._apply(entries, published, override=False, cancel_event=cancel_event)

    async def update_entries(
        self,
        entries: Sequence[KnowledgeBaseEntry],
        published: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Tuple[OperationState, Optional[str]]:
        """Add entries, replacing the questions of entries whose answer already exists."""
        return await self._apply(entries, published, override=True, cancel_event=cancel_event)

    async def _apply(
        self,
        entries: Sequence[KnowledgeBaseEntry],
        published: bool,
        override: bool,
        cancel_event: Optional[asyncio.Event],
    ) -> Tuple[OperationState, Optional[str]]:
        knowledge_base_id = self._require_knowledge_base("reconciling entries")
        change_set = await self.differ.reconcile(
            knowledge_base_id,
            entries,
            use_published_version=published,
            override_existing_questions=override,
        )
        return await self.submitter.submit(change_set, cancel_event=cancel_event)

    async def delete_entries(
        self, ids: Sequence[int], cancel_event: Optional[asyncio.Event] = None
    ) -> Tuple[OperationState, Optional[str]]:
        """Delete entries by remote id."""
        return await self.submitter.submit_alteration(deletes=list(ids), cancel_event=cancel_event)

    async def ask(self, question: str, published: bool = False, top: int = 1) -> QueryResult:
        knowledge_base_id = self._require_knowledge_base("asking a question")
        return await self.adapter.query(
            knowledge_base_id, question, Environment.from_published(published), top=top
        )

    async def train(
        self,
        entries: Sequence[KnowledgeBaseEntry],
        published: bool = False,
        user_id: str = DEFAULT_FEEDBACK_USER,
    ) -> List[FeedbackRecord]:
        """Teach the runtime that each entry's questions should lead to its answer.

        Answers are matched to remote ids by answer text; entries with no
        matching answer are skipped.

        Returns:
            The feedback records that were sent
        """
        knowledge_base_id = self._require_knowledge_base("training")
        existing = await self.differ.existing_answers(knowledge_base_id, published)

        records: List[FeedbackRecord] = []
        for entry in entries:
            match = existing.get(entry.answer)
            if match is None or match.id is None:
                logger.warning(f"No existing answer matches training entry: {entry.answer[:60]!r}")
                continue
            records.extend(
                FeedbackRecord(user_id=user_id, user_question=question, qna_id=match.id)
                for question in entry.questions
            )

        if records:
            await self.adapter.train(knowledge_base_id, records, Environment.from_published(published))
        else:
            logger.warning("Nothing to train: no entries matched the knowledge base")
        return records

    async def publish(self) -> None:
        knowledge_base_id = self._require_knowledge_base("publishing")
        await self.adapter.publish_knowledge_base(knowledge_base_id)
        logger.info(f"Published knowledge base {knowledge_base_id}")

    async def delete_knowledge_base(self, cancel_event: Optional[asyncio.Event] = None) -> None:
        """Delete the active knowledge base and clear the active id."""
        knowledge_base_id = self._require_knowledge_base("deleting a knowledge base")
        operation = await self.adapter.delete_knowledge_base(knowledge_base_id)
        if operation is not None:
            await self.monitor.await_completion(operation, cancel_event=cancel_event)
        self.session.knowledge_base_id = None
        logger.info(f"Deleted knowledge base {knowledge_base_id}")

    async def aclose(self) -> None:
        await self.session.aclose()
