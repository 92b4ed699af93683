"""Abstract interface to the remote knowledge-base service."""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from qnakb.models.knowledge import (
    CreateKnowledgeBaseRequest,
    EntryUpdate,
    Environment,
    KnowledgeBaseEntry,
)
from qnakb.models.operation import RemoteOperation
from qnakb.models.query import FeedbackRecord, QueryResult


class RemoteAdapter(ABC):
    """Opaque RPC surface of the management and query endpoints.

    Implementations raise TransportError for network and authorization
    failures; callers decide whether to wrap them.
    """

    @abstractmethod
    async def create_knowledge_base(self, request: CreateKnowledgeBaseRequest) -> RemoteOperation:
        """Start creating a knowledge base.

        Args:
            request: Name and initial entries

        Returns:
            The long-running operation doing the work
        """
        pass

    @abstractmethod
    async def download_knowledge_base(
        self, knowledge_base_id: str, environment: Environment
    ) -> List[KnowledgeBaseEntry]:
        """Download every entry of the given environment."""
        pass

    @abstractmethod
    async def update_knowledge_base(
        self,
        knowledge_base_id: str,
        additions: Optional[Sequence[KnowledgeBaseEntry]] = None,
        updates: Optional[Sequence[EntryUpdate]] = None,
        deletes: Optional[Sequence[int]] = None,
    ) -> RemoteOperation:
        """Submit one alteration; None sections are left out of the request."""
        pass

    @abstractmethod
    async def delete_knowledge_base(self, knowledge_base_id: str) -> Optional[RemoteOperation]:
        """Delete a knowledge base.

        Returns:
            An operation to monitor, or None when the service deleted it immediately
        """
        pass

    @abstractmethod
    async def publish_knowledge_base(self, knowledge_base_id: str) -> None:
        """Copy the test version over the published version."""
        pass

    @abstractmethod
    async def get_operation_status(self, operation_id: str) -> RemoteOperation:
        pass

    @abstractmethod
    async def get_primary_query_key(self) -> str:
        """Fetch the runtime endpoint key for the account."""
        pass

    @abstractmethod
    async def query(
        self,
        knowledge_base_id: str,
        question: str,
        environment: Environment,
        top: int = 1,
    ) -> QueryResult:
        """Ask a natural-language question against the runtime endpoint."""
        pass

    @abstractmethod
    async def train(
        self,
        knowledge_base_id: str,
        feedback: Sequence[FeedbackRecord],
        environment: Environment,
    ) -> None:
        """Send active-learning feedback to the runtime endpoint."""
        pass
