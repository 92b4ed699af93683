"""HTTP implementation of the remote adapter for the hosted QnA service."""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, TYPE_CHECKING, TypeVar

import httpx

from qnakb.core.remote_adapter import RemoteAdapter
from qnakb.lib.errors import TransportError
from qnakb.models.knowledge import (
    CreateKnowledgeBaseRequest,
    EntryUpdate,
    Environment,
    KnowledgeBaseEntry,
)
from qnakb.models.operation import RemoteOperation
from qnakb.models.query import EndpointKeys, FeedbackRecord, QueryResult

if TYPE_CHECKING:
    from qnakb.core.session import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EndpointClient:
    """Thin async HTTP client bound to one endpoint and one credential."""

    def __init__(
        self,
        base_url: str,
        headers: Dict[str, str],
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        # Construction is local; no request is made until the first call
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Content-Type": "application/json", **headers},
            timeout=timeout,
            transport=transport,
        )

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request and raise TransportError for anything but 2xx."""
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportError(f"{method} {path} timed out", detail=str(e)) from e
        except httpx.RequestError as e:
            raise TransportError(f"{method} {path} failed: {e}", detail=str(e)) from e

        if response.is_error:
            logger.error(f"{method} {path} returned {response.status_code}: {response.text}")
            raise TransportError(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
                detail=response.text,
            )

        return response

    def decode(self, response: httpx.Response, parse: Callable[[Any], T]) -> T:
        """Parse a 2xx JSON body, raising TransportError if it is not what the service documents."""
        try:
            return parse(response.json())
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            request = response.request
            logger.error(f"{request.method} {request.url.path} returned an unreadable body: {e}")
            raise TransportError(
                f"{request.method} {request.url.path} returned an unreadable body",
                status_code=response.status_code,
                detail=response.text,
            ) from e

    async def aclose(self) -> None:
        await self._client.aclose()


class ManagementClient(EndpointClient):
    """Authoring endpoint: create, download, update, delete, publish, keys."""

    API_PATH = "/qnamaker/v4.0"

    def __init__(
        self,
        endpoint: str,
        authoring_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=endpoint.rstrip("/") + self.API_PATH,
            headers={"Ocp-Apim-Subscription-Key": authoring_key},
            timeout=timeout,
            transport=transport,
        )

    async def get_endpoint_keys(self) -> EndpointKeys:
        response = await self.request("GET", "/endpointkeys")
        return self.decode(response, EndpointKeys.model_validate)


class RuntimeClient(EndpointClient):
    """Query endpoint: generate answers and send training feedback."""

    API_PATH = "/qnamaker"

    def __init__(
        self,
        endpoint: str,
        query_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=endpoint.rstrip("/") + self.API_PATH,
            headers={"Authorization": f"EndpointKey {query_key}"},
            timeout=timeout,
            transport=transport,
        )


def build_update_payload(
    additions: Optional[Sequence[KnowledgeBaseEntry]] = None,
    updates: Optional[Sequence[EntryUpdate]] = None,
    deletes: Optional[Sequence[int]] = None,
) -> Dict[str, Any]:
    """Build the alteration body, leaving out every section that is None."""
    payload: Dict[str, Any] = {}
    if additions is not None:
        payload["add"] = {"qnaList": [entry.to_wire() for entry in additions]}
    if updates is not None:
        payload["update"] = {"qnaList": [update.to_wire() for update in updates]}
    if deletes is not None:
        payload["delete"] = {"ids": list(deletes)}
    return payload


class QnAMakerProvider(RemoteAdapter):
    """Remote adapter that talks to the hosted service over REST.

    Endpoint clients are taken from the session on every call, so switching
    knowledge bases or resetting credentials on the session is picked up
    without rebuilding the provider.
    """

    def __init__(self, session: "Session"):
        self.session = session

    async def create_knowledge_base(self, request: CreateKnowledgeBaseRequest) -> RemoteOperation:
        logger.info(f"Creating knowledge base '{request.name}' with {len(request.entries)} entries")
        client = self.session.management_client()
        response = await client.request("POST", "/knowledgebases/create", json=request.to_wire())
        return client.decode(response, RemoteOperation.model_validate)

    async def download_knowledge_base(
        self, knowledge_base_id: str, environment: Environment
    ) -> List[KnowledgeBaseEntry]:
        client = self.session.management_client()
        response = await client.request(
            "GET", f"/knowledgebases/{knowledge_base_id}/{environment.value}/qna"
        )
        entries = client.decode(
            response,
            lambda data: [KnowledgeBaseEntry.from_wire(doc) for doc in data.get("qnaDocuments") or []],
        )
        logger.debug(f"Downloaded {len(entries)} entries from {knowledge_base_id} ({environment.value})")
        return entries

    async def update_knowledge_base(
        self,
        knowledge_base_id: str,
        additions: Optional[Sequence[KnowledgeBaseEntry]] = None,
        updates: Optional[Sequence[EntryUpdate]] = None,
        deletes: Optional[Sequence[int]] = None,
    ) -> RemoteOperation:
        payload = build_update_payload(additions, updates, deletes)
        client = self.session.management_client()
        response = await client.request("PATCH", f"/knowledgebases/{knowledge_base_id}", json=payload)
        return client.decode(response, RemoteOperation.model_validate)

    async def delete_knowledge_base(self, knowledge_base_id: str) -> Optional[RemoteOperation]:
        client = self.session.management_client()
        response = await client.request("DELETE", f"/knowledgebases/{knowledge_base_id}")
        if response.status_code == 204 or not response.content:
            return None
        return client.decode(response, RemoteOperation.model_validate)

    async def publish_knowledge_base(self, knowledge_base_id: str) -> None:
        await self.session.management_client().request("POST", f"/knowledgebases/{knowledge_base_id}")

    async def get_operation_status(self, operation_id: str) -> RemoteOperation:
        client = self.session.management_client()
        response = await client.request("GET", f"/operations/{operation_id}")
        return client.decode(response, RemoteOperation.model_validate)

    async def get_primary_query_key(self) -> str:
        keys = await self.session.management_client().get_endpoint_keys()
        return keys.require_primary()

    async def query(
        self,
        knowledge_base_id: str,
        question: str,
        environment: Environment,
        top: int = 1,
    ) -> QueryResult:
        client = await self.session.query_client()
        response = await client.request(
            "POST",
            f"/knowledgebases/{knowledge_base_id}/generateAnswer",
            json={"question": question, "top": top, "isTest": environment.is_test},
        )
        return client.decode(response, QueryResult.from_wire)

    async def train(
        self,
        knowledge_base_id: str,
        feedback: Sequence[FeedbackRecord],
        environment: Environment,
    ) -> None:
        # The train call carries no environment; feedback applies to the base
        logger.info(
            f"Sending {len(feedback)} feedback records to {knowledge_base_id} "
            f"(ids resolved against {environment.value})"
        )
        client = await self.session.query_client()
        await client.request(
            "POST",
            f"/knowledgebases/{knowledge_base_id}/train",
            json={"feedbackRecords": [record.to_wire() for record in feedback]},
        )
