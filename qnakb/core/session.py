"""Lazily resolved credentials and endpoint clients for one caller.

Invalidation edges:

- setting ``knowledge_base_id`` drops the query key and the runtime client
  (a query key is scoped to a knowledge base and the runtime client embeds
  it); the management client is kept (its credential is account scoped)
- ``reset_credentials()`` drops everything, including the management client

A Session is not safe to share between concurrent callers.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from qnakb.core.providers.qnamaker_provider import ManagementClient, RuntimeClient
from qnakb.lib.config import ServiceSettings
from qnakb.lib.errors import CredentialResolutionFailed, TransportError

logger = logging.getLogger(__name__)

ManagementFactory = Callable[[str, str, float], ManagementClient]
RuntimeFactory = Callable[[str, str, float], RuntimeClient]


@dataclass
class SessionState:
    """Cached values; None means not resolved yet."""

    knowledge_base_id: Optional[str] = None
    query_key: Optional[str] = None
    management_client: Optional[ManagementClient] = None
    query_client: Optional[RuntimeClient] = None


class Session:
    """Resolve-or-create accessors over SessionState."""

    def __init__(
        self,
        settings: ServiceSettings,
        management_factory: ManagementFactory = ManagementClient,
        runtime_factory: RuntimeFactory = RuntimeClient,
    ):
        """Initialize a session.

        Args:
            settings: Credentials and endpoint names (all optional)
            management_factory: Builds the management client from (endpoint, key, timeout)
            runtime_factory: Builds the runtime client from (endpoint, query key, timeout)
        """
        self.settings = settings
        self._management_factory = management_factory
        self._runtime_factory = runtime_factory
        self.state = SessionState(
            knowledge_base_id=settings.knowledge_base_id,
            query_key=settings.query_key,
        )
        # Handles retired by invalidation, closed on aclose()
        self._retired: list = []

    @property
    def knowledge_base_id(self) -> Optional[str]:
        return self.state.knowledge_base_id

    @knowledge_base_id.setter
    def knowledge_base_id(self, value: Optional[str]) -> None:
        self.state.knowledge_base_id = value or None
        self.state.query_key = None
        if self.state.query_client is not None:
            self._retired.append(self.state.query_client)
            self.state.query_client = None
        logger.debug(f"Active knowledge base set to {self.state.knowledge_base_id}")

    def management_client(self) -> ManagementClient:
        """Return the cached management client, constructing it on first use."""
        if self.state.management_client is None:
            self.state.management_client = self._create_management_client()
        return self.state.management_client

    async def query_key(self) -> str:
        """Return the cached query key, fetching it from the management endpoint on first use."""
        if self.state.query_key is None:
            self.state.query_key = await self._retrieve_query_key()
        return self.state.query_key

    async def query_client(self) -> RuntimeClient:
        """Return the cached runtime client; may fetch the query key first."""
        if self.state.query_client is None:
            self.state.query_client = await self._create_query_client()
        return self.state.query_client

    def reset_credentials(
        self,
        authoring_key: Optional[str] = None,
        resource_name: Optional[str] = None,
        application_name: Optional[str] = None,
    ) -> None:
        """Replace credentials and drop every cached key and client."""
        if authoring_key is not None:
            self.settings.authoring_key = authoring_key
        if resource_name is not None:
            self.settings.resource_name = resource_name
        if application_name is not None:
            self.settings.application_name = application_name

        for handle in (self.state.management_client, self.state.query_client):
            if handle is not None:
                self._retired.append(handle)
        self.state.management_client = None
        self.state.query_client = None
        self.state.query_key = None
        logger.info("Session credentials reset")

    async def aclose(self) -> None:
        """Close every client this session has created."""
        handles = self._retired + [self.state.management_client, self.state.query_client]
        for handle in handles:
            if handle is not None:
                await handle.aclose()
        self._retired = []
        self.state.management_client = None
        self.state.query_client = None

    def _create_management_client(self) -> ManagementClient:
        if not self.settings.authoring_key:
            raise CredentialResolutionFailed("authoring key", "QNA_AUTHORING_KEY is not set")
        endpoint = self.settings.management_endpoint
        if endpoint is None:
            raise CredentialResolutionFailed("management endpoint", "QNA_RESOURCE_NAME is not set")

        logger.debug(f"Creating management client for {endpoint}")
        return self._management_factory(
            endpoint, self.settings.authoring_key, self.settings.request_timeout
        )

    async def _retrieve_query_key(self) -> str:
        logger.info("Retrieving query endpoint key")
        try:
            keys = await self.management_client().get_endpoint_keys()
        except TransportError as e:
            raise CredentialResolutionFailed("query endpoint key", str(e)) from e

        return keys.require_primary()

    async def _create_query_client(self) -> RuntimeClient:
        endpoint = self.settings.runtime_endpoint
        if endpoint is None:
            raise CredentialResolutionFailed("runtime endpoint", "QNA_APPLICATION_NAME is not set")

        key = await self.query_key()
        logger.debug(f"Creating runtime client for {endpoint}")
        return self._runtime_factory(endpoint, key, self.settings.request_timeout)
