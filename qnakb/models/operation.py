"""Long-running remote operation model."""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class OperationState(str, Enum):
    """State of an asynchronous server-side operation."""

    NOT_STARTED = "NotStarted"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"

    @property
    def is_pending(self) -> bool:
        return self in (OperationState.NOT_STARTED, OperationState.RUNNING)


class RemoteOperation(BaseModel):
    """Snapshot of a long-running operation as last reported by the service."""

    operation_id: str = Field(alias="operationId")
    state: OperationState = Field(alias="operationState")
    error_detail: Optional[str] = Field(default=None, alias="errorResponse")
    resource_location: Optional[str] = Field(default=None, alias="resourceLocation")
    created_at: Optional[datetime] = Field(default=None, alias="createdTimestamp")
    last_action_at: Optional[datetime] = Field(default=None, alias="lastActionTimestamp")

    model_config = {"populate_by_name": True}

    @field_validator("error_detail", mode="before")
    @classmethod
    def serialize_error(cls, value: Any) -> Optional[str]:
        # The service returns a structured error object; keep it as text
        if value is None or isinstance(value, str):
            return value
        return json.dumps(value, sort_keys=True)

    @property
    def knowledge_base_id(self) -> Optional[str]:
        """Knowledge base id from a resource location like /knowledgebases/{id}."""
        if not self.resource_location:
            return None
        return self.resource_location.rstrip("/").rsplit("/", 1)[-1] or None
