"""Error types raised by the knowledge-base client."""


class QnAError(Exception):
    """Base class for all client-side knowledge-base errors."""


class TransportError(QnAError):
    """Network or HTTP failure reported by a remote endpoint.

    Carries the HTTP status code when the remote answered at all, and the
    response body (or underlying exception text) as detail.
    """

    def __init__(self, message: str, status_code: int | None = None, detail: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

    @property
    def is_authorization_error(self) -> bool:
        return self.status_code in (401, 403)


class DownloadFailed(QnAError):
    """The current knowledge base snapshot could not be downloaded."""

    def __init__(self, knowledge_base_id: str, environment: str, reason: str | None = None):
        message = f"Failed to download knowledge base {knowledge_base_id} ({environment})"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.knowledge_base_id = knowledge_base_id
        self.environment = environment
        self.reason = reason


class OperationFailed(QnAError):
    """A long-running remote operation ended in a state other than Succeeded."""

    def __init__(self, operation_id: str, state: str | None = None, detail: str | None = None):
        message = f"Operation {operation_id} failed to complete"
        if state:
            message += f" (last state: {state})"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.operation_id = operation_id
        self.state = state
        self.detail = detail


class OperationCancelled(QnAError):
    """Waiting on a remote operation was cancelled or ran out of time."""

    def __init__(self, operation_id: str, reason: str = "cancelled"):
        super().__init__(f"Stopped waiting for operation {operation_id}: {reason}")
        self.operation_id = operation_id
        self.reason = reason


class NoActiveKnowledgeBase(QnAError):
    """An operation needs a knowledge base id but none is set."""

    def __init__(self, action: str = "this operation"):
        super().__init__(f"No active knowledge base id is set for {action}")
        self.action = action


class CredentialResolutionFailed(QnAError):
    """A credential, endpoint name or query key could not be resolved."""

    def __init__(self, what: str, reason: str | None = None):
        message = f"Could not resolve {what}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.what = what
        self.reason = reason
