# qnakb/models/query.py
from typing import Dict, List, Optional

from pydantic import Field

from qnakb.lib.errors import CredentialResolutionFailed
from qnakb.models.knowledge import WireModel


class QueryAnswer(WireModel):
    answer: str
    questions: List[str] = []
    score: float = 0.0
    id: Optional[int] = None
    source: Optional[str] = None
    metadata: Dict[str, str] = {}


class QueryResult(WireModel):
    """Ranked answers returned by the runtime endpoint, best first."""

    answers: List[QueryAnswer] = Field(default_factory=list)

    @property
    def top(self) -> Optional[QueryAnswer]:
        return self.answers[0] if self.answers else None

    @classmethod
    def from_wire(cls, data: Dict) -> "QueryResult":
        answers = []
        for item in data.get("answers") or []:
            metadata = {m["name"]: m["value"] for m in item.get("metadata") or []}
            answers.append(
                QueryAnswer(
                    answer=item.get("answer", ""),
                    questions=list(item.get("questions") or []),
                    # Scores come back on a 0-100 scale
                    score=float(item.get("score") or 0.0),
                    id=item.get("id"),
                    source=item.get("source"),
                    metadata=metadata,
                )
            )
        answers.sort(key=lambda a: a.score, reverse=True)
        return cls(answers=answers)


class FeedbackRecord(WireModel):
    """One active-learning record: a user question that should map to qna_id."""

    user_id: str
    user_question: str
    qna_id: int


class EndpointKeys(WireModel):
    primary_endpoint_key: Optional[str] = None
    secondary_endpoint_key: Optional[str] = None

    def require_primary(self) -> str:
        if not self.primary_endpoint_key:
            raise CredentialResolutionFailed("query endpoint key", "service returned no primary key")
        return self.primary_endpoint_key
