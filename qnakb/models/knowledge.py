# qnakb/models/knowledge.py
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for models that travel to and from the remote service as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Environment(str, Enum):
    """Which version of a knowledge base an operation reads."""

    TEST = "Test"
    PUBLISHED = "Prod"

    @classmethod
    def from_published(cls, published: bool) -> "Environment":
        return cls.PUBLISHED if published else cls.TEST

    @property
    def is_test(self) -> bool:
        return self is Environment.TEST


class KnowledgeBaseEntry(WireModel):
    """One answer and the question phrasings that lead to it.

    The answer text is the entry's identity when reconciling against the
    remote base; `id` is only known for entries that came from the remote.
    """

    answer: str
    questions: List[str] = []
    id: Optional[int] = None
    metadata: Dict[str, str] = {}
    source: Optional[str] = None

    @field_validator("answer")
    @classmethod
    def answer_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("answer text must not be empty")
        return value

    def to_wire(self) -> Dict[str, Any]:
        # The service expects metadata as a list of name/value pairs
        data: Dict[str, Any] = {"answer": self.answer, "questions": list(self.questions)}
        if self.id is not None:
            data["id"] = self.id
        if self.source:
            data["source"] = self.source
        if self.metadata:
            data["metadata"] = [{"name": k, "value": v} for k, v in self.metadata.items()]
        return data

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "KnowledgeBaseEntry":
        metadata = {item["name"]: item["value"] for item in data.get("metadata") or []}
        return cls(
            id=data.get("id"),
            answer=data["answer"],
            questions=list(data.get("questions") or []),
            metadata=metadata,
            source=data.get("source"),
        )


class EntryUpdate(WireModel):
    """Update of an existing entry, addressed by its remote id.

    `questions` is the full question list the entry should end up with;
    `previous_questions` is what the remote held when the update was built.
    The remote protocol takes question additions and deletions, so the wire
    form is the difference between the two.
    """

    id: int
    answer: str
    questions: List[str] = []
    previous_questions: List[str] = []

    @property
    def questions_added(self) -> List[str]:
        previous = set(self.previous_questions)
        return [q for q in self.questions if q not in previous]

    @property
    def questions_removed(self) -> List[str]:
        wanted = set(self.questions)
        return [q for q in self.previous_questions if q not in wanted]

    def to_wire(self) -> Dict[str, Any]:
        questions: Dict[str, List[str]] = {}
        if self.questions_added:
            questions["add"] = self.questions_added
        if self.questions_removed:
            questions["delete"] = self.questions_removed
        return {"id": self.id, "answer": self.answer, "questions": questions}


class PendingChangeSet(BaseModel):
    """Additions, updates and deletions for one alteration request."""

    additions: List[KnowledgeBaseEntry] = []
    updates: List[EntryUpdate] = []
    deletions: List[int] = []

    @property
    def is_empty(self) -> bool:
        return not (self.additions or self.updates or self.deletions)

    def summary(self) -> str:
        return (
            f"{len(self.additions)} additions, {len(self.updates)} updates, "
            f"{len(self.deletions)} deletions"
        )


class CreateKnowledgeBaseRequest(WireModel):
    """Payload for creating a new knowledge base."""

    name: str
    entries: List[KnowledgeBaseEntry] = Field(default_factory=list)
    urls: List[str] = Field(default_factory=list)

    def to_wire(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "qnaList": [entry.to_wire() for entry in self.entries],
        }
        if self.urls:
            data["urls"] = list(self.urls)
        return data
