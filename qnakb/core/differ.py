"""Reconcile desired question/answer entries against a remote knowledge base."""

import logging
from typing import Dict, Iterable, List, Sequence

from qnakb.core.remote_adapter import RemoteAdapter
from qnakb.lib.errors import DownloadFailed, QnAError
from qnakb.models.knowledge import (
    EntryUpdate,
    Environment,
    KnowledgeBaseEntry,
    PendingChangeSet,
)

logger = logging.getLogger(__name__)


def index_by_answer(entries: Iterable[KnowledgeBaseEntry]) -> Dict[str, KnowledgeBaseEntry]:
    """Map answer text to entry.

    When the same answer text appears more than once, the later entry
    replaces the earlier one (last write wins). The remote service does not
    promise any order for downloaded entries, so which duplicate wins is not
    stable across downloads.
    """
    index: Dict[str, KnowledgeBaseEntry] = {}
    for entry in entries:
        if entry.answer in index:
            logger.debug(
                f"Duplicate answer text: entry {entry.id} replaces {index[entry.answer].id} in lookup"
            )
        index[entry.answer] = entry
    return index


def _unique(questions: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for question in questions:
        if question not in seen:
            seen.add(question)
            result.append(question)
    return result


def merge_questions(existing: Sequence[str], desired: Sequence[str], override: bool) -> List[str]:
    """Resolve the question list for an updated entry.

    With override the result is exactly the desired questions; otherwise it
    is the existing questions followed by any desired ones not already there.
    """
    if override:
        return _unique(desired)
    return _unique([*existing, *desired])


def fold_desired(desired: Iterable[KnowledgeBaseEntry]) -> List[KnowledgeBaseEntry]:
    """Combine desired entries that share answer text, keeping first-seen order."""
    folded: Dict[str, KnowledgeBaseEntry] = {}
    for entry in desired:
        current = folded.get(entry.answer)
        if current is None:
            folded[entry.answer] = entry
        else:
            folded[entry.answer] = current.model_copy(
                update={
                    "questions": _unique([*current.questions, *entry.questions]),
                    "metadata": {**current.metadata, **entry.metadata},
                }
            )
    return list(folded.values())


def classify(
    existing: Iterable[KnowledgeBaseEntry],
    desired: Iterable[KnowledgeBaseEntry],
    override_existing_questions: bool = False,
) -> PendingChangeSet:
    """Split desired entries into additions and updates against a snapshot.

    Entries whose answer text matches an existing entry become updates of
    that entry; everything else is an addition. Deletions are never inferred.
    """
    lookup = index_by_answer(existing)
    additions: List[KnowledgeBaseEntry] = []
    updates: List[EntryUpdate] = []

    for entry in fold_desired(desired):
        match = lookup.get(entry.answer)
        if match is None or match.id is None:
            additions.append(entry)
            continue

        updates.append(
            EntryUpdate(
                id=match.id,
                answer=match.answer,
                questions=merge_questions(match.questions, entry.questions, override_existing_questions),
                previous_questions=list(match.questions),
            )
        )

    return PendingChangeSet(additions=additions, updates=updates)


class KnowledgeBaseDiffer:
    """Downloads the current remote entries and classifies desired ones."""

    def __init__(self, adapter: RemoteAdapter):
        self.adapter = adapter

    async def download(self, knowledge_base_id: str, environment: Environment) -> List[KnowledgeBaseEntry]:
        """Download the current snapshot, reporting any failure as DownloadFailed."""
        try:
            return await self.adapter.download_knowledge_base(knowledge_base_id, environment)
        except QnAError as e:
            raise DownloadFailed(knowledge_base_id, environment.value, str(e)) from e

    async def existing_answers(
        self, knowledge_base_id: str, use_published_version: bool = False
    ) -> Dict[str, KnowledgeBaseEntry]:
        """Download and index the current entries by answer text."""
        environment = Environment.from_published(use_published_version)
        return index_by_answer(await self.download(knowledge_base_id, environment))

    async def reconcile(
        self,
        knowledge_base_id: str,
        desired: Sequence[KnowledgeBaseEntry],
        use_published_version: bool = False,
        override_existing_questions: bool = False,
    ) -> PendingChangeSet:
        """Compute the additions and updates needed to reach the desired entries.

        Args:
            knowledge_base_id: Knowledge base to compare against
            desired: Entries the caller wants present
            use_published_version: Compare against the published version instead of test
            override_existing_questions: Replace question lists instead of merging

        Returns:
            PendingChangeSet with no deletions

        Raises:
            DownloadFailed: The current snapshot could not be downloaded
        """
        environment = Environment.from_published(use_published_version)
        existing = await self.download(knowledge_base_id, environment)
        change_set = classify(existing, desired, override_existing_questions)
        logger.info(f"Reconciled {len(desired)} entries against {len(existing)} existing: {change_set.summary()}")
        return change_set
