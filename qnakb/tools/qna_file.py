"""Load question/answer entries from CSV files."""

import csv
import logging
from pathlib import Path
from typing import Dict, List

from qnakb.models.knowledge import KnowledgeBaseEntry

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("question", "answer")


def parse_metadata(raw: str) -> Dict[str, str]:
    """Parse "key:value|key:value" metadata cells."""
    metadata: Dict[str, str] = {}
    for pair in raw.split("|"):
        if not pair.strip():
            continue
        key, sep, value = pair.partition(":")
        if not sep:
            raise ValueError(f"Metadata item {pair!r} is not key:value")
        metadata[key.strip()] = value.strip()
    return metadata


def load_csv(path: str | Path, encoding: str = "utf-8-sig") -> List[KnowledgeBaseEntry]:
    """Load entries from a CSV file with Question and Answer columns.

    Rows that share an answer are grouped into one entry whose questions
    keep file order. Optional Metadata and Source columns are honoured.

    Args:
        path: CSV file path
        encoding: File encoding (the default strips a UTF-8 BOM)

    Returns:
        Entries in order of first appearance

    Raises:
        ValueError: Missing columns or a row with a blank answer
    """
    path = Path(path)
    entries: Dict[str, KnowledgeBaseEntry] = {}

    with open(path, newline="", encoding=encoding) as f:
        reader = csv.DictReader(f)
        columns = {name.strip().lower(): name for name in reader.fieldnames or []}
        missing = [c for c in REQUIRED_COLUMNS if c not in columns]
        if missing:
            raise ValueError(f"{path}: missing required columns {missing}")

        for row_number, row in enumerate(reader, start=2):
            answer = (row.get(columns["answer"]) or "").strip()
            question = (row.get(columns["question"]) or "").strip()
            if not answer:
                raise ValueError(f"{path}:{row_number}: answer is empty")

            metadata = {}
            if "metadata" in columns:
                metadata = parse_metadata(row.get(columns["metadata"]) or "")
            source = None
            if "source" in columns:
                source = (row.get(columns["source"]) or "").strip() or None

            entry = entries.get(answer)
            if entry is None:
                entry = KnowledgeBaseEntry(answer=answer, metadata=metadata, source=source)
                entries[answer] = entry
            else:
                entry.metadata.update(metadata)

            if question and question not in entry.questions:
                entry.questions.append(question)

    logger.info(f"Loaded {len(entries)} entries from {path}")
    return list(entries.values())
