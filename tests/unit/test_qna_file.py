"""Tests for loading question/answer CSV files."""

import pytest

from qnakb.tools.qna_file import load_csv, parse_metadata


def write(tmp_path, text):
    path = tmp_path / "faq.csv"
    path.write_text(text, encoding="utf-8")
    return path


def test_rows_with_same_answer_are_grouped(tmp_path):
    path = write(
        tmp_path,
        "Question,Answer\n"
        "How can I change my shipping address?,Go to Account > Addresses.\n"
        "What do you mean by points?,Points are earned per dollar.\n"
        "Where do I update my address?,Go to Account > Addresses.\n",
    )

    entries = load_csv(path)

    assert [e.answer for e in entries] == ["Go to Account > Addresses.", "Points are earned per dollar."]
    assert entries[0].questions == [
        "How can I change my shipping address?",
        "Where do I update my address?",
    ]


def test_optional_columns_and_header_case(tmp_path):
    path = write(
        tmp_path,
        "question,ANSWER,Metadata,Source\n"
        '"Do you ship abroad?","Yes, to 40 countries.",category:shipping|tier:gold,faq\n',
    )

    entry = load_csv(path)[0]

    assert entry.answer == "Yes, to 40 countries."
    assert entry.metadata == {"category": "shipping", "tier": "gold"}
    assert entry.source == "faq"


def test_blank_answer_reports_row(tmp_path):
    path = write(tmp_path, "Question,Answer\nq1,a1\nq2,\n")

    with pytest.raises(ValueError, match="faq.csv:3"):
        load_csv(path)


def test_missing_columns(tmp_path):
    path = write(tmp_path, "Prompt,Reply\nq,a\n")

    with pytest.raises(ValueError, match="missing required columns"):
        load_csv(path)


def test_parse_metadata_rejects_malformed_items():
    assert parse_metadata("") == {}
    with pytest.raises(ValueError):
        parse_metadata("no-separator")
