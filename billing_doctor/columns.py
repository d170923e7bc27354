"""Header-name heuristics for locating the columns each rule reads and writes."""

from __future__ import annotations

from typing import Any, Sequence

import pandas as pd

NARRATIVE_KEYWORDS = ("narrative", "description", "note", "detail", "work", "activity")
CHARGE_NARRATIVE_KEYWORDS = ("narrative", "description", "desc", "notes", "comment", "details")
DATE_KEYWORDS = ("date", "day", "when")
FEE_EARNER_KEYWORDS = ("name", "person", "who", "user")
NOTES_KEYWORDS = ("notes", "note", "rules applied", "tracking")
ROSTER_NAME_KEYWORDS = ("name", "fee earner", "lawyer", "attorney", "solicitor", "person", "who")
ROLE_KEYWORDS = ("role", "title", "position", "grade", "level", "rank")
RATE_KEYWORDS = ("rate", "charge", "cost", "price", "fee", "bill", "amount")

AMENDED_NARRATIVE_HEADER = "Amended Narrative"
NOTES_HEADER = "Notes"
CHARGE_HEADER = "Charge"


def cell_text(value: Any) -> str:
    """Cell value as stripped text; None, NaN and NaT become ''."""
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()


def header_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def find_column(headers: Sequence[Any], keywords: Sequence[str], exclude: Sequence[str] = ()) -> int | None:
    for index, header in enumerate(headers):
        text = header_text(header)
        if not text or any(word in text for word in exclude):
            continue
        if any(keyword in text for keyword in keywords):
            return index
    return None


def find_fee_earner_column(headers: Sequence[Any]) -> int | None:
    for index, header in enumerate(headers):
        text = header_text(header)
        if "fee" in text and "earner" in text:
            return index
    return find_column(headers, FEE_EARNER_KEYWORDS)


def find_date_column(headers: Sequence[Any]) -> int | None:
    return find_column(headers, DATE_KEYWORDS)


def find_narrative_column(headers: Sequence[Any]) -> int | None:
    source = find_source_narrative_column(headers)
    if source is not None:
        return source
    return find_column(headers, NARRATIVE_KEYWORDS, exclude=("amended",) + NOTES_KEYWORDS)


def find_source_narrative_column(headers: Sequence[Any]) -> int | None:
    """Original Narrative, then a plain Narrative column, then Description."""
    texts = [header_text(header) for header in headers]
    for index, text in enumerate(texts):
        if "original" in text and "narrative" in text:
            return index
    for index, text in enumerate(texts):
        if "narrative" in text and "amended" not in text and "original" not in text:
            return index
    for index, text in enumerate(texts):
        if "description" in text:
            return index
    return None


def find_amended_narrative_column(headers: Sequence[Any]) -> int | None:
    for index, header in enumerate(headers):
        text = header_text(header)
        if "amended" in text and "narrative" in text:
            return index
    return None


def find_notes_column(headers: Sequence[Any]) -> int | None:
    return find_column(headers, NOTES_KEYWORDS)


def find_charge_column(headers: Sequence[Any], header: str = CHARGE_HEADER) -> int | None:
    wanted = header_text(header)
    for index, value in enumerate(headers):
        if header_text(value) == wanted:
            return index
    return None


def find_charge_narrative_column(headers: Sequence[Any]) -> int | None:
    return find_column(headers, CHARGE_NARRATIVE_KEYWORDS)


def find_roster_name_column(headers: Sequence[Any]) -> int | None:
    return find_column(headers, ROSTER_NAME_KEYWORDS)


def find_role_column(headers: Sequence[Any]) -> int | None:
    return find_column(headers, ROLE_KEYWORDS)


def find_rate_column(headers: Sequence[Any]) -> int | None:
    return find_column(headers, RATE_KEYWORDS)
