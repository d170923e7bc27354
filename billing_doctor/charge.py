from __future__ import annotations

from typing import Any, Iterable

CHARGEABLE = "Y"
NOT_CHARGEABLE = "N"
QUERY = "Q"


def parse_keyword_list(value: Any) -> list[str]:
    """Accept "a, b, c" or ["a", "b"]; returns stripped, non-empty entries."""
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = value
    else:
        return []
    return [str(item).strip() for item in items if str(item).strip()]


def charge_value(narrative: Any, no_charge_keywords: str | Iterable[str]) -> str:
    """Y by default, N when the narrative opens with a no-charge keyword, Q when it is blank."""
    text = "" if narrative is None else str(narrative).lower()
    if not text.strip():
        return QUERY
    if not isinstance(no_charge_keywords, str):
        no_charge_keywords = list(no_charge_keywords)
    keywords = [keyword.lower() for keyword in parse_keyword_list(no_charge_keywords)]
    if any(text.startswith(keyword) for keyword in keywords):
        return NOT_CHARGEABLE
    return CHARGEABLE
