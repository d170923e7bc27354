from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable

from billing_doctor.people import Person

DEFAULT_MEETING_KEYWORDS = ["meeting", "call", "conference", "discussion", "telephone", "phone"]


@lru_cache(maxsize=1024)
def _phrase_re(phrase: str) -> re.Pattern:
    return re.compile(rf"\b{re.escape(phrase.lower())}\b", re.IGNORECASE)


def contains_phrase(text: str, phrase: str) -> bool:
    """Case-insensitive whole-word search; blank phrases never match."""
    phrase = (phrase or "").strip()
    if not phrase or not text:
        return False
    return _phrase_re(phrase).search(text) is not None


def same_name(left: str | None, right: str | None) -> bool:
    return (left or "").strip().lower() == (right or "").strip().lower()


def has_meeting_keyword(narrative: str, keywords: Iterable[str]) -> bool:
    if not narrative:
        return False
    return any(contains_phrase(narrative, str(keyword)) for keyword in keywords)


def is_mentioned(narrative: str, person: Person) -> bool:
    """Full name as a phrase, or first name and surname both present somewhere."""
    if not person.full_name.strip():
        return False
    if contains_phrase(narrative, person.full_name):
        return True
    surname = person.surname
    if not surname:
        return False
    return contains_phrase(narrative, person.first_name) and contains_phrase(narrative, surname)


def mentioned_people(narrative: str, people: Iterable[Person], exclude_author: str | None = None) -> list[Person]:
    if not narrative:
        return []
    return [
        person
        for person in people
        if is_mentioned(narrative, person) and not same_name(person.full_name, exclude_author)
    ]


def mentions_name(narrative: str, name: str) -> bool:
    """Whether a narrative refers to ``name`` by first name or in full."""
    name = (name or "").strip()
    if not name:
        return False
    return contains_phrase(narrative, name.split()[0]) or contains_phrase(narrative, name)
