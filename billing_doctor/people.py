"""
people.py: fee-earner roster model and first-name lookup.

A roster routinely contains several people with the same first name. Lookups
therefore return every candidate, and ``PersonDirectory.select_best`` applies
a fixed tie-break: date strategy, then the person flagged as the default for
that given name, then roster order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Protocol

from billing_doctor.dates import parse_date

DEFAULT_MIN_PARTIAL_MATCH_LENGTH = 3
DATE_MATCH_TOLERANCE_DAYS = 5


@dataclass(eq=False)
class Person:
    full_name: str
    is_default_for_given_name: bool = False
    name_variations: list[str] = field(default_factory=list)
    role: str = ""
    rate: float = 0.0
    email: str = ""
    assignment_dates: list[Any] = field(default_factory=list)

    @property
    def name_parts(self) -> list[str]:
        return self.full_name.split()

    @property
    def first_name(self) -> str:
        parts = self.name_parts
        return parts[0] if parts else ""

    @property
    def surname(self) -> str:
        return " ".join(self.name_parts[1:])

    @property
    def last_name(self) -> str:
        parts = self.name_parts
        return parts[-1] if len(parts) >= 2 else ""


class MatchKind(str, Enum):
    EXACT = "exact"
    PREFIX_OF_STORED = "prefix_of_stored"
    PREFIX_OF_SEARCH = "prefix_of_search"


@dataclass(frozen=True)
class MatchCandidate:
    person: Person
    match_kind: MatchKind


class DateMatchStrategy(Protocol):
    def match(self, candidates: list[Person], target: datetime, tolerance_days: int) -> Person | None:
        ...


class NoDateMatch:
    """Default strategy: rosters carry no assignment history, so never decide."""

    def match(self, candidates: list[Person], target: datetime, tolerance_days: int) -> Person | None:
        return None


class AssignmentDateMatch:
    """Pick the first candidate with an assignment date near the entry date."""

    def match(self, candidates: list[Person], target: datetime, tolerance_days: int) -> Person | None:
        for person in candidates:
            for raw in person.assignment_dates:
                assigned = parse_date(raw)
                if assigned is None:
                    continue
                if abs((assigned - target).total_seconds()) / 86_400 <= tolerance_days:
                    return person
        return None


DATE_MATCH_STRATEGIES: dict[str, type] = {"none": NoDateMatch, "assignment": AssignmentDateMatch}


def _dedupe(people: Iterable[Person]) -> list[Person]:
    seen: set[int] = set()
    result = []
    for person in people:
        if id(person) in seen:
            continue
        seen.add(id(person))
        result.append(person)
    return result


class PersonDirectory:
    def __init__(
        self,
        index: dict[str, list[Person]],
        people: list[Person],
        date_strategy: DateMatchStrategy | None = None,
    ) -> None:
        self.index = index
        self.people = people
        self.date_strategy = date_strategy or NoDateMatch()

    @classmethod
    def build(
        cls,
        people: Iterable[Person],
        allow_partial_matches: bool = False,
        date_strategy: DateMatchStrategy | None = None,
    ) -> "PersonDirectory":
        """Index people by lowercase first name, plus name variations when partial matching is on."""
        index: dict[str, list[Person]] = {}
        roster = [person for person in people if person.full_name and person.full_name.strip()]
        for person in roster:
            index.setdefault(person.first_name.lower(), []).append(person)
            if not allow_partial_matches:
                continue
            for variation in person.name_variations:
                key = str(variation).strip().lower()
                if key:
                    index.setdefault(key, []).append(person)
        return cls(index, roster, date_strategy)

    def find_matches(
        self,
        search_word: str,
        allow_partial_matches: bool,
        min_partial_match_length: int = DEFAULT_MIN_PARTIAL_MATCH_LENGTH,
    ) -> list[MatchCandidate]:
        search = search_word.strip().lower()
        if not search:
            return []
        if search in self.index:
            return [MatchCandidate(person, MatchKind.EXACT) for person in _dedupe(self.index[search])]
        if not allow_partial_matches:
            return []
        if len(search) < min_partial_match_length:
            return []

        matches: list[MatchCandidate] = []
        seen: set[int] = set()
        for key, people in self.index.items():
            if len(key) < min_partial_match_length:
                continue
            if key.startswith(search):
                kind = MatchKind.PREFIX_OF_STORED
            elif search.startswith(key):
                kind = MatchKind.PREFIX_OF_SEARCH
            else:
                continue
            for person in people:
                if id(person) not in seen:
                    seen.add(id(person))
                    matches.append(MatchCandidate(person, kind))
        return matches

    def find_candidates(
        self,
        search_word: str,
        allow_partial_matches: bool,
        min_partial_match_length: int = DEFAULT_MIN_PARTIAL_MATCH_LENGTH,
    ) -> list[Person]:
        return [
            candidate.person
            for candidate in self.find_matches(search_word, allow_partial_matches, min_partial_match_length)
        ]

    def select_best(self, candidates: list[Person], entry_date: Any = None, use_date_matching: bool = False) -> Person | None:
        if not candidates:
            return None
        if len(candidates) == 1:
            return candidates[0]

        if use_date_matching and entry_date is not None:
            target = parse_date(entry_date)
            if target is not None:
                matched = self.date_strategy.match(candidates, target, DATE_MATCH_TOLERANCE_DAYS)
                if matched is not None:
                    return matched

        for person in candidates:
            if person.is_default_for_given_name:
                return person
        return candidates[0]
