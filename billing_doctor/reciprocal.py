"""
reciprocal.py: find meetings that only one side recorded.

When Sophie bills "Call with Callum Reyes re disclosure", Callum should have
an entry on the same day (within the matter's date tolerance) that either
mentions Sophie or is itself a meeting/call entry. Every mentioned fee earner
without such an entry produces a MissingEntryFinding on Sophie's row.

Meeting keywords are read from the narrative as billed. Names are searched in
the amended narrative when the row has one, so "Call with Callum" counts as a
mention of Callum Reyes once standardised, while a standardiser that rewrote
"Call" itself cannot hide the meeting.

Findings are not merged: two meeting rows naming the same absent person on
the same day give two findings, one per row.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Any, Hashable, Iterable

from billing_doctor.columns import cell_text
from billing_doctor.dates import dates_within_tolerance, display_date
from billing_doctor.meetings import has_meeting_keyword, mentioned_people, mentions_name
from billing_doctor.people import Person

MISSING_TIME_NOTE = "Missing Time: {name} should have entry for {date}"


@dataclass(frozen=True)
class TimeEntry:
    row_id: Hashable
    date: Any
    author: str
    narrative: str
    amended_narrative: str = ""

    @property
    def mention_text(self) -> str:
        """Text searched for names: the amended narrative when there is one."""
        return self.amended_narrative or self.narrative


@dataclass(frozen=True)
class MissingEntryFinding:
    source_entry: TimeEntry
    missing_person: Person
    expected_date: Any

    @property
    def note(self) -> str:
        return MISSING_TIME_NOTE.format(name=self.missing_person.full_name, date=display_date(self.expected_date))

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.source_entry.row_id,
            "fee_earner": self.source_entry.author,
            "missing_person": self.missing_person.full_name,
            "date": display_date(self.expected_date),
            "note": self.note,
        }


def _blank(value: Any) -> bool:
    return not cell_text(value)


def _author_key(author: Any) -> str:
    return str(author or "").strip().lower()


def has_reciprocal_entry(
    source: TimeEntry,
    person: Person,
    entries_by_author: dict[str, list[TimeEntry]],
    keywords: list[str],
    date_tolerance_days: float,
) -> bool:
    for other in entries_by_author.get(_author_key(person.full_name), []):
        if not dates_within_tolerance(source.date, other.date, date_tolerance_days):
            continue
        if mentions_name(str(other.mention_text or ""), str(source.author)):
            return True
        if has_meeting_keyword(str(other.narrative or ""), keywords):
            return True
    return False


def find_missing_entries(
    entries: Iterable[TimeEntry],
    roster: Iterable[Person],
    keywords: Iterable[str],
    date_tolerance_days: float = 0,
) -> list[MissingEntryFinding]:
    entries = list(entries)
    roster = list(roster)
    keywords = [str(keyword) for keyword in keywords if str(keyword).strip()]
    if not entries or not roster or not keywords:
        return []

    entries_by_author: dict[str, list[TimeEntry]] = {}
    for entry in entries:
        entries_by_author.setdefault(_author_key(entry.author), []).append(entry)

    findings: list[MissingEntryFinding] = []
    for entry in entries:
        if _blank(entry.narrative) or _blank(entry.author) or _blank(entry.date):
            continue
        if not has_meeting_keyword(str(entry.narrative), keywords):
            continue
        for person in mentioned_people(str(entry.mention_text), roster, str(entry.author)):
            if not has_reciprocal_entry(entry, person, entries_by_author, keywords, date_tolerance_days):
                findings.append(MissingEntryFinding(entry, person, entry.date))
    return findings


def add_note(existing: Any, note: str) -> str:
    """Append ``note`` to a comma-separated notes cell unless it is already there."""
    current = "" if existing is None else str(existing)
    if not current.strip():
        return note
    if note in current:
        return current
    return f"{current}, {note}"


def roster_full_name(name: str, roster: Iterable[Person]) -> str:
    """Expand a bare or partial author name to the roster's full name when one matches."""
    name = (name or "").strip()
    if not name:
        return name
    roster = list(roster)
    for person in roster:
        if person.full_name.lower() == name.lower():
            return person.full_name
    first = name.split()[0].lower()
    for person in roster:
        if person.first_name.lower() == first:
            return person.full_name
    return name


def swap_names_in_narrative(narrative: str, missing_name: str, original_author: str, roster: Iterable[Person]) -> str:
    """Rewrite a narrative from the missing person's point of view."""
    if not narrative:
        return narrative
    author_name = roster_full_name(original_author, roster)
    swapped = re.sub(re.escape(missing_name), lambda _: author_name, narrative, flags=re.IGNORECASE)
    missing_first = missing_name.split()[0] if missing_name.split() else ""
    if missing_first:
        swapped = re.sub(rf"\b{re.escape(missing_first)}\b", lambda _: author_name, swapped, flags=re.IGNORECASE)
    return swapped


def build_placeholder_entry(finding: MissingEntryFinding, roster: Iterable[Person], row_id: Hashable = None) -> TimeEntry:
    source = finding.source_entry
    narrative = swap_names_in_narrative(
        str(source.narrative or ""),
        finding.missing_person.full_name,
        str(source.author or ""),
        list(roster),
    )
    return replace(
        source,
        row_id=source.row_id if row_id is None else row_id,
        author=finding.missing_person.full_name,
        narrative=narrative,
        amended_narrative="",
    )
