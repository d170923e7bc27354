from __future__ import annotations

from typing import Any

import pandas as pd

from billing_doctor.columns import cell_text, find_rate_column, find_role_column, find_roster_name_column
from billing_doctor.people import Person


def mark_default_for_duplicates(people: list[Person]) -> list[Person]:
    """
    Keep exactly-one-default semantics for shared first names.

    People whose first name is unique lose any stale default flag. In a group
    sharing a first name an existing flag is kept; if nobody is flagged the
    first person in roster order becomes the default.
    """
    groups: dict[str, list[Person]] = {}
    for person in people:
        if person.first_name:
            groups.setdefault(person.first_name.lower(), []).append(person)

    for members in groups.values():
        if len(members) == 1:
            members[0].is_default_for_given_name = False
            continue
        if not any(member.is_default_for_given_name for member in members):
            members[0].is_default_for_given_name = True
    return people


def duplicate_first_names(people: list[Person]) -> dict[str, list[str]]:
    groups: dict[str, list[str]] = {}
    for person in people:
        if person.first_name:
            groups.setdefault(person.first_name.lower(), []).append(person.full_name)
    return {name: members for name, members in groups.items() if len(members) > 1}


def _parse_rate(value: Any) -> float:
    text = cell_text(value).replace(",", "")
    for symbol in ("£", "$", "€"):
        text = text.replace(symbol, "")
    try:
        return float(text)
    except ValueError:
        return 0.0


def roster_from_frame(df: pd.DataFrame) -> list[Person]:
    """Unique (name, role, rate) fee earners found in a timesheet."""
    headers = list(df.columns)
    name_col = find_roster_name_column(headers)
    if name_col is None:
        raise ValueError("No Name column found in the spreadsheet.")
    others = [None if index == name_col else header for index, header in enumerate(headers)]
    role_col = find_role_column(others)
    rate_col = find_rate_column(others)

    people: dict[tuple[str, str, float], Person] = {}
    for row in df.itertuples(index=False, name=None):
        name = cell_text(row[name_col])
        if not name:
            continue
        role = cell_text(row[role_col]) if role_col is not None else ""
        rate = _parse_rate(row[rate_col]) if rate_col is not None else 0.0
        key = (name, role, rate)
        if key not in people:
            people[key] = Person(full_name=name, role=role, rate=rate)
    return mark_default_for_duplicates(list(people.values()))
