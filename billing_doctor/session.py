"""
session.py: apply a matter profile's rules to a loaded timesheet.

Order of application (each step sees the previous step's output):
  1. Charge prepopulation (Y / N / Q)
  2. Name standardisation into the Amended Narrative column
  3. Reciprocal missing-time audit into the Notes column, plus optional
     placeholder rows for the people who did not record the meeting

Rows are identified by DataFrame index label throughout, so placeholder rows
inserted by step 3 never shift the identity of existing rows. Every cell the
session writes is recorded as a CellChange; the name standardisation changes
of the latest run are kept so the run can be undone.
"""

from __future__ import annotations

import numbers
from dataclasses import dataclass, field
from typing import Any, Hashable

import pandas as pd

from billing_doctor.charge import charge_value
from billing_doctor.columns import (
    AMENDED_NARRATIVE_HEADER,
    NOTES_HEADER,
    cell_text,
    find_amended_narrative_column,
    find_charge_column,
    find_charge_narrative_column,
    find_date_column,
    find_fee_earner_column,
    find_narrative_column,
    find_notes_column,
)
from billing_doctor.nicknames import NicknameIndex
from billing_doctor.people import DATE_MATCH_STRATEGIES, DateMatchStrategy, PersonDirectory
from billing_doctor.profiles import MatterProfile
from billing_doctor.reciprocal import (
    MissingEntryFinding,
    TimeEntry,
    add_note,
    build_placeholder_entry,
    find_missing_entries,
)
from billing_doctor.standardise import standardise_narrative

RULE_CHARGE = "charge_prepopulation"
RULE_NAMES = "name_standardisation"
RULE_MISSING_TIME = "missing_time_entries"
PLACEHOLDER_COLUMN = "*"


@dataclass
class CellChange:
    row: Hashable
    column: str
    old_value: Any
    new_value: Any
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row,
            "column": self.column,
            "old": None if self.old_value is None else str(self.old_value),
            "new": None if self.new_value is None else str(self.new_value),
            "reason": self.reason,
        }


@dataclass
class RuleOutcome:
    rule: str
    applied: bool = False
    updated_rows: int = 0
    changes: list[CellChange] = field(default_factory=list)
    findings: list[MissingEntryFinding] = field(default_factory=list)
    placeholder_rows: list[Hashable] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule": self.rule,
            "applied": self.applied,
            "updated_rows": self.updated_rows,
            "changes": len(self.changes),
            "findings": len(self.findings),
            "placeholder_rows": list(self.placeholder_rows),
            "warnings": list(self.warnings),
        }


@dataclass
class SessionResult:
    dataframe: pd.DataFrame
    outcomes: list[RuleOutcome] = field(default_factory=list)
    highlight_rows: list[Hashable] = field(default_factory=list)

    @property
    def changes(self) -> list[CellChange]:
        return [change for outcome in self.outcomes for change in outcome.changes]

    @property
    def findings(self) -> list[MissingEntryFinding]:
        return [finding for outcome in self.outcomes for finding in outcome.findings]

    @property
    def warnings(self) -> list[str]:
        return [warning for outcome in self.outcomes for warning in outcome.warnings]

    def outcome(self, rule: str) -> RuleOutcome | None:
        return next((outcome for outcome in self.outcomes if outcome.rule == rule), None)


def _column_at(df: pd.DataFrame, index: int | None) -> str | None:
    return None if index is None else df.columns[index]


def _ensure_column(df: pd.DataFrame, header: str, after: str | None = None) -> str:
    """Insert an empty column after ``after`` (or at the end) and return its name."""
    position = len(df.columns) if after is None else df.columns.get_loc(after) + 1
    df.insert(position, header, [None] * len(df), allow_duplicates=False)
    return header


def _next_label(df: pd.DataFrame, reserved: int = 0) -> int:
    numeric = [label for label in df.index if isinstance(label, numbers.Integral)]
    return (max(numeric) + 1 if numeric else len(df)) + reserved


class RuleSession:
    """Runs the rules enabled on one matter profile against timesheets."""

    def __init__(self, profile: MatterProfile, date_strategy: DateMatchStrategy | None = None) -> None:
        self.profile = profile
        self.date_strategy = date_strategy
        self.last_snapshot: list[CellChange] | None = None

    @property
    def can_undo(self) -> bool:
        return bool(self.last_snapshot)

    def apply_all(self, df: pd.DataFrame) -> SessionResult:
        df = df.copy()
        outcomes: list[RuleOutcome] = []
        if self.profile.prepopulate_charge:
            outcomes.append(self.apply_charge(df))
        if self.profile.rules.name_standardisation.enabled:
            outcomes.append(self.apply_name_standardisation(df))
        highlight: list[Hashable] = []
        if self.profile.rules.missing_time_entries.enabled:
            df, outcome, highlight = self.apply_missing_time(df)
            outcomes.append(outcome)
        return SessionResult(dataframe=df, outcomes=outcomes, highlight_rows=highlight)

    def apply_charge(self, df: pd.DataFrame) -> RuleOutcome:
        """Fill blank charge cells; existing Y/N/Q decisions are left alone. Mutates ``df``."""
        outcome = RuleOutcome(RULE_CHARGE)
        headers = list(df.columns)
        narrative_index = find_narrative_column(headers)
        if narrative_index is None:
            narrative_index = find_charge_narrative_column(headers)
        narrative_col = _column_at(df, narrative_index)
        if narrative_col is None:
            outcome.warnings.append("No narrative column found; charge values default to Q.")

        header = self.profile.charge_column_header
        charge_col = _column_at(df, find_charge_column(headers, header))
        if charge_col is None:
            charge_col = _ensure_column(df, header, after=narrative_col)

        for label in df.index:
            if cell_text(df.at[label, charge_col]):
                continue
            narrative = df.at[label, narrative_col] if narrative_col is not None else None
            value = charge_value(cell_text(narrative), self.profile.no_charge_keywords)
            df.at[label, charge_col] = value
            outcome.changes.append(CellChange(label, charge_col, None, value, "Charge prepopulated"))
        outcome.updated_rows = len(outcome.changes)
        outcome.applied = True
        return outcome

    def apply_name_standardisation(self, df: pd.DataFrame) -> RuleOutcome:
        """Write expanded narratives to the Amended Narrative column. Mutates ``df``."""
        outcome = RuleOutcome(RULE_NAMES)
        config = self.profile.rules.name_standardisation
        if not self.profile.fee_earners:
            outcome.warnings.append("No fee earners configured for this matter.")
            return outcome

        headers = list(df.columns)
        source_col = _column_at(df, find_narrative_column(headers))
        if source_col is None:
            outcome.warnings.append("No narrative column found.")
            return outcome
        date_col = _column_at(df, find_date_column(headers))
        amended_col = _column_at(df, find_amended_narrative_column(headers))

        strategy = self.date_strategy or DATE_MATCH_STRATEGIES[config.date_match_strategy]()
        directory = PersonDirectory.build(self.profile.fee_earners, config.allow_partial_matches, strategy)
        nicknames = NicknameIndex(config.custom_nicknames)

        for label in df.index:
            narrative = df.at[label, source_col]
            if not isinstance(narrative, str) or not narrative.strip():
                continue
            entry_date = df.at[label, date_col] if date_col is not None else None
            processed = standardise_narrative(narrative, directory, nicknames, config, entry_date)
            if processed == narrative:
                continue
            if amended_col is None:
                if not self.profile.add_amended_narrative:
                    outcome.warnings.append("Amended Narrative column is disabled; names were not written.")
                    break
                amended_col = _ensure_column(df, AMENDED_NARRATIVE_HEADER, after=source_col)
            old_value = df.at[label, amended_col]
            if old_value == processed:
                continue
            df.at[label, amended_col] = processed
            outcome.changes.append(CellChange(label, amended_col, old_value, processed, "Names standardised"))

        outcome.updated_rows = len(outcome.changes)
        outcome.applied = True
        self.last_snapshot = list(outcome.changes)
        return outcome

    def _entries(self, df: pd.DataFrame, author_col: str, date_col: str, narrative_col: str) -> list[TimeEntry]:
        amended_col = _column_at(df, find_amended_narrative_column(list(df.columns)))
        entries = []
        for label in df.index:
            entries.append(
                TimeEntry(
                    row_id=label,
                    date=df.at[label, date_col],
                    author=cell_text(df.at[label, author_col]),
                    narrative=cell_text(df.at[label, narrative_col]),
                    amended_narrative=cell_text(df.at[label, amended_col]) if amended_col is not None else "",
                )
            )
        return entries

    def audit(self, df: pd.DataFrame) -> RuleOutcome:
        """Find missing reciprocal entries without touching ``df``."""
        outcome = RuleOutcome(RULE_MISSING_TIME)
        config = self.profile.rules.missing_time_entries
        if not self.profile.fee_earners:
            outcome.warnings.append("No fee earners configured for this matter.")
            return outcome

        headers = list(df.columns)
        author_col = _column_at(df, find_fee_earner_column(headers))
        date_col = _column_at(df, find_date_column(headers))
        narrative_col = _column_at(df, find_narrative_column(headers))
        missing = [
            label
            for label, column in (("fee earner", author_col), ("date", date_col), ("narrative", narrative_col))
            if column is None
        ]
        if missing:
            outcome.warnings.append(f"Required columns not found: {', '.join(missing)}.")
            return outcome

        entries = self._entries(df, author_col, date_col, narrative_col)
        outcome.findings = find_missing_entries(
            entries,
            self.profile.fee_earners,
            config.meeting_keywords,
            config.date_tolerance_days,
        )
        outcome.applied = True
        return outcome

    def apply_missing_time(self, df: pd.DataFrame) -> tuple[pd.DataFrame, RuleOutcome, list[Hashable]]:
        """Note findings on their source rows; returns a new frame when placeholders are inserted."""
        outcome = self.audit(df)
        if not outcome.applied or not outcome.findings:
            return df, outcome, []

        headers = list(df.columns)
        author_col = _column_at(df, find_fee_earner_column(headers))
        narrative_col = _column_at(df, find_narrative_column(headers))
        amended_col = _column_at(df, find_amended_narrative_column(headers))

        placeholders: dict[Hashable, list[tuple[Hashable, list[Any]]]] = {}
        if self.profile.rules.missing_time_entries.create_missing_entries:
            for offset, finding in enumerate(outcome.findings):
                label = _next_label(df, offset)
                entry = build_placeholder_entry(finding, self.profile.fee_earners, row_id=label)
                row = df.loc[finding.source_entry.row_id].copy()
                row[author_col] = entry.author
                row[narrative_col] = entry.narrative
                if amended_col is not None:
                    row[amended_col] = None
                placeholders.setdefault(finding.source_entry.row_id, []).append((label, row.tolist()))
                outcome.placeholder_rows.append(label)
                outcome.changes.append(
                    CellChange(label, PLACEHOLDER_COLUMN, None, entry.narrative, f"Placeholder entry for {entry.author}")
                )

        notes_col = _column_at(df, find_notes_column(headers))
        if notes_col is None:
            if not self.profile.add_notes_column:
                outcome.warnings.append("Notes column is disabled; findings were not written.")
                return df, outcome, []
            notes_col = _ensure_column(df, NOTES_HEADER)

        highlight: list[Hashable] = []
        for finding in outcome.findings:
            label = finding.source_entry.row_id
            old_value = df.at[label, notes_col]
            new_value = add_note(old_value, finding.note)
            if new_value == cell_text(old_value):
                continue
            df.at[label, notes_col] = new_value
            outcome.changes.append(CellChange(label, notes_col, old_value, new_value, "Missing time noted"))
            if label not in highlight:
                highlight.append(label)
        outcome.updated_rows = len(highlight)

        if placeholders:
            df = self._insert_placeholders(df, placeholders, notes_col)
        return df, outcome, highlight

    @staticmethod
    def _insert_placeholders(
        df: pd.DataFrame,
        placeholders: dict[Hashable, list[tuple[Hashable, list[Any]]]],
        notes_col: str,
    ) -> pd.DataFrame:
        rows: list[list[Any]] = []
        labels: list[Hashable] = []
        notes_position = df.columns.get_loc(notes_col)
        for label, values in zip(df.index, df.itertuples(index=False, name=None)):
            rows.append(list(values))
            labels.append(label)
            for placeholder_label, placeholder_values in placeholders.get(label, []):
                # Placeholder rows were captured before notes were written.
                if len(placeholder_values) < len(df.columns):
                    placeholder_values = placeholder_values[:notes_position] + [None] + placeholder_values[notes_position:]
                rows.append(placeholder_values)
                labels.append(placeholder_label)
        return pd.DataFrame(rows, index=labels, columns=df.columns, dtype=object)

    def undo(self, df: pd.DataFrame) -> pd.DataFrame:
        """Restore the cells changed by the latest name standardisation run."""
        if not self.last_snapshot:
            raise ValueError("Nothing to undo.")
        df = df.copy()
        for change in self.last_snapshot:
            if change.row in df.index and change.column in df.columns:
                df.at[change.row, change.column] = change.old_value
        self.last_snapshot = None
        return df
