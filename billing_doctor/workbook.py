"""Write a processed timesheet, its change log and missing-time findings to .xlsx."""

from __future__ import annotations

import os
import tempfile
from datetime import date, datetime
from pathlib import Path
from typing import Any, Hashable

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font

from billing_doctor.columns import cell_text
from billing_doctor.dates import display_date
from billing_doctor.session import SessionResult

TIMESHEET_SHEET = "Timesheet"
CHANGE_LOG_SHEET = "Change Log"
MISSING_TIME_SHEET = "Missing Time"
CHANGE_LOG_HEADERS = ["row", "column", "old_value", "new_value", "reason"]
MISSING_TIME_HEADERS = ["row", "fee_earner", "missing_person", "date", "note"]


def cell_value(value: Any) -> Any:
    """Coerce a DataFrame cell into something openpyxl can store."""
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, float) and value != value:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime().replace(tzinfo=None)
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, (str, bool, int, float, date)):
        return value
    if pd.isna(value):
        return None
    if hasattr(value, "item"):
        return value.item()
    return str(value)


def sheet_rows(df: pd.DataFrame) -> dict[Hashable, int]:
    """Map each row label to its 1-based worksheet row (row 1 is the header)."""
    return {label: position + 2 for position, label in enumerate(df.index)}


def _write_header(ws, headers: list[str]) -> None:
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    ws.freeze_panes = "A2"


def write_timesheet_sheet(workbook: Workbook, df: pd.DataFrame) -> None:
    ws = workbook.active
    ws.title = TIMESHEET_SHEET
    _write_header(ws, [str(column) for column in df.columns])
    for values in df.itertuples(index=False, name=None):
        ws.append([cell_value(value) for value in values])


def write_change_log_sheet(workbook: Workbook, result: SessionResult) -> None:
    rows = sheet_rows(result.dataframe)
    ws = workbook.create_sheet(CHANGE_LOG_SHEET)
    _write_header(ws, CHANGE_LOG_HEADERS)
    for change in result.changes:
        ws.append(
            [
                rows.get(change.row, str(change.row)),
                change.column,
                cell_text(change.old_value) or None,
                cell_text(change.new_value) or None,
                change.reason,
            ]
        )


def write_missing_time_sheet(workbook: Workbook, result: SessionResult) -> None:
    rows = sheet_rows(result.dataframe)
    ws = workbook.create_sheet(MISSING_TIME_SHEET)
    _write_header(ws, MISSING_TIME_HEADERS)
    for finding in result.findings:
        ws.append(
            [
                rows.get(finding.source_entry.row_id, str(finding.source_entry.row_id)),
                finding.source_entry.author,
                finding.missing_person.full_name,
                display_date(finding.expected_date),
                finding.note,
            ]
        )


def write_workbook(result: SessionResult, output_path: Path) -> Path:
    output_path = Path(output_path)
    if output_path.suffix.lower() != ".xlsx":
        raise ValueError(f"Output workbook must be .xlsx: {output_path}")

    workbook = Workbook()
    write_timesheet_sheet(workbook, result.dataframe)
    write_change_log_sheet(workbook, result)
    write_missing_time_sheet(workbook, result)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{output_path.stem}.", suffix=output_path.suffix, dir=str(output_path.parent))
    os.close(fd)
    temp_path = Path(tmp_name)
    try:
        workbook.save(temp_path)
        os.replace(temp_path, output_path)
    finally:
        if temp_path.exists():
            temp_path.unlink()
    return output_path
