"""
loader.py: read a timesheet export into a pandas DataFrame.

Supports: .csv .tsv .txt .xlsx .xlsm

Cells load as Python objects (strings, numbers, datetimes); empty cells are
None so every rule sees one "blank" value rather than NaN/NaT/"".
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from pathlib import Path

import chardet
import pandas as pd

TEXT_FORMATS = {".csv", ".tsv", ".txt"}
EXCEL_FORMATS = {".xlsx", ".xlsm"}
ALL_FORMATS = TEXT_FORMATS | EXCEL_FORMATS


@dataclass
class LoadedTable:
    dataframe: pd.DataFrame
    detected_format: str
    detected_encoding: str | None = None
    delimiter: str | None = None
    sheet_name: str | None = None
    sheet_names: list[str] | None = None


def _detect_encoding(raw: bytes) -> str:
    result = chardet.detect(raw[:200_000])
    detected = result.get("encoding") or "utf-8"
    if detected.lower() == "ascii":
        return "utf-8"
    return detected


def _decode(raw: bytes, encoding: str) -> str:
    for candidate in ("utf-8-sig", encoding, "latin-1"):
        try:
            return raw.decode(candidate)
        except (LookupError, UnicodeDecodeError):
            continue
    return raw.decode("cp1252", errors="replace")


def _detect_delimiter(text: str, suffix: str) -> str:
    if suffix == ".tsv":
        return "\t"
    sample = "\n".join(text.splitlines()[:50])
    try:
        return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
    except csv.Error:
        return ","


def _blank_to_none(df: pd.DataFrame) -> pd.DataFrame:
    df = df.astype(object)
    df = df.where(pd.notna(df), None)
    for column in df.columns:
        # An explicit object Series keeps None; a bare list lets pandas infer a string dtype.
        df[column] = pd.Series(
            [None if isinstance(value, str) and not value.strip() else value for value in df[column]],
            index=df.index,
            dtype=object,
        )
    df.columns = [str(column).strip() for column in df.columns]
    return df


def _load_text(path: Path) -> LoadedTable:
    raw = path.read_bytes()
    encoding = _detect_encoding(raw)
    text = _decode(raw, encoding)
    delimiter = _detect_delimiter(text, path.suffix.lower())
    try:
        df = pd.read_csv(io.StringIO(text), sep=delimiter, dtype=object, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise ValueError(f"Could not parse {path.name}: {exc}") from exc
    return LoadedTable(
        dataframe=_blank_to_none(df),
        detected_format=path.suffix.lower().lstrip("."),
        detected_encoding=encoding,
        delimiter=delimiter,
    )


def _load_workbook(path: Path, sheet_name: str | None) -> LoadedTable:
    try:
        workbook = pd.ExcelFile(path, engine="openpyxl")
    except Exception as exc:
        raise ValueError(f"Could not read workbook {path.name}: {exc}") from exc
    with workbook:
        names = [str(name) for name in workbook.sheet_names]
        if sheet_name is None:
            chosen = next((name for name in names if name not in {"Change Log", "Missing Time"}), names[0])
        elif sheet_name in names:
            chosen = sheet_name
        else:
            raise ValueError(f"Sheet '{sheet_name}' not found. Available: {', '.join(names)}")
        df = workbook.parse(chosen, dtype=object)
    return LoadedTable(
        dataframe=_blank_to_none(df),
        detected_format=path.suffix.lower().lstrip("."),
        sheet_name=chosen,
        sheet_names=names,
    )


def load_table(path: Path, sheet_name: str | None = None) -> LoadedTable:
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in ALL_FORMATS:
        raise ValueError(
            f"Unsupported file type '{suffix or '[missing extension]'}'. "
            f"Supported: {', '.join(sorted(ALL_FORMATS))}"
        )
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if suffix in TEXT_FORMATS:
        return _load_text(path)
    return _load_workbook(path, sheet_name)
