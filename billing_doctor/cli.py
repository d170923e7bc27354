from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from billing_doctor import __version__ as TOOL_VERSION
from billing_doctor.loader import ALL_FORMATS, load_table
from billing_doctor.nicknames import NicknameIndex
from billing_doctor.people import DATE_MATCH_STRATEGIES, PersonDirectory
from billing_doctor.profiles import MatterProfile, default_profile_payload, load_profile
from billing_doctor.reciprocal import MissingEntryFinding
from billing_doctor.roster import duplicate_first_names, roster_from_frame
from billing_doctor.session import RULE_CHARGE, RULE_MISSING_TIME, RULE_NAMES, RuleSession, SessionResult
from billing_doctor.standardise import standardise_narrative
from billing_doctor.workbook import sheet_rows, write_workbook

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_FINDINGS = 3

# Bump a version whenever the matching JSON payload changes shape.
CONTRACT_VERSIONS = {
    "apply_summary": "1.0.0",
    "audit": "1.0.0",
    "roster": "1.0.0",
}


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class BillingDoctorArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True, default=str)


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def contract_fields(kind: str) -> dict[str, Any]:
    version = CONTRACT_VERSIONS[kind]
    return {
        "contract": {"name": f"billing_doctor.{kind}", "version": version},
        "schema_version": version,
        "tool_version": TOOL_VERSION,
    }


def run_summary(
    command: str,
    input_path: Path,
    profile: MatterProfile,
    metrics: dict[str, Any],
    warnings: list[str],
    *,
    status: str = "ok",
    output_path: Path | None = None,
) -> dict[str, Any]:
    generated = datetime.now(timezone.utc).replace(microsecond=0)
    return {
        "tool": "billing-doctor",
        "command": command,
        "status": status,
        "generated_at": generated.isoformat().replace("+00:00", "Z"),
        "input_file": str(input_path),
        "output_file": str(output_path) if output_path else None,
        "profile": profile.name,
        "warnings": list(warnings),
        "metrics": metrics,
    }


def timestamp_token() -> str:
    override = os.environ.get("BILLING_DOCTOR_OUTPUT_STAMP")
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_dir(input_path: Path) -> Path:
    return Path.cwd() / "billing-doctor-output" / f"{input_path.stem}-{timestamp_token()}"


def determine_output_dir(args: argparse.Namespace, input_path: Path) -> Path:
    if getattr(args, "out_dir", None):
        return Path(args.out_dir)
    return default_output_dir(input_path)


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_text(path: Path, payload: str) -> None:
    ensure_parent(path)
    path.write_text(payload, encoding="utf-8")


def write_json(path: Path, payload: Any) -> None:
    write_text(path, json_dumps(payload))


def safe_output_path(explicit: Path | None, default_path: Path) -> Path:
    path = explicit or default_path
    if path.exists():
        raise CliError(f"Refusing to overwrite existing output: {path}", EXIT_COMMAND_ERROR)
    return path


def remove_generated_at(value: Any) -> Any:
    if isinstance(value, dict):
        result = {}
        for key, item in value.items():
            if key == "generated_at":
                result[key] = "1970-01-01T00:00:00Z"
            else:
                result[key] = remove_generated_at(item)
        return result
    if isinstance(value, list):
        return [remove_generated_at(item) for item in value]
    return value


def classify_backend_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, UnicodeDecodeError):
        return EXIT_PARSE_FAILED
    if isinstance(exc, FileNotFoundError):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, ValueError):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def require_input(path_value: str) -> Path:
    input_path = Path(path_value)
    if not input_path.exists():
        raise CliError(f"File not found: {input_path}", EXIT_COMMAND_ERROR)
    if input_path.suffix.lower() not in ALL_FORMATS:
        raise CliError(
            f"Unsupported file type '{input_path.suffix.lower() or '[missing extension]'}'. "
            f"Supported: {', '.join(sorted(ALL_FORMATS))}",
            EXIT_COMMAND_ERROR,
        )
    return input_path


def require_profile(path_value: str) -> MatterProfile:
    profile = load_profile(Path(path_value))
    if not profile.fee_earners:
        raise CliError(f"Matter profile has no fee earners: {path_value}", EXIT_COMMAND_ERROR)
    return profile


def finding_payloads(findings: list[MissingEntryFinding], rows: dict[Any, int]) -> list[dict[str, Any]]:
    payloads = []
    for finding in findings:
        item = finding.to_dict()
        item["sheet_row"] = rows.get(finding.source_entry.row_id)
        payloads.append(item)
    return payloads


def build_apply_summary(
    *,
    input_path: Path,
    output_path: Path | None,
    profile: MatterProfile,
    result: SessionResult,
) -> dict[str, Any]:
    rows = sheet_rows(result.dataframe)
    names = result.outcome(RULE_NAMES)
    missing = result.outcome(RULE_MISSING_TIME)
    return {
        **contract_fields("apply_summary"),
        "input_file": str(input_path),
        "output_file": str(output_path) if output_path else None,
        "matter": profile.name,
        "rules": [outcome.to_dict() for outcome in result.outcomes],
        "changes_logged": len(result.changes),
        "findings": finding_payloads(result.findings, rows),
        "highlight_rows": [rows[label] for label in result.highlight_rows if label in rows],
        "warnings": result.warnings,
        "run_summary": run_summary(
            "apply",
            input_path,
            profile,
            {
                "rows_in": len(result.dataframe) - (len(missing.placeholder_rows) if missing else 0),
                "rows_out": len(result.dataframe),
                "narratives_amended": names.updated_rows if names else 0,
                "missing_entries_found": len(result.findings),
                "placeholder_rows": len(missing.placeholder_rows) if missing else 0,
            },
            result.warnings,
            output_path=output_path,
        ),
    }


def render_apply_summary(summary: dict[str, Any]) -> str:
    metrics = summary["run_summary"]["metrics"]
    lines = [
        "billing-doctor apply",
        f"Input: {summary['input_file']}",
        f"Output: {summary['output_file'] or '[dry run]'}",
        f"Matter: {summary['matter'] or '[unnamed]'}",
        f"Rows: {metrics['rows_in']} -> {metrics['rows_out']}",
        f"Narratives amended: {metrics['narratives_amended']}",
        f"Missing entries found: {metrics['missing_entries_found']}",
        f"Changes logged: {summary['changes_logged']}",
    ]
    if summary["highlight_rows"]:
        lines.append("Rows to review: " + ", ".join(str(row) for row in summary["highlight_rows"]))
    if summary["warnings"]:
        lines.append("Warnings:")
        lines.extend(f"- {warning}" for warning in summary["warnings"])
    return "\n".join(lines) + "\n"


def render_findings_text(payload: dict[str, Any]) -> str:
    lines = [
        "billing-doctor audit",
        f"File: {payload['input_file']}",
        f"Matter: {payload['matter'] or '[unnamed]'}",
        f"Missing entries: {len(payload['findings'])}",
    ]
    lines.extend(f"- row {item['sheet_row']}: {item['note']}" for item in payload["findings"])
    if payload["warnings"]:
        lines.append("Warnings:")
        lines.extend(f"- {warning}" for warning in payload["warnings"])
    return "\n".join(lines) + "\n"


EXPLAIN_RULES = {
    RULE_NAMES: {
        "description": "Expands first names, nicknames and partial names in narratives to the fee earner's full name.",
        "evidence": "A word in the narrative matches a roster first name, name variation or nickname.",
        "output": "Amended Narrative column; the source narrative is never edited.",
        "disable_hint": "Set rules.nameStandardisation.enabled to false, or add the word to excludedNames.",
    },
    RULE_MISSING_TIME: {
        "description": "Flags meetings recorded by one fee earner but not by the colleagues it names.",
        "evidence": "A narrative names another fee earner who has no entry on that date that mentions the author or is itself a meeting.",
        "output": "A 'Missing Time: ...' note in the Notes column and, optionally, a placeholder row.",
        "disable_hint": "Set rules.missingTimeEntries.enabled to false, or widen dateTolerance.",
    },
    RULE_CHARGE: {
        "description": "Prepopulates the charge column with Y, N or Q.",
        "evidence": "N when the narrative starts with a no-charge keyword, Q when it is blank, Y otherwise.",
        "output": "Blank cells of the charge column; existing decisions are kept.",
        "disable_hint": "Set prepopulateCharge to false or edit noChargeKeywords.",
    },
}


def build_parser() -> argparse.ArgumentParser:
    parser = BillingDoctorArgumentParser(prog="billing-doctor", description="Timesheet narrative rules for legal billing.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    apply = subparsers.add_parser("apply", help="Apply a matter profile's rules and write an annotated workbook.")
    apply.add_argument("input", help="Timesheet path (.csv/.tsv/.txt/.xlsx/.xlsm)")
    apply.add_argument("--profile", required=True, help="Matter profile JSON")
    apply.add_argument("--sheet", dest="sheet_name", help="Workbook sheet name")
    apply.add_argument("-o", "--out", dest="out_dir", help="Output directory")
    apply.add_argument("--output", help="Explicit output workbook path (.xlsx)")
    apply.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    apply.add_argument("--dry-run", action="store_true", help="Run the rules without writing outputs")
    apply.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")

    audit = subparsers.add_parser("audit", help="Report missing reciprocal time entries without writing anything.")
    audit.add_argument("input", help="Timesheet path")
    audit.add_argument("--profile", required=True, help="Matter profile JSON")
    audit.add_argument("--sheet", dest="sheet_name", help="Workbook sheet name")
    audit.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    audit.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")

    standardise = subparsers.add_parser("standardise", help="Standardise the names in one narrative.")
    standardise.add_argument("text", help="Narrative text")
    standardise.add_argument("--profile", required=True, help="Matter profile JSON")
    standardise.add_argument("--date", help="Entry date used to pick between people sharing a first name")
    standardise.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    roster = subparsers.add_parser("roster", help="List the fee earners found in a timesheet.")
    roster.add_argument("input", help="Timesheet path")
    roster.add_argument("--sheet", dest="sheet_name", help="Workbook sheet name")
    roster.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    config = subparsers.add_parser("config", help="Generate matter profiles.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter matter profile.")
    config_init.add_argument("--path", default="matter-profile.json", help="Profile output path")
    config_init.add_argument("--name", default="Example Matter", help="Matter name")

    explain = subparsers.add_parser("explain", help="Explain a rule id.")
    explain.add_argument("rule_id", help="Rule identifier")
    explain.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    subparsers.add_parser("version", help="Print version")
    return parser


def run_apply(args: argparse.Namespace) -> int:
    try:
        input_path = require_input(args.input)
        profile = require_profile(args.profile)
        out_dir = determine_output_dir(args, input_path)
        output_path = None
        summary_path = out_dir / "apply-summary.json"
        if not args.dry_run:
            explicit = Path(args.output) if args.output else None
            output_path = safe_output_path(explicit, out_dir / f"{input_path.stem}-billing.xlsx")
            if output_path.suffix.lower() != ".xlsx":
                raise CliError("--output must be an .xlsx path.", EXIT_COMMAND_ERROR)

        loaded = load_table(input_path, sheet_name=args.sheet_name)
        result = RuleSession(profile).apply_all(loaded.dataframe)
        summary = remove_generated_at(
            build_apply_summary(input_path=input_path, output_path=output_path, profile=profile, result=result)
        )
        if output_path is not None:
            write_workbook(result, output_path)
            write_json(summary_path, summary)

        if args.json:
            maybe_emit_json_stdout(summary, True)
        else:
            emit_human(render_apply_summary(summary).rstrip(), quiet=args.quiet)
            if output_path is not None:
                emit_human(f"Workbook written: {output_path}", quiet=args.quiet)
                emit_human(f"Apply summary: {summary_path}", quiet=args.quiet)
        return EXIT_FINDINGS if result.findings else EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_backend_exception(exc)


def run_audit(args: argparse.Namespace) -> int:
    try:
        input_path = require_input(args.input)
        profile = require_profile(args.profile)
        loaded = load_table(input_path, sheet_name=args.sheet_name)
        df = loaded.dataframe.copy()
        session = RuleSession(profile)
        if profile.rules.name_standardisation.enabled:
            session.apply_name_standardisation(df)
        outcome = session.audit(df)
        payload = remove_generated_at(
            {
                **contract_fields("audit"),
                "input_file": str(input_path),
                "matter": profile.name,
                "findings": finding_payloads(outcome.findings, sheet_rows(df)),
                "warnings": outcome.warnings,
                "run_summary": run_summary(
                    "audit",
                    input_path,
                    profile,
                    {"rows": len(df), "missing_entries_found": len(outcome.findings)},
                    outcome.warnings,
                    status="ok" if outcome.applied else "skipped",
                ),
            }
        )
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_findings_text(payload).rstrip(), quiet=args.quiet)
        return EXIT_FINDINGS if outcome.findings else EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_backend_exception(exc)


def run_standardise(args: argparse.Namespace) -> int:
    try:
        profile = require_profile(args.profile)
        config = profile.rules.name_standardisation
        strategy = DATE_MATCH_STRATEGIES[config.date_match_strategy]()
        directory = PersonDirectory.build(profile.fee_earners, config.allow_partial_matches, strategy)
        nicknames = NicknameIndex(config.custom_nicknames)
        amended = standardise_narrative(args.text, directory, nicknames, config, args.date)
    except Exception as exc:
        eprint(str(exc))
        return classify_backend_exception(exc)
    if args.json:
        maybe_emit_json_stdout({"narrative": args.text, "amended": amended, "changed": amended != args.text}, True)
    else:
        print(amended)
    return EXIT_SUCCESS


def run_roster(args: argparse.Namespace) -> int:
    try:
        input_path = require_input(args.input)
        loaded = load_table(input_path, sheet_name=args.sheet_name)
        people = roster_from_frame(loaded.dataframe)
    except Exception as exc:
        eprint(str(exc))
        return classify_backend_exception(exc)
    payload = {
        **contract_fields("roster"),
        "input_file": str(input_path),
        "feeEarners": [
            {
                "name": person.full_name,
                "role": person.role,
                "rate": person.rate,
                "isDefaultForName": person.is_default_for_given_name,
            }
            for person in people
        ],
        "duplicate_first_names": duplicate_first_names(people),
    }
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        for person in people:
            details = ", ".join(part for part in (person.role, f"{person.rate:g}" if person.rate else "") if part)
            marker = " [default]" if person.is_default_for_given_name else ""
            print(f"{person.full_name}{f' ({details})' if details else ''}{marker}")
    return EXIT_SUCCESS


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing profile: {config_path}")
        return EXIT_COMMAND_ERROR
    write_json(config_path, default_profile_payload(args.name))
    emit_human(f"Profile written: {config_path}")
    return EXIT_SUCCESS


def run_explain(args: argparse.Namespace) -> int:
    rule = EXPLAIN_RULES.get(args.rule_id)
    if rule is None:
        eprint(f"Unknown rule id: {args.rule_id}")
        return EXIT_COMMAND_ERROR
    payload = {"rule_id": args.rule_id, **rule}
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        print(
            "\n".join(
                [
                    f"Rule: {args.rule_id}",
                    f"What it does: {payload['description']}",
                    f"What triggers it: {payload['evidence']}",
                    f"Where it writes: {payload['output']}",
                    f"How to avoid/disable it: {payload['disable_hint']}",
                ]
            )
        )
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "apply":
            return run_apply(args)
        if args.command == "audit":
            return run_audit(args)
        if args.command == "standardise":
            return run_standardise(args)
        if args.command == "roster":
            return run_roster(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "explain":
            return run_explain(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
