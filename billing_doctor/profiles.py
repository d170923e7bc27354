"""
profiles.py: matter profiles, the per-client configuration every rule reads.

Profiles are exchanged as the taskpane's JSON export (camelCase keys).
Loading is forgiving: a missing or malformed field takes its documented
default instead of failing the whole profile, because profiles saved by
older taskpane builds lack the newer rule settings.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from billing_doctor.charge import parse_keyword_list
from billing_doctor.columns import CHARGE_HEADER
from billing_doctor.meetings import DEFAULT_MEETING_KEYWORDS
from billing_doctor.nicknames import normalise_nickname_map
from billing_doctor.people import DATE_MATCH_STRATEGIES, DEFAULT_MIN_PARTIAL_MATCH_LENGTH, Person
from billing_doctor.standardise import NameStandardisationConfig

DEFAULT_NO_CHARGE_KEYWORDS = ["travel", "admin", "internal"]


class ProfileError(ValueError):
    pass


@dataclass
class MissingTimeConfig:
    enabled: bool = False
    date_tolerance_days: int = 0
    meeting_keywords: list[str] = field(default_factory=lambda: list(DEFAULT_MEETING_KEYWORDS))
    require_exact_time_match: bool = False
    create_missing_entries: bool = False


@dataclass
class RulesConfig:
    name_standardisation: NameStandardisationConfig = field(default_factory=NameStandardisationConfig)
    missing_time_entries: MissingTimeConfig = field(default_factory=MissingTimeConfig)


@dataclass
class MatterProfile:
    name: str = ""
    fee_earners: list[Person] = field(default_factory=list)
    rules: RulesConfig = field(default_factory=RulesConfig)
    prepopulate_charge: bool = False
    no_charge_keywords: list[str] = field(default_factory=lambda: list(DEFAULT_NO_CHARGE_KEYWORDS))
    charge_column_header: str = CHARGE_HEADER
    add_amended_narrative: bool = True
    add_notes_column: bool = True


def _bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "yes", "1", "on"}:
        return True
    if isinstance(value, str) and value.strip().lower() in {"false", "no", "0", "off"}:
        return False
    return default


def _int(value: Any, default: int, minimum: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= minimum else default


def _float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def person_from_dict(data: Any) -> Person | None:
    if isinstance(data, str):
        data = {"name": data}
    data = _mapping(data)
    name = data.get("name", data.get("fullName"))
    if not isinstance(name, str) or not name.strip():
        return None
    variations = data.get("nameVariations")
    assignment_dates = data.get("assignmentDates")
    return Person(
        full_name=" ".join(name.split()),
        is_default_for_given_name=_bool(data.get("isDefaultForName"), False),
        name_variations=parse_keyword_list(variations),
        role=str(data.get("role") or "").strip(),
        rate=_float(data.get("rate")),
        email=str(data.get("email") or "").strip(),
        assignment_dates=list(assignment_dates) if isinstance(assignment_dates, list) else [],
    )


def _strategy(value: Any) -> str:
    name = str(value or "").strip().lower()
    return name if name in DATE_MATCH_STRATEGIES else "none"


def name_rule_from_dict(data: Any) -> NameStandardisationConfig:
    data = _mapping(data)
    defaults = NameStandardisationConfig()
    return NameStandardisationConfig(
        enabled=_bool(data.get("enabled"), defaults.enabled),
        excluded_words=parse_keyword_list(data.get("excludedNames")),
        allow_partial_matches=_bool(data.get("allowPartialMatches"), defaults.allow_partial_matches),
        min_partial_match_length=_int(data.get("minPartialMatchLength"), DEFAULT_MIN_PARTIAL_MATCH_LENGTH, minimum=1),
        use_nickname_database=data.get("useNicknameDatabase") is not False,
        replace_only_first_occurrence=_bool(data.get("replaceOnlyFirstOccurrence"), defaults.replace_only_first_occurrence),
        use_date_matching=_bool(data.get("useDateMatching"), defaults.use_date_matching),
        date_match_strategy=_strategy(data.get("dateMatchStrategy")),
        custom_nicknames=normalise_nickname_map(data.get("customNicknames")),
    )


def missing_time_rule_from_dict(data: Any) -> MissingTimeConfig:
    data = _mapping(data)
    keywords = parse_keyword_list(data.get("meetingKeywords"))
    return MissingTimeConfig(
        enabled=_bool(data.get("enabled"), False),
        date_tolerance_days=_int(data.get("dateTolerance"), 0),
        meeting_keywords=keywords or list(DEFAULT_MEETING_KEYWORDS),
        require_exact_time_match=_bool(data.get("requireExactTimeMatch"), False),
        create_missing_entries=_bool(data.get("createMissingEntries"), False),
    )


def profile_from_dict(data: Any) -> MatterProfile:
    data = _mapping(data)
    raw_people = data.get("feeEarners")
    if not isinstance(raw_people, list):
        raw_people = _mapping(data.get("participants")).get("feeEarners")
    people = [person for person in map(person_from_dict, raw_people or []) if person is not None]

    rules = _mapping(data.get("rules"))
    keywords = data.get("noChargeKeywords")
    header = data.get("columnHeader")
    return MatterProfile(
        name=str(data.get("name") or "").strip(),
        fee_earners=people,
        rules=RulesConfig(
            name_standardisation=name_rule_from_dict(rules.get("nameStandardisation")),
            missing_time_entries=missing_time_rule_from_dict(rules.get("missingTimeEntries")),
        ),
        prepopulate_charge=_bool(data.get("prepopulateCharge"), False),
        no_charge_keywords=parse_keyword_list(keywords) if keywords is not None else list(DEFAULT_NO_CHARGE_KEYWORDS),
        charge_column_header=header.strip() if isinstance(header, str) and header.strip() else CHARGE_HEADER,
        add_amended_narrative=_bool(data.get("addAmendedNarrative"), True),
        add_notes_column=_bool(data.get("addNotesColumn"), True),
    )


def load_profile(path: Path) -> MatterProfile:
    path = Path(path)
    if path.suffix.lower() != ".json":
        raise ProfileError(f"Matter profile must be a .json file: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ProfileError(f"Matter profile not found: {path}") from None
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ProfileError(f"Could not read matter profile {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ProfileError(f"Matter profile must be a JSON object: {path}")
    return profile_from_dict(data)


def profile_to_dict(profile: MatterProfile) -> dict[str, Any]:
    name_rule = profile.rules.name_standardisation
    missing = profile.rules.missing_time_entries
    return {
        "name": profile.name,
        "feeEarners": [
            {
                "name": person.full_name,
                "role": person.role,
                "rate": person.rate,
                "email": person.email,
                "isDefaultForName": person.is_default_for_given_name,
                "nameVariations": list(person.name_variations),
                "assignmentDates": list(person.assignment_dates),
            }
            for person in profile.fee_earners
        ],
        "prepopulateCharge": profile.prepopulate_charge,
        "noChargeKeywords": ", ".join(profile.no_charge_keywords),
        "columnHeader": profile.charge_column_header,
        "addAmendedNarrative": profile.add_amended_narrative,
        "addNotesColumn": profile.add_notes_column,
        "rules": {
            "nameStandardisation": {
                "enabled": name_rule.enabled,
                "allowPartialMatches": name_rule.allow_partial_matches,
                "useDateMatching": name_rule.use_date_matching,
                "dateMatchStrategy": name_rule.date_match_strategy,
                "replaceOnlyFirstOccurrence": name_rule.replace_only_first_occurrence,
                "excludedNames": list(name_rule.excluded_words),
                "minPartialMatchLength": name_rule.min_partial_match_length,
                "useNicknameDatabase": name_rule.use_nickname_database,
                "customNicknames": dict(name_rule.custom_nicknames),
            },
            "missingTimeEntries": {
                "enabled": missing.enabled,
                "dateTolerance": missing.date_tolerance_days,
                "meetingKeywords": list(missing.meeting_keywords),
                "requireExactTimeMatch": missing.require_exact_time_match,
                "createMissingEntries": missing.create_missing_entries,
            },
        },
    }


def default_profile_payload(name: str = "Example Matter") -> dict[str, Any]:
    profile = MatterProfile(
        name=name,
        fee_earners=[
            Person(full_name="Sophie Whitmore", role="Partner", rate=450.0),
            Person(full_name="Callum Reyes", role="Senior Associate", rate=320.0),
        ],
        prepopulate_charge=True,
    )
    profile.rules.name_standardisation.enabled = True
    # "Call" would otherwise prefix-match "Callum".
    profile.rules.name_standardisation.excluded_words = ["call"]
    profile.rules.missing_time_entries.enabled = True
    return profile_to_dict(profile)
