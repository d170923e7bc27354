"""
standardise.py: rewrite informal fee-earner references to full names.

    "Call with Bill re disclosure"  ->  "Call with William Jones re disclosure"

Each word of the narrative is looked up in the matter's PersonDirectory,
falling back to the nickname table. A word that is already followed by a
surname ("John Smith") is left alone, so running the rule twice changes
nothing the second time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from billing_doctor.nicknames import NicknameIndex
from billing_doctor.people import DEFAULT_MIN_PARTIAL_MATCH_LENGTH, Person, PersonDirectory

WORD_RE = re.compile(r"\b(\w+)\b")
NEXT_WORD_RE = re.compile(r"^\s+(\w+)")

NOT_SURNAMES = {
    "THE", "AND", "OR", "BUT", "FOR", "NOR", "SO", "YET",
    "IN", "ON", "AT", "TO", "FROM", "BY", "WITH", "ABOUT",
    "MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY",
    "JANUARY", "FEBRUARY", "MARCH", "APRIL", "MAY", "JUNE", "JULY",
    "AUGUST", "SEPTEMBER", "OCTOBER", "NOVEMBER", "DECEMBER",
    "THIS", "THAT", "THESE", "THOSE", "HIS", "HER", "THEIR", "OUR", "YOUR",
    "WORKED", "ATTENDED", "REVIEWED", "PREPARED", "DRAFTED",
    "MEETING", "CALL",
}


@dataclass
class NameStandardisationConfig:
    enabled: bool = False
    excluded_words: list[str] = field(default_factory=list)
    allow_partial_matches: bool = True
    min_partial_match_length: int = DEFAULT_MIN_PARTIAL_MATCH_LENGTH
    use_nickname_database: bool = True
    replace_only_first_occurrence: bool = True
    use_date_matching: bool = True
    date_match_strategy: str = "none"
    custom_nicknames: dict[str, str] = field(default_factory=dict)

    @property
    def effective_min_length(self) -> int:
        if isinstance(self.min_partial_match_length, int) and self.min_partial_match_length > 0:
            return self.min_partial_match_length
        return DEFAULT_MIN_PARTIAL_MATCH_LENGTH


def is_likely_surname(word: str) -> bool:
    if len(word) < 2:
        return False
    if word[0] != word[0].upper():
        return False
    return word.upper() not in NOT_SURNAMES


def is_already_full_name(found_word: str, full_name: str, text: str, word_index: int) -> bool:
    """True when the word at ``word_index`` is already followed by a surname."""
    following = NEXT_WORD_RE.match(text[word_index + len(found_word):])
    if not following:
        return False
    next_word = following.group(1)
    if is_likely_surname(next_word):
        return True

    parts = full_name.split()
    if len(parts) >= 2:
        return found_word.lower() == parts[0].lower() and next_word.lower() == parts[-1].lower()
    return False


def _replace_word(text: str, word: str, full_name: str, count: int) -> tuple[str, int]:
    """Replace up to ``count`` bare occurrences of ``word`` (0 = all)."""
    pattern = re.compile(rf"\b{re.escape(word)}\b")
    replaced = 0

    def substitute(match: re.Match) -> str:
        nonlocal replaced
        if count and replaced >= count:
            return match.group(0)
        if is_already_full_name(word, full_name, text, match.start()):
            return match.group(0)
        replaced += 1
        return full_name

    return pattern.sub(substitute, text), replaced


def resolve_person(
    word: str,
    directory: PersonDirectory,
    nicknames: NicknameIndex,
    config: NameStandardisationConfig,
    entry_date: Any = None,
) -> Person | None:
    min_length = config.effective_min_length
    candidates = directory.find_candidates(word, config.allow_partial_matches, min_length)
    if not candidates and config.use_nickname_database is not False:
        expanded = nicknames.resolve(word)
        if expanded:
            candidates = directory.find_candidates(expanded, False, min_length)
    return directory.select_best(candidates, entry_date, config.use_date_matching)


def standardise_narrative(
    narrative: str,
    directory: PersonDirectory,
    nicknames: NicknameIndex,
    config: NameStandardisationConfig,
    entry_date: Any = None,
) -> str:
    if not narrative or not isinstance(narrative, str):
        return narrative

    excluded = {str(word).strip().lower() for word in config.excluded_words}
    processed = narrative
    has_replacements = False

    for match in WORD_RE.finditer(narrative):
        word = match.group(1)
        lowered = word.lower()
        if lowered in excluded or len(lowered) < 2:
            continue

        person = resolve_person(word, directory, nicknames, config, entry_date)
        if person is None or person.full_name == word:
            continue
        if is_already_full_name(word, person.full_name, narrative, match.start()):
            continue
        if config.replace_only_first_occurrence and has_replacements:
            continue

        processed, replaced = _replace_word(processed, word, person.full_name, 0 if has_replacements else 1)
        if not replaced:
            continue
        has_replacements = True
        if config.replace_only_first_occurrence:
            break

    return processed
