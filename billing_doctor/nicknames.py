from __future__ import annotations

from collections.abc import Mapping

# Informal given name -> canonical given name. Where one nickname covers
# several names the later reading is kept (sam -> samantha, not samuel).
DEFAULT_NICKNAMES: dict[str, str] = {
    # male
    "bill": "william",
    "billy": "william",
    "will": "william",
    "bob": "robert",
    "bobby": "robert",
    "rob": "robert",
    "robbie": "robert",
    "dick": "richard",
    "rick": "richard",
    "ricky": "richard",
    "rich": "richard",
    "richie": "richard",
    "jim": "james",
    "jimmy": "james",
    "jamie": "james",
    "joe": "joseph",
    "joey": "joseph",
    "mike": "michael",
    "mickey": "michael",
    "mick": "michael",
    "dave": "david",
    "davey": "david",
    "dan": "daniel",
    "danny": "daniel",
    "tom": "thomas",
    "tommy": "thomas",
    "matt": "matthew",
    "steve": "stephen",
    "phil": "phillip",
    "tony": "anthony",
    "andy": "andrew",
    "drew": "andrew",
    "nick": "nicholas",
    "john": "jonathan",
    "johnny": "jonathan",
    "ben": "benjamin",
    "benny": "benjamin",
    "ed": "edward",
    "eddie": "edward",
    "ted": "edward",
    "teddy": "edward",
    "charlie": "charles",
    "chuck": "charles",
    "tim": "timothy",
    # female
    "liz": "elizabeth",
    "lizzy": "elizabeth",
    "beth": "elizabeth",
    "betty": "elizabeth",
    "sue": "susan",
    "susie": "susan",
    "suzy": "susan",
    "kate": "katherine",
    "katie": "katherine",
    "kathy": "katherine",
    "kit": "katherine",
    "kitty": "katherine",
    "jen": "jennifer",
    "jenny": "jennifer",
    "jess": "jessica",
    "jessie": "jessica",
    "lisa": "elizabeth",
    "mel": "melissa",
    "amy": "amanda",
    "mandy": "amanda",
    "chris": "christine",
    "chrissy": "christine",
    "tina": "christina",
    "cindy": "cynthia",
    "patty": "patricia",
    "pat": "patricia",
    "trish": "patricia",
    "nancy": "nan",
    "ann": "anne",
    "annie": "anne",
    "maggie": "margaret",
    "meg": "margaret",
    "peggy": "margaret",
    "carol": "caroline",
    "carrie": "caroline",
    "julie": "julia",
    "jules": "julia",
    "marie": "mary",
    "sally": "sarah",
    "sara": "sarah",
    "alex": "alexandra",
    "lexi": "alexandra",
    "sam": "samantha",
    "sammie": "samantha",
}


def normalise_nickname_map(raw: Mapping | None) -> dict[str, str]:
    """Lowercase keys and values, dropping blank or non-string pairs."""
    result: dict[str, str] = {}
    if not isinstance(raw, Mapping):
        return result
    for key, value in raw.items():
        if not isinstance(key, str) or not isinstance(value, str):
            continue
        key, value = key.strip().lower(), value.strip().lower()
        if key and value:
            result[key] = value
    return result


class NicknameIndex:
    """Two-layer nickname lookup: per-matter custom entries shadow the built-in table."""

    def __init__(self, custom: Mapping | None = None, builtin: Mapping[str, str] = DEFAULT_NICKNAMES) -> None:
        self.custom = normalise_nickname_map(custom)
        self.builtin = dict(builtin)

    def resolve(self, word: str) -> str | None:
        key = word.strip().lower()
        if key in self.custom:
            return self.custom[key]
        return self.builtin.get(key)

    def __contains__(self, word: str) -> bool:
        return self.resolve(word) is not None
