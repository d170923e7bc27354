from __future__ import annotations

import unittest

from billing_doctor.nicknames import NicknameIndex
from billing_doctor.people import Person, PersonDirectory
from billing_doctor.standardise import (
    NameStandardisationConfig,
    is_already_full_name,
    is_likely_surname,
    standardise_narrative,
)


def standardise(narrative, names, *, people=None, **overrides):
    overrides.setdefault("enabled", True)
    overrides.setdefault("allow_partial_matches", False)
    config = NameStandardisationConfig(**overrides)
    roster = people if people is not None else [Person(name) for name in names]
    directory = PersonDirectory.build(roster, config.allow_partial_matches)
    return standardise_narrative(narrative, directory, NicknameIndex(config.custom_nicknames), config)


class StandardiseNarrativeTests(unittest.TestCase):
    def test_first_name_expands_to_full_name(self):
        self.assertEqual(standardise("Call with John", ["John Smith"]), "Call with John Smith")

    def test_existing_full_name_is_left_alone(self):
        self.assertEqual(standardise("Call with John Smith", ["John Smith"]), "Call with John Smith")

    def test_rule_is_idempotent(self):
        once = standardise("Chloe called John; John agreed", ["John Smith", "Chloe Anders"], replace_only_first_occurrence=False)
        twice = standardise(once, ["John Smith", "Chloe Anders"], replace_only_first_occurrence=False)
        self.assertEqual(once, twice)

    def test_nickname_expansion(self):
        self.assertEqual(standardise("Meeting with Bill", ["William Jones"]), "Meeting with William Jones")

    def test_custom_nickname_overrides_builtin(self):
        names = ["William Jones", "Billington Rowe"]
        self.assertEqual(standardise("Meeting with Bill", names), "Meeting with William Jones")
        self.assertEqual(
            standardise("Meeting with Bill", names, custom_nicknames={"bill": "billington"}),
            "Meeting with Billington Rowe",
        )

    def test_nickname_database_can_be_disabled(self):
        self.assertEqual(
            standardise("Meeting with Bill", ["William Jones"], use_nickname_database=False),
            "Meeting with Bill",
        )

    def test_partial_match(self):
        self.assertEqual(
            standardise("Call with Jon", ["Jonathan Price"], allow_partial_matches=True),
            "Call with Jonathan Price",
        )

    def test_only_first_name_replaced_by_default(self):
        names = ["John Smith", "Chloe Anders"]
        self.assertEqual(standardise("John emailed Chloe", names), "John Smith emailed Chloe")

    def test_all_names_replaced_when_not_first_only(self):
        names = ["John Smith", "Chloe Anders"]
        self.assertEqual(
            standardise("John emailed Chloe", names, replace_only_first_occurrence=False),
            "John Smith emailed Chloe Anders",
        )
        self.assertEqual(
            standardise("Chloe called John; John agreed", names, replace_only_first_occurrence=False),
            "Chloe Anders called John Smith; John Smith agreed",
        )

    def test_excluded_words(self):
        self.assertEqual(standardise("Call with John", ["John Smith"], excluded_words=["john"]), "Call with John")

    def test_single_word_roster_names_are_not_rewritten(self):
        self.assertEqual(standardise("Lunch with Cher", ["Cher"]), "Lunch with Cher")

    def test_ambiguous_first_name_uses_roster_order_then_default(self):
        self.assertEqual(standardise("Call with John", ["John Smith", "John Doe"]), "Call with John Smith")
        people = [Person("John Smith"), Person("John Doe", is_default_for_given_name=True)]
        self.assertEqual(standardise("Call with John", [], people=people), "Call with John Doe")

    def test_whole_words_only(self):
        self.assertEqual(standardise("Edited draft", ["Ed Stone"]), "Edited draft")

    def test_blank_narratives(self):
        self.assertEqual(standardise("", ["John Smith"]), "")
        self.assertIsNone(standardise(None, ["John Smith"]))

    def test_empty_roster(self):
        self.assertEqual(standardise("Call with John", []), "Call with John")


class SurnameHeuristicTests(unittest.TestCase):
    def test_likely_surname(self):
        self.assertTrue(is_likely_surname("Smith"))
        self.assertFalse(is_likely_surname("smith"))
        self.assertFalse(is_likely_surname("Monday"))
        self.assertFalse(is_likely_surname("S"))

    def test_already_full_name(self):
        text = "Call with John Smith"
        self.assertTrue(is_already_full_name("John", "John Smith", text, text.index("John")))
        text = "Call with John re costs"
        self.assertFalse(is_already_full_name("John", "John Smith", text, text.index("John")))
        text = "Call with john smith"
        self.assertTrue(is_already_full_name("john", "John Smith", text, text.index("john")))


if __name__ == "__main__":
    unittest.main()
