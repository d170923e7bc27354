from __future__ import annotations

import unittest

import pandas as pd

from billing_doctor.people import Person
from billing_doctor.roster import duplicate_first_names, mark_default_for_duplicates, roster_from_frame


class DuplicateNameTests(unittest.TestCase):
    def test_first_of_each_shared_name_becomes_default(self):
        people = [Person("John Smith"), Person("John Doe"), Person("Chloe Anders", is_default_for_given_name=True)]
        mark_default_for_duplicates(people)
        self.assertEqual([person.is_default_for_given_name for person in people], [True, False, False])

    def test_existing_default_is_kept(self):
        people = [Person("John Smith"), Person("John Doe", is_default_for_given_name=True)]
        mark_default_for_duplicates(people)
        self.assertEqual([person.is_default_for_given_name for person in people], [False, True])

    def test_duplicate_first_names(self):
        people = [Person("John Smith"), Person("john Doe"), Person("Theo Johnson")]
        self.assertEqual(duplicate_first_names(people), {"john": ["John Smith", "john Doe"]})


class RosterFromFrameTests(unittest.TestCase):
    def test_unique_people_with_roles_and_rates(self):
        df = pd.DataFrame(
            {
                "Fee Earner": ["Sophie Whitmore", "Callum Reyes", "Sophie Whitmore", None, "Callum Reyes"],
                "Role": ["Partner", "Associate", "Partner", "Trainee", "Senior Associate"],
                "Rate": ["£450", "280", "450.00", "100", "1,320"],
                "Narrative": ["a", "b", "c", "d", "e"],
            }
        )
        people = roster_from_frame(df)
        self.assertEqual(
            [(person.full_name, person.role, person.rate) for person in people],
            [
                ("Sophie Whitmore", "Partner", 450.0),
                ("Callum Reyes", "Associate", 280.0),
                ("Callum Reyes", "Senior Associate", 1320.0),
            ],
        )
        self.assertTrue(people[1].is_default_for_given_name)
        self.assertFalse(people[0].is_default_for_given_name)

    def test_name_column_is_required(self):
        with self.assertRaisesRegex(ValueError, "No Name column"):
            roster_from_frame(pd.DataFrame({"Date": ["2024-01-05"], "Hours": [1]}))

    def test_missing_role_and_rate_columns(self):
        people = roster_from_frame(pd.DataFrame({"Name": ["Theo Johnson", "Theo Johnson"]}))
        self.assertEqual(len(people), 1)
        self.assertEqual((people[0].role, people[0].rate), ("", 0.0))


if __name__ == "__main__":
    unittest.main()
