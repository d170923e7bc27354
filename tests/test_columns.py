from __future__ import annotations

import unittest

from billing_doctor.columns import (
    cell_text,
    find_amended_narrative_column,
    find_charge_column,
    find_date_column,
    find_fee_earner_column,
    find_narrative_column,
    find_notes_column,
    find_source_narrative_column,
)

HEADERS = ["Fee Earner", "Date", "Time (mins)", "Narrative", "Amended Narrative", "Notes", "Charge"]


class ColumnDetectionTests(unittest.TestCase):
    def test_typical_export(self):
        self.assertEqual(find_fee_earner_column(HEADERS), 0)
        self.assertEqual(find_date_column(HEADERS), 1)
        self.assertEqual(find_source_narrative_column(HEADERS), 3)
        self.assertEqual(find_narrative_column(HEADERS), 3)
        self.assertEqual(find_amended_narrative_column(HEADERS), 4)
        self.assertEqual(find_notes_column(HEADERS), 5)
        self.assertEqual(find_charge_column(HEADERS), 6)

    def test_fee_earner_prefers_explicit_header(self):
        self.assertEqual(find_fee_earner_column(["Client Name", "Fee Earner"]), 1)
        self.assertEqual(find_fee_earner_column(["Who", "Date"]), 0)

    def test_original_narrative_beats_plain_narrative(self):
        headers = ["Amended Narrative", "Narrative", "Original Narrative"]
        self.assertEqual(find_source_narrative_column(headers), 2)

    def test_description_fallback(self):
        self.assertEqual(find_source_narrative_column(["Date", "Work Description"]), 1)
        self.assertEqual(find_narrative_column(["Date", "Activity"]), 1)
        self.assertIsNone(find_source_narrative_column(["Date", "Hours"]))

    def test_narrative_search_skips_notes_and_amended_columns(self):
        self.assertEqual(find_narrative_column(["Notes", "Amended Narrative", "Work Done"]), 2)

    def test_charge_column_is_exact_and_case_insensitive(self):
        self.assertEqual(find_charge_column(["Charge Rate", " charge "]), 1)
        self.assertEqual(find_charge_column(["Billable"], "billable"), 0)
        self.assertIsNone(find_charge_column(["Charge Rate"]))

    def test_headers_may_be_missing(self):
        self.assertIsNone(find_date_column([None, ""]))


class CellTextTests(unittest.TestCase):
    def test_blank_values(self):
        self.assertEqual(cell_text(None), "")
        self.assertEqual(cell_text(float("nan")), "")
        self.assertEqual(cell_text("  x "), "x")
        self.assertEqual(cell_text(12), "12")


if __name__ == "__main__":
    unittest.main()
