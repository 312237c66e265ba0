import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from openpyxl import Workbook

from ledger_import.errors import EmptyInputError, UnreadableFileError
from ledger_import.pipeline import cell_text, parse_grid, parse_text, parse_workbook, remap
from ledger_import.validation import SHAPE_BANK_STATEMENT, validate_dataset


STATEMENT_CSV = """Account Name,Jan 2025,Feb 2025,Mar 2025,Total
Income,,,,
Salary,5000,5000,5000,15000
Expense,,,,
Entertainment,0,100,,100
Refund,(500),,,(500)
Total Expense,0,100,0,100
"""

BANK_CSV = """Date,Description,Debit,Credit,Balance
2025-01-05,Coffee,50,0,950
2025-01-06,Paycheck,,200,1150
"""


class ParseTextTests(unittest.TestCase):
    def test_financial_statement_scenario(self):
        dataset = parse_text(STATEMENT_CSV, anchor_year=2030)
        self.assertEqual(dataset.format, "financial-statement")
        self.assertEqual(dataset.confidence_percent, 40)
        self.assertEqual(len(dataset.rows), 5)

        salary = [row for row in dataset.rows if row["Name"] == "Salary"]
        self.assertEqual([row["Transaction Date"] for row in salary], ["2025-01-01", "2025-02-01", "2025-03-01"])
        self.assertEqual(salary[0]["Amount"], "5000")

        report = validate_dataset(dataset)
        self.assertEqual(len(report.invalid_rows), 1)
        self.assertEqual(report.invalid_rows[0].row["Name"], "Refund")
        self.assertEqual(report.invalid_rows[0].errors, ["Amount must be positive"])

    def test_bank_statement_scenario(self):
        dataset = parse_text(BANK_CSV)
        self.assertEqual(dataset.format, "bank-statement")
        self.assertEqual(dataset.confidence_percent, 100)
        self.assertEqual([row["Type"] for row in dataset.rows], ["Expense", "Income"])
        self.assertEqual([row["Amount"] for row in dataset.rows], ["50", "200"])
        self.assertIn("Balance", dataset.headers)
        self.assertTrue(validate_dataset(dataset, SHAPE_BANK_STATEMENT).all_valid)

    def test_simple_scenario(self):
        dataset = parse_text("Type,Name,Amount,Frequency,Category\nIncome,Salary,5000,monthly,Employment\n")
        self.assertEqual(dataset.format, "simple")
        self.assertEqual(dataset.rows, [
            {"Type": "Income", "Name": "Salary", "Amount": "5000", "Frequency": "monthly", "Category": "Employment"},
        ])
        self.assertEqual(dataset.headers, ["Type", "Name", "Amount", "Category", "Frequency"])

    def test_unknown_format_is_a_value_with_a_warning(self):
        dataset = parse_text("Xyz,Zzz\n1,2\n")
        self.assertEqual(dataset.format, "unknown")
        self.assertEqual(dataset.rows, [])
        self.assertTrue(any("Unable to detect file format" in warning for warning in dataset.warnings))
        self.assertTrue(any("No rows could be extracted from 1 data rows" in warning for warning in dataset.warnings))

    def test_header_only_file(self):
        dataset = parse_text("Date,Description,Amount\n")
        self.assertEqual(dataset.rows, [])
        self.assertIn("File has a header row but no data rows", dataset.warnings)

    def test_empty_input_raises(self):
        for content in ("", "   \n\n"):
            with self.subTest(content=content):
                with self.assertRaisesRegex(EmptyInputError, "Empty CSV file"):
                    parse_text(content)

    def test_two_digit_year_statement_rows_are_dated(self):
        dataset = parse_text("Account,Jan-25,Feb-25,Total\nIncome,,,\nSalary,5000,5000,10000\n", anchor_year=2030)
        self.assertEqual(dataset.format, "financial-statement")
        self.assertEqual([row["Transaction Date"] for row in dataset.rows], ["2025-01-01", "2025-02-01"])
        self.assertEqual(dataset.warnings, [])

    def test_unreadable_month_headers_warn(self):
        dataset = parse_text("Account,Jan 2025 Budget,Total\nIncome,,\nSalary,5000,5000\n")
        self.assertEqual(dataset.format, "financial-statement")
        self.assertEqual(len(dataset.rows), 1)
        self.assertNotIn("Transaction Date", dataset.rows[0])
        self.assertTrue(any("none could be read as a month column" in warning for warning in dataset.warnings))

    def test_earlier_warnings_lead_and_are_copied(self):
        earlier = ["decoded with a fallback encoding"]
        dataset = parse_text("Date,Description,Amount\n", warnings=earlier)
        self.assertEqual(
            dataset.warnings,
            ["decoded with a fallback encoding", "File has a header row but no data rows"],
        )
        self.assertEqual(earlier, ["decoded with a fallback encoding"])
        self.assertIsNot(dataset.warnings, earlier)

    def test_blank_header_row_raises(self):
        with self.assertRaises(EmptyInputError):
            parse_grid([["", ""], ["a", "b"]])

    def test_raw_grid_and_to_dict(self):
        dataset = parse_text(BANK_CSV)
        self.assertEqual(dataset.raw_grid[1][1], "Coffee")
        self.assertEqual(dataset.source_headers[0], "Date")
        payload = dataset.to_dict()
        self.assertEqual(payload["row_count"], 2)
        self.assertNotIn("raw_grid", payload)
        self.assertIn("raw_grid", dataset.to_dict(include_raw=True))


class RemapTests(unittest.TestCase):
    def test_remap_re_extracts_without_rescoring(self):
        dataset = parse_text("Date,Details,Amount\n2025-01-05,Refund,30\n")
        self.assertEqual(dataset.rows[0]["Type"], "Expense")

        updated = remap(dataset, 2, "credit")
        self.assertEqual(updated.rows[0]["Type"], "Income")
        self.assertEqual(updated.rows[0]["Credit"], "30")
        self.assertEqual(updated.confidence_percent, dataset.confidence_percent)
        self.assertEqual(updated.detected_columns.mapping[2], "credit")
        self.assertEqual(dataset.detected_columns.mapping[2], "amount")

    def test_remap_can_change_format(self):
        dataset = parse_text("Date,Details,Amount\n2025-01-05,Refund,30\n")
        updated = remap(dataset, 0, "ignore")
        self.assertEqual(updated.format, "unknown")


class WorkbookTests(unittest.TestCase):
    def test_xlsx_first_sheet_is_parsed(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "bank.xlsx"
            wb = Workbook()
            ws = wb.active
            ws.append(["Date", "Description", "Debit", "Credit"])
            ws.append([datetime(2025, 1, 5), "Coffee", 4.75, None])
            ws.append([datetime(2025, 1, 6), "Paycheck", None, 3100])
            other = wb.create_sheet("Notes")
            other.append(["ignored"])
            wb.save(path)

            dataset = parse_workbook(path)

        self.assertEqual(dataset.format, "bank-statement")
        self.assertEqual(dataset.rows[0]["Date"], "2025-01-05")
        self.assertEqual(dataset.rows[0]["Amount"], "4.75")
        self.assertEqual(dataset.rows[1]["Type"], "Income")
        self.assertEqual(dataset.rows[1]["Amount"], "3100")

    def test_corrupt_workbook_is_unreadable(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "broken.xlsx"
            path.write_bytes(b"this is not a zip archive")
            with self.assertRaisesRegex(UnreadableFileError, "Could not read workbook"):
                parse_workbook(path)

    def test_cell_text(self):
        self.assertEqual(cell_text(5000.0), "5000")
        self.assertEqual(cell_text(12.5), "12.5")
        self.assertEqual(cell_text(float("nan")), "")
        self.assertEqual(cell_text(None), "")
        self.assertEqual(cell_text(datetime(2025, 3, 1)), "2025-03-01")
        self.assertEqual(cell_text(" Rent "), "Rent")


if __name__ == "__main__":
    unittest.main()
