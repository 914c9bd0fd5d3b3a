"""Tests for spreadsheet text parsing."""

import pytest

from coinmind.chat.spreadsheet import (
    SpreadsheetLayoutError,
    build_preview,
    parse_amount,
    parse_spreadsheet,
)

BASIC = """Date,Description,Amount,Category
2024-03-01,Coffee,-4.50,Food & Dining
2024-03-02,Salary,2500,Salary
2024-03-03,Groceries,-82.10,Groceries
2024-03-04,Mystery charge,,Other
"""


class TestParseAmount:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("12", 12.0),
            ("-4.50", -4.5),
            ("$1,234.56", 1234.56),
            ("(15.00)", -15.0),
            ("1.234,50 €", 1234.5),
            ("12,5", 12.5),
            ("1,000", 1000.0),
            ("7-", -7.0),
        ],
    )
    def test_values(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", "n/a", "$", "9" * 400])
    def test_missing(self, raw):
        assert parse_amount(raw) is None


class TestParseSpreadsheet:
    def test_basic_layout(self):
        sheet = parse_spreadsheet(BASIC)
        assert len(sheet.rows) == 4
        assert len(sheet.valid_rows) == 3
        assert sheet.invalid_count == 1

        coffee, salary, groceries, mystery = sheet.rows
        assert coffee.amount == -4.5
        assert coffee.type == "expense"
        assert coffee.category == "Food & Dining"
        assert coffee.date.day == 1
        assert salary.type == "income"
        assert groceries.category == "Groceries"
        assert mystery.description == "Mystery charge"
        assert mystery.amount is None

    def test_debit_credit_columns(self):
        text = (
            "Posted Date,Payee,Details,Debit,Credit\n"
            "03/05/2024,ACME Corp,Paycheck,,1500.00\n"
            "03/06/2024,Shell,Fuel,45.20,\n"
        )
        paycheck, fuel = parse_spreadsheet(text).rows
        assert paycheck.amount == 1500.0
        assert paycheck.vendor == "ACME Corp"
        assert paycheck.description == "Paycheck"
        assert fuel.amount == -45.2
        assert fuel.type == "expense"

    def test_semicolon_and_decimal_comma(self):
        text = "Datum;Beschreibung;Betrag;Währung\n01.03.2024;Miete;-850,00;EUR\n"
        (rent,) = parse_spreadsheet(text).rows
        assert rent.amount == -850.0
        assert rent.currency == "EUR"
        assert rent.date.month == 3

    def test_type_column_fixes_sign(self):
        text = "description,amount,type\nBook,15,debit\nRefund,15,credit\n"
        book, refund = parse_spreadsheet(text).rows
        assert book.amount == -15.0
        assert refund.amount == 15.0

    def test_header_after_title_rows(self):
        text = "My bank export\n\nDate,Description,Amount\n2024-01-01,Gym,-30\n"
        (gym,) = parse_spreadsheet(text).rows
        assert gym.description == "Gym"

    def test_overflowing_amount_is_not_importable(self):
        text = f"description,amount\nTypo,-{'9' * 400}\nBus,-2\n"
        sheet = parse_spreadsheet(text)
        assert sheet.rows[0].amount is None
        assert sheet.invalid_count == 1
        assert [r.description for r in sheet.valid_rows] == ["Bus"]

    def test_unknown_category_becomes_other(self):
        text = "description,amount,category\nThing,-3,Stuff\n"
        assert parse_spreadsheet(text).rows[0].category == "Other"

    def test_unrecognized_layout(self):
        with pytest.raises(SpreadsheetLayoutError):
            parse_spreadsheet("foo,bar\n1,2\n")


class TestBuildPreview:
    def test_summary(self):
        preview = build_preview(parse_spreadsheet(BASIC).rows)
        assert "Found **3** transaction(s)" in preview
        assert "1 row(s) are missing" in preview
        assert "Coffee" in preview
        assert "Income: $2,500" in preview
        assert "Expenses: $86.60" in preview

    def test_empty(self):
        assert build_preview([]) == "No transactions were found in this file."
