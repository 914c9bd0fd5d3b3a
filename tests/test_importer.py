"""Tests for the two-phase spreadsheet import."""

import pytest

from coinmind.deps import build_orchestrator
from coinmind.exceptions import ImportFailedError, InvalidFormatError, LLMError
from coinmind.models.schemas import ChatMode, FileMeta, IncomingMessage, Profile

from conftest import DUPLICATE_CHECK, DUPLICATE_WARNING, ROWS, BrokenLedger, FlakyTransactionRepository

TABLE = """Date,Description,Amount,Category
2024-03-01,Coffee,-4.50,Food & Dining
2024-03-02,Salary,2500,Salary
2024-03-03,Groceries,-82.10,Groceries
2024-03-04,Mystery charge,,Other
"""


def _file(name="march.csv", size=2048):
    return FileMeta(name=name, size=size, type="text/csv", lastModified=1_700_000_000_000)


def _preview(table=TABLE, file_info=None, previous_file=None):
    return IncomingMessage(
        text=f"Please analyze and import this spreadsheet file data:\n\n{table}",
        mode=ChatMode.CSV_IMPORT,
        file_info=file_info,
        previous_file=previous_file,
    )


def _confirm(table=TABLE):
    return IncomingMessage(text=f"Process CSV import: {table}", mode=ChatMode.CSV_IMPORT_CONFIRM)


@pytest.fixture
def importer(orchestrator):
    return orchestrator.importer


class TestPreview:
    def test_preview_asks_for_confirmation(self, importer, transactions):
        reply = importer.preview(_preview(file_info=_file()))

        assert reply.type == "csv_preview"
        assert reply.requires_confirmation is True
        assert reply.suggestions == ["Confirm Import", "Cancel Import"]
        assert reply.file_info.name == "march.csv"
        assert "Found **3** transaction(s)" in reply.message
        # Nothing is written before confirmation
        assert transactions.list_transactions("u1") == []

    def test_missing_marker(self, importer):
        message = IncomingMessage(text="import my file please", mode=ChatMode.CSV_IMPORT)
        with pytest.raises(InvalidFormatError, match="Invalid CSV import request format"):
            importer.preview(message)

    def test_no_rows(self, importer):
        reply = importer.preview(_preview("Date,Description,Amount\n"))
        assert reply.type == "csv_preview"
        assert reply.requires_confirmation is False
        assert "No transactions were found" in reply.message

    def test_duplicate_check_skipped_without_previous_file(self, llm, importer):
        importer.preview(_preview(file_info=_file()))
        assert llm.calls(DUPLICATE_CHECK) == []

    def test_new_file_continues_to_preview(self, llm, importer):
        llm.on(DUPLICATE_CHECK, "NEW_FILE: different size")
        reply = importer.preview(_preview(file_info=_file(), previous_file=_file("feb.csv", 900)))
        assert reply.type == "csv_preview"
        assert len(llm.calls(DUPLICATE_CHECK)) == 1

    def test_unusable_timestamps_continue_to_preview(self, llm, importer):
        far_future = FileMeta(name="march.csv", size=2048, type="text/csv", lastModified=10**20)

        reply = importer.preview(_preview(file_info=far_future, previous_file=far_future))

        assert reply.type == "csv_preview"
        assert reply.requires_confirmation is True
        assert llm.calls(DUPLICATE_CHECK) == []

    def test_duplicate_short_circuits(self, llm, importer, monkeypatch):
        def fail_parse(text):
            raise AssertionError("rows must not be parsed for a duplicate upload")

        monkeypatch.setattr("coinmind.chat.importer.parse_spreadsheet", fail_parse)
        llm.on(DUPLICATE_CHECK, "DUPLICATE: same name, size and time")
        llm.on(DUPLICATE_WARNING, "This looks like the file you just uploaded.")

        reply = importer.preview(_preview(file_info=_file(), previous_file=_file()))

        assert reply.type == "duplicate_detected"
        assert reply.is_duplicate is True
        assert reply.message == "This looks like the file you just uploaded."
        assert reply.requires_confirmation is None
        assert llm.calls(ROWS) == []

    def test_duplicate_warning_falls_back_to_canned_text(self, llm, importer):
        llm.on(DUPLICATE_CHECK, "DUPLICATE: same name, size and time")
        llm.on(DUPLICATE_WARNING, LLMError("rate limited"))

        reply = importer.preview(_preview(file_info=_file(), previous_file=_file()))

        assert reply.is_duplicate is True
        assert reply.message.startswith("⚠️ **Duplicate File Detected**")
        assert "same name, size and time" in reply.message
        assert "march.csv" in reply.message

    def test_unknown_layout_asks_the_model(self, llm, importer):
        llm.on(ROWS, '[{"description": "Bus", "amount": -2.5}, {"description": "Tip", "amount": 3}]')
        reply = importer.preview(_preview("bus ticket 2.50 / tip received 3"))
        assert reply.requires_confirmation is True
        assert "Found **2** transaction(s)" in reply.message
        assert len(llm.calls(ROWS)) == 1


class TestConfirm:
    def test_imports_valid_rows_and_counts_invalid(self, importer, transactions):
        reply = importer.confirm("u1", _confirm())

        assert reply.type == "csv_success"
        assert reply.import_result.imported_count == 3
        assert reply.import_result.failed_count == 1
        assert "Successfully imported **3** transaction(s)" in reply.message
        assert "Failed to import 1 transaction(s)" in reply.message

        saved = transactions.list_transactions("u1")
        assert [t.description for t in saved] == ["Groceries", "Salary", "Coffee"]
        assert all(t.vendor == "CSV Import" for t in saved)
        assert all(t.conversion_rate == 1.0 for t in saved)

    def test_missing_marker(self, importer):
        message = IncomingMessage(text=TABLE, mode=ChatMode.CSV_IMPORT_CONFIRM)
        with pytest.raises(InvalidFormatError):
            importer.confirm("u1", message)

    def test_failing_row_does_not_stop_the_batch(self, llm, rates, db, profiles):
        flaky = FlakyTransactionRepository(db, fail_on={"Salary"})
        importer = build_orchestrator(llm, rates, flaky, profiles).importer

        result = importer.confirm("u1", _confirm()).import_result

        assert result.imported_count == 2
        assert result.failed_count == 2
        assert {t.description for t in flaky.list_transactions("u1")} == {"Coffee", "Groceries"}

    def test_rows_converted_to_profile_currency(self, importer, profiles, transactions, rates):
        profiles.upsert(Profile(user_id="u1", default_currency="EUR"))

        importer.confirm("u1", _confirm())

        coffee = next(t for t in transactions.list_transactions("u1") if t.description == "Coffee")
        assert coffee.original_amount == -4.5
        assert coffee.original_currency == "USD"
        assert coffee.converted_currency == "EUR"
        assert coffee.converted_amount == pytest.approx(-4.05)
        assert coffee.conversion_rate == pytest.approx(0.9)
        assert (4.5, "USD", "EUR") in rates.calls

    def test_row_currency_column_is_respected(self, importer, transactions):
        table = "description,amount,currency\nHotel,-200,EUR\n"
        importer.confirm("u1", _confirm(table))

        (hotel,) = transactions.list_transactions("u1")
        assert hotel.original_currency == "EUR"
        assert hotel.converted_currency == "USD"
        assert hotel.converted_amount == pytest.approx(-220.0)

    def test_profile_lookup_failure_fails_the_import(self, llm, rates, transactions):
        importer = build_orchestrator(llm, rates, transactions, BrokenLedger()).importer
        with pytest.raises(ImportFailedError, match="CSV import failed"):
            importer.confirm("u1", _confirm())
        assert transactions.list_transactions("u1") == []

    def test_unexpected_ledger_error_does_not_stop_the_batch(self, llm, rates, db, profiles):
        class ExplodingOnSalary(FlakyTransactionRepository):
            def create_transaction(self, user_id, record):
                if record.description == "Salary":
                    raise RuntimeError("connection reset")
                return super().create_transaction(user_id, record)

        ledger = ExplodingOnSalary(db)
        importer = build_orchestrator(llm, rates, ledger, profiles).importer

        result = importer.confirm("u1", _confirm()).import_result

        assert result.imported_count == 2
        assert result.failed_count == 2
        assert {t.description for t in ledger.list_transactions("u1")} == {"Coffee", "Groceries"}
