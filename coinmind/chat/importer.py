"""
Two-phase spreadsheet import.

``preview`` parses the file and asks for confirmation without touching the
ledger. ``confirm`` re-parses the resent data and commits row by row; a
failing row only bumps ``failed_count``. The importer keeps no state
between the two phases.
"""
import re

from loguru import logger

from coinmind.chat.fallback import first_successful
from coinmind.chat.spreadsheet import (
    ASSUMED_CURRENCY,
    SpreadsheetLayoutError,
    build_preview,
    parse_spreadsheet,
)
from coinmind.exceptions import (
    CoinMindError,
    ImportFailedError,
    ImportRowError,
    InvalidFormatError,
    LedgerError,
)
from coinmind.llm.prompts import DUPLICATE_WARNING_PROMPT
from coinmind.models.schemas import (
    ChatReply,
    DuplicateAnalysis,
    ExtractedTransaction,
    FileMeta,
    ImportBatchResult,
    IncomingMessage,
    NormalizedTransaction,
)

PREVIEW_MARKER = re.compile(r"Please analyze and import this spreadsheet file data:\n\n([\s\S]*)")
CONFIRM_MARKER = re.compile(r"Process CSV import: ([\s\S]*)")

IMPORT_VENDOR = "CSV Import"
CONFIRM_SUGGESTIONS = ["Confirm Import", "Cancel Import"]


def extract_table(text: str, marker: re.Pattern) -> str:
    match = marker.search(text)
    if not match:
        raise InvalidFormatError(
            "Invalid CSV import request format",
            details={"expected": marker.pattern.split(":")[0]},
        )
    return match.group(1)


def _canned_duplicate_warning(file_info: FileMeta, explanation: str) -> str:
    return (
        "⚠️ **Duplicate File Detected**\n\n"
        f"{explanation}\n\n"
        "**File Details:**\n"
        f"- Name: {file_info.name}\n"
        f"- Size: {file_info.size_bytes} bytes\n"
        f"- Type: {file_info.mime_type or 'unknown'}\n\n"
        "**Recommendation:** Please select a different file, or wait a moment before "
        "uploading the same file again, to avoid duplicate transactions."
    )


class TransactionImporter:
    def __init__(
        self,
        completion,
        extractor,
        normalizer,
        transactions,
        profiles,
        default_currency: str = "USD",
    ):
        self.completion = completion
        self.extractor = extractor
        self.normalizer = normalizer
        self.transactions = transactions
        self.profiles = profiles
        self.default_currency = default_currency

    def parse_rows(self, table: str) -> list[ExtractedTransaction]:
        try:
            return parse_spreadsheet(table).rows
        except SpreadsheetLayoutError as e:
            logger.info("Spreadsheet layout not recognized ({}), asking the model", e.message)
            return self.extractor.extract_rows(table)

    # ── preview ──────────────────────────────────────────────────────────

    def preview(self, message: IncomingMessage) -> ChatReply:
        table = extract_table(message.text, PREVIEW_MARKER)
        logger.info("Extracted spreadsheet data ({} chars)", len(table))

        if message.file_info and message.previous_file:
            analysis = self.extractor.analyze_duplicate_file(
                message.file_info, message.previous_file
            )
            if analysis.is_duplicate:
                return self._duplicate_reply(message.file_info, analysis)

        rows = self.parse_rows(table)
        valid = [r for r in rows if r.is_actionable]
        logger.info("Import preview: {} rows ({} importable)", len(rows), len(valid))

        if not rows:
            return ChatReply(
                message="📄 **Spreadsheet Analysis Complete**\n\n" + build_preview(rows),
                type="csv_preview",
                requires_confirmation=False,
                file_info=message.file_info,
            )

        return ChatReply(
            message=(
                "📄 **Spreadsheet Analysis Complete**\n\n"
                f"{build_preview(rows)}\n\n"
                "Would you like me to import these transactions to your account?\n\n"
                '**Click "Confirm" to import or "Cancel" to abort.**'
            ),
            type="csv_preview",
            requires_confirmation=True,
            suggestions=list(CONFIRM_SUGGESTIONS),
            file_info=message.file_info,
        )

    def _duplicate_reply(self, file_info: FileMeta, analysis: DuplicateAnalysis) -> ChatReply:
        prompt = DUPLICATE_WARNING_PROMPT.format(
            name=file_info.name,
            size=file_info.size_bytes,
            mime_type=file_info.mime_type or "unknown",
            explanation=analysis.explanation,
        )
        text = first_successful(
            [("duplicate_warning", lambda: self.completion.generate(prompt))],
            final=_canned_duplicate_warning(file_info, analysis.explanation),
        )
        logger.info("Duplicate upload detected: {}", file_info.name)
        return ChatReply(message=text, type="duplicate_detected", is_duplicate=True)

    # ── confirm ──────────────────────────────────────────────────────────

    def confirm(self, user_id: str, message: IncomingMessage) -> ChatReply:
        table = extract_table(message.text, CONFIRM_MARKER)
        rows = self.parse_rows(table)

        try:
            profile = self.profiles.find_by_id(user_id)
        except LedgerError as e:
            raise ImportFailedError(f"CSV import failed: {e.message}", details=e.details)
        default_currency = profile.default_currency if profile else self.default_currency

        result = self.import_rows(user_id, rows, default_currency)

        text = (
            "✅ **Spreadsheet Import Complete**\n\n"
            f"Successfully imported **{result.imported_count}** transaction(s)"
        )
        if result.failed_count:
            text += f"\n⚠️ Failed to import {result.failed_count} transaction(s)"
        text += "\n\nYour transactions have been added to your account. You can view them in the dashboard."

        return ChatReply(message=text, type="csv_success", import_result=result)

    def import_rows(
        self, user_id: str, rows: list[ExtractedTransaction], default_currency: str
    ) -> ImportBatchResult:
        imported = failed = 0
        for idx, row in enumerate(rows, 1):
            try:
                self._import_row(user_id, row, default_currency)
                imported += 1
            except CoinMindError as e:
                failed += 1
                logger.error("Failed to import row {} ({}): {}", idx, row.description, e.message)
            except Exception:
                # A row never aborts the batch; earlier rows are already committed
                failed += 1
                logger.exception("Unexpected error importing row {} ({})", idx, row.description)
        logger.info("Import finished for {}: {} imported, {} failed", user_id, imported, failed)
        return ImportBatchResult(imported_count=imported, failed_count=failed)

    def _import_row(self, user_id: str, row: ExtractedTransaction, default_currency: str) -> None:
        if not row.is_actionable:
            raise ImportRowError("Row is missing an amount or description")

        source_currency = row.currency or ASSUMED_CURRENCY
        conversion = self.normalizer.normalize(row.amount, source_currency, default_currency)
        record = NormalizedTransaction(
            description=row.description,
            amount=row.amount,
            currency=source_currency,
            category=row.category,
            type=row.type,
            date=row.date,
            vendor=row.vendor or IMPORT_VENDOR,
            original_amount=row.amount,
            original_currency=source_currency,
            converted_amount=conversion.amount,
            converted_currency=conversion.currency,
            conversion_rate=conversion.rate,
        )
        self.transactions.create_transaction(user_id, record)
