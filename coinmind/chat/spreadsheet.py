"""
Spreadsheet text parsing for the import flow.

The client converts uploaded CSV/Excel files to delimited text. Columns are
recognized by header aliases; rows that lack an amount or a description are
kept as non-actionable candidates so the confirm phase can count them as
failed instead of silently dropping them.
"""
import csv
import io
import math
import re
from dataclasses import dataclass, field

from pydantic import ValidationError

from coinmind.exceptions import CoinMindError
from coinmind.models.schemas import ExtractedTransaction
from coinmind.services.currency import format_money

ASSUMED_CURRENCY = "USD"
PREVIEW_ROWS = 10
HEADER_SEARCH_ROWS = 10

COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "date": ("date", "transaction date", "posted date", "posting date", "booking date", "value date", "fecha", "datum", "data"),
    "description": ("description", "details", "memo", "narrative", "particulars", "transaction", "name", "title", "note", "notes", "concept", "descripción", "beschreibung", "libellé"),
    "amount": ("amount", "value", "sum", "total", "importe", "monto", "betrag", "montant", "valor"),
    "debit": ("debit", "withdrawal", "withdrawals", "money out", "paid out", "outflow"),
    "credit": ("credit", "deposit", "deposits", "money in", "paid in", "inflow"),
    "category": ("category", "categoría", "categoria", "kategorie", "catégorie"),
    "type": ("type", "transaction type", "kind"),
    "vendor": ("vendor", "merchant", "payee", "store", "counterparty", "shop"),
    "currency": ("currency", "ccy", "moneda", "währung", "devise"),
}

_EXPENSE_TYPES = {"expense", "debit", "withdrawal", "dr", "out", "payment", "gasto"}
_INCOME_TYPES = {"income", "credit", "deposit", "cr", "in", "refund", "ingreso"}


class SpreadsheetLayoutError(CoinMindError):
    """Raised when no header row with recognizable columns is found."""


@dataclass
class ParsedSheet:
    rows: list[ExtractedTransaction]
    columns: dict[str, int] = field(default_factory=dict)

    @property
    def valid_rows(self) -> list[ExtractedTransaction]:
        return [r for r in self.rows if r.is_actionable]

    @property
    def invalid_count(self) -> int:
        return len(self.rows) - len(self.valid_rows)


def _normalize_header(cell: str) -> str:
    return re.sub(r"\s+", " ", cell.strip().strip("*:").lower())


def parse_amount(value: str | None) -> float | None:
    """Parse '$1,234.50', '(12.00)', '1.234,50 €', '-7' and friends."""
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    negative = text.startswith("-") or text.endswith("-") or (
        text.startswith("(") and text.endswith(")")
    )
    digits = re.sub(r"[^\d,.]", "", text)
    if not re.search(r"\d", digits):
        return None

    if "," in digits and "." in digits:
        # Whichever separator comes last is the decimal point
        if digits.rfind(",") > digits.rfind("."):
            digits = digits.replace(".", "").replace(",", ".")
        else:
            digits = digits.replace(",", "")
    elif "," in digits:
        if re.fullmatch(r"\d{1,3}(,\d{3})+", digits):
            digits = digits.replace(",", "")
        else:
            digits = digits.replace(",", ".")

    try:
        amount = float(digits)
    except ValueError:
        return None
    if not math.isfinite(amount):
        return None
    return -amount if negative else amount


def _match_columns(header: list[str]) -> dict[str, int]:
    columns: dict[str, int] = {}
    normalized = [_normalize_header(h) for h in header]
    for key, aliases in COLUMN_ALIASES.items():
        for idx, name in enumerate(normalized):
            if name in aliases and idx not in columns.values():
                columns[key] = idx
                break
    return columns


def _is_usable(columns: dict[str, int]) -> bool:
    has_amount = "amount" in columns or "debit" in columns or "credit" in columns
    return "description" in columns and has_amount


def _sniff_dialect(text: str):
    try:
        return csv.Sniffer().sniff(text[:4096], delimiters=",;\t|")
    except csv.Error:
        return csv.excel


def _cell(row: list[str], columns: dict[str, int], key: str) -> str | None:
    idx = columns.get(key)
    if idx is None or idx >= len(row):
        return None
    value = row[idx].strip()
    return value or None


def _row_amount(row: list[str], columns: dict[str, int]) -> float | None:
    amount = parse_amount(_cell(row, columns, "amount"))
    if amount is not None:
        return amount
    debit = parse_amount(_cell(row, columns, "debit"))
    credit = parse_amount(_cell(row, columns, "credit"))
    if debit:
        return -abs(debit)
    if credit is not None:
        return abs(credit)
    return None


def _row_type(value: str | None) -> str | None:
    if not value:
        return None
    value = value.strip().lower()
    if value in _EXPENSE_TYPES:
        return "expense"
    if value in _INCOME_TYPES:
        return "income"
    return None


def _build_row(row: list[str], columns: dict[str, int]) -> ExtractedTransaction:
    description = _cell(row, columns, "description")
    try:
        return ExtractedTransaction(
            description=description,
            amount=_row_amount(row, columns),
            currency=_cell(row, columns, "currency"),
            category=_cell(row, columns, "category"),
            type=_row_type(_cell(row, columns, "type")),
            date=_cell(row, columns, "date"),
            vendor=_cell(row, columns, "vendor"),
        )
    except ValidationError:
        return ExtractedTransaction(description=description)


def parse_spreadsheet(text: str) -> ParsedSheet:
    reader = csv.reader(io.StringIO(text.strip()), _sniff_dialect(text))
    lines = [row for row in reader if any(cell.strip() for cell in row)]

    for header_idx, header in enumerate(lines[:HEADER_SEARCH_ROWS]):
        columns = _match_columns(header)
        if _is_usable(columns):
            break
    else:
        raise SpreadsheetLayoutError(
            "No recognizable header row",
            details={"first_row": lines[0] if lines else []},
        )

    rows = [_build_row(row, columns) for row in lines[header_idx + 1:]]
    return ParsedSheet(rows=rows, columns=columns)


def build_preview(rows: list[ExtractedTransaction]) -> str:
    """Human-readable summary of what an import would add."""
    valid = [r for r in rows if r.is_actionable]
    invalid = len(rows) - len(valid)
    if not valid and not invalid:
        return "No transactions were found in this file."

    lines = [f"Found **{len(valid)}** transaction(s) ready to import."]
    if invalid:
        lines.append(
            f"⚠️ {invalid} row(s) are missing an amount or description and will not be imported."
        )

    if valid:
        lines.append("")
        for row in valid[:PREVIEW_ROWS]:
            currency = row.currency or ASSUMED_CURRENCY
            when = row.date.date().isoformat() if row.date else "no date"
            lines.append(
                f"• {when} · {row.description} · {format_money(row.amount, currency)} · {row.category}"
            )
        if len(valid) > PREVIEW_ROWS:
            lines.append(f"…and {len(valid) - PREVIEW_ROWS} more")

        income = sum(r.amount for r in valid if r.amount > 0)
        expenses = abs(sum(r.amount for r in valid if r.amount < 0))
        lines.append("")
        lines.append(
            f"Income: {format_money(income, ASSUMED_CURRENCY)} · "
            f"Expenses: {format_money(expenses, ASSUMED_CURRENCY)}"
        )
    return "\n".join(lines)
