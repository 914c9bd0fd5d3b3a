"""
Structured extraction on top of the plain completion service.

The model's output is never trusted as-is: it is unfenced, decoded and
validated against a pydantic model, and every step can end in
``Unparsable`` instead of an exception.
"""
import json
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError

from coinmind.exceptions import LLMError
from coinmind.llm.prompts import (
    DUPLICATE_ANALYSIS_PROMPT,
    INTENT_PROMPT,
    ROW_EXTRACTION_PROMPT,
    TRANSACTION_EXTRACTION_PROMPT,
)
from coinmind.models.schemas import (
    CATEGORIES,
    DuplicateAnalysis,
    ExtractedTransaction,
    FileMeta,
    IntentClassification,
)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

_FENCE = re.compile(r"```[\w-]*[ \t]*\n?(.*?)\n?[ \t]*```", re.DOTALL)


@dataclass(frozen=True)
class Parsed(Generic[T]):
    value: T


@dataclass(frozen=True)
class Unparsable:
    reason: str
    raw: str = ""


def strip_fence(text: str) -> str:
    """Return the body of the first fenced code block, or the text itself."""
    match = _FENCE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_json(raw: str) -> Parsed[Any] | Unparsable:
    body = strip_fence(raw or "")
    if not body:
        return Unparsable("empty response", raw or "")
    try:
        return Parsed(json.loads(body))
    except json.JSONDecodeError as e:
        return Unparsable(f"invalid JSON: {e}", raw)


def parse_model(raw: str, model: type[M]) -> Parsed[M] | Unparsable:
    decoded = parse_json(raw)
    if isinstance(decoded, Unparsable):
        return decoded
    if not isinstance(decoded.value, dict):
        return Unparsable("expected a JSON object", raw)
    try:
        return Parsed(model.model_validate(decoded.value))
    except ValidationError as e:
        return Unparsable(f"schema mismatch: {e.error_count()} error(s)", raw)


class StructuredExtractor:
    DUPLICATE_MARKER = "DUPLICATE"

    def __init__(self, completion):
        self.completion = completion

    def extract_transaction(self, text: str) -> ExtractedTransaction | None:
        prompt = TRANSACTION_EXTRACTION_PROMPT.format(
            categories=", ".join(f'"{c}"' for c in CATEGORIES),
            message=text,
        )
        try:
            raw = self.completion.generate(prompt, temperature=0.0)
        except LLMError as e:
            logger.warning("Transaction extraction failed, treating as no transaction: {}", e.message)
            return None

        decoded = parse_json(raw)
        if isinstance(decoded, Unparsable):
            logger.warning("Unparsable extraction output ({}): {}", decoded.reason, raw)
            return None
        if not isinstance(decoded.value, dict):
            # The model may answer a bare null for non-transactional messages
            return None

        try:
            txn = ExtractedTransaction.model_validate(decoded.value)
        except ValidationError as e:
            logger.warning("Extraction output rejected ({} error(s)): {}", e.error_count(), raw)
            return None
        if not txn.is_actionable:
            logger.debug("No transaction detected in message")
            return None
        return txn

    def classify_intent(
        self, text: str, language: str | None = None
    ) -> IntentClassification:
        prompt = INTENT_PROMPT.format(
            message=text,
            language_line=f"User language: {language}" if language else "",
        )
        try:
            raw = self.completion.generate(prompt, temperature=0.0)
        except LLMError as e:
            logger.error("Intent classification failed: {}", e.message)
            return IntentClassification.unknown()

        result = parse_model(raw, IntentClassification)
        if isinstance(result, Unparsable):
            logger.warning("Failed to parse intent classification ({}): {}", result.reason, raw)
            return IntentClassification.unknown()
        return result.value

    def analyze_duplicate_file(
        self, current: FileMeta, previous: FileMeta
    ) -> DuplicateAnalysis:
        try:
            prompt = DUPLICATE_ANALYSIS_PROMPT.format(
                current_name=current.name,
                current_size=current.size_bytes,
                current_modified=current.modified_at.isoformat(),
                previous_name=previous.name,
                previous_size=previous.size_bytes,
                previous_modified=previous.modified_at.isoformat(),
            )
        except (OverflowError, OSError, ValueError) as e:
            logger.warning("Unusable file timestamp, skipping duplicate analysis: {}", e)
            return DuplicateAnalysis(is_duplicate=False)

        try:
            raw = self.completion.generate(prompt, temperature=0.0)
        except LLMError as e:
            logger.warning("Duplicate analysis failed, proceeding with import: {}", e.message)
            return DuplicateAnalysis(is_duplicate=False)

        text = (raw or "").lstrip()
        logger.info("Duplicate analysis: {}", text[:200])
        if text.startswith(self.DUPLICATE_MARKER):
            explanation = text[len(self.DUPLICATE_MARKER):].lstrip(" :").strip()
            return DuplicateAnalysis(is_duplicate=True, explanation=explanation)
        explanation = re.sub(r"^NEW_FILE:?\s*", "", text).strip()
        return DuplicateAnalysis(is_duplicate=False, explanation=explanation)

    def extract_rows(self, table: str) -> list[ExtractedTransaction]:
        prompt = ROW_EXTRACTION_PROMPT.format(
            categories=", ".join(f'"{c}"' for c in CATEGORIES),
            table=table,
        )
        try:
            raw = self.completion.generate(prompt, temperature=0.0)
        except LLMError as e:
            logger.error("Spreadsheet row extraction failed: {}", e.message)
            return []

        decoded = parse_json(raw)
        if isinstance(decoded, Unparsable) or not isinstance(decoded.value, list):
            logger.warning("Spreadsheet rows unparsable: {}", raw[:200])
            return []

        rows: list[ExtractedTransaction] = []
        for item in decoded.value:
            rows.append(_row_from_item(item))
        return rows


def _row_from_item(item: Any) -> ExtractedTransaction:
    """Validate one model-supplied row; invalid rows stay as non-actionable candidates."""
    if not isinstance(item, dict):
        return ExtractedTransaction()
    try:
        return ExtractedTransaction.model_validate(item)
    except ValidationError:
        description = item.get("description")
        return ExtractedTransaction(
            description=description if isinstance(description, str) else None
        )
