"""
Message routing and the conversational path.

Each request is routed exactly once:

    csv_import          -> TransactionImporter.preview
    csv_import_confirm  -> TransactionImporter.confirm
    anything else       -> conversation

The conversation path gives transaction entry priority over financial
questions, and financial questions priority over general chat. Every reply
is produced through ``first_successful`` with a fixed final string, so a
non-empty message is returned whatever the collaborators do.
"""
from datetime import datetime
from enum import Enum

from loguru import logger

from coinmind.chat.fallback import first_successful
from coinmind.exceptions import CoinMindError, LedgerError
from coinmind.llm.prompts import (
    ASSISTANT_PROMPT,
    GENERAL_CHAT_PROMPT,
    STATELESS_PROMPT,
    TRANSACTION_ADDED_PROMPT,
    TRANSACTION_FAILED_PROMPT,
)
from coinmind.models.schemas import (
    ChatMode,
    ChatReply,
    ExtractedTransaction,
    FinancialSnapshot,
    IncomingMessage,
    NormalizedTransaction,
)
from coinmind.services.currency import format_money

TRANSACTION_ERROR_REPLY = "Sorry, there was an error adding the transaction. Please try again."
GENERIC_REPLY = "Sorry, I couldn't process your message right now. Please try again."


class Route(str, Enum):
    IMPORT_PREVIEW = "import_preview"
    IMPORT_CONFIRM = "import_confirm"
    CONVERSATION = "conversation"


def select_route(mode: ChatMode) -> Route:
    if mode is ChatMode.CSV_IMPORT:
        return Route.IMPORT_PREVIEW
    if mode is ChatMode.CSV_IMPORT_CONFIRM:
        return Route.IMPORT_CONFIRM
    return Route.CONVERSATION


def _assistant_context(snapshot: FinancialSnapshot) -> str:
    return ASSISTANT_PROMPT.format(
        balance=format_money(snapshot.balance, snapshot.currency),
        income=format_money(snapshot.income, snapshot.currency),
        expenses=format_money(snapshot.expenses, snapshot.currency),
        transaction_count=snapshot.transaction_count,
        currency=snapshot.currency,
    )


def _acknowledgement(txn: NormalizedTransaction) -> str:
    amount = format_money(abs(txn.original_amount), txn.original_currency)
    return f"✅ Recorded {txn.type}: {txn.description}, {amount} ({txn.category})."


class ChatOrchestrator:
    def __init__(
        self,
        completion,
        extractor,
        normalizer,
        importer,
        transactions,
        profiles,
        advisor,
        language_detector,
        default_currency: str = "USD",
        history_limit: int = 1000,
    ):
        self.completion = completion
        self.extractor = extractor
        self.normalizer = normalizer
        self.importer = importer
        self.transactions = transactions
        self.profiles = profiles
        self.advisor = advisor
        self.language_detector = language_detector
        self.default_currency = default_currency
        self.history_limit = history_limit

    def handle(self, user_id: str, message: IncomingMessage) -> ChatReply:
        route = select_route(message.mode)
        logger.info("Routing message for {} via {}", user_id, route.value)

        if route is Route.IMPORT_PREVIEW:
            return self.importer.preview(message)
        if route is Route.IMPORT_CONFIRM:
            return self.importer.confirm(user_id, message)
        return self.converse(user_id, message.text)

    def converse(self, user_id: str, text: str) -> ChatReply:
        try:
            history = self.transactions.list_transactions(user_id, self.history_limit)
            profile = self.profiles.find_by_id(user_id)
        except LedgerError as e:
            logger.error("Ledger unavailable, replying without financial context: {}", e.message)
            return self._stateless_reply(text)

        currency = profile.default_currency if profile else self.default_currency
        snapshot = FinancialSnapshot.from_transactions(history, currency)

        txn = self.extractor.extract_transaction(text)
        if txn is not None:
            return self._record_transaction(user_id, text, txn, snapshot)
        return self._answer(user_id, text, snapshot)

    # ── branches ─────────────────────────────────────────────────────────

    def _stateless_reply(self, text: str) -> ChatReply:
        prompt = STATELESS_PROMPT.format(message=text)
        reply = first_successful(
            [("stateless", lambda: self.completion.generate(prompt))],
            final=GENERIC_REPLY,
        )
        return ChatReply(message=reply)

    def _record_transaction(
        self,
        user_id: str,
        text: str,
        txn: ExtractedTransaction,
        snapshot: FinancialSnapshot,
    ) -> ChatReply:
        currency = txn.currency or snapshot.currency
        conversion = self.normalizer.normalize(txn.amount, currency, snapshot.currency)
        record = NormalizedTransaction(
            description=txn.description,
            amount=txn.amount,
            currency=currency,
            category=txn.category,
            type=txn.type,
            date=txn.date,
            vendor=txn.vendor or "Unknown",
            original_amount=txn.amount,
            original_currency=currency,
            converted_amount=conversion.amount,
            converted_currency=conversion.currency,
            conversion_rate=conversion.rate,
        )

        try:
            saved = self.transactions.create_transaction(user_id, record)
        except LedgerError as e:
            logger.error("Transaction addition error: {}", e.message)
            prompt = TRANSACTION_FAILED_PROMPT.format(
                assistant=_assistant_context(snapshot), message=text
            )
            reply = first_successful(
                [("transaction_failed", lambda: self.completion.generate(prompt))],
                final=TRANSACTION_ERROR_REPLY,
            )
            return ChatReply(message=reply, transaction_added=False)

        logger.info(
            "Added {} of {} {} for {}",
            saved.type, saved.original_amount, saved.original_currency, user_id,
        )
        prompt = TRANSACTION_ADDED_PROMPT.format(
            assistant=_assistant_context(snapshot.with_transaction(saved)),
            message=text,
            description=saved.description,
            amount=format_money(abs(saved.original_amount), saved.original_currency),
            category=saved.category,
            type=saved.type,
            date=(saved.date or datetime.now()).date().isoformat(),
        )
        reply = first_successful(
            [("transaction_added", lambda: self.completion.generate(prompt))],
            final=_acknowledgement(saved),
        )
        return ChatReply(message=reply, transaction_added=True)

    def _answer(self, user_id: str, text: str, snapshot: FinancialSnapshot) -> ChatReply:
        # The general reply is composed up front and reused if the financial path is not taken
        prompt = GENERAL_CHAT_PROMPT.format(assistant=_assistant_context(snapshot), message=text)
        general = first_successful(
            [("general_chat", lambda: self.completion.generate(prompt))],
            final=GENERIC_REPLY,
        )

        language = self.language_detector.detect(text)
        intent = self.extractor.classify_intent(text, language.code)
        logger.info(
            "Intent analysis completed: financial={} intent={} language={}",
            intent.is_financial, intent.intent, language.code,
        )

        if intent.is_financial:
            try:
                answer = self.advisor.answer(user_id, text, language.code)
            except CoinMindError as e:
                logger.error("Financial question processing failed: {}", e.message)
            else:
                if answer and answer.strip():
                    return ChatReply(message=answer, transaction_added=False)
                logger.warning("Financial answer was empty, using general reply")

        return ChatReply(message=general, transaction_added=False)
