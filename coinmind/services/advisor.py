from collections import defaultdict

from loguru import logger

from coinmind.llm.prompts import FINANCIAL_QA_PROMPT
from coinmind.models.schemas import FinancialSnapshot, NormalizedTransaction
from coinmind.services.currency import format_money
from coinmind.services.language import LANGUAGE_NAMES

RECENT_TRANSACTIONS = 20
TOP_VENDORS = 5


def build_digest(transactions: list[NormalizedTransaction], currency: str) -> str:
    """Summarize the ledger as plain text for the Q&A prompt."""
    if not transactions:
        return "The ledger has no transactions yet."

    snapshot = FinancialSnapshot.from_transactions(transactions, currency)
    by_category: dict[str, float] = defaultdict(float)
    by_vendor: dict[str, float] = defaultdict(float)
    for txn in transactions:
        if txn.converted_amount < 0:
            by_category[txn.category] += abs(txn.converted_amount)
            if txn.vendor:
                by_vendor[txn.vendor] += abs(txn.converted_amount)

    lines = [
        f"Balance: {format_money(snapshot.balance, currency)}",
        f"Total income: {format_money(snapshot.income, currency)}",
        f"Total expenses: {format_money(snapshot.expenses, currency)}",
        f"Transactions: {snapshot.transaction_count}",
    ]

    if by_category:
        lines.append("\nExpenses by category:")
        for category, total in sorted(by_category.items(), key=lambda kv: kv[1], reverse=True):
            lines.append(f"- {category}: {format_money(total, currency)}")

    if by_vendor:
        lines.append("\nTop vendors by spending:")
        top = sorted(by_vendor.items(), key=lambda kv: kv[1], reverse=True)[:TOP_VENDORS]
        for vendor, total in top:
            lines.append(f"- {vendor}: {format_money(total, currency)}")

    lines.append(f"\nMost recent {min(RECENT_TRANSACTIONS, len(transactions))} transactions:")
    for txn in transactions[:RECENT_TRANSACTIONS]:
        when = (txn.date or txn.created_at).date().isoformat()
        lines.append(
            f"- {when} | {txn.description} | {txn.category} | "
            f"{format_money(txn.converted_amount, txn.converted_currency)}"
        )
    return "\n".join(lines)


class FinancialAdvisor:
    """Answers questions about a user's own ledger.

    Errors from the ledger or the completion service propagate; the
    orchestrator decides what to fall back to.
    """

    def __init__(self, completion, transactions, profiles, default_currency: str = "USD", history_limit: int = 1000):
        self.completion = completion
        self.transactions = transactions
        self.profiles = profiles
        self.default_currency = default_currency
        self.history_limit = history_limit

    def answer(self, user_id: str, question: str, language: str | None = None) -> str:
        profile = self.profiles.find_by_id(user_id)
        currency = profile.default_currency if profile else self.default_currency
        history = self.transactions.list_transactions(user_id, self.history_limit)

        prompt = FINANCIAL_QA_PROMPT.format(
            currency=currency,
            digest=build_digest(history, currency),
            question=question,
            language_name=LANGUAGE_NAMES.get(language or "", "the same language as the question"),
        )
        logger.info("Answering financial question for {} ({} transactions)", user_id, len(history))
        return self.completion.generate(prompt)
