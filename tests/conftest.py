"""Shared fakes and fixtures."""

import pytest

from coinmind.db.repository import ProfileRepository, TransactionRepository, open_db
from coinmind.deps import build_orchestrator
from coinmind.exceptions import ConversionError, LedgerError

# Phrases that identify each prompt in coinmind.llm.prompts
EXTRACT = "Extract a single financial transaction"
INTENT = "You classify messages"
DUPLICATE_CHECK = "You check whether a spreadsheet upload"
DUPLICATE_WARNING = "looks like a duplicate of their previous upload"
ROWS = "Extract every transaction row"
QA = "personal-finance analyst"
ADDED = "was just saved"
FAILED = "failed because of a technical"
GENERAL = "Reply to the user."
STATELESS = "temporarily unavailable"

NO_TRANSACTION = '{"description": null, "amount": null}'


class FakeCompletion:
    """Scripted completion service: the first rule whose marker is in the prompt answers.

    A rule's reply may be a string, an exception instance (raised) or a
    callable taking the prompt.
    """

    def __init__(self, default="Happy to help!"):
        self.rules: list[tuple[str, object]] = []
        self.default = default
        self.prompts: list[str] = []

    def on(self, marker: str, reply) -> "FakeCompletion":
        self.rules.append((marker, reply))
        return self

    def generate(self, prompt: str, temperature: float | None = None) -> str:
        self.prompts.append(prompt)
        for marker, reply in self.rules:
            if marker in prompt:
                return self._resolve(reply, prompt)
        return self._resolve(self.default, prompt)

    @staticmethod
    def _resolve(reply, prompt):
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(prompt)
        return reply

    def calls(self, marker: str) -> list[str]:
        return [p for p in self.prompts if marker in p]


class FakeRates:
    def __init__(self, rates: dict[tuple[str, str], float] | None = None):
        self.rates = rates or {}
        self.calls: list[tuple[float, str, str]] = []

    def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        self.calls.append((amount, from_currency, to_currency))
        try:
            return amount * self.rates[(from_currency, to_currency)]
        except KeyError:
            raise ConversionError(f"No rate for {from_currency}->{to_currency}")


class FlakyTransactionRepository(TransactionRepository):
    """Fails to save any record whose description is in ``fail_on``."""

    def __init__(self, db, fail_on=(), fail_all=False):
        super().__init__(db)
        self.fail_on = set(fail_on)
        self.fail_all = fail_all

    def create_transaction(self, user_id, record):
        if self.fail_all or record.description in self.fail_on:
            raise LedgerError("disk full")
        return super().create_transaction(user_id, record)


class BrokenLedger:
    def list_transactions(self, user_id, limit=1000):
        raise LedgerError("ledger offline")

    def create_transaction(self, user_id, record):
        raise LedgerError("ledger offline")

    def find_by_id(self, user_id):
        raise LedgerError("ledger offline")


@pytest.fixture
def db():
    d = open_db(None)
    yield d
    d.close()


@pytest.fixture
def transactions(db):
    return TransactionRepository(db)


@pytest.fixture
def profiles(db):
    return ProfileRepository(db)


@pytest.fixture
def llm():
    return FakeCompletion()


@pytest.fixture
def rates():
    return FakeRates({("EUR", "USD"): 1.1, ("USD", "EUR"): 0.9, ("GBP", "USD"): 1.25})


@pytest.fixture
def orchestrator(llm, rates, transactions, profiles):
    return build_orchestrator(llm, rates, transactions, profiles)
