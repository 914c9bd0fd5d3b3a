"""
Process-wide collaborators, built once and handed to the routes through
FastAPI dependencies (tests swap them via ``app.dependency_overrides``).
"""
from functools import lru_cache

from fastapi import Header
from tinydb import TinyDB

from coinmind.chat.importer import TransactionImporter
from coinmind.chat.orchestrator import ChatOrchestrator
from coinmind.config import get_settings
from coinmind.db.repository import ProfileRepository, TransactionRepository, open_db
from coinmind.llm.client import CompletionClient
from coinmind.llm.extractor import StructuredExtractor
from coinmind.services.advisor import FinancialAdvisor
from coinmind.services.currency import CurrencyNormalizer, RateClient
from coinmind.services.language import LanguageDetector


@lru_cache
def get_db() -> TinyDB:
    return open_db(get_settings().db_path)


def get_transaction_repo() -> TransactionRepository:
    return TransactionRepository(get_db())


def get_profile_repo() -> ProfileRepository:
    return ProfileRepository(get_db())


@lru_cache
def get_completion() -> CompletionClient:
    # Raises ConfigurationError (not cached) until an API key is configured
    return CompletionClient.from_settings(get_settings())


@lru_cache
def get_rate_client() -> RateClient:
    return RateClient.from_settings(get_settings())


def build_orchestrator(
    completion,
    rates,
    transactions,
    profiles,
    default_currency: str = "USD",
    history_limit: int = 1000,
) -> ChatOrchestrator:
    extractor = StructuredExtractor(completion)
    normalizer = CurrencyNormalizer(rates)
    importer = TransactionImporter(
        completion, extractor, normalizer, transactions, profiles,
        default_currency=default_currency,
    )
    advisor = FinancialAdvisor(
        completion, transactions, profiles,
        default_currency=default_currency, history_limit=history_limit,
    )
    return ChatOrchestrator(
        completion=completion,
        extractor=extractor,
        normalizer=normalizer,
        importer=importer,
        transactions=transactions,
        profiles=profiles,
        advisor=advisor,
        language_detector=LanguageDetector(),
        default_currency=default_currency,
        history_limit=history_limit,
    )


@lru_cache
def get_orchestrator() -> ChatOrchestrator:
    settings = get_settings()
    return build_orchestrator(
        completion=get_completion(),
        rates=get_rate_client(),
        transactions=get_transaction_repo(),
        profiles=get_profile_repo(),
        default_currency=settings.default_currency,
        history_limit=settings.history_limit,
    )


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    return x_user_id or get_settings().default_user_id
