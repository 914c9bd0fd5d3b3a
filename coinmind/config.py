from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    openrouter_api_key: str = ""
    llm_base_url: str = "https://openrouter.ai/api/v1"
    llm_model: str = "google/gemini-2.5-flash"
    llm_timeout: float = 30.0
    llm_max_retries: int = 2
    llm_temperature: float = 0.3

    db_path: str = "coinmind_ledger.json"
    default_user_id: str = "local"
    default_currency: str = "USD"
    history_limit: int = 1000

    rates_url: str = "https://api.frankfurter.app"
    rates_timeout: float = 10.0

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
