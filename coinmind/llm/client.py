from loguru import logger
from openai import OpenAI, OpenAIError

from coinmind.config import Settings
from coinmind.exceptions import ConfigurationError, LLMError


class CompletionClient:
    """Plain text-completion service backed by an OpenAI-compatible API.

    Every failure mode (network, timeout, quota, empty output) surfaces as
    ``LLMError`` so callers only have one thing to catch.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://openrouter.ai/api/v1",
        timeout: float = 30.0,
        max_retries: int = 2,
        temperature: float = 0.3,
    ):
        if not api_key:
            raise ConfigurationError(
                "AI service not configured. Please set OPENROUTER_API_KEY.",
                details={"required_key": "OPENROUTER_API_KEY"},
            )
        self.client = OpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=timeout,
            max_retries=max_retries,
        )
        self.model = model
        self.temperature = temperature

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionClient":
        return cls(
            api_key=settings.openrouter_api_key,
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            timeout=settings.llm_timeout,
            max_retries=settings.llm_max_retries,
            temperature=settings.llm_temperature,
        )

    def generate(self, prompt: str, temperature: float | None = None) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature if temperature is None else temperature,
            )
        except OpenAIError as e:
            logger.error("LLM request failed: {}", e)
            raise LLMError(f"LLM request failed: {e}", details={"model": self.model})

        if not response.choices:
            raise LLMError("LLM returned no choices", details={"model": self.model})
        text = (response.choices[0].message.content or "").strip()
        if not text:
            raise LLMError("LLM returned an empty completion", details={"model": self.model})
        logger.debug("LLM raw response: {}", text)
        return text
