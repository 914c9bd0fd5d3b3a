from collections.abc import Callable, Sequence

from loguru import logger

from coinmind.exceptions import CoinMindError

Strategy = Callable[[], str]


def first_successful(strategies: Sequence[tuple[str, Strategy]], final: str) -> str:
    """Run reply strategies in order and return the first non-empty text.

    ``final`` is the infallible last layer, so the result is never empty.
    Only ``CoinMindError`` counts as an expected strategy failure.
    """
    for name, strategy in strategies:
        try:
            text = strategy()
        except CoinMindError as e:
            logger.warning("Reply strategy '{}' failed: {}", name, e.message)
            continue
        if text and text.strip():
            return text
        logger.warning("Reply strategy '{}' produced no text", name)
    return final
