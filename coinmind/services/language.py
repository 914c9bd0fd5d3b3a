"""
Lightweight language hinting.

The completion service decides the reply language on its own; this only
produces a hint for the Q&A prompt, so a cheap script and stop-word check is
enough.
"""
import re
from dataclasses import dataclass

LANGUAGE_NAMES = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "pt": "Portuguese",
    "it": "Italian",
    "ar": "Arabic",
    "he": "Hebrew",
    "ru": "Russian",
    "el": "Greek",
    "hi": "Hindi",
    "th": "Thai",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
}

# Checked in order; kana before Han so Japanese is not reported as Chinese
_SCRIPTS = (
    ("ar", re.compile(r"[؀-ۿݐ-ݿ]")),
    ("he", re.compile(r"[֐-׿]")),
    ("ru", re.compile(r"[Ѐ-ӿ]")),
    ("el", re.compile(r"[Ͱ-Ͽ]")),
    ("hi", re.compile(r"[ऀ-ॿ]")),
    ("th", re.compile(r"[฀-๿]")),
    ("ko", re.compile(r"[가-힯]")),
    ("ja", re.compile(r"[぀-ヿ]")),
    ("zh", re.compile(r"[一-鿿]")),
)

_STOPWORDS = {
    "es": {"el", "la", "los", "las", "de", "que", "y", "en", "mi", "cuánto", "cuanto", "gasté", "gaste", "dinero", "para", "por", "con"},
    "fr": {"le", "la", "les", "de", "et", "je", "mon", "ma", "mes", "combien", "dépensé", "est", "pour", "avec", "quel"},
    "de": {"der", "die", "das", "und", "ich", "mein", "meine", "wie", "viel", "habe", "ist", "für", "mit", "ausgegeben"},
    "pt": {"o", "os", "as", "de", "e", "eu", "meu", "minha", "quanto", "gastei", "para", "com", "não", "qual"},
    "it": {"il", "lo", "gli", "di", "e", "io", "mio", "mia", "quanto", "speso", "per", "con", "ho", "qual"},
    "en": {"the", "a", "i", "my", "is", "what", "how", "much", "did", "spent", "for", "on", "and", "to", "of"},
}

_WORD = re.compile(r"[^\W\d_]+", re.UNICODE)


@dataclass(frozen=True)
class DetectedLanguage:
    code: str

    @property
    def name(self) -> str:
        return LANGUAGE_NAMES.get(self.code, "the user's language")


class LanguageDetector:
    def __init__(self, default: str = "en"):
        self.default = default

    def detect(self, text: str) -> DetectedLanguage:
        for code, pattern in _SCRIPTS:
            if pattern.search(text or ""):
                return DetectedLanguage(code)

        words = [w.lower() for w in _WORD.findall(text or "")]
        if not words:
            return DetectedLanguage(self.default)

        scores = {code: sum(w in vocab for w in words) for code, vocab in _STOPWORDS.items()}
        best = max(scores, key=lambda code: scores[code])
        if scores[best] == 0:
            return DetectedLanguage(self.default)
        # Ties favour the default language
        if scores.get(self.default, 0) == scores[best]:
            return DetectedLanguage(self.default)
        return DetectedLanguage(best)
