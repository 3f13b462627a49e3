"""Language detection utility using Lingua for accurate short-text detection.

Picks the locale (English or Arabic) for client-side notices and error turns.

Hybrid approach:
1. Fast Arabic script detection via Unicode range (U+0600 to U+06FF)
2. Lingua-py for statistical language detection (handles code-switching)
3. Per-conversation caching so a conversation keeps one locale
"""

import logging
import re
from typing import Literal

from lingua import Language, LanguageDetectorBuilder

logger = logging.getLogger(__name__)

# Precompile Arabic Unicode range regex for speed
ARABIC_SCRIPT_PATTERN = re.compile(r"[\u0600-\u06FF]")

# Language type for type safety
LanguageCode = Literal["en", "ar"]


class LanguageDetector:
    """Detects language from text using hybrid approach."""

    def __init__(self) -> None:
        """Initialize Lingua detector with English and Arabic only."""
        self._detector = (
            LanguageDetectorBuilder.from_languages(Language.ENGLISH, Language.ARABIC)
            .with_preloaded_language_models()
            .build()
        )
        self._conversation_cache: dict[str, LanguageCode] = {}
        logger.info("LanguageDetector initialized with Lingua (en, ar)")

    def detect(self, text: str, conversation_id: str | None = None) -> LanguageCode:
        """Detect language from text with optional per-conversation caching.

        Args:
            text: Text to analyze (user message)
            conversation_id: Optional conversation ID for caching the locale

        Returns:
            Language code: "en" or "ar"
        """
        if conversation_id and conversation_id in self._conversation_cache:
            return self._conversation_cache[conversation_id]

        if not text or not text.strip():
            return "en"  # Default to English for empty input

        # Fast path: Check for Arabic script
        if ARABIC_SCRIPT_PATTERN.search(text):
            detected: LanguageCode = "ar"
        else:
            detected_language = self._detector.detect_language_of(text)
            detected = "ar" if detected_language == Language.ARABIC else "en"
        logger.debug("Detected locale %s for text: %s...", detected, text[:50])

        if conversation_id:
            self._conversation_cache[conversation_id] = detected

        return detected

    def forget(self, conversation_id: str) -> None:
        """Drop the cached locale of a deleted conversation."""
        self._conversation_cache.pop(conversation_id, None)


# Global singleton instance
_detector_instance: LanguageDetector | None = None


def get_language_detector() -> LanguageDetector:
    """Get global LanguageDetector singleton instance."""
    global _detector_instance
    if _detector_instance is None:
        _detector_instance = LanguageDetector()
    return _detector_instance
