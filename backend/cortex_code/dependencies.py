"""Dependency injection providers for FastAPI."""

from cortex_code.relay.gemini import GeminiClient

# Global singleton instance (one pooled HTTP client per process)
_gemini_client: GeminiClient | None = None


def get_gemini_client() -> GeminiClient:
    """Return singleton GeminiClient instance."""
    global _gemini_client
    if _gemini_client is None:
        _gemini_client = GeminiClient()
    return _gemini_client
