"""Health check endpoint for infrastructure monitoring."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from cortex_code.config import Settings, get_settings
from cortex_code.dependencies import get_gemini_client
from cortex_code.relay.gemini import GeminiClient

logger = logging.getLogger(__name__)
router = APIRouter()


def _check_upstream(gemini: GeminiClient) -> dict[str, Any]:
    """Report whether the upstream credential is configured."""
    if not gemini.api_key:
        logger.warning("Upstream health check: GEMINI_API_KEY is not set")
        return {"status": "missing_credential", "model": gemini.model}
    return {"status": "configured", "model": gemini.model}


@router.get("")
async def health_check(
    settings: Settings = Depends(get_settings),
    gemini: GeminiClient = Depends(get_gemini_client),
) -> dict[str, Any]:
    """Return aggregate health of the relay."""
    services = {
        "upstream": _check_upstream(gemini),
    }

    overall = (
        "healthy"
        if all(s["status"] == "configured" for s in services.values())
        else "degraded"
    )

    return {
        "status": overall,
        "app": settings.app_name,
        "environment": settings.environment,
        "services": services,
    }
