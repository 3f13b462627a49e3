"""FastAPI application entry point with lifespan management."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cortex_code.api.router import api_router
from cortex_code.config import settings
from cortex_code.dependencies import get_gemini_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    logger.info("Starting Cortex Code relay...")

    gemini = get_gemini_client()
    await gemini.initialize()
    if not gemini.api_key:
        logger.warning("GEMINI_API_KEY is not set; generate requests will fail")

    yield

    await gemini.close()
    logger.info("Cortex Code relay shut down cleanly")


app = FastAPI(
    title="Cortex Code API",
    description="Streaming relay between the Cortex Code chat client and Gemini",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.frontend_url,
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount API routes
app.include_router(api_router, prefix="/api")

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
