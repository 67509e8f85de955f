"""Health and diagnostics routes."""

from fastapi import APIRouter

from accessly.settings import AIConfig, CheckerConfig

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health() -> dict:
    """Return basic service health and which upstream credentials are present."""
    return {
        "status": "ok",
        "checkerConfigured": CheckerConfig.from_env().has_credentials,
        "aiConfigured": bool(AIConfig.from_env().api_key),
    }
