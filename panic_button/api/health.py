"""Health check endpoint."""

from fastapi import APIRouter

from panic_button.core.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict:
    """Liveness plus the alert backend this button reports to."""
    return {"status": "ok", "backend": settings.api_base_url}
