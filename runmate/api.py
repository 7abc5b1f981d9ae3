"""HTTP API for the RunMate dashboard."""

import hmac
from typing import Any, Dict, Literal

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .cache_manager import build_dashboard_manager
from .check_ollama import get_ollama_status
from .config import settings
from .models import DashboardContent, DashboardProfile
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="runmate/api")


def require_api_key(x_api_key: str | None = Header(default=None)):
    """
    Validate the X-API-Key header against the static api_key setting.
    """
    # If no key is configured, allow requests (dev/default mode).
    if not settings.api_key:
        logger.debug("No API key configured; allowing all requests")
        return

    if not x_api_key:
        logger.debug("No API key provided")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")

    if hmac.compare_digest(str(x_api_key), str(settings.api_key)):
        return

    logger.debug("Invalid API key provided")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


router = APIRouter(dependencies=[Depends(require_api_key)])
MANAGER = build_dashboard_manager(settings)


class DashboardRequest(DashboardProfile):
    """Incoming profile/plan payload for a dashboard page load."""
    pass


class DashboardResponse(BaseModel):
    """Dashboard content and whether it came from the cache."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    content: DashboardContent
    cache_status: Literal["hit", "generated", "shared"]


class HealthResponse(BaseModel):
    """Liveness of the service and reachability of the generation backend."""
    ok: bool
    cache_backend: str
    ollama: Dict[str, Any]


@router.post("/dashboard", response_model=DashboardResponse)
def get_dashboard(req: DashboardRequest):
    """Return today's dashboard for the profile, regenerating it when the cache is stale."""
    logger.info("Dashboard requested", extra={"user_id": req.user_id, "unit": req.weather_unit.value})
    result = MANAGER.get_dashboard(req)
    return DashboardResponse(content=result.content, cache_status=result.status)


@router.get("/health", response_model=HealthResponse)
def health():
    """Report service health; never fails when Ollama is down."""
    ollama = get_ollama_status(required_models=[settings.ollama_model])
    return HealthResponse(
        ok=bool(ollama.get("ok")),
        cache_backend=type(MANAGER.store).__name__,
        ollama=ollama,
    )
