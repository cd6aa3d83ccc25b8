"""Alert record and status endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from panic_button.core.deps import get_backend, get_last_alerts, get_token_store
from panic_button.core.errors import PanicAlertError, UnauthenticatedError
from panic_button.schemas.panic import LastAlert, StatusUpdateRequest
from panic_button.services.alert_backend import AlertBackend
from panic_button.services.alert_store import LastAlertRepository
from panic_button.services.auth_service import TokenStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("/last", response_model=LastAlert)
def get_last_alert(last_alerts: LastAlertRepository = Depends(get_last_alerts)):
    """Most recent alert sent from this button."""
    alert = last_alerts.load()
    if alert is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No alert sent yet")
    return alert


@router.put("/{panic_id}/status")
async def update_alert_status(
    panic_id: int,
    data: StatusUpdateRequest,
    backend: AlertBackend = Depends(get_backend),
    tokens: TokenStore = Depends(get_token_store),
):
    """Forward a handling/resolved update to the alert backend."""
    token = await tokens.get_access_token()
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Your session has expired")
    try:
        return await backend.update_status(panic_id, data, token)
    except UnauthenticatedError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message)
    except PanicAlertError as e:
        logger.warning("Status update for panic %s failed: %s", panic_id, e.message)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
