"""Panic button API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from panic_button.core.deps import get_location, get_machine
from panic_button.schemas.button import (
    ButtonStatusResponse,
    PermissionResponse,
    PressResponse,
    TransitionResponse,
)
from panic_button.schemas.panic import TermsAcceptance
from panic_button.services.location_service import LocationProvider
from panic_button.services.panic_machine import PanicAlertMachine, describe_state

router = APIRouter(tags=["button"])


@router.get("/button", response_model=ButtonStatusResponse)
async def get_button(
    machine: PanicAlertMachine = Depends(get_machine),
    location: LocationProvider = Depends(get_location),
):
    """Current phase plus location readiness."""
    return ButtonStatusResponse(
        state=describe_state(machine.state),
        has_permission=location.has_permission,
        location_status=machine.location_status,
        location_error=location.error,
        accuracy_degraded=machine.accuracy_degraded,
    )


@router.post("/button/press", response_model=PressResponse)
async def press_button(machine: PanicAlertMachine = Depends(get_machine)):
    """Press the panic button. Two presses within the window open the terms gate."""
    outcome = await machine.press()
    return PressResponse(outcome=outcome.value, state=describe_state(machine.state))


@router.post("/button/terms", response_model=TransitionResponse)
async def accept_terms(data: TermsAcceptance, machine: PanicAlertMachine = Depends(get_machine)):
    """Accept the terms and start the countdown. Requires consent."""
    changed = machine.accept_terms(data.consent)
    return TransitionResponse(changed=changed, state=describe_state(machine.state))


@router.post("/button/cancel", response_model=TransitionResponse)
async def cancel_button(machine: PanicAlertMachine = Depends(get_machine)):
    """Back out of confirmation or the terms gate."""
    try:
        changed = machine.cancel()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return TransitionResponse(changed=changed, state=describe_state(machine.state))


@router.post("/button/acknowledge", response_model=TransitionResponse)
async def acknowledge_result(machine: PanicAlertMachine = Depends(get_machine)):
    """Dismiss the success or failure result."""
    changed = machine.acknowledge()
    return TransitionResponse(changed=changed, state=describe_state(machine.state))


@router.post("/location/permission", response_model=PermissionResponse)
async def request_location_permission(location: LocationProvider = Depends(get_location)):
    """Ask for location access."""
    granted = await location.request_permission()
    return PermissionResponse(granted=granted and location.has_permission, error=location.error)
