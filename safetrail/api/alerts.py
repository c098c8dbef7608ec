import asyncio
import logging
from fastapi import APIRouter, HTTPException
from sqlmodel import Field, SQLModel
from typing import Any, Optional

from safetrail.api.monitoring import SupervisorDep
from safetrail.core.panic import DEFAULT_PANIC_MESSAGE
from safetrail.errors import DeliveryError, StorageError
from safetrail.models.alert import AlertLocation

logger = logging.getLogger(__name__)

router = APIRouter()

class PanicRequest(SQLModel):
    message: str = DEFAULT_PANIC_MESSAGE
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)

class PanicArmRequest(PanicRequest):
    countdown: Optional[float] = None

def _location(panic_data: PanicRequest) -> Optional[AlertLocation]:
    if panic_data.latitude is None or panic_data.longitude is None:
        return None
    return AlertLocation(latitude=panic_data.latitude, longitude=panic_data.longitude)

def _countdown_done(task: asyncio.Task):
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Armed panic alert was not delivered: {error}")

@router.get("/")
async def list_alerts(supervisor: SupervisorDep) -> dict[str, Any]:
    """Recent alerts, most recent first"""
    return {"alerts": [alert.to_dict() for alert in supervisor.recent_alerts()]}

@router.delete("/")
async def clear_alerts(supervisor: SupervisorDep) -> dict[str, Any]:
    try:
        await supervisor.clear_alerts()
    except StorageError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"message": "Alert history cleared"}

@router.post("/panic")
async def trigger_panic(supervisor: SupervisorDep, panic_data: Optional[PanicRequest] = None) -> dict[str, Any]:
    panic_data = panic_data or PanicRequest()
    try:
        alert = await supervisor.send_panic(_location(panic_data), panic_data.message)
    except DeliveryError as e:
        raise HTTPException(status_code=502, detail=f"Emergency alert could not be delivered: {e}")

    return {
        "message": "Emergency alert sent successfully",
        "alert": alert.to_dict()
    }

@router.post("/panic/arm", status_code=202)
async def arm_panic(supervisor: SupervisorDep, panic_data: Optional[PanicArmRequest] = None) -> dict[str, Any]:
    panic_data = panic_data or PanicArmRequest()
    panic = supervisor.panic_trigger

    task = panic.arm(
        _location(panic_data) or supervisor.last_sample,
        panic_data.message,
        countdown=panic_data.countdown
    )
    task.add_done_callback(_countdown_done)

    countdown = panic_data.countdown if panic_data.countdown is not None else panic.countdown_seconds
    return {"message": "Emergency alert armed", "countdown": countdown}

@router.post("/panic/cancel")
async def cancel_panic(supervisor: SupervisorDep) -> dict[str, Any]:
    if not supervisor.panic_trigger.cancel():
        raise HTTPException(status_code=409, detail="No emergency alert is armed")
    return {"message": "Emergency alert cancelled"}
