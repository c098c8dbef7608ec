from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Field, SQLModel
from datetime import datetime
from typing import Annotated, Any, List, Optional

from safetrail.core.supervisor import MonitoringSupervisor
from safetrail.models.location import LocationSample, RouteWaypoint
from safetrail.utils.location_source import PushLocationSource

router = APIRouter()

def get_supervisor(request: Request) -> MonitoringSupervisor:
    return request.app.state.supervisor

SupervisorDep = Annotated[MonitoringSupervisor, Depends(get_supervisor)]

class WaypointRequest(SQLModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

class RouteRequest(SQLModel):
    waypoints: List[WaypointRequest]

class SampleRequest(SQLModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: Optional[float] = Field(default=None, ge=0)
    captured_at: Optional[datetime] = None

async def _status(supervisor: MonitoringSupervisor) -> dict[str, Any]:
    state = supervisor.state.to_dict()
    state["last_location"] = supervisor.last_sample.to_dict() if supervisor.last_sample else None
    state["inside_geofences"] = [fence.id for fence in await supervisor.current_violations()]
    return state

@router.post("/start")
async def start_monitoring(supervisor: SupervisorDep) -> dict[str, Any]:
    await supervisor.start()
    return await _status(supervisor)

@router.post("/stop")
async def stop_monitoring(supervisor: SupervisorDep) -> dict[str, Any]:
    await supervisor.stop()
    return await _status(supervisor)

@router.get("/status")
async def get_status(supervisor: SupervisorDep) -> dict[str, Any]:
    return await _status(supervisor)

@router.put("/route")
async def set_route(route: RouteRequest, supervisor: SupervisorDep) -> dict[str, Any]:
    waypoints = [RouteWaypoint(latitude=wp.latitude, longitude=wp.longitude) for wp in route.waypoints]
    await supervisor.set_expected_route(waypoints)
    return {"message": "Expected route set", "waypoints": len(waypoints)}

@router.delete("/route")
async def clear_route(supervisor: SupervisorDep) -> dict[str, Any]:
    await supervisor.set_expected_route(None)
    return {"message": "Expected route cleared"}

@router.post("/samples")
async def push_sample(sample_data: SampleRequest, supervisor: SupervisorDep) -> dict[str, Any]:
    """Feed a location fix from the platform into the engine"""
    source = supervisor.location_source
    if not isinstance(source, PushLocationSource):
        raise HTTPException(status_code=409, detail="Location source does not accept pushed samples")

    if not source.has_permission():
        raise HTTPException(status_code=403, detail="Location permission not granted")

    sample = LocationSample(
        latitude=sample_data.latitude,
        longitude=sample_data.longitude,
        accuracy=sample_data.accuracy,
        captured_at=sample_data.captured_at
    )
    before = {alert.id for alert in supervisor.recent_alerts()}
    delivered = await source.publish(sample)

    return {
        "subscribers": delivered,
        "monitoring_active": supervisor.is_active,
        "alerts": [
            alert.to_dict() for alert in supervisor.recent_alerts()
            if alert.id not in before
        ]
    }
