from fastapi import APIRouter, HTTPException
from typing import Any, List

from safetrail.api.monitoring import SupervisorDep
from safetrail.errors import GeofenceNotFoundError, GeofenceValidationError, StorageError
from safetrail.models.geofence import GeofenceCreate, GeofenceRead

router = APIRouter()

@router.get("/", response_model=List[GeofenceRead])
async def list_geofences(supervisor: SupervisorDep):
    try:
        return await supervisor.list_geofences()
    except StorageError as e:
        raise HTTPException(status_code=503, detail=str(e))

@router.get("/status")
async def geofence_status(supervisor: SupervisorDep) -> dict[str, Any]:
    """Each geofence with containment relative to the last known location"""
    try:
        statuses = await supervisor.geofence_statuses()
    except StorageError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return {
        "geofences": [
            {
                "geofence": status["geofence"].model_dump(mode="json"),
                "inside": status["inside"],
                "distance": status["distance"],
                "formatted": status["formatted"]
            }
            for status in statuses
        ]
    }

@router.post("/", response_model=GeofenceRead, status_code=201)
async def create_geofence(geofence_data: GeofenceCreate, supervisor: SupervisorDep):
    try:
        return await supervisor.add_geofence(geofence_data)
    except GeofenceValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors)
    except StorageError as e:
        raise HTTPException(status_code=503, detail=str(e))

@router.delete("/{geofence_id}")
async def delete_geofence(geofence_id: str, supervisor: SupervisorDep) -> dict[str, Any]:
    try:
        await supervisor.remove_geofence(geofence_id)
    except GeofenceNotFoundError:
        raise HTTPException(status_code=404, detail="Geofence not found")
    except StorageError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return {"message": "Geofence removed successfully", "id": geofence_id}
