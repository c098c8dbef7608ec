from typing import List, Optional

class SafeTrailError(Exception):
    """Base class for monitoring engine errors"""

class GeofenceValidationError(SafeTrailError, ValueError):
    """Malformed geofence rejected at creation time"""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid geofence")

class LocationPermissionError(SafeTrailError):
    """Location access has not been granted"""

class LocationUnavailableError(SafeTrailError, LookupError):
    """No location fix is available yet"""

class DeliveryError(SafeTrailError):
    """Alert could not be delivered to the ingestion endpoint"""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)

class StorageError(SafeTrailError):
    """Geofence store read or write failed"""

class GeofenceNotFoundError(StorageError, KeyError):
    """No geofence with the requested id"""

    def __init__(self, geofence_id: str):
        self.geofence_id = geofence_id
        super().__init__(f"Geofence not found: {geofence_id}")

    def __str__(self) -> str:
        return f"Geofence not found: {self.geofence_id}"
