from typing import Dict, Optional
from datetime import datetime, timezone
from dataclasses import dataclass
from enum import Enum

class LocationAccuracy(str, Enum):
    HIGH = "high"      # < 10 meters
    MEDIUM = "medium"  # 10-50 meters
    LOW = "low"        # > 50 meters
    UNKNOWN = "unknown"

@dataclass
class LocationSample:
    """Single geolocation fix delivered by a location source"""
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    captured_at: Optional[datetime] = None

    def __post_init__(self):
        # Imported here: safetrail.core imports this module
        from safetrail.core.geomath import validate_coordinates

        errors = validate_coordinates(self.latitude, self.longitude)
        # NaN fails the comparison
        if self.accuracy is not None and not self.accuracy >= 0:
            errors.append("Invalid accuracy: must be a non-negative number of meters")
        if errors:
            raise ValueError("; ".join(errors))

        if self.captured_at is None:
            self.captured_at = datetime.now(timezone.utc)

    @property
    def accuracy_level(self) -> LocationAccuracy:
        """Determine accuracy level based on accuracy value"""
        if self.accuracy is None:
            return LocationAccuracy.UNKNOWN
        elif self.accuracy < 10:
            return LocationAccuracy.HIGH
        elif self.accuracy < 50:
            return LocationAccuracy.MEDIUM
        else:
            return LocationAccuracy.LOW

    def to_dict(self) -> Dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
            "captured_at": self.captured_at.isoformat() if self.captured_at else None,
            "accuracy_level": self.accuracy_level.value
        }

@dataclass(frozen=True)
class RouteWaypoint:
    latitude: float
    longitude: float
