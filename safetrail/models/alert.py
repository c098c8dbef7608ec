import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON
from sqlmodel import Column, DateTime, Field, SQLModel

class AlertCategory(str, Enum):
    GEOFENCE_VIOLATION = "GEOFENCE_VIOLATION"
    INACTIVITY = "INACTIVITY"
    ROUTE_DEVIATION = "ROUTE_DEVIATION"
    ANOMALY = "ANOMALY"
    PANIC_BUTTON = "PANIC_BUTTON"

class AlertSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

# Categories produced by the background monitors; the backend files them
# under a single AI_MONITORING type with the category in metadata.alertType.
MONITORING_CATEGORIES = frozenset({
    AlertCategory.INACTIVITY,
    AlertCategory.ROUTE_DEVIATION,
    AlertCategory.ANOMALY,
})

AI_MONITORING_TYPE = "AI_MONITORING"

@dataclass(frozen=True)
class AlertLocation:
    latitude: float
    longitude: float

    @classmethod
    def from_point(cls, point: Any) -> Optional["AlertLocation"]:
        """Build from anything carrying latitude/longitude, or None"""
        if point is None:
            return None
        return cls(latitude=point.latitude, longitude=point.longitude)

@dataclass(frozen=True)
class Alert:
    id: str
    category: AlertCategory
    severity: AlertSeverity
    message: str
    location: Optional[AlertLocation] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        category: AlertCategory,
        severity: AlertSeverity,
        message: str,
        location: Any = None,
        occurred_at: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> "Alert":
        """Create an alert with a fresh unique id"""
        slug = category.value.lower().replace("_", "-")
        return cls(
            id=f"{slug}-{uuid.uuid4().hex}",
            category=category,
            severity=severity,
            message=message,
            location=AlertLocation.from_point(location),
            occurred_at=occurred_at or datetime.now(timezone.utc),
            metadata=dict(metadata or {})
        )

    @property
    def wire_type(self) -> str:
        if self.category in MONITORING_CATEGORIES:
            return AI_MONITORING_TYPE
        return self.category.value

    def to_payload(self) -> Dict[str, Any]:
        """Body for POST /alerts on the ingestion backend"""
        payload: Dict[str, Any] = {
            "type": self.wire_type,
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.location is not None:
            payload["location"] = {
                "latitude": self.location.latitude,
                "longitude": self.location.longitude
            }
        if self.metadata:
            payload["metadata"] = dict(self.metadata)
        return payload

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message,
            "location": {
                "latitude": self.location.latitude,
                "longitude": self.location.longitude
            } if self.location else None,
            "occurred_at": self.occurred_at.isoformat(),
            "metadata": dict(self.metadata)
        }

class AlertRecord(SQLModel, table=True):
    """Stored copy of a history entry"""

    pk: Optional[int] = Field(default=None, primary_key=True)  # Record order
    id: str = Field(unique=True, index=True)
    category: str = Field(index=True)
    severity: str
    message: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    occurred_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    @classmethod
    def from_alert(cls, alert: Alert) -> "AlertRecord":
        return cls(
            id=alert.id,
            category=alert.category.value,
            severity=alert.severity.value,
            message=alert.message,
            latitude=alert.location.latitude if alert.location else None,
            longitude=alert.location.longitude if alert.location else None,
            occurred_at=alert.occurred_at,
            details=dict(alert.metadata)
        )

    def to_alert(self) -> Alert:
        occurred_at = self.occurred_at
        # SQLite drops the timezone on the way back
        if occurred_at.tzinfo is None:
            occurred_at = occurred_at.replace(tzinfo=timezone.utc)

        location = None
        if self.latitude is not None and self.longitude is not None:
            location = AlertLocation(latitude=self.latitude, longitude=self.longitude)

        return Alert(
            id=self.id,
            category=AlertCategory(self.category),
            severity=AlertSeverity(self.severity),
            message=self.message,
            location=location,
            occurred_at=occurred_at,
            metadata=dict(self.details or {})
        )
