from sqlmodel import SQLModel, Field, Column, DateTime
from datetime import datetime, timezone
from typing import Optional

class GeofenceBase(SQLModel):
    name: str
    description: str = ""
    latitude: float
    longitude: float
    radius: float  # meters

class Geofence(GeofenceBase, table=True):

    pk: Optional[int] = Field(default=None, primary_key=True)  # Preserves insertion order
    id: str = Field(unique=True, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True))
    )

class GeofenceCreate(GeofenceBase):
    pass

class GeofenceRead(GeofenceBase):
    id: str
    created_at: datetime
