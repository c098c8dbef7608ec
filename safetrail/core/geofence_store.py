import logging
import math
import secrets
import string
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from safetrail.core.geomath import validate_coordinates
from safetrail.errors import GeofenceNotFoundError, GeofenceValidationError, StorageError
from safetrail.models.geofence import Geofence, GeofenceCreate, GeofenceRead

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits

def new_geofence_id() -> str:
    """Opaque id: creation time in milliseconds plus a random suffix"""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"geofence-{int(time.time() * 1000)}-{suffix}"

def validate_geofence(data: GeofenceCreate) -> GeofenceCreate:
    """
    Validate a geofence definition before it is stored

    Returns a normalized copy (trimmed name and description).
    Raises GeofenceValidationError listing every problem found.
    """
    errors = []

    name = (data.name or "").strip()
    if not name:
        errors.append("Geofence name is required")

    errors.extend(validate_coordinates(data.latitude, data.longitude))

    if data.radius is None or not math.isfinite(data.radius) or data.radius <= 0:
        errors.append("Invalid radius: must be a positive number of meters")

    if errors:
        raise GeofenceValidationError(errors)

    return GeofenceCreate(
        name=name,
        description=(data.description or "").strip(),
        latitude=data.latitude,
        longitude=data.longitude,
        radius=data.radius
    )

class GeofenceStore(ABC):
    """Durable mapping from geofence id to definition, in insertion order"""

    @abstractmethod
    async def list(self) -> List[GeofenceRead]:
        pass

    @abstractmethod
    async def add(self, data: GeofenceCreate) -> GeofenceRead:
        pass

    @abstractmethod
    async def remove(self, geofence_id: str) -> None:
        pass

class InMemoryGeofenceStore(GeofenceStore):
    """Process-local store, used when no database is configured"""

    def __init__(self):
        self._geofences: Dict[str, GeofenceRead] = {}

    async def list(self) -> List[GeofenceRead]:
        return list(self._geofences.values())

    async def add(self, data: GeofenceCreate) -> GeofenceRead:
        valid = validate_geofence(data)
        geofence = GeofenceRead(
            **valid.model_dump(),
            id=new_geofence_id(),
            created_at=datetime.now(timezone.utc)
        )
        self._geofences[geofence.id] = geofence
        logger.info(f"Geofence added: {geofence.id} ({geofence.name})")
        return geofence

    async def remove(self, geofence_id: str) -> None:
        if geofence_id not in self._geofences:
            raise GeofenceNotFoundError(geofence_id)
        del self._geofences[geofence_id]
        logger.info(f"Geofence removed: {geofence_id}")

class SQLGeofenceStore(GeofenceStore):
    """Geofence store backed by the SQLModel table"""

    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None):
        if session_factory is None:
            from safetrail.database import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self._session_factory = session_factory

    async def list(self) -> List[GeofenceRead]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(select(Geofence).order_by(Geofence.pk))
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load geofences: {e}") from e

        return [self._to_read(row) for row in rows]

    async def add(self, data: GeofenceCreate) -> GeofenceRead:
        valid = validate_geofence(data)
        geofence = Geofence(**valid.model_dump(), id=new_geofence_id())

        try:
            async with self._session_factory() as db:
                db.add(geofence)
                await db.commit()
                await db.refresh(geofence)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save geofence: {e}") from e

        logger.info(f"Geofence added: {geofence.id} ({geofence.name})")
        return self._to_read(geofence)

    async def remove(self, geofence_id: str) -> None:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(Geofence).where(Geofence.id == geofence_id)
                )
                geofence = result.scalar_one_or_none()
                if geofence is None:
                    raise GeofenceNotFoundError(geofence_id)

                await db.delete(geofence)
                await db.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to remove geofence {geofence_id}: {e}") from e

        logger.info(f"Geofence removed: {geofence_id}")

    @staticmethod
    def _to_read(row: Geofence) -> GeofenceRead:
        created_at = row.created_at
        # SQLite drops the timezone on the way back
        if created_at is not None and created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)

        return GeofenceRead(
            id=row.id,
            name=row.name,
            description=row.description,
            latitude=row.latitude,
            longitude=row.longitude,
            radius=row.radius,
            created_at=created_at
        )
