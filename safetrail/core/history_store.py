import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from safetrail.errors import StorageError
from safetrail.models.alert import Alert, AlertCategory, AlertRecord

logger = logging.getLogger(__name__)

def is_geofence_alert(alert: Alert) -> bool:
    """Geofence alerts and all other categories are capped separately"""
    return alert.category == AlertCategory.GEOFENCE_VIOLATION

class AlertHistoryStore(ABC):
    """Durable copy of the local alert history"""

    @abstractmethod
    async def load(self) -> List[Alert]:
        """Stored alerts, most recent first"""
        pass

    @abstractmethod
    async def save(self, alert: Alert, limit: int) -> None:
        """Store an alert, keeping at most `limit` entries of its ring"""
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass

class InMemoryAlertHistoryStore(AlertHistoryStore):
    """Process-local store, used when no database is configured"""

    def __init__(self):
        self._alerts: List[Alert] = []  # oldest first

    async def load(self) -> List[Alert]:
        return list(reversed(self._alerts))

    async def save(self, alert: Alert, limit: int) -> None:
        self._alerts.append(alert)

        ring = is_geofence_alert(alert)
        same_ring = [stored for stored in self._alerts if is_geofence_alert(stored) == ring]
        for stale in same_ring[:max(0, len(same_ring) - limit)]:
            self._alerts.remove(stale)

    async def clear(self) -> None:
        self._alerts.clear()

class SQLAlertHistoryStore(AlertHistoryStore):
    """Alert history backed by the SQLModel table"""

    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None):
        if session_factory is None:
            from safetrail.database import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self._session_factory = session_factory
        # Writes are applied in the order they were scheduled
        self._lock = asyncio.Lock()

    async def load(self) -> List[Alert]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(AlertRecord).order_by(AlertRecord.pk.desc())
                )
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load alert history: {e}") from e

        return [row.to_alert() for row in rows]

    async def save(self, alert: Alert, limit: int) -> None:
        if is_geofence_alert(alert):
            same_ring = AlertRecord.category == AlertCategory.GEOFENCE_VIOLATION.value
        else:
            same_ring = AlertRecord.category != AlertCategory.GEOFENCE_VIOLATION.value

        async with self._lock:
            try:
                async with self._session_factory() as db:
                    db.add(AlertRecord.from_alert(alert))
                    await db.commit()

                    result = await db.execute(
                        select(AlertRecord.pk)
                        .where(same_ring)
                        .order_by(AlertRecord.pk.desc())
                        .offset(limit)
                    )
                    stale = result.scalars().all()
                    if stale:
                        await db.execute(delete(AlertRecord).where(AlertRecord.pk.in_(stale)))
                        await db.commit()
            except SQLAlchemyError as e:
                raise StorageError(f"Failed to save alert {alert.id}: {e}") from e

    async def clear(self) -> None:
        async with self._lock:
            try:
                async with self._session_factory() as db:
                    await db.execute(delete(AlertRecord))
                    await db.commit()
            except SQLAlchemyError as e:
                raise StorageError(f"Failed to clear alert history: {e}") from e

        logger.info("Stored alert history cleared")
