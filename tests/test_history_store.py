from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import safetrail.models.alert  # noqa: F401
from safetrail.core.dispatcher import AlertDispatcher, AlertHistory
from safetrail.core.history_store import (
    AlertHistoryStore,
    InMemoryAlertHistoryStore,
    SQLAlertHistoryStore,
)
from safetrail.errors import StorageError
from safetrail.models.alert import Alert, AlertCategory, AlertSeverity
from safetrail.models.location import LocationSample

from conftest import FakeSink


def _alert(category: AlertCategory = AlertCategory.INACTIVITY, message: str = "test") -> Alert:
    return Alert.create(category=category, severity=AlertSeverity.MEDIUM, message=message)


@pytest.fixture
async def session_factory(tmp_path: Path) -> AsyncIterator[async_sessionmaker]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'history.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def history_store(request: pytest.FixtureRequest, session_factory: async_sessionmaker) -> AlertHistoryStore:
    if request.param == "memory":
        return InMemoryAlertHistoryStore()
    return SQLAlertHistoryStore(session_factory)


async def test_history_survives_restart(session_factory: async_sessionmaker) -> None:
    first = AlertDispatcher(sink=FakeSink(), history=AlertHistory(store=SQLAlertHistoryStore(session_factory)))
    geofence = Alert.create(
        category=AlertCategory.GEOFENCE_VIOLATION,
        severity=AlertSeverity.HIGH,
        message="Entered restricted area: Harbour",
        location=LocationSample(latitude=12.34, longitude=56.78),
        occurred_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        metadata={"geofenceId": "geofence-1", "geofenceName": "Harbour", "distance": 44},
    )
    inactivity = _alert(message="No activity detected for 16 minutes")
    anomaly = _alert(AlertCategory.ANOMALY, message="Weather alert")

    for alert in (geofence, inactivity, anomaly):
        first.dispatch(alert)
    await first.drain()

    restarted = AlertHistory(store=SQLAlertHistoryStore(session_factory))
    loaded = await restarted.load()

    assert loaded == [anomaly, inactivity, geofence]
    assert restarted.recent() == [anomaly, inactivity, geofence]
    assert loaded[2].occurred_at.tzinfo is not None
    assert loaded[2].location.latitude == 12.34
    assert loaded[2].metadata == {"geofenceId": "geofence-1", "geofenceName": "Harbour", "distance": 44}


async def test_restored_ids_are_not_dispatched_again(session_factory: async_sessionmaker) -> None:
    alert = _alert()
    first = AlertDispatcher(sink=FakeSink(), history=AlertHistory(store=SQLAlertHistoryStore(session_factory)))
    first.dispatch(alert)
    await first.drain()

    sink = FakeSink()
    second = AlertDispatcher(sink=sink, history=AlertHistory(store=SQLAlertHistoryStore(session_factory)))
    await second.load_history()

    assert second.dispatch(alert) is False
    await second.drain()
    assert sink.payloads == []


async def test_store_trims_each_ring_to_its_cap(history_store: AlertHistoryStore) -> None:
    dispatcher = AlertDispatcher(
        sink=FakeSink(),
        history=AlertHistory(monitoring_limit=2, geofence_limit=3, store=history_store),
    )
    monitoring = [_alert(message=f"m{i}") for i in range(5)]
    geofence = [_alert(AlertCategory.GEOFENCE_VIOLATION, message=f"g{i}") for i in range(4)]

    for alert in monitoring + geofence:
        dispatcher.dispatch(alert)
    await dispatcher.drain()

    stored = await history_store.load()
    assert stored == list(reversed(geofence[1:])) + list(reversed(monitoring[3:]))
    assert stored == dispatcher.recent_alerts()


async def test_clear_removes_stored_history(history_store: AlertHistoryStore) -> None:
    dispatcher = AlertDispatcher(sink=FakeSink(), history=AlertHistory(store=history_store))
    dispatcher.dispatch(_alert())
    dispatcher.dispatch(_alert(AlertCategory.GEOFENCE_VIOLATION))

    # Clearing right after dispatch also waits out the queued writes
    await dispatcher.clear_alerts()
    await dispatcher.drain()

    assert await history_store.load() == []
    assert dispatcher.recent_alerts() == []


async def test_history_without_store_loads_nothing() -> None:
    history = AlertHistory()

    assert await history.load() == []
    assert await history.persist(_alert()) is False


async def test_failed_write_keeps_memory_history(tmp_path: Path) -> None:
    # No tables created
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    store = SQLAlertHistoryStore(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))
    sink = FakeSink()
    dispatcher = AlertDispatcher(sink=sink, history=AlertHistory(store=store))
    alert = _alert()

    assert dispatcher.dispatch(alert) is True
    await dispatcher.drain()

    assert dispatcher.recent_alerts() == [alert]
    assert len(sink.payloads) == 1
    with pytest.raises(StorageError):
        await store.load()

    await engine.dispose()
