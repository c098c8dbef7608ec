from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from safetrail.core.anomaly import SimulatedAnomalySource
from safetrail.core.dispatcher import AlertDispatcher
from safetrail.core.geofence_store import InMemoryGeofenceStore
from safetrail.core.supervisor import MonitoringSupervisor
from safetrail.errors import DeliveryError
from safetrail.utils.alert_client import AlertSink
from safetrail.utils.location_source import PushLocationSource


class FakeSink(AlertSink):
    """Records payloads; fails every send when `fail` is set."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.payloads: list[dict[str, Any]] = []
        self.attempts = 0

    async def send_alert(self, payload: dict[str, Any]) -> None:
        self.attempts += 1
        if self.fail:
            raise DeliveryError("Alert API error: 500 - boom", status=500)
        self.payloads.append(payload)


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def dispatcher(sink: FakeSink) -> AlertDispatcher:
    return AlertDispatcher(sink=sink)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def source() -> PushLocationSource:
    return PushLocationSource()


@pytest.fixture
def store() -> InMemoryGeofenceStore:
    return InMemoryGeofenceStore()


@pytest.fixture
def supervisor(
    source: PushLocationSource,
    store: InMemoryGeofenceStore,
    dispatcher: AlertDispatcher,
    clock: FakeClock,
) -> MonitoringSupervisor:
    # Long intervals keep the periodic ticks out of the way unless a test opts in
    return MonitoringSupervisor(
        location_source=source,
        geofence_store=store,
        dispatcher=dispatcher,
        anomaly_source=SimulatedAnomalySource(probability=0.0),
        activity_interval=3600,
        anomaly_interval=3600,
        clock=clock,
    )
