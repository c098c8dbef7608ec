from __future__ import annotations

from datetime import datetime, timezone

from safetrail.core.geofencing import GeofenceEngine
from safetrail.models.alert import AlertCategory, AlertSeverity
from safetrail.models.geofence import GeofenceRead
from safetrail.models.location import LocationSample

FENCE = GeofenceRead(
    id="geofence-1",
    name="Harbour",
    latitude=12.34,
    longitude=56.78,
    radius=100,
    created_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
)

INSIDE = LocationSample(latitude=12.3404, longitude=56.78)
OUTSIDE = LocationSample(latitude=12.35, longitude=56.78)


def test_entry_raises_high_severity_alert() -> None:
    engine = GeofenceEngine()

    alerts = engine.evaluate(INSIDE, [FENCE])

    assert len(alerts) == 1
    alert = alerts[0]
    assert alert.category == AlertCategory.GEOFENCE_VIOLATION
    assert alert.severity == AlertSeverity.HIGH
    assert alert.message == "Entered restricted area: Harbour"
    assert alert.metadata["geofenceId"] == "geofence-1"
    assert alert.metadata["geofenceName"] == "Harbour"
    assert 40 <= alert.metadata["distance"] <= 50
    assert alert.location.latitude == INSIDE.latitude
    assert alert.to_payload()["type"] == "GEOFENCE_VIOLATION"


def test_stay_inside_alerts_once() -> None:
    engine = GeofenceEngine()

    assert len(engine.evaluate(INSIDE, [FENCE])) == 1
    assert engine.evaluate(INSIDE, [FENCE]) == []
    assert engine.evaluate(INSIDE, [FENCE]) == []
    assert engine.is_inside("geofence-1")


def test_reentry_alerts_again() -> None:
    engine = GeofenceEngine()

    assert len(engine.evaluate(INSIDE, [FENCE])) == 1
    assert engine.evaluate(OUTSIDE, [FENCE]) == []
    assert not engine.is_inside("geofence-1")
    assert len(engine.evaluate(INSIDE, [FENCE])) == 1


def test_outside_never_alerts() -> None:
    engine = GeofenceEngine()
    assert engine.evaluate(OUTSIDE, [FENCE]) == []


def test_no_sample_or_no_fences_is_a_no_op() -> None:
    engine = GeofenceEngine()

    assert engine.evaluate(None, [FENCE]) == []
    assert engine.evaluate(INSIDE, []) == []


def test_removed_fence_is_forgotten() -> None:
    engine = GeofenceEngine()
    engine.evaluate(INSIDE, [FENCE])

    engine.evaluate(INSIDE, [])

    assert not engine.is_inside("geofence-1")
    # Adding it back counts as a fresh entry
    assert len(engine.evaluate(INSIDE, [FENCE])) == 1


def test_reset_clears_containment() -> None:
    engine = GeofenceEngine()
    engine.evaluate(INSIDE, [FENCE])

    engine.reset()

    assert len(engine.evaluate(INSIDE, [FENCE])) == 1
