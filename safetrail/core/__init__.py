"""
Core modules for the SafeTrail monitoring engine

This package contains the monitoring logic:
- geomath: Great-circle distance, containment and route distance helpers
- geofencing: Restricted-area entry detection
- geofence_store: In-memory and SQL geofence persistence
- activity / route / anomaly: Background monitors
- dispatcher: Alert history and delivery
- history_store: In-memory and SQL alert history persistence
- panic: User-triggered emergency alerts
- supervisor: Monitoring lifecycle and shared state
"""

from .geomath import (
    EARTH_RADIUS_METERS,
    distance_meters,
    is_inside,
    nearest_distance_to_polyline,
    check_geofence_violations,
    format_distance,
    geofence_status,
    validate_coordinates
)

from .geofencing import GeofenceEngine

from .geofence_store import (
    GeofenceStore,
    InMemoryGeofenceStore,
    SQLGeofenceStore,
    new_geofence_id,
    validate_geofence
)

from .activity import ActivityMonitor
from .route import RouteMonitor
from .anomaly import ANOMALY_CATALOG, AnomalySource, SimulatedAnomalySource

from .history_store import (
    AlertHistoryStore,
    InMemoryAlertHistoryStore,
    SQLAlertHistoryStore
)
from .dispatcher import AlertDispatcher, AlertHistory
from .panic import PanicTrigger
from .supervisor import MonitoringHandle, MonitoringSupervisor

__all__ = [
    # Geometry
    "EARTH_RADIUS_METERS",
    "distance_meters",
    "is_inside",
    "nearest_distance_to_polyline",
    "check_geofence_violations",
    "format_distance",
    "geofence_status",
    "validate_coordinates",

    # Geofences
    "GeofenceEngine",
    "GeofenceStore",
    "InMemoryGeofenceStore",
    "SQLGeofenceStore",
    "new_geofence_id",
    "validate_geofence",

    # Monitors
    "ActivityMonitor",
    "RouteMonitor",
    "ANOMALY_CATALOG",
    "AnomalySource",
    "SimulatedAnomalySource",

    # Alerts
    "AlertDispatcher",
    "AlertHistory",
    "AlertHistoryStore",
    "InMemoryAlertHistoryStore",
    "SQLAlertHistoryStore",
    "PanicTrigger",

    # Lifecycle
    "MonitoringHandle",
    "MonitoringSupervisor"
]
