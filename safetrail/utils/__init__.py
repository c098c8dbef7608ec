"""
Utility modules for the SafeTrail monitoring engine

This package contains the engine's outward-facing adapters:
- alert_client: HTTP delivery of alerts to the ingestion API
- location_source: Device location feed
"""

from .alert_client import (
    AlertSink,
    AlertIngestionClient
)

from .location_source import (
    LocationSource,
    PushLocationSource
)

__all__ = [
    # Alert delivery
    "AlertSink",
    "AlertIngestionClient",

    # Location
    "LocationSource",
    "PushLocationSource"
]
