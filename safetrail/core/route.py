import logging
from typing import Optional, Sequence

from safetrail.config import settings
from safetrail.core.geomath import nearest_distance_to_polyline
from safetrail.models.alert import Alert, AlertCategory, AlertSeverity
from safetrail.models.location import LocationSample, RouteWaypoint

logger = logging.getLogger(__name__)

class RouteMonitor:
    """Flags samples that stray too far from the expected route"""

    def __init__(self, threshold_meters: Optional[float] = None):
        self.threshold_meters = (
            threshold_meters if threshold_meters is not None
            else settings.ROUTE_DEVIATION_THRESHOLD_METERS
        )

    def on_sample(
        self,
        sample: LocationSample,
        expected_route: Optional[Sequence[RouteWaypoint]]
    ) -> Optional[Alert]:
        if not expected_route:
            return None

        deviation = nearest_distance_to_polyline(sample, expected_route)
        if deviation <= self.threshold_meters:
            return None

        logger.info(f"Route deviation: {round(deviation)}m (threshold {self.threshold_meters}m)")

        return Alert.create(
            category=AlertCategory.ROUTE_DEVIATION,
            severity=AlertSeverity.HIGH,
            message=f"Route deviation detected: {round(deviation)}m from expected path",
            location=sample,
            occurred_at=sample.captured_at,
            metadata={
                "alertType": AlertCategory.ROUTE_DEVIATION.value,
                "deviation": deviation
            }
        )
