import logging
from typing import Dict, List, Optional, Sequence

from safetrail.core.geomath import distance_meters
from safetrail.models.alert import Alert, AlertCategory, AlertSeverity
from safetrail.models.geofence import GeofenceRead
from safetrail.models.location import LocationSample

logger = logging.getLogger(__name__)

class GeofenceEngine:
    """
    Restricted-area entry detection

    Alerts once per contiguous stay inside a fence: the per-fence
    containment flag suppresses repeats until the user leaves again.
    """

    def __init__(self):
        self._inside: Dict[str, bool] = {}

    def evaluate(
        self,
        sample: Optional[LocationSample],
        fences: Sequence[GeofenceRead]
    ) -> List[Alert]:
        if sample is None:
            return []

        alerts: List[Alert] = []
        seen = set()

        for fence in fences:
            seen.add(fence.id)
            distance = distance_meters(sample, fence)
            inside = distance <= fence.radius
            was_inside = self._inside.get(fence.id, False)
            self._inside[fence.id] = inside

            if inside and not was_inside:
                logger.info(f"Entered geofence {fence.id} ({fence.name}) at {round(distance)}m from centre")
                alerts.append(Alert.create(
                    category=AlertCategory.GEOFENCE_VIOLATION,
                    severity=AlertSeverity.HIGH,
                    message=f"Entered restricted area: {fence.name}",
                    location=sample,
                    occurred_at=sample.captured_at,
                    metadata={
                        "geofenceId": fence.id,
                        "geofenceName": fence.name,
                        "distance": round(distance)
                    }
                ))
            elif was_inside and not inside:
                logger.debug(f"Left geofence {fence.id}")

        # Forget fences that have been removed
        for fence_id in list(self._inside):
            if fence_id not in seen:
                del self._inside[fence_id]

        return alerts

    def is_inside(self, fence_id: str) -> bool:
        """Last known containment for a fence"""
        return self._inside.get(fence_id, False)

    def reset(self):
        self._inside.clear()
