import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from safetrail.config import settings
from safetrail.models.alert import Alert, AlertCategory, AlertSeverity

logger = logging.getLogger(__name__)

class ActivityMonitor:
    """
    Inactivity detection driven by a periodic tick

    Every tick past the threshold raises a fresh alert for as long as the
    silence lasts; there is no alerted flag.
    """

    def __init__(self, threshold: Optional[timedelta] = None):
        self.threshold = (
            threshold if threshold is not None
            else timedelta(minutes=settings.INACTIVITY_THRESHOLD_MINUTES)
        )
        self.last_activity_at: Optional[datetime] = None

    def on_sample(self, now: datetime):
        self.last_activity_at = now

    def reset(self, now: datetime):
        """Restart the silence interval (monitoring start)"""
        self.last_activity_at = now

    def clear(self):
        self.last_activity_at = None

    def tick(self, now: datetime, location: Any = None) -> Optional[Alert]:
        if self.last_activity_at is None:
            return None

        elapsed = now - self.last_activity_at
        if elapsed <= self.threshold:
            return None

        minutes = round(elapsed.total_seconds() / 60)
        logger.info(f"Inactivity detected: {minutes} minutes since last activity")

        return Alert.create(
            category=AlertCategory.INACTIVITY,
            severity=AlertSeverity.MEDIUM,
            message=f"No activity detected for {minutes} minutes",
            location=location,
            occurred_at=now,
            metadata={
                "alertType": AlertCategory.INACTIVITY.value,
                "duration": int(elapsed.total_seconds() * 1000)  # milliseconds
            }
        )
