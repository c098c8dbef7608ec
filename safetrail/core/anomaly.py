import logging
import random
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional, Sequence

from safetrail.config import settings
from safetrail.models.alert import Alert, AlertCategory, AlertSeverity

logger = logging.getLogger(__name__)

ANOMALY_CATALOG = (
    "Unusual crowd gathering",
    "Suspicious activity detected",
    "Weather alert",
)

class AnomalySource(ABC):
    """Periodic anomaly detector plugged into the supervisor"""

    @abstractmethod
    def tick(self, now: datetime, current_location: Any = None) -> Optional[Alert]:
        pass

class SimulatedAnomalySource(AnomalySource):
    """
    Placeholder detector with no real sensing

    Each tick raises an anomaly with a fixed probability, picking a
    description from a small catalog and a HIGH or LOW severity.
    """

    def __init__(
        self,
        probability: Optional[float] = None,
        high_severity_probability: Optional[float] = None,
        catalog: Sequence[str] = ANOMALY_CATALOG,
        rng: Optional[random.Random] = None
    ):
        self.probability = probability if probability is not None else settings.ANOMALY_PROBABILITY
        self.high_severity_probability = (
            high_severity_probability if high_severity_probability is not None
            else settings.ANOMALY_HIGH_SEVERITY_PROBABILITY
        )
        self.catalog = tuple(catalog)
        self.rng = rng or random.Random()

    def tick(self, now: datetime, current_location: Any = None) -> Optional[Alert]:
        if self.rng.random() >= self.probability:
            return None

        description = self.rng.choice(self.catalog)
        severity = (
            AlertSeverity.HIGH if self.rng.random() < self.high_severity_probability
            else AlertSeverity.LOW
        )
        logger.info(f"Simulated anomaly: {description} ({severity.value})")

        return Alert.create(
            category=AlertCategory.ANOMALY,
            severity=severity,
            message=description,
            location=current_location,
            occurred_at=now,
            metadata={"alertType": AlertCategory.ANOMALY.value}
        )
