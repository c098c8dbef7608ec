import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List, Optional

from safetrail.errors import LocationPermissionError, LocationUnavailableError
from safetrail.models.location import LocationSample

logger = logging.getLogger(__name__)

SampleCallback = Callable[[LocationSample], Awaitable[object]]

class LocationSource(ABC):
    """Device location provider consumed by the monitoring engine"""

    @abstractmethod
    def has_permission(self) -> bool:
        pass

    @abstractmethod
    def subscribe(self, callback: SampleCallback) -> Callable[[], None]:
        """Register for sample pushes; returns an unsubscribe callable"""
        pass

    @abstractmethod
    async def get_once(self) -> LocationSample:
        pass

class PushLocationSource(LocationSource):
    """
    Location source fed by the platform's location callback

    The platform (or a test) calls publish() for every fix; subscribers are
    awaited in registration order. Without permission samples are dropped.
    """

    def __init__(self, has_permission: bool = True):
        self._permission = has_permission
        self._subscribers: List[SampleCallback] = []
        self._last_sample: Optional[LocationSample] = None

    def has_permission(self) -> bool:
        return self._permission

    def set_permission(self, granted: bool):
        self._permission = granted
        if not granted:
            self._last_sample = None

    def subscribe(self, callback: SampleCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, sample: LocationSample) -> int:
        """Push a sample to every subscriber; returns how many received it"""
        if not self._permission:
            logger.warning("Location permission not granted, dropping sample")
            return 0

        self._last_sample = sample
        subscribers = list(self._subscribers)
        for callback in subscribers:
            await callback(sample)

        return len(subscribers)

    async def get_once(self) -> LocationSample:
        if not self._permission:
            raise LocationPermissionError("Location permission not granted")
        if self._last_sample is None:
            raise LocationUnavailableError("No location fix available yet")
        return self._last_sample
