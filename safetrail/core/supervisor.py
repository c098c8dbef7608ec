import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from safetrail.config import settings
from safetrail.core.activity import ActivityMonitor
from safetrail.core.anomaly import AnomalySource, SimulatedAnomalySource
from safetrail.core.dispatcher import AlertDispatcher
from safetrail.core.geofence_store import GeofenceStore
from safetrail.core.geofencing import GeofenceEngine
from safetrail.core.geomath import check_geofence_violations, geofence_status
from safetrail.core.panic import DEFAULT_PANIC_MESSAGE, PanicTrigger
from safetrail.core.route import RouteMonitor
from safetrail.errors import StorageError
from safetrail.models.alert import Alert
from safetrail.models.geofence import GeofenceCreate, GeofenceRead
from safetrail.models.location import LocationSample, RouteWaypoint
from safetrail.models.monitoring import MonitoringState
from safetrail.utils.location_source import LocationSource

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

class MonitoringHandle:
    """Periodic tasks and location subscription of one monitoring run"""

    def __init__(self, tasks: Sequence[asyncio.Task], unsubscribe: Callable[[], None]):
        self._tasks = list(tasks)
        self._unsubscribe = unsubscribe
        self.cancelled = False

    async def cancel(self):
        """Unsubscribe and wait until every periodic task has stopped"""
        if self.cancelled:
            return
        self.cancelled = True

        self._unsubscribe()
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

class MonitoringSupervisor:
    """
    Owns the monitoring lifecycle and the shared monitoring state

    Location samples, the activity tick and the anomaly tick all go
    through one lock, so the containment map and the alert history only
    ever see one writer at a time.
    """

    def __init__(
        self,
        location_source: LocationSource,
        geofence_store: GeofenceStore,
        dispatcher: AlertDispatcher,
        geofence_engine: Optional[GeofenceEngine] = None,
        activity_monitor: Optional[ActivityMonitor] = None,
        route_monitor: Optional[RouteMonitor] = None,
        anomaly_source: Optional[AnomalySource] = None,
        panic_trigger: Optional[PanicTrigger] = None,
        activity_interval: Optional[float] = None,
        anomaly_interval: Optional[float] = None,
        clock: Clock = utc_now
    ):
        self.location_source = location_source
        self.geofence_store = geofence_store
        self.dispatcher = dispatcher
        self.geofence_engine = geofence_engine or GeofenceEngine()
        self.activity_monitor = activity_monitor or ActivityMonitor()
        self.route_monitor = route_monitor or RouteMonitor()
        self.anomaly_source = anomaly_source or SimulatedAnomalySource()
        self.panic_trigger = panic_trigger or PanicTrigger(dispatcher)
        self.activity_interval = activity_interval or settings.ACTIVITY_CHECK_INTERVAL_SECONDS
        self.anomaly_interval = anomaly_interval or settings.ANOMALY_CHECK_INTERVAL_SECONDS
        self._clock = clock

        self._lock = asyncio.Lock()
        self._handle: Optional[MonitoringHandle] = None
        self._is_active = False
        self._expected_route: Optional[List[RouteWaypoint]] = None
        self._last_sample: Optional[LocationSample] = None

    @property
    def is_active(self) -> bool:
        return self._is_active

    @property
    def last_sample(self) -> Optional[LocationSample]:
        return self._last_sample

    @property
    def state(self) -> MonitoringState:
        return MonitoringState(
            is_active=self._is_active,
            last_activity_at=self.activity_monitor.last_activity_at,
            expected_route=list(self._expected_route) if self._expected_route is not None else None,
            recent_alerts=self.dispatcher.recent_alerts()
        )

    # Lifecycle

    async def start(self) -> MonitoringHandle:
        async with self._lock:
            if self._handle is not None:
                return self._handle

            if not self.location_source.has_permission():
                logger.warning("Location permission not granted, no location samples will arrive")

            self._is_active = True
            self.activity_monitor.reset(self._clock())
            self.geofence_engine.reset()

            unsubscribe = self.location_source.subscribe(self.handle_sample)
            loop = asyncio.get_running_loop()
            tasks = [
                loop.create_task(self._run_periodic(
                    "activity", self.activity_interval, self.run_activity_check
                )),
                loop.create_task(self._run_periodic(
                    "anomaly", self.anomaly_interval, self.run_anomaly_check
                )),
            ]
            self._handle = MonitoringHandle(tasks, unsubscribe)

            logger.info(
                f"Monitoring started (activity every {self.activity_interval}s, "
                f"anomaly every {self.anomaly_interval}s)"
            )
            return self._handle

    async def stop(self):
        async with self._lock:
            handle = self._handle
            if handle is None:
                return
            self._handle = None

            # Ticks waiting on the lock are cancelled before they can run
            await handle.cancel()

            self._is_active = False
            self.geofence_engine.reset()
            self.activity_monitor.clear()

        logger.info("Monitoring stopped")

    # Event handling

    async def handle_sample(self, sample: LocationSample) -> List[Alert]:
        """Process one location sample; returns the alerts it raised"""
        async with self._lock:
            if not self._is_active:
                return []

            self._last_sample = sample
            self.activity_monitor.on_sample(self._clock())

            alerts: List[Alert] = []
            try:
                fences = await self.geofence_store.list()
            except StorageError as e:
                logger.error(f"Skipping geofence check, store unavailable: {e}")
            else:
                alerts.extend(self.geofence_engine.evaluate(sample, fences))

            deviation = self.route_monitor.on_sample(sample, self._expected_route)
            if deviation is not None:
                alerts.append(deviation)

            for alert in alerts:
                self.dispatcher.dispatch(alert)

            return alerts

    async def run_activity_check(self) -> Optional[Alert]:
        async with self._lock:
            if not self._is_active:
                return None

            alert = self.activity_monitor.tick(self._clock(), self._last_sample)
            if alert is not None:
                self.dispatcher.dispatch(alert)
            return alert

    async def run_anomaly_check(self) -> Optional[Alert]:
        async with self._lock:
            if not self._is_active:
                return None

            alert = self.anomaly_source.tick(self._clock(), self._last_sample)
            if alert is not None:
                self.dispatcher.dispatch(alert)
            return alert

    async def _run_periodic(self, name: str, interval: float, check: Callable[[], Awaitable[Any]]):
        while True:
            await asyncio.sleep(interval)
            try:
                await check()
            except Exception:
                logger.exception(f"Error in {name} monitoring tick")

    # State mutators

    async def set_expected_route(self, route: Optional[Sequence[RouteWaypoint]]):
        async with self._lock:
            self._expected_route = list(route) if route is not None else None

        if route:
            logger.info(f"Expected route set with {len(route)} waypoints")
        else:
            logger.info("Expected route cleared")

    async def clear_alerts(self):
        async with self._lock:
            await self.dispatcher.clear_alerts()

    def recent_alerts(self) -> List[Alert]:
        return self.dispatcher.recent_alerts()

    # Geofences

    async def list_geofences(self) -> List[GeofenceRead]:
        return await self.geofence_store.list()

    async def add_geofence(self, data: GeofenceCreate) -> GeofenceRead:
        return await self.geofence_store.add(data)

    async def remove_geofence(self, geofence_id: str) -> None:
        await self.geofence_store.remove(geofence_id)

    async def geofence_statuses(self) -> List[Dict[str, Any]]:
        """Every geofence with its containment relative to the last sample"""
        fences = await self.geofence_store.list()
        return [
            {"geofence": fence, **geofence_status(self._last_sample, fence)}
            for fence in fences
        ]

    async def current_violations(self) -> List[GeofenceRead]:
        """Geofences containing the last known location"""
        if self._last_sample is None:
            return []
        fences = await self.geofence_store.list()
        return check_geofence_violations(self._last_sample, fences)

    # Panic

    async def send_panic(
        self,
        location: Any = None,
        message: str = DEFAULT_PANIC_MESSAGE
    ) -> Alert:
        """Send a panic alert, defaulting to the last known location"""
        return await self.panic_trigger.send_panic(location or self._last_sample, message)
