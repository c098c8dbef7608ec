import asyncio
import itertools
import logging
from collections import OrderedDict, deque
from typing import Any, Callable, Deque, List, Optional, Set, Tuple

from safetrail.config import settings
from safetrail.core.history_store import AlertHistoryStore, is_geofence_alert
from safetrail.errors import DeliveryError, StorageError
from safetrail.models.alert import Alert
from safetrail.utils.alert_client import AlertIngestionClient, AlertSink

logger = logging.getLogger(__name__)

# Ids remembered for de-duplication, independent of the history caps
SEEN_ALERT_ID_LIMIT = 1000

AlertListener = Callable[[Alert], Any]

class AlertHistory:
    """
    Local alert history kept as two independently capped rings

    Geofence alerts and monitoring alerts (inactivity, route, anomaly,
    panic) are capped separately; reads merge both, most recent first.
    With a store attached every entry is also written through, so the
    history survives a restart once load() has run.
    """

    def __init__(
        self,
        monitoring_limit: Optional[int] = None,
        geofence_limit: Optional[int] = None,
        store: Optional[AlertHistoryStore] = None
    ):
        monitoring_limit = monitoring_limit if monitoring_limit is not None else settings.MONITORING_ALERT_HISTORY_LIMIT
        geofence_limit = geofence_limit if geofence_limit is not None else settings.GEOFENCE_ALERT_HISTORY_LIMIT

        self._sequence = itertools.count()
        self._monitoring: Deque[Tuple[int, Alert]] = deque(maxlen=monitoring_limit)
        self._geofence: Deque[Tuple[int, Alert]] = deque(maxlen=geofence_limit)
        self.store = store

    def _ring_for(self, alert: Alert) -> Deque[Tuple[int, Alert]]:
        if is_geofence_alert(alert):
            return self._geofence
        return self._monitoring

    def append(self, alert: Alert):
        # Newest on the left; a full ring drops its oldest entry on the right
        self._ring_for(alert).appendleft((next(self._sequence), alert))

    def recent(self) -> List[Alert]:
        entries = sorted(
            itertools.chain(self._monitoring, self._geofence),
            key=lambda entry: entry[0],
            reverse=True
        )
        return [alert for _, alert in entries]

    def clear(self):
        self._monitoring.clear()
        self._geofence.clear()

    async def load(self) -> List[Alert]:
        """Replace the in-memory rings with the stored history"""
        if self.store is None:
            return []

        alerts = await self.store.load()
        self.clear()
        for alert in reversed(alerts):
            self.append(alert)

        logger.info(f"Loaded {len(self)} alerts from stored history")
        return self.recent()

    async def persist(self, alert: Alert) -> bool:
        if self.store is None:
            return False

        try:
            await self.store.save(alert, self._ring_for(alert).maxlen)
        except StorageError as e:
            logger.error(f"Failed to store alert {alert.id}: {e}")
            return False
        return True

    async def clear_stored(self):
        if self.store is not None:
            await self.store.clear()

    def __len__(self) -> int:
        return len(self._monitoring) + len(self._geofence)

class AlertDispatcher:
    """
    Single choke point for every alert

    Each accepted alert is written to the local history before anything
    else, then handed to the sink in a background task. Automatic alerts
    get exactly one delivery attempt; failures are logged, not retried.
    """

    def __init__(
        self,
        sink: Optional[AlertSink] = None,
        history: Optional[AlertHistory] = None
    ):
        self.sink = sink or AlertIngestionClient()
        self.history = history or AlertHistory()
        self._pending: Set[asyncio.Task] = set()
        self._writes: Set[asyncio.Task] = set()
        self._seen_ids: "OrderedDict[str, None]" = OrderedDict()
        self._listeners: List[AlertListener] = []

    def add_listener(self, listener: AlertListener) -> Callable[[], None]:
        """Register a local observer of accepted alerts; returns a remover"""
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def dispatch(self, alert: Alert) -> bool:
        """
        Record an alert and start its delivery without waiting for it

        Must be called from a running event loop.
        Returns False when the alert id was already dispatched.
        """
        if not self._record(alert):
            return False

        # Snapshot now so later changes cannot leak into the request
        payload = alert.to_payload()
        self._track(asyncio.get_running_loop().create_task(
            self._deliver(alert.id, payload)
        ))
        return True

    async def dispatch_and_wait(self, alert: Alert) -> None:
        """
        Record an alert and deliver it, surfacing failure to the caller

        Raises:
            DeliveryError: the ingestion endpoint did not accept the alert
        """
        if not self._record(alert):
            logger.warning(f"Alert {alert.id} already dispatched, not sending again")
            return

        await self.sink.send_alert(alert.to_payload())
        logger.info(f"Alert delivered: {alert.id}")

    def recent_alerts(self) -> List[Alert]:
        return self.history.recent()

    async def load_history(self) -> List[Alert]:
        """Restore stored history; restored ids count as already dispatched"""
        alerts = await self.history.load()
        for alert in alerts:
            self._remember(alert.id)
        return alerts

    async def clear_alerts(self):
        self.history.clear()
        # Queued writes would otherwise land after the purge
        if self._writes:
            await asyncio.gather(*list(self._writes))
        await self.history.clear_stored()

    @property
    def pending_deliveries(self) -> int:
        return len(self._pending)

    async def drain(self):
        """Wait for in-flight deliveries, history writes and listener callbacks"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _record(self, alert: Alert) -> bool:
        if alert.id in self._seen_ids:
            logger.debug(f"Duplicate alert ignored: {alert.id}")
            return False

        self._remember(alert.id)
        self.history.append(alert)
        if self.history.store is not None:
            write = asyncio.get_running_loop().create_task(self.history.persist(alert))
            self._writes.add(write)
            write.add_done_callback(self._writes.discard)
            self._track(write)
        self._notify(alert)
        return True

    def _remember(self, alert_id: str):
        self._seen_ids[alert_id] = None
        if len(self._seen_ids) > SEEN_ALERT_ID_LIMIT:
            self._seen_ids.popitem(last=False)

    def _notify(self, alert: Alert):
        for listener in list(self._listeners):
            try:
                result = listener(alert)
                if asyncio.iscoroutine(result):
                    self._track(asyncio.get_running_loop().create_task(result))
            except Exception:
                logger.exception(f"Alert listener failed for {alert.id}")

    def _track(self, task: asyncio.Task):
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, alert_id: str, payload: dict) -> bool:
        try:
            await self.sink.send_alert(payload)
        except DeliveryError as e:
            logger.error(f"Alert delivery failed for {alert_id}: {e}")
            return False

        logger.info(f"Alert delivered: {alert_id}")
        return True
