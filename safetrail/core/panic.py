import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from safetrail.config import settings
from safetrail.core.dispatcher import AlertDispatcher
from safetrail.errors import DeliveryError
from safetrail.models.alert import Alert, AlertCategory, AlertSeverity

logger = logging.getLogger(__name__)

DEFAULT_PANIC_MESSAGE = "Emergency alert triggered"

class PanicTrigger:
    """
    Explicit emergency alert raised by the user

    Unlike the automatic monitors, the caller waits for delivery and gets
    a DeliveryError back when the backend could not be reached.
    """

    def __init__(self, dispatcher: AlertDispatcher, countdown_seconds: Optional[float] = None):
        self.dispatcher = dispatcher
        self.countdown_seconds = (
            countdown_seconds if countdown_seconds is not None
            else settings.PANIC_COUNTDOWN_SECONDS
        )
        self._in_flight = 0
        self._armed: Optional[asyncio.Task] = None

    async def send_panic(
        self,
        location: Any = None,
        message: str = DEFAULT_PANIC_MESSAGE,
        severity: AlertSeverity = AlertSeverity.HIGH
    ) -> Alert:
        now = datetime.now(timezone.utc)
        alert = Alert.create(
            category=AlertCategory.PANIC_BUTTON,
            severity=severity,
            message=message,
            location=location,
            occurred_at=now,
            metadata={
                "timestamp": now.isoformat(),
                "source": "mobile_app"
            }
        )

        self._in_flight += 1
        try:
            await self.dispatcher.dispatch_and_wait(alert)
        except DeliveryError as e:
            logger.critical(f"FAILED to send panic alert {alert.id}: {e}")
            raise
        finally:
            self._in_flight -= 1

        logger.critical(f"Panic alert sent: {alert.id}")
        return alert

    @property
    def sending(self) -> bool:
        """True while any panic send is awaiting delivery"""
        return self._in_flight > 0

    @property
    def is_armed(self) -> bool:
        return self._armed is not None and not self._armed.done()

    def arm(
        self,
        location: Any = None,
        message: str = DEFAULT_PANIC_MESSAGE,
        countdown: Optional[float] = None
    ) -> asyncio.Task:
        """
        Start the confirmation countdown; the panic is sent when it elapses
        Returns the countdown task, which resolves to the sent Alert
        """
        if self.is_armed:
            return self._armed

        delay = countdown if countdown is not None else self.countdown_seconds
        logger.warning(f"Panic armed, sending in {delay}s unless cancelled")
        self._armed = asyncio.get_running_loop().create_task(
            self._countdown(delay, location, message)
        )
        return self._armed

    def cancel(self) -> bool:
        """Abort an armed countdown; False when nothing was armed"""
        if not self.is_armed:
            return False

        self._armed.cancel()
        self._armed = None
        logger.info("Panic countdown cancelled")
        return True

    async def _countdown(self, delay: float, location: Any, message: str) -> Alert:
        try:
            await asyncio.sleep(delay)
        finally:
            # Once the countdown is over the send can no longer be cancelled
            if self._armed is asyncio.current_task():
                self._armed = None

        return await self.send_panic(location, message)
