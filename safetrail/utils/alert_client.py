import asyncio
import aiohttp
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from safetrail.config import settings
from safetrail.errors import DeliveryError

logger = logging.getLogger(__name__)

class AlertSink(ABC):
    """Destination for serialized alerts"""

    @abstractmethod
    async def send_alert(self, payload: Dict[str, Any]) -> None:
        """Deliver one alert payload; raise DeliveryError on failure"""
        pass

class AlertIngestionClient(AlertSink):
    """POSTs alerts to the backend ingestion endpoint"""

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.api_url = api_url or settings.ALERTS_API_URL
        self.api_token = api_token if api_token is not None else settings.ALERTS_API_TOKEN
        self.timeout = timeout if timeout is not None else settings.ALERT_DELIVERY_TIMEOUT_SECONDS

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json"
        }
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    async def send_alert(self, payload: Dict[str, Any]) -> None:
        """
        Send a single alert

        Args:
            payload: Body for POST /alerts (type, severity, message, location, metadata)

        Raises:
            DeliveryError: network failure, timeout or non-2xx response
        """
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.api_url,
                    json=payload,
                    headers=self._headers(),
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:

                    if not 200 <= response.status < 300:
                        response_text = await response.text()
                        raise DeliveryError(
                            f"Alert API error: {response.status} - {response_text}",
                            status=response.status
                        )

        except asyncio.TimeoutError as e:
            raise DeliveryError(f"Alert request timeout after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise DeliveryError(f"Alert request error: {e}") from e

        logger.debug(f"Alert delivered: {payload.get('type')} / {payload.get('severity')}")
