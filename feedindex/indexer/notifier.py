"""Completion notifications for indexing runs.

Notifications are best effort: a failing notifier is logged and never
fails the run that triggered it.
"""

from typing import Any, Dict, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from feedindex.core.logging import get_logger
from feedindex.core.settings import Settings, get_settings

logger = get_logger(__name__)


class Notifier:
    """Capability interface for run events."""
    
    async def notify(self, event: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError
    
    async def aclose(self) -> None:
        pass


class NullNotifier(Notifier):
    """Used when no notifier endpoint is configured."""
    
    async def notify(self, event: str, payload: Dict[str, Any]) -> None:
        logger.debug(f"Notifier disabled, dropping event {event}")


class HttpNotifier(Notifier):
    """Posts events to the notifier service ``/api/events`` endpoint."""
    
    def __init__(
        self,
        base_url: str,
        access_token: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.url = base_url.rstrip("/") + "/api/events"
        self.access_token = access_token
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
    
    async def aclose(self) -> None:
        await self.client.aclose()
    
    @staticmethod
    def build_event(event: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {"event": event.replace(" ", "-"), "data": payload}
    
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4.0),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True
    )
    async def _post(self, body: Dict[str, Any]) -> httpx.Response:
        response = await self.client.post(
            self.url,
            params={"access_token": self.access_token},
            json=body
        )
        response.raise_for_status()
        return response
    
    async def notify(self, event: str, payload: Dict[str, Any]) -> None:
        try:
            await self._post(self.build_event(event, payload))
            logger.debug(f"Sent event {event} to notifier")
        except Exception as e:
            logger.warning(f"Failed to send event {event} to notifier: {e}")


def create_notifier(settings: Optional[Settings] = None) -> Notifier:
    """Notifier for the configured endpoint, or a no-op one."""
    settings = settings or get_settings()
    if not settings.notifier_url:
        return NullNotifier()
    return HttpNotifier(
        settings.notifier_url,
        access_token=settings.notifier_access_token,
        timeout=settings.notifier_timeout
    )
