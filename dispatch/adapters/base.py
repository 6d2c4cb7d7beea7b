"""
BaseOrderSource - the interface every external order source implements.

An order source translates records from an outside system into internal
Order objects and names the field that identifies a record across pulls.
The ingestion service never imports a source-specific module: it asks
the AdapterRegistry for a source and works against this interface.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from dispatch.config import get_settings
from dispatch.models import Order


class UpstreamError(Exception):
    """Raised when an external API answers with a non-2xx status or cannot be reached."""

    def __init__(self, service: str, message: str, status_code: Optional[int] = None):
        self.service = service
        self.status_code = status_code
        self.message = message
        super().__init__(f"{service}: {message}")


def error_message(response: httpx.Response, default: str) -> str:
    """Pull the provider's ``error.message`` out of a failed response, if it has one."""
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if isinstance(error, str) and error:
            return error
    return default


class BaseOrderSource(ABC):
    """
    Abstract base class for external order sources.

    Subclasses receive their credentials at construction. An optional
    ``client`` lets callers share one httpx.AsyncClient (or inject a mock
    transport); otherwise each call opens its own.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client
        self.timeout = get_settings().UPSTREAM_TIMEOUT_SECONDS

    @property
    @abstractmethod
    def platform_name(self) -> str:
        """Value written to Order.source for records from this source."""
        ...

    @abstractmethod
    def dedup_key(self, order: Order) -> Optional[str]:
        """Identifier that stays stable across pulls; None or empty means skip the record."""
        ...

    @abstractmethod
    async def fetch_orders(self, date: str) -> List[Order]:
        """Pull and translate the source's current records for ``date``."""
        ...

    @abstractmethod
    async def test_connection(self) -> None:
        """Probe the credentials. Raises UpstreamError when the source refuses them."""
        ...

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            if self._client is not None:
                return await self._client.request(method, url, **kwargs)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise UpstreamError(self.platform_name, f"Request failed: {e}") from e

    @staticmethod
    def _json(response: httpx.Response) -> Dict:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
