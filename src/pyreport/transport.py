import logging

import httpx

from .dsn import DSN
from .errors import SendFailure

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class HttpTransport:
    """
    Posts encoded events to the store endpoint named by a DSN.

    Any 2xx response counts as delivered. Network errors and other statuses
    are logged and reported as a failed send; they are never raised.
    """

    def __init__(self, dsn: DSN, timeout: float = DEFAULT_TIMEOUT, client: httpx.AsyncClient | None = None):
        self.dsn = dsn
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _post(self, payload: bytes):
        headers = {
            "Content-Type": "application/json",
            "X-Sentry-Auth": self.dsn.auth_header(),
        }
        try:
            response = await self._client.post(self.dsn.store_url, content=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SendFailure(f"Endpoint rejected event with status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise SendFailure(f"{type(e).__name__}: {e}") from e

    async def send(self, payload: bytes) -> bool:
        try:
            await self._post(payload)
        except SendFailure as e:
            logger.warning(f"Failed to send event to {self.dsn.store_url}: {e}")
            return False
        return True

    async def close(self):
        await self._client.aclose()
