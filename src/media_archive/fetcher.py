import logging
from typing import Optional

import httpx

from media_archive.config import FetchConfig
from media_archive.exceptions import FetchError

logger = logging.getLogger(__name__)


class HttpBlobFetcher:
    """Скачивает содержимое по URL. Таймаут, не-2xx ответ и сбой транспорта -> FetchError."""

    def __init__(self, config: FetchConfig, transport: httpx.AsyncBaseTransport | None = None):
        self._config = config
        self._transport = transport

    async def fetch(self, url: str, timeout_ms: Optional[int] = None) -> bytes:
        timeout = timeout_ms / 1000 if timeout_ms else self._config.timeout
        headers = {"User-Agent": self._config.user_agent}
        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                headers=headers,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.content
        except httpx.TimeoutException as e:
            raise FetchError(f"Download timed out after {timeout:g}s") from e
        except httpx.HTTPStatusError as e:
            raise FetchError(f"Download failed with HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FetchError(f"Download failed: {e}") from e
