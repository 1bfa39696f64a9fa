from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

import httpx

from ..exceptions import ResourceFetchError, ResourceNotFoundError, ResourceTimeoutError
from ..orchestration.grounding import resource_url

logger = logging.getLogger(__name__)


def _is_text_type(content_type: str) -> bool:
    lowered = content_type.lower()
    return (
        lowered.startswith("text/")
        or "json" in lowered
        or "xml" in lowered
        or "markdown" in lowered
    )


@dataclass
class ResourcePayload:
    content: Union[bytes, str]
    media_type: str


class ResourceProxy:
    """Fetches documents (pdf, png, markdown) from the resource HTTP API."""

    def __init__(
        self,
        base_url: Optional[str],
        *,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout
        self._transport = transport

    async def get_resource(self, path: str) -> ResourcePayload:
        if not self.base_url:
            raise ResourceFetchError(path, "MCP_RESOURCE_API_URL is not configured")

        url = resource_url(path, f"{self.base_url}/resource/")
        logger.debug("Fetching resource from: %s", url)

        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), transport=self._transport) as client:
            try:
                response = await client.get(url)
            except httpx.TimeoutException as exc:
                logger.error("Timeout while fetching resource %s: %s", path, exc)
                raise ResourceTimeoutError(path) from exc
            except httpx.RequestError as exc:
                logger.error("Failed to fetch resource %s: %s", path, exc)
                raise ResourceFetchError(path, f"Failed to fetch resource: {exc}") from exc

        if response.status_code == 404:
            logger.warning("Resource not found: %s", path)
            raise ResourceNotFoundError(path)
        if response.status_code >= 400:
            logger.error("Resource API returned %s for %s", response.status_code, path)
            raise ResourceFetchError(path, f"Failed to fetch resource: HTTP {response.status_code}")

        media_type = response.headers.get("content-type") or "application/octet-stream"
        logger.debug("Resource fetched: %s (%d bytes, %s)", path, len(response.content), media_type)
        if _is_text_type(media_type):
            return ResourcePayload(content=response.content.decode("utf-8", errors="replace"), media_type=media_type)
        return ResourcePayload(content=response.content, media_type=media_type)
