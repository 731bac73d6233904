import asyncio
from typing import Any, Optional

import httpx

from asset_review.utils.config import REVIEW_API_URL
from asset_review.utils.logger import get_logger
from asset_review.workers.batch_scheduler import UploadItem


logger = get_logger("review-client")


class ReviewAPIError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ReviewAPIClient:
    """
    Async client for POST /api/review, one multipart request per file.
    Use as an async context manager so the connection pool is shared across a batch.
    """

    def __init__(
        self,
        base_url: Optional[str] = REVIEW_API_URL,
        timeout_s: float = 180.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "ReviewAPIClient":
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout_s, transport=self._transport)
        return self

    async def __aexit__(self, *exc) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def review(self, item: UploadItem, asset_type: str) -> dict[str, Any]:
        if self._client is None:
            raise RuntimeError("ReviewAPIClient used outside 'async with'")
        blob = await asyncio.to_thread(item.path.read_bytes)
        resp = await self._client.post(
            "/api/review",
            files={"file": (item.display_name, blob, item.mime_type)},
            data={"assetType": asset_type},
        )
        try:
            data = resp.json()
        except ValueError:
            data = None
        if resp.status_code >= 400:
            message = data.get("error") if isinstance(data, dict) else None
            raise ReviewAPIError(message or f"Failed to review asset (HTTP {resp.status_code})", resp.status_code)
        # a 2xx body is only a review when it carries the ghostMode flag
        if not isinstance(data, dict) or "ghostMode" not in data:
            raise ReviewAPIError("Invalid response from review API", resp.status_code)
        logger.debug("Reviewed %s → %s", item.display_name, resp.status_code)
        return data
