"""
MTG AU Marketplace — Image Validation Gate

Confirms a candidate URL actually loads before the resolver accepts it.
The check is a time-boxed streamed GET: a 2xx response (with an image
content type, when the server sends one) counts as success. Errors and
timeouts count as failure. validate() never raises.

Validation is optional per call site. Listing previews skip it for latency;
scan confirmation turns it on.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from mtgau.config import Settings, settings as default_settings

logger = structlog.get_logger(__name__)


class ImageValidator:
    """
    Time-boxed image load check.

    Usage:
        async with ImageValidator(timeout=5.0) as validator:
            ok = await validator.validate("https://cards.scryfall.io/...")
    """

    def __init__(
        self,
        timeout: float | None = None,
        config: Settings | None = None,
    ):
        cfg = config or default_settings
        self._timeout = timeout if timeout is not None else cfg.IMAGE_VALIDATION_TIMEOUT_SECONDS
        self._user_agent = cfg.HTTP_USER_AGENT
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> ImageValidator:
        self.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self._user_agent},
                follow_redirects=True,
            )

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _load(self, url: str) -> bool:
        assert self._client is not None, "Validator not initialized. Use 'async with'."
        async with self._client.stream("GET", url) as response:
            if not response.is_success:
                logger.debug(
                    "image_validation_bad_status",
                    url=url,
                    status_code=response.status_code,
                    source="validation",
                )
                return False
            content_type = response.headers.get("content-type", "")
            if content_type and not content_type.startswith("image/"):
                logger.debug(
                    "image_validation_not_an_image",
                    url=url,
                    content_type=content_type,
                    source="validation",
                )
                return False
            return True

    async def validate(self, url: str, timeout: float | None = None) -> bool:
        """
        Return True when `url` loads as an image within the timeout.

        Args:
            url: Candidate image URL.
            timeout: Override the configured timeout (seconds).
        """
        limit = timeout if timeout is not None else self._timeout
        try:
            return await asyncio.wait_for(self._load(url), timeout=limit)
        except asyncio.TimeoutError:
            logger.debug(
                "image_validation_timeout",
                url=url,
                timeout_seconds=limit,
                source="validation",
            )
            return False
        except Exception as e:
            logger.debug(
                "image_validation_error",
                url=url,
                error=str(e),
                error_type=type(e).__name__,
                source="validation",
            )
            return False
