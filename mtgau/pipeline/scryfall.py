"""
MTG AU Marketplace — Scryfall API Client

Looks up card objects on the Scryfall REST API for image resolution:
- GET /cards/{id}                    → lookup by Scryfall UUID
- GET /cards/named?exact=<name>      → exact name match (optionally set-scoped)
- GET /cards/named?fuzzy=<name>      → approximate name match

Every request passes through the shared RateGovernor first. Each lookup is
a single attempt: non-200, transport errors, timeouts and malformed bodies
are logged and reported as None so the resolver can advance to the next tier.

Base URL: https://api.scryfall.com
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field, ValidationError

from mtgau.config import Settings, settings as default_settings
from mtgau.pipeline.rate_governor import RateGovernor

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Pydantic Response Models
# ---------------------------------------------------------------------------


class ScryfallFace(BaseModel):
    """One face of a multi-faced Scryfall card."""
    name: str | None = None
    image_uris: dict[str, str] | None = None


class ScryfallCard(BaseModel):
    """
    The subset of a Scryfall card object used for images and prices.

    Double-faced cards carry image_uris per face instead of at the top level.
    """
    id: str = Field(..., description="Scryfall UUID")
    name: str = Field(..., description="Card name")
    set: str | None = Field(default=None, description="Set code")
    collector_number: str | None = None
    multiverse_ids: list[int] = Field(default_factory=list)
    image_uris: dict[str, str] | None = None
    card_faces: list[ScryfallFace] = Field(default_factory=list)
    prices: dict[str, str | None] = Field(default_factory=dict)

    def image_url(self, size: str) -> str | None:
        """Best image for `size`: top level first, then the first face with images."""
        return pick_image(self.image_uris, size) or next(
            (
                url
                for url in (pick_image(face.image_uris, size) for face in self.card_faces)
                if url
            ),
            None,
        )


def pick_image(image_uris: dict[str, str] | None, size: str) -> str | None:
    """Pick `size` from an image map, falling back to the normal size."""
    if not image_uris:
        return None
    return image_uris.get(size) or image_uris.get("normal")


# ---------------------------------------------------------------------------
# API Client
# ---------------------------------------------------------------------------


class ScryfallClient:
    """
    Async client for the Scryfall API.

    Usage:
        async with ScryfallClient(governor=RateGovernor(0.1)) as client:
            card = await client.fetch_card("c1b4...")
            card = await client.fetch_named("Lightning Bolt", fuzzy=True)
    """

    def __init__(
        self,
        governor: RateGovernor | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        config: Settings | None = None,
    ):
        cfg = config or default_settings
        self._base_url = base_url or cfg.SCRYFALL_API_URL
        self._timeout = timeout if timeout is not None else cfg.SCRYFALL_REQUEST_TIMEOUT_SECONDS
        self._user_agent = cfg.HTTP_USER_AGENT
        self._governor = governor or RateGovernor(cfg.SCRYFALL_MIN_REQUEST_INTERVAL_SECONDS)
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> ScryfallClient:
        self.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={
                    "User-Agent": self._user_agent,
                    "Accept": "application/json",
                },
                timeout=self._timeout,
            )

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> ScryfallCard | None:
        """Make one paced GET request. Returns None on any failure."""
        assert self._client is not None, "Client not initialized. Use 'async with'."

        await self._governor.acquire()

        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as e:
            logger.warning(
                "scryfall_request_error",
                error=str(e),
                error_type=type(e).__name__,
                path=path,
                source="scryfall",
            )
            return None

        if response.status_code != 200:
            # 404 is an ordinary miss; rate limiting and server errors are not
            log = logger.warning if response.status_code == 429 or response.status_code >= 500 else logger.debug
            log(
                "scryfall_http_error",
                status_code=response.status_code,
                path=path,
                params=params,
                source="scryfall",
            )
            return None

        try:
            return ScryfallCard.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.warning(
                "scryfall_malformed_body",
                error=str(e),
                path=path,
                source="scryfall",
            )
            return None

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def fetch_card(self, card_id: str) -> ScryfallCard | None:
        """Fetch a card by its Scryfall UUID."""
        logger.debug("scryfall_fetch_card", card_id=card_id, source="scryfall")
        return await self._request(f"/cards/{card_id}")

    async def fetch_named(
        self,
        name: str,
        fuzzy: bool = False,
        set_code: str | None = None,
    ) -> ScryfallCard | None:
        """
        Fetch a card by name.

        Args:
            name: Card name as entered or scanned.
            fuzzy: Use Scryfall's approximate matching instead of exact.
            set_code: Restrict the match to one set when known.
        """
        params: dict[str, Any] = {"fuzzy" if fuzzy else "exact": name}
        if set_code:
            params["set"] = set_code

        logger.debug(
            "scryfall_fetch_named",
            card_name=name,
            fuzzy=fuzzy,
            set_code=set_code,
            source="scryfall",
        )
        return await self._request("/cards/named", params=params)
