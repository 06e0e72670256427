"""
MTG AU Marketplace — Image Provider Adapters

Each provider turns a CardRef into an image URL or None. The resolver walks
them in declared order; adding a source means appending to the sequence
returned by default_providers().

Tiers (most to least preferred):
1. direct         — URL already embedded on the record (no network)
2. by_id          — Scryfall lookup by UUID
3. by_name_exact  — Scryfall exact name lookup
4. by_name_fuzzy  — Scryfall fuzzy name lookup
5. legacy         — deterministic Gatherer / Scryfall CDN URLs
6. placeholder    — per-size placeholder, never fails
"""

from __future__ import annotations

from typing import Protocol, Sequence

from mtgau.config import ImageSize, Settings, SourceTier, settings as default_settings
from mtgau.models.card import CardRef
from mtgau.pipeline.scryfall import ScryfallClient, pick_image


class ImageProvider(Protocol):
    """Capability shared by every image source."""

    tier: SourceTier

    async def resolve(self, card: CardRef, size: ImageSize) -> str | None:
        ...


# ---------------------------------------------------------------------------
# Tier 1 — direct extraction
# ---------------------------------------------------------------------------


class DirectImageProvider:
    """Reads an image already present on the record: explicit URL, image map, faces."""

    tier = SourceTier.DIRECT

    async def resolve(self, card: CardRef, size: ImageSize) -> str | None:
        if card.image_url:
            return card.image_url

        url = pick_image(card.image_uris, size.value)
        if url:
            return url

        for face in card.card_faces:
            url = pick_image(face.image_uris, size.value)
            if url:
                return url
        return None


# ---------------------------------------------------------------------------
# Tiers 2-4 — Scryfall lookups
# ---------------------------------------------------------------------------


class ScryfallIdProvider:
    """Looks the card up by Scryfall UUID. Skips identifiers of any other shape."""

    tier = SourceTier.BY_ID

    def __init__(self, client: ScryfallClient):
        self._client = client

    async def resolve(self, card: CardRef, size: ImageSize) -> str | None:
        if not card.has_scryfall_id:
            return None
        found = await self._client.fetch_card(card.identifier)
        return found.image_url(size.value) if found else None


class ScryfallExactNameProvider:
    """Exact name match, scoped to the card's set when one is known."""

    tier = SourceTier.BY_NAME_EXACT

    def __init__(self, client: ScryfallClient):
        self._client = client

    async def resolve(self, card: CardRef, size: ImageSize) -> str | None:
        if not card.name:
            return None
        found = await self._client.fetch_named(card.name, set_code=card.set_code)
        return found.image_url(size.value) if found else None


class ScryfallFuzzyNameProvider:
    """Approximate name match, for misspelt or partially scanned names."""

    tier = SourceTier.BY_NAME_FUZZY

    def __init__(self, client: ScryfallClient):
        self._client = client

    async def resolve(self, card: CardRef, size: ImageSize) -> str | None:
        if not card.name:
            return None
        found = await self._client.fetch_named(card.name, fuzzy=True)
        return found.image_url(size.value) if found else None


# ---------------------------------------------------------------------------
# Tier 5 — legacy / derived URLs
# ---------------------------------------------------------------------------


class GathererProvider:
    """Gatherer image handler keyed by multiverse id. No existence check."""

    tier = SourceTier.LEGACY

    def __init__(self, base_url: str | None = None):
        self._base_url = base_url or default_settings.GATHERER_IMAGE_URL

    async def resolve(self, card: CardRef, size: ImageSize) -> str | None:
        if card.multiverse_id is None:
            return None
        return f"{self._base_url}?multiverseid={card.multiverse_id}&type=card"


class ScryfallCdnProvider:
    """
    Derives the Scryfall CDN path from a UUID:
        {cdn}/{size}/front/{id[0]}/{id[1]}/{id}.jpg
    """

    tier = SourceTier.LEGACY

    def __init__(self, cdn_url: str | None = None):
        self._cdn_url = (cdn_url or default_settings.SCRYFALL_CDN_URL).rstrip("/")

    async def resolve(self, card: CardRef, size: ImageSize) -> str | None:
        if not card.has_scryfall_id:
            return None
        card_id = card.identifier.lower()
        return f"{self._cdn_url}/{size.value}/front/{card_id[0]}/{card_id[1]}/{card_id}.jpg"


# ---------------------------------------------------------------------------
# Tier 6 — placeholder
# ---------------------------------------------------------------------------


class PlaceholderProvider:
    """Deterministic per-size placeholder. Always returns a URL."""

    tier = SourceTier.PLACEHOLDER

    def __init__(self, urls: dict[str, str] | None = None):
        self._urls = urls or default_settings.PLACEHOLDER_IMAGE_URLS

    def url_for(self, size: ImageSize) -> str:
        return self._urls.get(size.value) or self._urls["normal"]

    async def resolve(self, card: CardRef, size: ImageSize) -> str:
        return self.url_for(size)


def default_providers(
    client: ScryfallClient,
    config: Settings | None = None,
) -> list[ImageProvider]:
    """The standard provider sequence, in tier order."""
    cfg = config or default_settings
    return [
        DirectImageProvider(),
        ScryfallIdProvider(client),
        ScryfallExactNameProvider(client),
        ScryfallFuzzyNameProvider(client),
        GathererProvider(cfg.GATHERER_IMAGE_URL),
        ScryfallCdnProvider(cfg.SCRYFALL_CDN_URL),
        PlaceholderProvider(cfg.PLACEHOLDER_IMAGE_URLS),
    ]


def check_tier_order(providers: Sequence[ImageProvider]) -> None:
    """Raise ValueError if providers are not declared in non-decreasing tier order."""
    ranks = [provider.tier.rank for provider in providers]
    if ranks != sorted(ranks):
        raise ValueError(
            f"providers must be declared in tier order, got {[p.tier.value for p in providers]}"
        )
    if not providers or providers[-1].tier is not SourceTier.PLACEHOLDER:
        raise ValueError("provider sequence must end with the placeholder tier")
