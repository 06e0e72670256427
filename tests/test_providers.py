"""
Tests for the image provider adapters (mtgau/pipeline/providers.py) and the
Scryfall client they share (mtgau/pipeline/scryfall.py).

Covers:
- Direct extraction: explicit URL, image map, size fallback, alternate faces
- Lookup by id: UUID gating, success, HTTP errors, malformed bodies
- Lookup by name: exact (set-scoped) and fuzzy
- Legacy URLs: Gatherer and Scryfall CDN
- Placeholder per size
- Provider sequence ordering checks
"""

from __future__ import annotations

import httpx
import pytest
import respx

from mtgau.config import ImageSize, SourceTier
from mtgau.models.card import CardRef
from mtgau.pipeline.providers import (
    DirectImageProvider,
    GathererProvider,
    PlaceholderProvider,
    ScryfallCdnProvider,
    ScryfallExactNameProvider,
    ScryfallFuzzyNameProvider,
    ScryfallIdProvider,
    check_tier_order,
    default_providers,
)
from mtgau.pipeline.scryfall import ScryfallClient

SCRYFALL_URL = "https://api.scryfall.com"
FURY_SLIVER_ID = "0000579f-7b35-4ed3-b44c-db2a538066fe"


# ---------------------------------------------------------------------------
# Tier 1: direct extraction
# ---------------------------------------------------------------------------


class TestDirectImageProvider:

    @pytest.mark.asyncio
    async def test_explicit_image_url_wins(self) -> None:
        card = CardRef(
            name="Fury Sliver",
            image_url="https://listing.test/fury.jpg",
            image_uris={"normal": "https://cards.test/normal.jpg"},
        )
        assert await DirectImageProvider().resolve(card, ImageSize.NORMAL) == "https://listing.test/fury.jpg"

    @pytest.mark.asyncio
    async def test_image_map_requested_size(self, fury_sliver_payload: dict) -> None:
        card = CardRef.from_record(fury_sliver_payload)
        url = await DirectImageProvider().resolve(card, ImageSize.ART_CROP)
        assert url == fury_sliver_payload["image_uris"]["art_crop"]

    @pytest.mark.asyncio
    async def test_missing_size_falls_back_to_normal(self) -> None:
        card = CardRef(name="Opt", image_uris={"normal": "https://cards.test/opt.jpg"})
        assert await DirectImageProvider().resolve(card, ImageSize.LARGE) == "https://cards.test/opt.jpg"

    @pytest.mark.asyncio
    async def test_double_faced_uses_front_face(self, delver_payload: dict) -> None:
        """No top-level image map: the first face with images is used."""
        card = CardRef.from_record(delver_payload)
        url = await DirectImageProvider().resolve(card, ImageSize.SMALL)
        assert url == delver_payload["card_faces"][0]["image_uris"]["small"]

    @pytest.mark.asyncio
    async def test_alternate_face_when_front_has_no_images(self) -> None:
        card = CardRef.from_record({
            "name": "Odd Card",
            "card_faces": [
                {"name": "Front"},
                {"name": "Back", "image_uris": {"normal": "https://cards.test/back.jpg"}},
            ],
        })
        assert await DirectImageProvider().resolve(card, ImageSize.NORMAL) == "https://cards.test/back.jpg"

    @pytest.mark.asyncio
    async def test_absent_returns_none(self) -> None:
        assert await DirectImageProvider().resolve(CardRef(name="Opt"), ImageSize.NORMAL) is None


# ---------------------------------------------------------------------------
# Tier 2: lookup by Scryfall id
# ---------------------------------------------------------------------------


class TestScryfallIdProvider:

    @pytest.mark.asyncio
    async def test_success(self, scryfall_client: ScryfallClient, fury_sliver_payload: dict) -> None:
        with respx.mock(base_url=SCRYFALL_URL) as mock:
            route = mock.get(f"/cards/{FURY_SLIVER_ID}").mock(
                return_value=httpx.Response(200, json=fury_sliver_payload)
            )
            provider = ScryfallIdProvider(scryfall_client)
            url = await provider.resolve(CardRef(identifier=FURY_SLIVER_ID), ImageSize.LARGE)

        assert url == fury_sliver_payload["image_uris"]["large"]
        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_double_faced_response(self, scryfall_client: ScryfallClient, delver_payload: dict) -> None:
        card_id = delver_payload["id"]
        with respx.mock(base_url=SCRYFALL_URL) as mock:
            mock.get(f"/cards/{card_id}").mock(return_value=httpx.Response(200, json=delver_payload))
            url = await ScryfallIdProvider(scryfall_client).resolve(
                CardRef(identifier=card_id), ImageSize.NORMAL
            )

        assert url == delver_payload["card_faces"][0]["image_uris"]["normal"]

    @pytest.mark.asyncio
    async def test_non_uuid_identifier_skips_network(self, scryfall_client: ScryfallClient) -> None:
        """A listing row id like '42' is not a Scryfall id."""
        with respx.mock(base_url=SCRYFALL_URL) as mock:
            url = await ScryfallIdProvider(scryfall_client).resolve(
                CardRef(identifier="42", name="Opt"), ImageSize.NORMAL
            )

        assert url is None
        assert mock.calls.call_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 429, 500])
    async def test_http_error_returns_none(self, scryfall_client: ScryfallClient, status: int) -> None:
        with respx.mock(base_url=SCRYFALL_URL) as mock:
            mock.get(f"/cards/{FURY_SLIVER_ID}").mock(
                return_value=httpx.Response(status, json={"object": "error"})
            )
            url = await ScryfallIdProvider(scryfall_client).resolve(
                CardRef(identifier=FURY_SLIVER_ID), ImageSize.NORMAL
            )

        assert url is None

    @pytest.mark.asyncio
    async def test_transport_error_returns_none(self, scryfall_client: ScryfallClient) -> None:
        with respx.mock(base_url=SCRYFALL_URL) as mock:
            mock.get(f"/cards/{FURY_SLIVER_ID}").mock(side_effect=httpx.ConnectTimeout("timed out"))
            url = await ScryfallIdProvider(scryfall_client).resolve(
                CardRef(identifier=FURY_SLIVER_ID), ImageSize.NORMAL
            )

        assert url is None

    @pytest.mark.asyncio
    async def test_malformed_body_returns_none(self, scryfall_client: ScryfallClient) -> None:
        with respx.mock(base_url=SCRYFALL_URL) as mock:
            mock.get(f"/cards/{FURY_SLIVER_ID}").mock(
                return_value=httpx.Response(200, text="<html>oops</html>")
            )
            url = await ScryfallIdProvider(scryfall_client).resolve(
                CardRef(identifier=FURY_SLIVER_ID), ImageSize.NORMAL
            )

        assert url is None

    @pytest.mark.asyncio
    async def test_card_without_images_returns_none(self, scryfall_client: ScryfallClient) -> None:
        with respx.mock(base_url=SCRYFALL_URL) as mock:
            mock.get(f"/cards/{FURY_SLIVER_ID}").mock(
                return_value=httpx.Response(200, json={"id": FURY_SLIVER_ID, "name": "Fury Sliver"})
            )
            url = await ScryfallIdProvider(scryfall_client).resolve(
                CardRef(identifier=FURY_SLIVER_ID), ImageSize.NORMAL
            )

        assert url is None


# ---------------------------------------------------------------------------
# Tiers 3-4: lookup by name
# ---------------------------------------------------------------------------


class TestScryfallNameProviders:

    @pytest.mark.asyncio
    async def test_exact_sends_name_and_set(
        self, scryfall_client: ScryfallClient, fury_sliver_payload: dict
    ) -> None:
        with respx.mock(base_url=SCRYFALL_URL) as mock:
            route = mock.get("/cards/named", params={"exact": "Fury Sliver", "set": "tsp"}).mock(
                return_value=httpx.Response(200, json=fury_sliver_payload)
            )
            url = await ScryfallExactNameProvider(scryfall_client).resolve(
                CardRef(name="Fury Sliver", set_code="tsp"), ImageSize.NORMAL
            )

        assert url == fury_sliver_payload["image_uris"]["normal"]
        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_exact_miss_returns_none(self, scryfall_client: ScryfallClient) -> None:
        with respx.mock(base_url=SCRYFALL_URL) as mock:
            mock.get("/cards/named", params={"exact": "Fury Slivr"}).mock(
                return_value=httpx.Response(404, json={"object": "error", "code": "not_found"})
            )
            url = await ScryfallExactNameProvider(scryfall_client).resolve(
                CardRef(name="Fury Slivr"), ImageSize.NORMAL
            )

        assert url is None

    @pytest.mark.asyncio
    async def test_fuzzy_match(self, scryfall_client: ScryfallClient, fury_sliver_payload: dict) -> None:
        with respx.mock(base_url=SCRYFALL_URL) as mock:
            route = mock.get("/cards/named", params={"fuzzy": "fury slivr"}).mock(
                return_value=httpx.Response(200, json=fury_sliver_payload)
            )
            url = await ScryfallFuzzyNameProvider(scryfall_client).resolve(
                CardRef(name="fury slivr"), ImageSize.NORMAL
            )

        assert url == fury_sliver_payload["image_uris"]["normal"]
        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_no_name_skips_network(self, scryfall_client: ScryfallClient) -> None:
        card = CardRef(identifier=FURY_SLIVER_ID)
        with respx.mock(base_url=SCRYFALL_URL) as mock:
            assert await ScryfallExactNameProvider(scryfall_client).resolve(card, ImageSize.NORMAL) is None
            assert await ScryfallFuzzyNameProvider(scryfall_client).resolve(card, ImageSize.NORMAL) is None

        assert mock.calls.call_count == 0


# ---------------------------------------------------------------------------
# Tier 5: legacy URLs
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_gatherer_url_from_multiverse_id() -> None:
    provider = GathererProvider("https://gatherer.wizards.com/Handlers/Image.ashx")
    url = await provider.resolve(CardRef(name="Fury Sliver", multiverse_id=109722), ImageSize.NORMAL)

    assert url == "https://gatherer.wizards.com/Handlers/Image.ashx?multiverseid=109722&type=card"


@pytest.mark.asyncio
async def test_gatherer_needs_multiverse_id() -> None:
    assert await GathererProvider().resolve(CardRef(name="Opt"), ImageSize.NORMAL) is None


@pytest.mark.asyncio
async def test_scryfall_cdn_url_from_uuid() -> None:
    provider = ScryfallCdnProvider("https://cards.scryfall.io")
    url = await provider.resolve(CardRef(identifier=FURY_SLIVER_ID.upper()), ImageSize.LARGE)

    assert url == f"https://cards.scryfall.io/large/front/0/0/{FURY_SLIVER_ID}.jpg"


@pytest.mark.asyncio
async def test_scryfall_cdn_skips_non_uuid() -> None:
    assert await ScryfallCdnProvider().resolve(CardRef(identifier="42"), ImageSize.NORMAL) is None


# ---------------------------------------------------------------------------
# Tier 6: placeholder
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("size", list(ImageSize))
async def test_placeholder_is_deterministic_per_size(test_settings, size: ImageSize) -> None:
    provider = PlaceholderProvider(test_settings.PLACEHOLDER_IMAGE_URLS)

    first = await provider.resolve(CardRef(), size)
    second = await provider.resolve(CardRef(name="Anything"), size)

    assert first == second == test_settings.PLACEHOLDER_IMAGE_URLS[size.value]


def test_placeholder_unknown_size_uses_normal() -> None:
    provider = PlaceholderProvider({"normal": "https://placeholder.test/normal.png"})
    assert provider.url_for(ImageSize.ART_CROP) == "https://placeholder.test/normal.png"


# ---------------------------------------------------------------------------
# Provider sequence
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_default_providers_in_tier_order(scryfall_client: ScryfallClient, test_settings) -> None:
    providers = default_providers(scryfall_client, test_settings)

    tiers = [p.tier for p in providers]
    assert tiers == [
        SourceTier.DIRECT,
        SourceTier.BY_ID,
        SourceTier.BY_NAME_EXACT,
        SourceTier.BY_NAME_FUZZY,
        SourceTier.LEGACY,
        SourceTier.LEGACY,
        SourceTier.PLACEHOLDER,
    ]
    check_tier_order(providers)


def test_out_of_order_providers_rejected() -> None:
    with pytest.raises(ValueError) as exc_info:
        check_tier_order([GathererProvider(), DirectImageProvider(), PlaceholderProvider()])

    assert "tier order" in str(exc_info.value)


def test_sequence_must_end_with_placeholder() -> None:
    with pytest.raises(ValueError):
        check_tier_order([DirectImageProvider(), GathererProvider()])
