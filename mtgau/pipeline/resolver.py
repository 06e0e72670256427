"""
MTG AU Marketplace — Card Image Resolution Pipeline

resolve_image() turns any CardRef into a displayable URL and never fails:
the worst case is the per-size placeholder.

Lookup order for one (identity, size) key:
1. Unidentifiable card (no identifier, no name) → placeholder, no network
2. Cache hit (unless force_refresh) → cached URL, provided it was validated
   or the caller did not ask for validation
3. In-flight resolution for the key that satisfies the caller → await it
4. Otherwise start one task that walks the providers in tier order,
   validating each candidate when asked, and stores the result

A validating caller never takes an unvalidated answer: an unvalidated cache
entry is load-checked first (and the tiers re-walked if it fails), and an
unvalidated walk in flight is not joined. Pending walks are therefore keyed
by (identity, size, validated); a non-validating caller joins either kind.

Concurrent callers for the same pending key share exactly one provider walk.
The pending task is registered before the first await and removed in a
finally block, so a failed walk never leaves a stuck entry. Callers await a
shielded task: one caller giving up does not cancel the lookup for the others.
"""

from __future__ import annotations

import asyncio
from typing import Any, Iterable, Sequence

import structlog

from mtgau.config import ImageSize, Settings, SourceTier, settings as default_settings
from mtgau.models.card import CacheEntry, CardRef, ImageCandidate
from mtgau.pipeline.cache import CacheKey, ImageCache
from mtgau.pipeline.providers import (
    ImageProvider,
    PlaceholderProvider,
    check_tier_order,
    default_providers,
)
from mtgau.pipeline.rate_governor import RateGovernor
from mtgau.pipeline.scryfall import ScryfallClient
from mtgau.pipeline.validation import ImageValidator

logger = structlog.get_logger(__name__)

# (identity, size, validated)
PendingKey = tuple[str, ImageSize, bool]


class CardImageResolver:
    """
    Cached, deduplicated, tiered image resolution.

    Build with CardImageResolver.create() for the standard Scryfall-backed
    provider chain, or pass providers directly for tests.

    Usage:
        async with CardImageResolver.create() as resolver:
            url = await resolver.resolve_image(card, ImageSize.NORMAL)
    """

    def __init__(
        self,
        providers: Sequence[ImageProvider],
        cache: ImageCache | None = None,
        validator: ImageValidator | None = None,
        validate_by_default: bool | None = None,
        config: Settings | None = None,
        closeables: Sequence[Any] = (),
    ):
        cfg = config or default_settings
        check_tier_order(providers)
        self._providers = list(providers)
        self._placeholder: PlaceholderProvider = self._providers[-1]
        self._cache = cache if cache is not None else ImageCache(config=cfg)
        self._validator = validator
        self._validate_by_default = (
            validate_by_default if validate_by_default is not None else cfg.IMAGE_VALIDATE_BY_DEFAULT
        )
        self._pending: dict[PendingKey, asyncio.Task[ImageCandidate]] = {}
        self._preloads: set[asyncio.Task[Any]] = set()
        self._closeables = list(closeables)

    @classmethod
    def create(
        cls,
        config: Settings | None = None,
        client: ScryfallClient | None = None,
    ) -> CardImageResolver:
        """
        Standard resolver: one governor, one Scryfall client, one validator.

        Pass an open `client` to share its pacing with other Scryfall callers;
        the caller stays responsible for closing it.
        """
        cfg = config or default_settings
        closeables: list[Any] = []
        if client is None:
            governor = RateGovernor(cfg.SCRYFALL_MIN_REQUEST_INTERVAL_SECONDS)
            client = ScryfallClient(governor=governor, config=cfg)
            client.open()
            closeables.append(client)
        validator = ImageValidator(config=cfg)
        validator.open()
        closeables.append(validator)
        return cls(
            providers=default_providers(client, cfg),
            cache=ImageCache(config=cfg),
            validator=validator,
            config=cfg,
            closeables=closeables,
        )

    async def __aenter__(self) -> CardImageResolver:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.dispose()

    @property
    def cache(self) -> ImageCache:
        return self._cache

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def placeholder_url(self, size: ImageSize | str = ImageSize.NORMAL) -> str:
        return self._placeholder.url_for(ImageSize(size))

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def resolve_image(
        self,
        card: CardRef,
        size: ImageSize | str = ImageSize.NORMAL,
        *,
        validate: bool | None = None,
        force_refresh: bool = False,
    ) -> str:
        """Resolve a displayable image URL. Never raises."""
        candidate = await self.resolve_candidate(
            card, size, validate=validate, force_refresh=force_refresh
        )
        return candidate.url

    async def resolve_candidate(
        self,
        card: CardRef,
        size: ImageSize | str = ImageSize.NORMAL,
        *,
        validate: bool | None = None,
        force_refresh: bool = False,
    ) -> ImageCandidate:
        """Like resolve_image(), but also reports which tier produced the URL."""
        size = ImageSize(size)

        if not card.is_identifiable:
            logger.debug("image_resolve_unidentifiable", size=size.value, source="resolver")
            return ImageCandidate(
                url=self._placeholder.url_for(size), tier=SourceTier.PLACEHOLDER, size=size
            )

        key: CacheKey = (card.cache_identity, size)
        should_validate = self._validate_by_default if validate is None else validate
        should_validate = should_validate and self._validator is not None

        stale: CacheEntry | None = None
        if not force_refresh:
            entry = self._cache.get(key)
            if entry is not None and (entry.validated or not should_validate):
                return ImageCandidate(url=entry.url, tier=entry.tier, size=size)
            stale = entry

        task = self._pending.get((*key, True))
        if task is None and not should_validate:
            task = self._pending.get((*key, False))
        if task is None:
            # No await between the lookups above and this insert
            pending_key: PendingKey = (*key, should_validate)
            task = asyncio.create_task(
                self._resolve_and_store(pending_key, card, stale, force_refresh)
            )
            self._pending[pending_key] = task
        else:
            logger.debug(
                "image_resolve_attached",
                identity=key[0],
                size=size.value,
                source="resolver",
            )

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "image_resolve_failed",
                identity=key[0],
                size=size.value,
                error=str(e),
                error_type=type(e).__name__,
                source="resolver",
            )
            return ImageCandidate(
                url=self._placeholder.url_for(size), tier=SourceTier.PLACEHOLDER, size=size
            )

    def preload(self, cards: Iterable[CardRef], size: ImageSize | str = ImageSize.SMALL) -> None:
        """Warm the cache in the background. Failures are logged and dropped."""
        size = ImageSize(size)
        for card in cards:
            task = asyncio.create_task(self._preload_one(card, size))
            self._preloads.add(task)
            task.add_done_callback(self._preloads.discard)

    def clear_cache(self) -> None:
        self._cache.clear()

    async def dispose(self) -> None:
        """Cancel background warm-ups and in-flight lookups, then close HTTP clients."""
        tasks = [*self._preloads, *self._pending.values()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for closeable in self._closeables:
            await closeable.aclose()
        self._closeables.clear()

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    async def _preload_one(self, card: CardRef, size: ImageSize) -> None:
        try:
            await self.resolve_image(card, size)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(
                "image_preload_failed",
                card_name=card.name,
                error=str(e),
                source="resolver",
            )

    async def _resolve_and_store(
        self,
        pending_key: PendingKey,
        card: CardRef,
        stale: CacheEntry | None,
        force_refresh: bool,
    ) -> ImageCandidate:
        identity, size, validate = pending_key
        key: CacheKey = (identity, size)
        try:
            candidate = None
            # An unvalidated cached URL gets one load check before re-walking
            if stale is not None and await self._validator.validate(stale.url):
                candidate = ImageCandidate(url=stale.url, tier=stale.tier, size=size)
            if candidate is None:
                candidate = await self._walk_providers(card, size, validate)

            # Placeholder is terminal for every walk, validated or not
            validated = validate or candidate.tier is SourceTier.PLACEHOLDER
            current = self._cache.get(key)
            if force_refresh or validated or current is None or not current.validated:
                self._cache.set(
                    key, CacheEntry(url=candidate.url, tier=candidate.tier, validated=validated)
                )
            logger.debug(
                "image_resolved",
                identity=identity,
                size=size.value,
                tier=candidate.tier.value,
                validated=validated,
                revalidated=stale is not None and candidate.url == stale.url,
                source="resolver",
            )
            return candidate
        finally:
            self._pending.pop(pending_key, None)

    async def _walk_providers(
        self,
        card: CardRef,
        size: ImageSize,
        validate: bool,
    ) -> ImageCandidate:
        for provider in self._providers:
            if provider.tier is SourceTier.PLACEHOLDER:
                break

            try:
                url = await provider.resolve(card, size)
            except Exception as e:
                logger.warning(
                    "image_provider_failed",
                    provider=type(provider).__name__,
                    tier=provider.tier.value,
                    error=str(e),
                    error_type=type(e).__name__,
                    source="resolver",
                )
                continue

            if not url:
                continue

            if validate and self._validator is not None:
                if not await self._validator.validate(url):
                    logger.debug(
                        "image_candidate_rejected",
                        provider=type(provider).__name__,
                        tier=provider.tier.value,
                        url=url,
                        source="resolver",
                    )
                    continue

            return ImageCandidate(url=url, tier=provider.tier, size=size)

        logger.info(
            "image_resolve_placeholder",
            card_name=card.name,
            identifier=card.identifier,
            size=size.value,
            source="resolver",
        )
        return ImageCandidate(
            url=self._placeholder.url_for(size), tier=SourceTier.PLACEHOLDER, size=size
        )
