"""
MTG AU Marketplace — Card identity & image models

CardRef is the lookup identity handed to the resolver. Records arrive in
several shapes (Scryfall catalog objects, local listing rows, scan results),
so CardRef.from_record() folds the known aliases into one model.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Mapping

from pydantic import BaseModel, Field, field_validator

from mtgau.config import ImageSize, SourceTier

# Scryfall card ids are 36-char UUIDs
SCRYFALL_ID_PATTERN = re.compile(r"^[a-f0-9-]{36}$", re.IGNORECASE)


class CardFace(BaseModel):
    """One face of a multi-faced card."""
    name: str | None = None
    image_uris: dict[str, str] | None = None


class CardRef(BaseModel):
    """
    Identity used for image and price lookups.

    At least one of identifier or name must be non-empty for the card to be
    resolvable. Callers violating that receive the placeholder immediately.
    """

    model_config = {"frozen": True}

    identifier: str | None = Field(default=None, description="Scryfall card UUID")
    name: str | None = Field(default=None, description="Card name")
    set_code: str | None = Field(default=None, description="Set code (e.g. 'mh3')")
    collector_number: str | None = Field(default=None)
    multiverse_id: int | None = Field(default=None, description="Gatherer multiverse id")
    image_url: str | None = Field(default=None, description="Explicit image URL from a listing")
    image_uris: dict[str, str] | None = Field(default=None, description="Embedded size -> URL map")
    card_faces: tuple[CardFace, ...] = Field(default=())
    raw_prices: dict[str, Any] | None = Field(default=None)

    @field_validator("identifier", "name", "set_code", "collector_number", "image_url", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> str | None:
        """Treat empty / whitespace strings as absent."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("multiverse_id", mode="before")
    @classmethod
    def parse_multiverse_id(cls, v: Any) -> int | None:
        if v is None or v == "":
            return None
        try:
            return int(v)
        except (TypeError, ValueError):
            return None

    @property
    def is_identifiable(self) -> bool:
        return bool(self.identifier or self.name)

    @property
    def has_scryfall_id(self) -> bool:
        return bool(self.identifier and SCRYFALL_ID_PATTERN.match(self.identifier))

    @property
    def cache_identity(self) -> str:
        """Stable cache identity: the identifier, else the folded name (+ set)."""
        if self.identifier:
            return self.identifier.lower()
        name = (self.name or "").casefold()
        if self.set_code:
            return f"name:{name}|set:{self.set_code.lower()}"
        return f"name:{name}"

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> CardRef:
        """
        Build a CardRef from a card-like record.

        Accepts Scryfall objects (id, set, multiverse_ids, image_uris,
        card_faces, prices) and listing rows (scryfall_id, card_name,
        set_code, multiverseid, imageUrl / image_url).

        Fields of the wrong shape are dropped rather than rejected: a null
        image URL, a scalar `multiverse_ids` or a non-mapping `prices` leave
        the rest of the record usable.
        """
        multiverse_id = record.get("multiverse_id") or record.get("multiverseid")
        if multiverse_id is None:
            ids = record.get("multiverse_ids")
            multiverse_id = ids[0] if isinstance(ids, (list, tuple)) and ids else None

        raw_faces = record.get("card_faces")
        faces = [
            CardFace(
                name=face.get("name") if isinstance(face.get("name"), str) else None,
                image_uris=_url_map(face.get("image_uris")),
            )
            for face in (raw_faces if isinstance(raw_faces, (list, tuple)) else [])
            if isinstance(face, Mapping)
        ]

        prices = record.get("prices") or record.get("raw_prices")

        return cls(
            identifier=record.get("scryfall_id") or record.get("id") or record.get("card_id"),
            name=record.get("name") or record.get("card_name"),
            set_code=record.get("set_code") or record.get("set"),
            collector_number=record.get("collector_number"),
            multiverse_id=multiverse_id,
            image_url=_url(record.get("image_url") or record.get("imageUrl")),
            image_uris=_url_map(record.get("image_uris")),
            card_faces=tuple(faces),
            raw_prices=dict(prices) if isinstance(prices, Mapping) else None,
        )


def _url(v: Any) -> str | None:
    return v if isinstance(v, str) and v.strip() else None


def _url_map(v: Any) -> dict[str, str] | None:
    """Size -> URL map with non-string and blank URLs removed."""
    if not isinstance(v, Mapping):
        return None
    urls = {str(size): url for size, url in v.items() if _url(url)}
    return urls or None


class ImageCandidate(BaseModel):
    """A resolved image URL and the tier that produced it."""
    url: str
    tier: SourceTier
    size: ImageSize


class CacheEntry(BaseModel):
    """Cached resolution for one (identity, size) key."""
    url: str
    tier: SourceTier
    validated: bool = Field(default=False, description="URL passed the load check when stored")
    inserted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
