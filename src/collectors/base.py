from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Optional


class _NotAttempted:
    """Marks a field whose extraction never ran. Must not reach serialization."""

    def __repr__(self) -> str:
        return "NOT_ATTEMPTED"

    def __bool__(self) -> bool:
        return False


NOT_ATTEMPTED: Any = _NotAttempted()


class UnexpectedHtmlError(Exception):
    """The page deviates from the assumed template shape."""


class BlockedPageError(UnexpectedHtmlError):
    """A robot check was served instead of the requested page."""


# attribute name -> output record key
RECORD_KEYS = {
    "item_url": "itemUrl",
    "keyword": "keyword",
    "title": "title",
    "description": "description",
    "identifier": "identifier",
    "price": "price",
    "seller_name": "sellerName",
}


@dataclass(frozen=True)
class SharedOfferData:
    item_url: str
    keyword: Optional[str]
    title: Optional[str] = NOT_ATTEMPTED
    description: Optional[str] = NOT_ATTEMPTED
    identifier: Optional[str] = NOT_ATTEMPTED


@dataclass(frozen=True)
class Offer:
    item_url: str
    keyword: Optional[str]
    title: Optional[str] = NOT_ATTEMPTED
    description: Optional[str] = NOT_ATTEMPTED
    identifier: Optional[str] = NOT_ATTEMPTED
    price: Optional[str] = NOT_ATTEMPTED
    seller_name: Optional[str] = NOT_ATTEMPTED

    @classmethod
    def from_shared(
        cls,
        shared: SharedOfferData,
        *,
        price: Optional[str] = NOT_ATTEMPTED,
        seller_name: Optional[str] = NOT_ATTEMPTED,
    ) -> "Offer":
        return cls(
            item_url=shared.item_url,
            keyword=shared.keyword,
            title=shared.title,
            description=shared.description,
            identifier=shared.identifier,
            price=price,
            seller_name=seller_name,
        )

    def unattempted_fields(self) -> list[str]:
        return [RECORD_KEYS[f.name] for f in fields(self) if getattr(self, f.name) is NOT_ATTEMPTED]

    def to_record(self) -> dict[str, Optional[str]]:
        skipped = self.unattempted_fields()
        if skipped:
            raise ValueError(f"Offer for {self.item_url} has fields that were never extracted: {', '.join(skipped)}")
        return {RECORD_KEYS[f.name]: getattr(self, f.name) for f in fields(self)}


def missing_fields(*offers: Offer) -> list[list[str]]:
    """For each offer, the record keys whose value was looked for but not found."""
    missing: list[list[str]] = []
    for offer in offers:
        missing.append([RECORD_KEYS[f.name] for f in fields(offer) if getattr(offer, f.name) is None])
    return missing
