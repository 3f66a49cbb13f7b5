"""Invalidate cached listing/detail payloads after upstream content changes."""
from __future__ import annotations

import hmac
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from lookbook.cache import DERIVED_PATHS, LISTING_PATHS, PageCache

logger = logging.getLogger(__name__)

DETAIL_PREFIXES = {"person": "/people", "project": "/projects"}


@dataclass
class RevalidationResult:
    listings: list[str]
    detail: str | None
    people: list[str] = field(default_factory=list)
    now: int = field(default_factory=lambda: int(time.time() * 1000))

    def to_dict(self) -> dict[str, Any]:
        return {
            "revalidated": True,
            "now": self.now,
            "paths": {
                "listings": self.listings,
                "detail": self.detail,
                "people": self.people,
            },
        }


def secret_matches(provided: str | None, expected: str | None) -> bool:
    """Constant-time comparison; an unset secret never matches."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def revalidate(
    cache: PageCache,
    *,
    change_type: str | None,
    slug: str | None,
    person_slugs: Any = None,
) -> RevalidationResult:
    """Drop listings, the changed detail page, and affected person pages."""
    for path in LISTING_PATHS + DERIVED_PATHS:
        cache.invalidate(path)

    detail = None
    prefix = DETAIL_PREFIXES.get(change_type or "")
    if prefix and slug:
        detail = f"{prefix}/{slug}"
        cache.invalidate(detail)

    people: list[str] = []
    if isinstance(person_slugs, list):
        for person_slug in person_slugs:
            if isinstance(person_slug, str) and person_slug:
                cache.invalidate(f"/people/{person_slug}")
                people.append(person_slug)

    logger.info(
        f"Revalidated listings, detail={detail}, {len(people)} person pages",
        extra={"change_type": change_type},
    )
    return RevalidationResult(listings=list(LISTING_PATHS), detail=detail, people=people)
