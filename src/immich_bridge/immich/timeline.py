"""
Flattened "all photos" timeline built from Immich's month buckets.

Immich only lists the timeline per month. One page of the flattened view is
the concatenation of a fixed number of consecutive buckets, newest first.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from immich_bridge.immich.api import ImmichClient
from immich_bridge.immich.models import Asset, TimeBucket, decode_list

logger = logging.getLogger(__name__)


@dataclass
class TimelineFilters:
    """Filters forwarded to Immich.

    Only is_favorite is known to be honored by every server version; year and
    rating are passed through and whatever the server does with them decides
    the result.
    """

    is_favorite: bool = False
    year: int | None = None
    rating: int | None = None

    def extra_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if self.year is not None:
            params["year"] = self.year
        if self.rating is not None:
            params["rating"] = self.rating
        return params


@dataclass
class TimelinePage:
    """One page of the flattened timeline."""

    assets: list[Asset]
    page: int
    has_more: bool
    total: int
    years: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "assets": [a.to_dict() for a in self.assets],
            "page": self.page,
            "hasMore": self.has_more,
            "total": self.total,
            "years": self.years,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimelinePage":
        """Rebuild a page from its to_dict() form, e.g. to extend it."""
        return cls(
            assets=decode_list(Asset, data.get("assets")),
            page=int(data.get("page") or 1),
            has_more=bool(data.get("hasMore")),
            total=int(data.get("total") or 0),
            years=[int(y) for y in data.get("years") or []],
        )


class TimelineAggregator:
    """Walks month buckets to produce paginated timeline pages."""

    def __init__(
        self,
        client: ImmichClient,
        max_buckets: int = 6,
        fallback_year_span: int = 20,
        today: Callable[[], date] = date.today,
    ):
        self.client = client
        self.max_buckets = max_buckets
        self.fallback_year_span = fallback_year_span
        self._today = today

    def aggregate(
        self,
        filters: TimelineFilters | None = None,
        page: int = 1,
        previous: TimelinePage | None = None,
    ) -> TimelinePage:
        """
        Build one timeline page.

        Args:
            filters: Upstream filters
            page: 1-based page index; page n covers buckets [(n-1)*cap, n*cap)
            previous: Earlier result to extend; its assets come first

        Returns:
            TimelinePage with assets in bucket order
        """
        filters = filters or TimelineFilters()
        page = max(1, page)
        extra = filters.extra_params()

        buckets = [
            b
            for b in self.client.get_time_buckets(filters.is_favorite, extra)
            if b.bucket_key
        ]
        start = (page - 1) * self.max_buckets
        visited = buckets[start : start + self.max_buckets]

        assets: list[Asset] = list(previous.assets) if previous else []
        seen = {a.id for a in assets}
        for bucket in visited:
            for asset in self.client.get_time_bucket(bucket.bucket_key, filters.is_favorite, extra):
                if asset.id in seen:
                    continue
                seen.add(asset.id)
                assets.append(asset)

        has_more = start + len(visited) < len(buckets)
        logger.info(
            f"Timeline page {page}: {len(visited)}/{len(buckets)} bucket(s), "
            f"{len(assets)} asset(s), has_more={has_more}"
        )
        return TimelinePage(
            assets=assets,
            page=page,
            has_more=has_more,
            total=self._total(buckets, assets),
            years=self.years(assets),
        )

    @staticmethod
    def _total(buckets: list[TimeBucket], assets: list[Asset]) -> int:
        # Best effort: bucket counts when the server reports them all
        if buckets and all(b.count is not None for b in buckets):
            return sum(b.count or 0 for b in buckets)
        return len(assets)

    def years(self, assets: list[Asset]) -> list[int]:
        """Distinct years of the assets' dates, newest first.

        Falls back to the last fallback_year_span calendar years when no asset
        is dated.
        """
        found = sorted({a.file_date.year for a in assets if a.file_date}, reverse=True)
        if found:
            return found
        current = self._today().year
        return list(range(current, current - self.fallback_year_span, -1))
