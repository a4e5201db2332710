"""TTL classification of request URLs.

Different freshness classes get different expiry: rosters change rarely,
season statistics hourly, odds and scores by the minute.
"""

from typing import Optional, Sequence, Tuple

from ltrfantasy.infrastructure.config.settings import CacheSettings

# (url fragment, category) pairs; first match wins
URL_CATEGORIES: Sequence[Tuple[str, str]] = (
    ("roster", "roster"),
    ("statistics", "statistics"),
    ("odds", "live"),
    ("scores", "live"),
    ("scoreboard", "live"),
)


class TtlPolicy:
    """Maps URLs to cache TTLs in seconds by endpoint category."""

    def __init__(self, settings: Optional[CacheSettings] = None):
        settings = settings or CacheSettings()
        self.ttls = {
            "roster": settings.roster_ttl,
            "statistics": settings.statistics_ttl,
            "live": settings.live_ttl,
            "default": settings.default_ttl,
        }

    def category_for(self, url: str) -> str:
        lowered = url.lower()
        for fragment, category in URL_CATEGORIES:
            if fragment in lowered:
                return category
        return "default"

    def ttl_for(self, url: str) -> int:
        return self.ttls[self.category_for(url)]
