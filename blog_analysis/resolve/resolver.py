"""Layered URL resolution: mapped fields, direct attribute, enrichment, discovery."""

from __future__ import annotations

import logging
from typing import Callable

from pydantic import BaseModel

from blog_analysis.config import Config
from blog_analysis.models import Target
from blog_analysis.resolve.discovery import WebsiteDiscovery
from blog_analysis.store.targets import TargetStore

logger = logging.getLogger(__name__)

UrlStrategy = Callable[[Target], "str | None"]


class FieldMapping(BaseModel):
    """Which target fields hold the blog URL and the website."""
    blog_url_field: str = ""
    website_field: str = ""
    website_use_top_level: bool = True

    @classmethod
    def from_config(cls, config: Config) -> FieldMapping:
        return cls(
            blog_url_field=config.blog_url_field,
            website_field=config.website_field,
            website_use_top_level=config.website_use_top_level,
        )


def _clean(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


# ---------------------------------------------------------------------------
# Strategies (tried in order, first non-empty wins)
# ---------------------------------------------------------------------------

def blog_url_field(mapping: FieldMapping) -> UrlStrategy:
    """The custom field mapped as the blog URL, if any."""

    def strategy(target: Target) -> str | None:
        if not mapping.blog_url_field:
            return None
        return _clean(target.custom_fields.get(mapping.blog_url_field))

    strategy.__name__ = "blog_url_field"
    return strategy


def website_field(mapping: FieldMapping) -> UrlStrategy:
    """The mapped website: a custom field, or the top-level website."""

    def strategy(target: Target) -> str | None:
        if mapping.website_field and not mapping.website_use_top_level:
            return _clean(target.custom_fields.get(mapping.website_field))
        return _clean(target.website)

    strategy.__name__ = "website_field"
    return strategy


def direct_website(target: Target) -> str | None:
    return _clean(target.website)


def enrichment_website(target: Target) -> str | None:
    if target.enrichment is None:
        return None
    return _clean(target.enrichment.website)


def default_strategies(mapping: FieldMapping) -> list[UrlStrategy]:
    return [
        blog_url_field(mapping),
        website_field(mapping),
        direct_website,
        enrichment_website,
    ]


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class UrlResolver:
    """Finds the URL to analyze for a target."""

    def __init__(
        self,
        strategies: list[UrlStrategy],
        discovery: WebsiteDiscovery,
        store: TargetStore,
    ):
        self.strategies = list(strategies)
        self.discovery = discovery
        self.store = store

    def resolve_fast(self, target: Target) -> str | None:
        """Try each strategy in order without any network access."""
        for strategy in self.strategies:
            url = strategy(target)
            if url:
                logger.debug("%s: resolved %s via %s", target.name, url,
                             getattr(strategy, "__name__", "strategy"))
                return url
        return None

    async def resolve_or_discover(self, target: Target) -> str | None:
        """Fast path, then discovery by name with write-through of the result.

        Discovery errors and empty answers yield None.
        """
        url = self.resolve_fast(target)
        if url:
            return url

        try:
            found = await self.discovery.discover(target.name)
        except Exception as e:
            logger.warning("Website discovery failed for %s: %s", target.name, e)
            return None

        url = _clean(found.website)
        if not url:
            return None

        try:
            await self.store.update(target.id, {"website": url})
        except Exception as e:
            logger.warning("Could not save discovered website for %s: %s", target.name, e)
        return url
