"""Website discovery by company name, used when no mapped field has a URL."""

from __future__ import annotations

import logging
import re
from typing import Protocol
from urllib.parse import urlparse

from pydantic import BaseModel

from blog_analysis.config import Config
from blog_analysis.errors import DiscoveryError
from blog_analysis.resolve.llm_client import LLMRouter

logger = logging.getLogger(__name__)

DISCOVERY_SYSTEM_PROMPT = (
    "You are a helpful assistant that finds company websites. "
    "Return ONLY the URL (e.g. https://example.com) with no other text. "
    "If you are not confident about the website, return exactly: UNKNOWN"
)

_URL_RE = re.compile(r"https?://[^\s\"',]+")


class DiscoveryResult(BaseModel):
    website: str | None = None
    source: str = ""


class WebsiteDiscovery(Protocol):
    async def discover(self, company_name: str) -> DiscoveryResult: ...


class NullDiscovery:
    """Discovery disabled: never finds anything."""

    async def discover(self, company_name: str) -> DiscoveryResult:
        return DiscoveryResult(source="disabled")


class LLMWebsiteDiscovery:
    """Asks an LLM for the official website and normalizes the answer."""

    source = "llm"

    def __init__(self, config: Config, llm: LLMRouter | None = None):
        self.config = config
        self.llm = llm or LLMRouter.from_config(config)

    async def discover(self, company_name: str) -> DiscoveryResult:
        name = (company_name or "").strip()
        if not name:
            raise DiscoveryError("company name is required for website discovery")

        try:
            raw = await self.llm.complete(
                f'What is the official website URL for the company "{name}"?',
                system=DISCOVERY_SYSTEM_PROMPT,
                max_tokens=self.config.discovery_max_tokens,
            )
        except Exception as e:
            raise DiscoveryError(f"Website discovery failed: {e}") from e

        website = parse_website(raw)
        if website:
            logger.info("Discovered website for %s: %s", name, website)
        else:
            logger.info("No website found for %s (response: %r)", name, raw[:80])
        return DiscoveryResult(website=website, source=self.source)


def parse_website(raw: str | None) -> str | None:
    """Pull the first http(s) URL out of ``raw`` and reduce it to scheme://host."""
    text = (raw or "").strip()
    if not text or text == "UNKNOWN" or not text.startswith("http"):
        return None
    match = _URL_RE.search(text)
    if not match:
        return None
    try:
        parsed = urlparse(match.group(0))
    except ValueError:
        return None
    if not parsed.scheme or not parsed.hostname:
        return None
    return f"{parsed.scheme}://{parsed.hostname}"


def build_discovery(config: Config) -> WebsiteDiscovery:
    if config.discovery_enabled:
        return LLMWebsiteDiscovery(config)
    return NullDiscovery()
