"""Configuration management via environment variables and .env file."""

from __future__ import annotations

import os
import sys

from dotenv import load_dotenv
from pydantic import BaseModel


class Config(BaseModel):
    """Application configuration loaded from environment."""

    # Blog qualification endpoint (callable function URL)
    analysis_endpoint: str = ""
    analysis_token: str = ""
    analysis_timeout: float = 120.0

    # Website discovery (discovery disabled when neither key is set)
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    discovery_model: str = "claude-3-5-haiku-20241022"
    openai_discovery_model: str = "gpt-4o-mini"
    discovery_max_tokens: int = 100

    # Batching
    batch_size: int = 5
    retry_attempts: int = 2
    retry_delay: float = 2.0        # seconds, multiplied by the retry number
    inter_batch_delay: float = 1.0  # seconds between batches

    # Skip targets analyzed within this many days (0 disables)
    skip_days: int = 7

    # Field mappings for URL resolution
    blog_url_field: str = ""       # custom field holding a blog URL
    website_field: str = ""        # custom field holding the website
    website_use_top_level: bool = True

    # Store
    db_path: str = ".blog_analysis.db"

    # Web server
    web_host: str = "0.0.0.0"
    web_port: int = 8000

    @property
    def discovery_enabled(self) -> bool:
        return bool(self.anthropic_api_key or self.openai_api_key)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config(require_endpoint: bool = True) -> Config:
    """Load configuration from .env file and environment variables.

    Environment variables override .env values.
    Exits with an error message if the analysis endpoint is missing.
    """
    load_dotenv()

    endpoint = os.getenv("ANALYSIS_ENDPOINT", "")
    anthropic_key = os.getenv("ANTHROPIC_API_KEY", "")
    openai_key = os.getenv("OPENAI_API_KEY", "")

    if require_endpoint and not endpoint:
        print("Configuration error:", file=sys.stderr)
        print("  - ANALYSIS_ENDPOINT is required (blog qualification function URL)", file=sys.stderr)
        print("\nSet it in a .env file or as an environment variable.", file=sys.stderr)
        sys.exit(1)

    # Discovery is optional
    if not anthropic_key and not openai_key:
        print(
            "  Note: no ANTHROPIC_API_KEY or OPENAI_API_KEY — website discovery disabled",
            file=sys.stderr,
        )

    return Config(
        analysis_endpoint=endpoint,
        analysis_token=os.getenv("ANALYSIS_TOKEN", ""),
        analysis_timeout=float(os.getenv("ANALYSIS_TIMEOUT", "120")),
        anthropic_api_key=anthropic_key,
        openai_api_key=openai_key,
        discovery_model=os.getenv("DISCOVERY_MODEL", "claude-3-5-haiku-20241022"),
        openai_discovery_model=os.getenv("OPENAI_DISCOVERY_MODEL", "gpt-4o-mini"),
        batch_size=int(os.getenv("BATCH_SIZE", "5")),
        retry_attempts=int(os.getenv("RETRY_ATTEMPTS", "2")),
        retry_delay=float(os.getenv("RETRY_DELAY", "2.0")),
        inter_batch_delay=float(os.getenv("INTER_BATCH_DELAY", "1.0")),
        skip_days=int(os.getenv("SKIP_DAYS", "7")),
        blog_url_field=os.getenv("BLOG_URL_FIELD", ""),
        website_field=os.getenv("WEBSITE_FIELD", ""),
        website_use_top_level=_env_bool("WEBSITE_USE_TOP_LEVEL", True),
        db_path=os.getenv("DB_PATH", ".blog_analysis.db"),
        web_host=os.getenv("WEB_HOST", "0.0.0.0"),
        web_port=int(os.getenv("WEB_PORT", "8000")),
    )
