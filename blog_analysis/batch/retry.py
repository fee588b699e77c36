"""Bounded retries with linear backoff."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from blog_analysis.errors import EmptyResultError
from blog_analysis.models import BlogQualificationResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]

EMPTY_BLOG_MESSAGE = "Unable to analyze blog - no RSS feed or content found"


async def run_with_retry(
    fn: Callable[[], Awaitable[T]],
    attempts: int,
    initial_delay: float,
    validate: Callable[[T], bool] | None = None,
    empty_message: str = "Empty result",
    sleep: Sleep = asyncio.sleep,
    label: str = "",
) -> T:
    """Call ``fn`` up to ``attempts + 1`` times and return its first good result.

    The delay before retry ``i`` (1-indexed) is ``initial_delay * i`` seconds.
    A result rejected by ``validate`` raises :class:`EmptyResultError` and is
    retried like any other exception. The last error is re-raised once all
    tries are used.
    """
    if attempts < 0:
        raise ValueError("attempts must be >= 0")

    last_error: Exception | None = None
    for attempt in range(attempts + 1):
        if attempt > 0:
            wait = initial_delay * attempt
            logger.debug("Retry %d/%d%s in %.1fs", attempt, attempts, f" for {label}" if label else "", wait)
            await sleep(wait)
        try:
            result = await fn()
            if validate is not None and not validate(result):
                raise EmptyResultError(empty_message)
            return result
        except Exception as e:
            last_error = e
            logger.debug(
                "Attempt %d/%d failed%s: %s",
                attempt + 1, attempts + 1, f" for {label}" if label else "", e,
            )

    assert last_error is not None
    raise last_error


def has_blog_content(result: BlogQualificationResult) -> bool:
    """False when the response has no feed URL, no posts and no analysis method."""
    method = (result.analysis_method or "").strip()
    return bool(
        result.rss_feed_url
        or result.blog_post_count > 0
        or (method and method != "None")
    )
