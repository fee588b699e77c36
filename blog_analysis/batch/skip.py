"""Skip policy: don't re-analyze targets that were analyzed recently."""

from __future__ import annotations

from datetime import datetime, timezone

from blog_analysis.models import Target

SECONDS_PER_DAY = 86_400


def should_skip(target: Target, skip_days: float, now: datetime | None = None) -> bool:
    """Return True if ``target`` was analyzed less than ``skip_days`` ago.

    ``skip_days <= 0`` disables skipping. A target that was never analyzed
    is never skipped. Only elapsed time is considered; the stored posting
    frequency plays no part.
    """
    if skip_days <= 0:
        return False

    analyzed_at = target.last_analysis_timestamp
    if analyzed_at is None:
        return False

    now = now or datetime.now(timezone.utc)
    elapsed_days = (_as_utc(now) - _as_utc(analyzed_at)).total_seconds() / SECONDS_PER_DAY
    return elapsed_days < skip_days


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
