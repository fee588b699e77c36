"""Running cost total for a bulk run."""

from __future__ import annotations

from blog_analysis.models import AttemptResult


class CostAggregator:
    """Sums cost over successful analyses.

    Only touched from the event loop thread, so no locking.
    """

    def __init__(self) -> None:
        self.total_cost: float = 0.0
        self.total_tokens: int = 0
        self.counted: int = 0

    def add(self, result: AttemptResult) -> None:
        if not result.success or result.skipped or result.cost_info is None:
            return
        self.total_cost += result.cost_info.total_cost
        self.total_tokens += result.cost_info.total_tokens
        self.counted += 1
