import asyncio
from typing import Any

import pytest

from blog_analysis.config import Config
from blog_analysis.errors import StoreError
from blog_analysis.models import BlogQualificationResult, QualificationCost, Target
from blog_analysis.resolve.discovery import DiscoveryResult


def good_result(posts: int = 4, cost: float | None = 0.01, tokens: int = 1200) -> BlogQualificationResult:
    return BlogQualificationResult(
        blog_post_count=posts,
        rss_feed_url="https://example.com/feed.xml",
        analysis_method="RSS",
        author_names="Ada Lovelace, Grace Hopper",
        author_count=2,
        authors_are_employees="employees",
        cost_info=QualificationCost(total_cost=cost, total_tokens=tokens) if cost is not None else None,
    )


def empty_result() -> BlogQualificationResult:
    return BlogQualificationResult(blog_post_count=0, analysis_method="None")


class FakeStore:
    """In-memory store with optional write failures."""

    def __init__(self, targets=()):
        self.docs: dict[str, dict] = {t.id: t.model_dump(mode="json") for t in targets}
        self.updates: list[tuple[str, dict]] = []
        self.fail_ids: set[str] = set()

    async def get(self, target_id):
        doc = self.docs.get(target_id)
        return Target.model_validate(doc) if doc else None

    async def update(self, target_id, patch):
        await asyncio.sleep(0)
        if target_id in self.fail_ids:
            raise StoreError("disk full")
        if target_id not in self.docs:
            raise StoreError(f"Target not found: {target_id}")
        self.docs[target_id].update(patch)
        self.updates.append((target_id, patch))

    def fresh(self) -> list[Target]:
        return [Target.model_validate(d) for d in self.docs.values()]


class FakeAnalysisClient:
    """Returns scripted responses per company name and tracks concurrency.

    A script is a list consumed one item per call; an Exception item is
    raised. Names without a script get ``good_result()``.
    """

    def __init__(self, scripts: dict[str, list[Any]] | None = None):
        self.scripts = {k: list(v) for k, v in (scripts or {}).items()}
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def analyze(self, company_name, website):
        self.calls.append((company_name, website))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            script = self.scripts.get(company_name)
            item = script.pop(0) if script else good_result()
            if isinstance(item, Exception):
                raise item
            return item
        finally:
            self.in_flight -= 1


class FakeDiscovery:
    def __init__(self, answers: dict[str, Any] | None = None):
        self.answers = answers or {}
        self.calls: list[str] = []

    async def discover(self, company_name):
        self.calls.append(company_name)
        answer = self.answers.get(company_name)
        if isinstance(answer, Exception):
            raise answer
        return DiscoveryResult(website=answer, source="fake")


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class EventLog:
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def for_target(self, target_id):
        return [e.status for e in self.events if e.target_id == target_id]

    def terminal(self):
        return [e for e in self.events if e.is_terminal]


@pytest.fixture()
def config():
    return Config(
        analysis_endpoint="http://analysis.test/qualifyCompanyBlog",
        batch_size=5,
        retry_attempts=2,
        retry_delay=2.0,
        inter_batch_delay=1.0,
        skip_days=7,
    )


@pytest.fixture()
def sleep():
    return RecordingSleep()


@pytest.fixture()
def events():
    return EventLog()


def make_targets(n: int, with_website: bool = True) -> list[Target]:
    return [
        Target(
            id=f"c{i}",
            name=f"Company {i}",
            website=f"https://company{i}.example" if with_website else None,
        )
        for i in range(n)
    ]
