import pytest

from blog_analysis.batch.retry import has_blog_content, run_with_retry
from blog_analysis.errors import EmptyResultError
from blog_analysis.models import BlogQualificationResult

from conftest import RecordingSleep


class Flaky:
    """Fails ``failures`` times, then returns ``value``."""

    def __init__(self, failures, value="ok"):
        self.failures = failures
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError(f"fail {self.calls}")
        return self.value


@pytest.mark.asyncio
async def test_returns_first_success_without_sleeping():
    sleep = RecordingSleep()
    fn = Flaky(0)

    assert await run_with_retry(fn, attempts=2, initial_delay=2.0, sleep=sleep) == "ok"
    assert fn.calls == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_linear_backoff_then_success():
    sleep = RecordingSleep()
    fn = Flaky(2)

    assert await run_with_retry(fn, attempts=3, initial_delay=1.5, sleep=sleep) == "ok"
    assert fn.calls == 3
    assert sleep.delays == [1.5, 3.0]


@pytest.mark.asyncio
async def test_raises_last_error_after_all_attempts():
    sleep = RecordingSleep()
    fn = Flaky(10)

    with pytest.raises(RuntimeError, match="fail 3"):
        await run_with_retry(fn, attempts=2, initial_delay=2.0, sleep=sleep)
    assert fn.calls == 3
    assert sleep.delays == [2.0, 4.0]


@pytest.mark.asyncio
async def test_zero_attempts_means_single_try():
    sleep = RecordingSleep()
    fn = Flaky(1)

    with pytest.raises(RuntimeError):
        await run_with_retry(fn, attempts=0, initial_delay=2.0, sleep=sleep)
    assert fn.calls == 1


@pytest.mark.asyncio
async def test_rejected_result_is_retried():
    sleep = RecordingSleep()
    values = iter(["", "", "content"])

    async def fn():
        return next(values)

    result = await run_with_retry(fn, attempts=2, initial_delay=0.1, validate=bool, sleep=sleep)
    assert result == "content"


@pytest.mark.asyncio
async def test_always_rejected_raises_empty_result():
    sleep = RecordingSleep()

    async def fn():
        return ""

    with pytest.raises(EmptyResultError, match="nothing here"):
        await run_with_retry(
            fn, attempts=1, initial_delay=0.1, validate=bool,
            empty_message="nothing here", sleep=sleep,
        )


def test_has_blog_content():
    assert not has_blog_content(BlogQualificationResult())
    assert not has_blog_content(BlogQualificationResult(analysis_method="None"))
    assert has_blog_content(BlogQualificationResult(blog_post_count=1))
    assert has_blog_content(BlogQualificationResult(rss_feed_url="https://a.io/rss"))
    assert has_blog_content(BlogQualificationResult(analysis_method="AI"))
