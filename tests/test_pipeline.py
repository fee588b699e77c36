import logging
from datetime import timedelta

import pytest

from blog_analysis import pipeline
from blog_analysis.batch.retry import EMPTY_BLOG_MESSAGE
from blog_analysis.errors import AnalysisError
from blog_analysis.models import BlogAnalysis, Target, utcnow
from blog_analysis.pipeline import NO_WEBSITE_MESSAGE, BulkBlogAnalyzer
from blog_analysis.store.targets import SqliteTargetStore

from conftest import (
    FakeAnalysisClient,
    FakeDiscovery,
    FakeStore,
    empty_result,
    good_result,
    make_targets,
)


def build(config, sleep, targets, client=None, discovery=None):
    store = FakeStore(targets)
    client = client or FakeAnalysisClient()
    discovery = discovery or FakeDiscovery()
    analyzer = BulkBlogAnalyzer(config, store, client, discovery=discovery, sleep=sleep, verbose=False)
    return analyzer, store, client, discovery


@pytest.mark.asyncio
async def test_every_target_gets_one_terminal_status(config, sleep, events):
    targets = make_targets(7)
    targets.append(Target(id="nourl", name="No Url Co"))
    scripts = {"Company 2": [AnalysisError("boom")] * 3}
    analyzer, _, _, _ = build(config, sleep, targets, client=FakeAnalysisClient(scripts))

    outcome = await analyzer.bulk_process(targets, on_progress=events)

    assert len(events.terminal()) == len(targets)
    assert set(outcome.results) == {t.id for t in targets}
    for t in targets:
        statuses = events.for_target(t.id)
        assert statuses[0] == "pending"
        assert sum(1 for s in statuses if s in ("success", "error", "skipped")) == 1
        assert statuses[-1] in ("success", "error")


@pytest.mark.asyncio
async def test_twelve_targets_run_in_three_batches(config, sleep, events):
    targets = make_targets(12)
    analyzer, _, client, _ = build(config, sleep, targets)

    outcome = await analyzer.bulk_process(targets, on_progress=events)

    assert outcome.succeeded == 12
    assert sleep.delays == [1.0, 1.0]
    assert client.max_in_flight <= 5

    # All five of the first batch are pending before any of them runs
    first_statuses = [(e.target_id, e.status) for e in events.events[:6]]
    assert [s for _, s in first_statuses[:5]] == ["pending"] * 5
    assert {tid for tid, _ in first_statuses[:5]} == {f"c{i}" for i in range(5)}


@pytest.mark.asyncio
async def test_total_cost_counts_only_successes(config, sleep):
    targets = make_targets(4)
    scripts = {
        "Company 0": [good_result(cost=0.25)],
        "Company 1": [good_result(cost=0.5)],
        "Company 2": [AnalysisError("down")] * 3,
        "Company 3": [good_result(cost=None)],
    }
    analyzer, _, _, _ = build(config, sleep, targets, client=FakeAnalysisClient(scripts))

    outcome = await analyzer.bulk_process(targets)

    assert outcome.total_cost == pytest.approx(0.75)
    assert outcome.results["c3"].success and outcome.results["c3"].cost_info is None
    assert not outcome.results["c2"].success


@pytest.mark.asyncio
async def test_exhausted_retries_report_last_error(config, sleep, events):
    targets = make_targets(1)
    scripts = {"Company 0": [AnalysisError("first"), AnalysisError("second"), AnalysisError("third")]}
    analyzer, store, client, _ = build(config, sleep, targets, client=FakeAnalysisClient(scripts))

    outcome = await analyzer.bulk_process(targets, on_progress=events)

    result = outcome.results["c0"]
    assert not result.success
    assert result.error == "third"
    assert len(client.calls) == 3
    assert sleep.delays == [2.0, 4.0]
    assert store.updates == []
    assert events.events[-1].status == "error"
    assert events.events[-1].message == "third"


@pytest.mark.asyncio
async def test_one_failure_then_success(config, sleep, events):
    targets = make_targets(1)
    scripts = {"Company 0": [AnalysisError("flaky"), good_result(posts=6)]}
    analyzer, store, client, _ = build(config, sleep, targets, client=FakeAnalysisClient(scripts))

    outcome = await analyzer.bulk_process(targets, on_progress=events)

    assert outcome.results["c0"].success
    assert len(client.calls) == 2
    assert events.events[-1].status == "success"
    assert events.events[-1].message == "6 posts/mo"
    assert store.docs["c0"]["blog_analysis"]["monthly_frequency"] == 6


@pytest.mark.asyncio
async def test_empty_result_is_retried(config, sleep):
    targets = make_targets(2)
    scripts = {
        "Company 0": [empty_result(), good_result()],
        "Company 1": [empty_result()] * 3,
    }
    analyzer, _, client, _ = build(config, sleep, targets, client=FakeAnalysisClient(scripts))

    outcome = await analyzer.bulk_process(targets)

    assert outcome.results["c0"].success
    assert outcome.results["c1"].error == EMPTY_BLOG_MESSAGE
    assert sum(1 for name, _ in client.calls if name == "Company 1") == 3


@pytest.mark.asyncio
async def test_no_website_and_failed_discovery(config, sleep, events):
    targets = [Target(id="x", name="Ghost Inc")]
    analyzer, _, client, discovery = build(
        config, sleep, targets, discovery=FakeDiscovery({"Ghost Inc": None}),
    )

    outcome = await analyzer.bulk_process(targets, on_progress=events)

    assert outcome.results["x"].error == NO_WEBSITE_MESSAGE
    assert client.calls == []
    assert discovery.calls == ["Ghost Inc"]
    assert [(e.status, e.message) for e in events.events] == [
        ("pending", None),
        ("running", "Discovering website..."),
        ("error", NO_WEBSITE_MESSAGE),
    ]


@pytest.mark.asyncio
async def test_discovery_error_is_not_fatal(config, sleep):
    targets = [Target(id="x", name="Ghost Inc"), Target(id="y", name="Real Co", website="real.co")]
    analyzer, _, _, _ = build(
        config, sleep, targets, discovery=FakeDiscovery({"Ghost Inc": RuntimeError("llm down")}),
    )

    outcome = await analyzer.bulk_process(targets)

    assert outcome.results["x"].error == NO_WEBSITE_MESSAGE
    assert outcome.results["y"].success


@pytest.mark.asyncio
async def test_discovered_website_is_written_back_and_analyzed(config, sleep):
    targets = [Target(id="x", name="Found Co")]
    analyzer, store, client, _ = build(
        config, sleep, targets, discovery=FakeDiscovery({"Found Co": "https://found.co"}),
    )

    outcome = await analyzer.bulk_process(targets)

    assert outcome.results["x"].success
    assert client.calls == [("Found Co", "https://found.co")]
    assert store.docs["x"]["website"] == "https://found.co"
    assert outcome.results["x"].payload.blog_url == "https://found.co"


@pytest.mark.asyncio
async def test_persistence_failure_is_an_error_without_cost(config, sleep, events):
    targets = make_targets(2)
    analyzer, store, _, _ = build(config, sleep, targets)
    store.fail_ids.add("c1")

    outcome = await analyzer.bulk_process(targets, on_progress=events)

    assert outcome.results["c0"].success
    assert not outcome.results["c1"].success
    assert outcome.results["c1"].error.startswith("Failed to save analysis")
    assert outcome.total_cost == pytest.approx(0.01)
    assert events.for_target("c1")[-1] == "error"


@pytest.mark.asyncio
async def test_recently_analyzed_targets_are_skipped(config, sleep, events):
    prior = BlogAnalysis(monthly_frequency=3, last_analyzed_at=utcnow() - timedelta(days=2))
    targets = [Target(id="old", name="Old Co", website="old.co", blog_analysis=prior)]
    analyzer, _, client, _ = build(config, sleep, targets)

    outcome = await analyzer.bulk_process(targets, on_progress=events)

    result = outcome.results["old"]
    assert result.success and result.skipped
    assert result.payload.monthly_frequency == 3
    assert client.calls == []
    assert [(e.status, e.message) for e in events.events] == [
        ("skipped", "Already analyzed (3 posts/mo)"),
    ]
    assert outcome.total_cost == 0


@pytest.mark.asyncio
async def test_skip_days_zero_reanalyzes(config, sleep):
    prior = BlogAnalysis(monthly_frequency=3, last_analyzed_at=utcnow())
    targets = [Target(id="old", name="Old Co", website="old.co", blog_analysis=prior)]
    analyzer, _, client, _ = build(config, sleep, targets)

    outcome = await analyzer.bulk_process(targets, skip_days=0)

    assert not outcome.results["old"].skipped
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_second_run_skips_everything(config, sleep, events):
    targets = make_targets(6)
    analyzer, store, client, _ = build(config, sleep, targets)

    first = await analyzer.bulk_process(targets)
    assert first.succeeded == 6

    second = await analyzer.bulk_process(store.fresh(), on_progress=events)

    assert second.skipped == 6
    assert [e.status for e in events.events] == ["skipped"] * 6
    assert len(client.calls) == 6


@pytest.mark.asyncio
async def test_no_progress_callback_is_fine(config, sleep):
    targets = make_targets(3)
    analyzer, _, _, _ = build(config, sleep, targets)

    outcome = await analyzer.bulk_process(targets)

    assert outcome.succeeded == 3


@pytest.mark.asyncio
async def test_bad_input_raises(config, sleep):
    analyzer, _, _, _ = build(config, sleep, [])

    with pytest.raises(TypeError):
        await analyzer.bulk_process([{"id": "a", "name": "A"}])

    dup = [Target(id="a", name="A"), Target(id="a", name="A again")]
    with pytest.raises(ValueError):
        await analyzer.bulk_process(dup)


@pytest.mark.asyncio
async def test_invalid_batch_size_raises_before_any_event(config, sleep, events):
    config.batch_size = 0
    targets = make_targets(2)
    analyzer, _, client, _ = build(config, sleep, targets)

    with pytest.raises(ValueError, match="batch size"):
        await analyzer.bulk_process(targets, events)

    assert events.events == []
    assert client.calls == []


@pytest.mark.asyncio
async def test_empty_target_list(config, sleep):
    analyzer, _, _, _ = build(config, sleep, [])

    outcome = await analyzer.bulk_process([])

    assert outcome.results == {}
    assert outcome.total_cost == 0
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_every_sink_in_a_list_sees_all_events(config, sleep, events):
    targets = make_targets(2)
    analyzer, _, _, _ = build(config, sleep, targets)
    second = []

    await analyzer.bulk_process(targets, [events, second.append])

    assert len(events.events) == 6
    assert [e.status for e in second] == [e.status for e in events.events]


@pytest.mark.asyncio
async def test_transitions_are_logged_at_debug(config, sleep, caplog):
    caplog.set_level(logging.DEBUG, logger="blog_analysis.batch.progress")
    targets = make_targets(1)
    analyzer, _, _, _ = build(config, sleep, targets)

    await analyzer.bulk_process(targets)

    messages = [r.getMessage() for r in caplog.records if r.name == "blog_analysis.batch.progress"]
    assert "c0: pending" in messages
    assert "c0: success (4 posts/mo)" in messages


@pytest.mark.asyncio
async def test_module_bulk_process_calls_legacy_callback(config, tmp_path, monkeypatch):
    config.db_path = str(tmp_path / "run.db")
    config.inter_batch_delay = 0
    fake = FakeAnalysisClient()
    monkeypatch.setattr(
        pipeline.HttpAnalysisClient, "from_config", classmethod(lambda cls, cfg: fake),
    )
    target = Target(id="a", name="Acme", website="https://acme.com")
    store = SqliteTargetStore(config.db_path)
    store.save(target)
    store.close()
    calls = []

    outcome = await pipeline.bulk_process(
        [target], lambda *args: calls.append(args), config=config,
    )

    assert outcome.results["a"].success
    assert [(c[0], c[1]) for c in calls] == [("a", "pending"), ("a", "running"), ("a", "success")]
    assert calls[-1][3].total_cost == pytest.approx(0.01)
