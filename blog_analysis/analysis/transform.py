"""Convert a qualification response into the stored blog analysis shape."""

from __future__ import annotations

from blog_analysis.models import (
    BlogAnalysis,
    BlogNature,
    BlogQualificationResult,
    CostInfo,
    Writers,
    utcnow,
)


def transform_blog_result(result: BlogQualificationResult, url_analyzed: str) -> BlogAnalysis:
    authors = [a for a in result.author_names.split(", ") if a] if result.author_names else []
    employment = result.authors_are_employees

    nature = BlogNature(
        is_ai_written=bool(result.is_ai_written),
        is_technical=result.technical_depth in ("advanced", "intermediate"),
        rating=_rating(result),
        reasoning=result.content_quality_reasoning or "No detailed reasoning provided by analysis",
        has_code_examples=bool(result.has_code_examples),
        code_examples_count=result.code_examples_count or 0,
        code_languages=result.code_languages,
        has_diagrams=bool(result.has_diagrams),
        diagrams_count=result.diagrams_count or 0,
        example_quotes=result.example_quotes,
        ai_written_confidence=result.ai_written_confidence,
        ai_written_evidence=result.ai_written_evidence,
        technical_depth=result.technical_depth,
        funnel_stage=result.funnel_stage,
    )

    return BlogAnalysis(
        last_active_post=result.last_blog_created_at or None,
        monthly_frequency=result.blog_post_count,
        writers=Writers(
            count=result.author_count,
            are_employees=employment in ("employees", "mixed"),
            are_freelancers=employment in ("freelancers", "mixed"),
            names=authors,
        ),
        blog_nature=nature,
        is_developer_b2b_saas=result.is_developer_b2b_saas,
        content_summary=result.content_summary,
        blog_url=url_analyzed,
        last_post_url=result.last_post_url or None,
        rss_feed_url=result.rss_feed_url or None,
        analysis_method=result.analysis_method or "Unknown",
        last_analyzed_at=utcnow(),
        cost_info=cost_of(result),
    )


def cost_of(result: BlogQualificationResult) -> CostInfo | None:
    if result.cost_info is None:
        return None
    return CostInfo(
        total_cost=result.cost_info.total_cost,
        total_tokens=result.cost_info.total_tokens,
    )


def _rating(result: BlogQualificationResult) -> str:
    # Explicit rating wins; otherwise infer from audience and topic signals
    if result.content_quality_rating:
        return result.content_quality_rating
    if result.is_developer_b2b_saas and result.covers_ai_topics:
        return "high"
    if result.is_developer_b2b_saas or result.covers_ai_topics:
        return "medium"
    return "low"
