"""Pydantic data models for the bulk blog analysis pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


ProgressStatus = Literal["pending", "running", "success", "error", "skipped"]
TERMINAL_STATUSES: frozenset[str] = frozenset({"success", "error", "skipped"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Cost
# ---------------------------------------------------------------------------

class CostInfo(BaseModel):
    """Cost of one analysis call, as stored and reported."""
    total_cost: float = 0.0
    total_tokens: int = 0


# ---------------------------------------------------------------------------
# Qualification payload (camelCase on the wire)
# ---------------------------------------------------------------------------

class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QualificationCost(_WireModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    input_cost: float = 0.0
    output_cost: float = 0.0
    total_cost: float = 0.0


class BlogQualificationResult(_WireModel):
    """Raw response of the blog qualification endpoint."""
    company_name: str = ""
    website: str = ""
    has_active_blog: bool = False
    blog_post_count: int = 0
    last_blog_created_at: str | None = None
    has_multiple_authors: bool = False
    author_count: int = 0
    author_names: str = ""
    is_developer_b2b_saas: bool = Field(default=False, alias="isDeveloperB2BSaas")
    authors_are_employees: Literal["employees", "freelancers", "mixed", "unknown"] = "unknown"
    covers_ai_topics: bool = False
    content_summary: str = ""
    blog_link_used: str = ""
    rss_feed_found: bool = False
    analysis_method: str | None = None
    qualified: bool = False
    cost_info: QualificationCost | None = None

    # Content quality
    content_quality_rating: Literal["low", "medium", "high"] | None = None
    content_quality_reasoning: str | None = None
    last_post_url: str | None = None
    rss_feed_url: str | None = None
    is_ai_written: bool | None = Field(default=None, alias="isAIWritten")
    ai_written_confidence: Literal["low", "medium", "high"] | None = None
    ai_written_evidence: str | None = None
    has_code_examples: bool | None = None
    code_examples_count: int | None = None
    code_languages: list[str] = Field(default_factory=list)
    has_diagrams: bool | None = None
    diagrams_count: int | None = None
    technical_depth: Literal["beginner", "intermediate", "advanced"] | None = None
    funnel_stage: Literal["top", "middle", "bottom"] | None = None
    example_quotes: list[str] = Field(default_factory=list)

    @field_validator("blog_post_count", "author_count", mode="before")
    @classmethod
    def coerce_count(cls, v):
        if v is None:
            return 0
        return v

    @field_validator("author_names", "content_summary", "blog_link_used", "company_name", "website", mode="before")
    @classmethod
    def coerce_str(cls, v):
        if v is None:
            return ""
        return str(v)

    @field_validator("authors_are_employees", mode="before")
    @classmethod
    def coerce_employment(cls, v):
        if v not in ("employees", "freelancers", "mixed"):
            return "unknown"
        return v

    @field_validator("content_quality_rating", "ai_written_confidence", mode="before")
    @classmethod
    def coerce_level(cls, v):
        if v not in ("low", "medium", "high"):
            return None
        return v

    @field_validator("technical_depth", mode="before")
    @classmethod
    def coerce_depth(cls, v):
        if v not in ("beginner", "intermediate", "advanced"):
            return None
        return v

    @field_validator("funnel_stage", mode="before")
    @classmethod
    def coerce_funnel(cls, v):
        if v not in ("top", "middle", "bottom"):
            return None
        return v

    @field_validator("code_languages", "example_quotes", mode="before")
    @classmethod
    def coerce_list(cls, v):
        if v is None:
            return []
        return v


# ---------------------------------------------------------------------------
# Stored analysis shape
# ---------------------------------------------------------------------------

class Writers(BaseModel):
    count: int = 0
    are_employees: bool = False
    are_freelancers: bool = False
    names: list[str] = Field(default_factory=list)


class BlogNature(BaseModel):
    is_ai_written: bool = False
    is_technical: bool = False
    rating: Literal["low", "medium", "high"] = "low"
    reasoning: str = ""
    has_code_examples: bool = False
    code_examples_count: int = 0
    code_languages: list[str] = Field(default_factory=list)
    has_diagrams: bool = False
    diagrams_count: int = 0
    example_quotes: list[str] = Field(default_factory=list)
    ai_written_confidence: str | None = None
    ai_written_evidence: str | None = None
    technical_depth: str | None = None
    funnel_stage: str | None = None


class BlogAnalysis(BaseModel):
    """Analysis result as stored on a target document."""
    last_active_post: str | None = None
    monthly_frequency: int = 0
    writers: Writers = Field(default_factory=Writers)
    blog_nature: BlogNature = Field(default_factory=BlogNature)
    is_developer_b2b_saas: bool = False
    content_summary: str = ""
    blog_url: str | None = None
    last_post_url: str | None = None
    rss_feed_url: str | None = None
    analysis_method: str = "Unknown"
    last_analyzed_at: datetime = Field(default_factory=utcnow)
    cost_info: CostInfo | None = None


# ---------------------------------------------------------------------------
# Targets
# ---------------------------------------------------------------------------

class Enrichment(BaseModel):
    """Third-party enrichment data attached to a target (e.g. Apollo)."""
    model_config = ConfigDict(extra="allow")

    name: str | None = None
    website: str | None = None


class Target(BaseModel):
    """A company to analyze."""
    id: str
    name: str
    website: str | None = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    enrichment: Enrichment | None = None
    blog_analysis: BlogAnalysis | None = None

    @property
    def last_analysis_timestamp(self) -> datetime | None:
        return self.blog_analysis.last_analyzed_at if self.blog_analysis else None

    @property
    def last_analysis_frequency(self) -> int | None:
        return self.blog_analysis.monthly_frequency if self.blog_analysis else None


# ---------------------------------------------------------------------------
# Outcomes and progress
# ---------------------------------------------------------------------------

class AttemptResult(BaseModel):
    """Outcome of processing one target."""
    success: bool
    payload: BlogAnalysis | None = None
    error: str | None = None
    cost_info: CostInfo | None = None
    skipped: bool = False

    @classmethod
    def failure(cls, error_msg: str) -> AttemptResult:
        return cls(success=False, error=error_msg)


class ProgressEvent(BaseModel):
    """A single status transition for one target."""
    target_id: str
    status: ProgressStatus
    message: str | None = None
    cost_info: CostInfo | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class AggregateOutcome(BaseModel):
    """Return value of a bulk run."""
    results: dict[str, AttemptResult] = Field(default_factory=dict)
    total_cost: float = 0.0
    total_tokens: int = 0

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results.values() if r.success and not r.skipped)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results.values() if r.skipped)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results.values() if not r.success)
