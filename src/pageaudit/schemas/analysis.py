"""Pydantic models for an analysis request and the aggregated result."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from pageaudit.errors import InvalidRequest


class WireModel(BaseModel):
    """Base for models that travel over HTTP with camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Category(str, Enum):
    GOOD = "GOOD"
    NEEDS_IMPROVEMENT = "NEEDS_IMPROVEMENT"
    POOR = "POOR"


class FailureKind(str, Enum):
    LOAD = "load"
    SCAN = "scan"
    AUDIT = "audit"
    TIMEOUT = "timeout"


class AnalysisRequest(WireModel):
    """Body of ``POST /analyse`` plus the ``performanceRequired`` query flag.

    Exactly one of ``html`` or ``url`` must be provided. An empty ``html``
    or a blank ``url`` counts as absent.
    """

    html: str | None = None
    url: str | None = None
    performance_required: bool = False

    @field_validator("html", mode="before")
    @classmethod
    def empty_html_to_none(cls, v: object) -> object:
        # Whitespace is still a document; only "" means no html.
        return None if v == "" else v

    @field_validator("url", mode="before")
    @classmethod
    def blank_url_to_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def validate_target(self) -> None:
        """Raise ``InvalidRequest`` unless exactly one target is present."""
        if self.html is None and self.url is None:
            raise InvalidRequest("Html field or url field must be specified")
        if self.html is not None and self.url is not None:
            raise InvalidRequest("Specify either html or url field")


class ViolationNode(WireModel):
    """One offending DOM element reported by axe-core."""

    impact: str = ""
    html: str = ""
    failure_summary: str = ""


class AccessibilityViolation(WireModel):
    id: str = ""
    description: str = ""
    help: str = ""
    nodes: list[ViolationNode] = []


class ResponsivenessResult(WireModel):
    viewport_name: str
    has_horizontal_overflow: bool
    images_oversize: bool = False


class PerformanceMetric(WireModel):
    percentile_value: float
    category: Category


class CategoryScores(WireModel):
    """Lighthouse category scores in 0-1; ``None`` when a category was not scored."""

    performance: float | None = None
    accessibility: float | None = None
    best_practices: float | None = None
    seo: float | None = None


class PerformanceReport(WireModel):
    overall_category: Category
    metrics: dict[str, PerformanceMetric] = {}
    category_scores: CategoryScores = CategoryScores()


class StageFailure(BaseModel):
    """A stage that failed and was degraded to an empty or null contribution."""

    stage: str
    kind: FailureKind
    message: str = ""


class ScanOutcome(BaseModel):
    """Everything the scanner collected, including the stages that failed."""

    violations: list[AccessibilityViolation] = []
    responsiveness: list[ResponsivenessResult] = []
    failures: list[StageFailure] = []


class AnalysisResult(WireModel):
    """The unit returned to the caller.

    ``failures`` is kept for logs, tests and the CLI; it is never serialized.
    """

    violations: list[AccessibilityViolation] = []
    performance: PerformanceReport | None = None
    responsiveness: list[ResponsivenessResult] = []
    failures: list[StageFailure] = Field(default=[], exclude=True)
