"""Tests for Markdown report generation."""

from __future__ import annotations

from pageaudit.output.markdown import render_markdown_report
from pageaudit.schemas.analysis import (
    AccessibilityViolation,
    AnalysisResult,
    Category,
    CategoryScores,
    FailureKind,
    PerformanceMetric,
    PerformanceReport,
    ResponsivenessResult,
    StageFailure,
    ViolationNode,
)


def _make_result() -> AnalysisResult:
    return AnalysisResult(
        violations=[
            AccessibilityViolation(
                id="image-alt",
                description="Ensures <img> elements have alternate text",
                help="Images must have alternate text",
                nodes=[
                    ViolationNode(impact="serious", html="<img src=`a`>"),
                    ViolationNode(
                        impact="critical",
                        html="<img src='b'>",
                        failure_summary="Fix any of the following:\n  no alt attribute",
                    ),
                ],
            )
        ],
        responsiveness=[
            ResponsivenessResult(viewport_name="Desktop Large", has_horizontal_overflow=False),
            ResponsivenessResult(viewport_name="Phone", has_horizontal_overflow=True, images_oversize=True),
        ],
        performance=PerformanceReport(
            overall_category=Category.POOR,
            metrics={
                "largest-contentful-paint": PerformanceMetric(percentile_value=4500, category=Category.POOR),
                "cumulative-layout-shift": PerformanceMetric(percentile_value=0.05, category=Category.GOOD),
            },
            category_scores=CategoryScores(performance=0.42, accessibility=0.9, best_practices=None, seo=1),
        ),
    )


class TestRenderMarkdown:
    def test_sections_present(self) -> None:
        md = render_markdown_report(_make_result(), target="https://example.com", generated_at="now")
        assert md.startswith("# Page Audit Report: https://example.com")
        assert "*Generated: now*" in md
        assert "## Accessibility" in md
        assert "## Responsiveness" in md
        assert "## Performance" in md

    def test_violation_table_uses_worst_impact(self) -> None:
        md = render_markdown_report(_make_result())
        assert "| `image-alt` | critical | 2 | Images must have alternate text |" in md

    def test_backticks_in_snippets_are_escaped(self) -> None:
        md = render_markdown_report(_make_result())
        assert "- `<img src='a'>`" in md
        assert "  - Fix any of the following: no alt attribute" in md

    def test_responsiveness_rows(self) -> None:
        md = render_markdown_report(_make_result())
        assert "| Phone | yes | yes |" in md
        assert "| Desktop Large | no | no |" in md

    def test_performance_rows(self) -> None:
        md = render_markdown_report(_make_result())
        assert "**Overall:** 🔴 POOR" in md
        assert "| largest-contentful-paint | 4500 ms | 🔴 POOR |" in md
        assert "| cumulative-layout-shift | 0.05 | 🟢 GOOD |" in md
        assert "- Performance: 42" in md
        assert "- Best practices: N/A" in md

    def test_empty_result(self) -> None:
        md = render_markdown_report(AnalysisResult())
        assert "inline HTML" in md
        assert "No accessibility violations found." in md
        assert "No viewports were evaluated." in md
        assert "## Performance" not in md

    def test_failures_listed(self) -> None:
        result = AnalysisResult(
            failures=[StageFailure(stage="load", kind=FailureKind.LOAD, message="Invalid URL scheme")]
        )
        md = render_markdown_report(result)
        assert "## Stages With Errors" in md
        assert "- **load** (load): Invalid URL scheme" in md
