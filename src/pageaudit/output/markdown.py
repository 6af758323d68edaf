"""Markdown report builder — renders an AnalysisResult to a Markdown document."""

from __future__ import annotations

from datetime import datetime

from pageaudit.schemas.analysis import AnalysisResult, Category

_CATEGORY_ICON = {
    Category.GOOD: "🟢",
    Category.NEEDS_IMPROVEMENT: "🟡",
    Category.POOR: "🔴",
}

_IMPACT_ORDER = {"critical": 0, "serious": 1, "moderate": 2, "minor": 3}


def _fmt_score(score: float | None) -> str:
    return "N/A" if score is None else f"{round(score * 100)}"


def _worst_impact(impacts: list[str]) -> str:
    known = [i for i in impacts if i in _IMPACT_ORDER]
    return min(known, key=_IMPACT_ORDER.__getitem__) if known else "unknown"


def render_markdown_report(
    result: AnalysisResult, *, target: str = "", generated_at: str = ""
) -> str:
    """Render an AnalysisResult into a Markdown string."""
    sections: list[str] = []

    sections.append(f"# Page Audit Report: {target or 'inline HTML'}\n")
    sections.append(f"*Generated: {generated_at or datetime.now().isoformat()}*\n")

    # Accessibility
    sections.append("## Accessibility\n")
    if not result.violations:
        sections.append("No accessibility violations found.\n")
    else:
        sections.append(f"{len(result.violations)} rule(s) violated.\n")
        sections.append("| Rule | Impact | Nodes | Help |")
        sections.append("|------|--------|-------|------|")
        for v in result.violations:
            impact = _worst_impact([n.impact for n in v.nodes])
            sections.append(f"| `{v.id}` | {impact} | {len(v.nodes)} | {v.help} |")
        sections.append("")
        for v in result.violations:
            sections.append(f"### {v.id}\n")
            sections.append(f"{v.description}\n")
            for node in v.nodes:
                snippet = node.html.replace("`", "'")
                sections.append(f"- `{snippet}`")
                if node.failure_summary:
                    summary = " ".join(node.failure_summary.split())
                    sections.append(f"  - {summary}")
            sections.append("")

    # Responsiveness
    sections.append("## Responsiveness\n")
    if not result.responsiveness:
        sections.append("No viewports were evaluated.\n")
    else:
        sections.append("| Viewport | Horizontal overflow | Oversized images |")
        sections.append("|----------|---------------------|------------------|")
        for r in result.responsiveness:
            overflow = "yes" if r.has_horizontal_overflow else "no"
            oversize = "yes" if r.images_oversize else "no"
            sections.append(f"| {r.viewport_name} | {overflow} | {oversize} |")
        sections.append("")

    # Performance
    if result.performance:
        perf = result.performance
        icon = _CATEGORY_ICON[perf.overall_category]
        sections.append("## Performance\n")
        sections.append(f"**Overall:** {icon} {perf.overall_category.value}\n")
        sections.append("| Metric | Value | Category |")
        sections.append("|--------|-------|----------|")
        for name, metric in perf.metrics.items():
            unit = "" if name == "cumulative-layout-shift" else " ms"
            value = f"{metric.percentile_value:g}{unit}"
            sections.append(
                f"| {name} | {value} | {_CATEGORY_ICON[metric.category]} {metric.category.value} |"
            )
        sections.append("")
        scores = perf.category_scores
        sections.append("**Lighthouse scores:**")
        sections.append(f"- Performance: {_fmt_score(scores.performance)}")
        sections.append(f"- Accessibility: {_fmt_score(scores.accessibility)}")
        sections.append(f"- Best practices: {_fmt_score(scores.best_practices)}")
        sections.append(f"- SEO: {_fmt_score(scores.seo)}")
        sections.append("")

    # Degraded stages
    if result.failures:
        sections.append("## Stages With Errors\n")
        for failure in result.failures:
            sections.append(f"- **{failure.stage}** ({failure.kind.value}): {failure.message}")
        sections.append("")

    return "\n".join(sections)
