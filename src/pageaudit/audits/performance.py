"""Performance audit runner — Lighthouse against a dedicated Chromium.

Raw HTML is published to the session registry so Lighthouse can fetch it
over loopback, Lighthouse is pointed at a freshly launched remote-debuggable
browser, and the JSON report is reduced to five classified metrics plus the
four category scores.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any, NamedTuple

from pageaudit.errors import AuditUnavailable
from pageaudit.schemas.analysis import (
    Category,
    CategoryScores,
    PerformanceMetric,
    PerformanceReport,
)
from pageaudit.schemas.config import ServiceConfig
from pageaudit.shared.browser import DebuggableBrowser
from pageaudit.shared.sessions import SessionRegistry

logger = logging.getLogger(__name__)

LIGHTHOUSE_CATEGORIES = ("performance", "accessibility", "best-practices", "seo")


class MetricSpec(NamedTuple):
    audit_id: str  # Lighthouse audit the raw value comes from
    good: float  # upper bound (inclusive) for GOOD
    needs_improvement: float  # upper bound (inclusive) for NEEDS_IMPROVEMENT
    whole_ms: bool = True


# Reported metric name -> how to read and classify it.
METRICS: dict[str, MetricSpec] = {
    "first-contentful-paint": MetricSpec("first-contentful-paint", 1800, 3000),
    "largest-contentful-paint": MetricSpec("largest-contentful-paint", 2500, 4000),
    "cumulative-layout-shift": MetricSpec("cumulative-layout-shift", 0.10, 0.25, whole_ms=False),
    "interaction-to-next-paint": MetricSpec("total-blocking-time", 200, 500),
    "time-to-first-byte": MetricSpec("server-response-time", 800, 1800),
}


def classify(value: float, good: float, needs_improvement: float) -> Category:
    if value <= good:
        return Category.GOOD
    if value <= needs_improvement:
        return Category.NEEDS_IMPROVEMENT
    return Category.POOR


def overall_category(score: float) -> Category:
    """Bucket Lighthouse's 0-1 performance score."""
    if score >= 0.9:
        return Category.GOOD
    if score >= 0.5:
        return Category.NEEDS_IMPROVEMENT
    return Category.POOR


def parse_report(report: dict[str, Any]) -> PerformanceReport:
    """Reduce a Lighthouse JSON report to a ``PerformanceReport``.

    Raises ``AuditUnavailable`` if the run errored or any needed value is missing.
    """
    runtime_error = report.get("runtimeError")
    if runtime_error:
        raise AuditUnavailable(
            f"Lighthouse runtime error: {runtime_error.get('code', '')} "
            f"{runtime_error.get('message', '')}".strip()
        )

    audits = report.get("audits") or {}
    metrics: dict[str, PerformanceMetric] = {}
    for name, spec in METRICS.items():
        raw = (audits.get(spec.audit_id) or {}).get("numericValue")
        if not isinstance(raw, (int, float)):
            raise AuditUnavailable(f"Lighthouse report has no value for {spec.audit_id}")
        # Classify the value we report so the two can never disagree.
        value = float(round(raw)) if spec.whole_ms else round(float(raw), 4)
        metrics[name] = PerformanceMetric(
            percentile_value=value,
            category=classify(value, spec.good, spec.needs_improvement),
        )

    categories = report.get("categories") or {}

    def score(category_id: str) -> float | None:
        return (categories.get(category_id) or {}).get("score")

    performance_score = score("performance")
    if performance_score is None:
        raise AuditUnavailable("Lighthouse report has no performance score")

    return PerformanceReport(
        overall_category=overall_category(performance_score),
        metrics=metrics,
        category_scores=CategoryScores(
            performance=performance_score,
            accessibility=score("accessibility"),
            best_practices=score("best-practices"),
            seo=score("seo"),
        ),
    )


class PerformanceAuditRunner:
    """Runs one Lighthouse audit per call, with its own browser and session."""

    def __init__(
        self,
        config: ServiceConfig,
        registry: SessionRegistry,
        debug_browser_factory: Callable[[], DebuggableBrowser] | None = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self._browser_factory = debug_browser_factory or (
            lambda: DebuggableBrowser(headless=config.headless, args=config.chromium_args)
        )

    async def run(self, html: str) -> PerformanceReport:
        """Audit raw ``html``; the published session is revoked on every exit path."""
        if not html:
            raise AuditUnavailable("No HTML to audit")

        with self.registry.exposed(html) as session_id:
            url = self.registry.url_for(self.config.resolved_exposure_base_url, session_id)
            logger.info("Running Lighthouse for session %s", session_id)
            return await self.audit_url(url)

    async def audit_url(self, url: str) -> PerformanceReport:
        """Audit a URL Lighthouse can reach directly."""
        try:
            async with self._browser_factory() as browser:
                report = await self._run_lighthouse(url, browser.port)
        except AuditUnavailable:
            raise
        except Exception as exc:
            raise AuditUnavailable(f"Could not launch audit browser: {exc}") from exc
        return parse_report(report)

    async def _run_lighthouse(self, url: str, port: int) -> dict[str, Any]:
        cmd = [
            *self.config.lighthouse_command,
            url,
            f"--port={port}",
            "--output=json",
            "--quiet",
            f"--only-categories={','.join(LIGHTHOUSE_CATEGORIES)}",
        ]
        logger.debug("Lighthouse command: %s", " ".join(cmd))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
            )
        except OSError as exc:
            raise AuditUnavailable(f"Could not start Lighthouse: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.config.lighthouse_timeout
            )
        except asyncio.TimeoutError:
            raise AuditUnavailable(
                f"Lighthouse timed out after {self.config.lighthouse_timeout:g}s"
            ) from None
        finally:
            if process.returncode is None:
                process.kill()
                await process.wait()

        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip()[-500:]
            raise AuditUnavailable(
                f"Lighthouse exited with code {process.returncode}: {message}"
            )

        output = stdout.decode(errors="replace").strip()
        if not output:
            raise AuditUnavailable("Lighthouse returned no report")
        try:
            return json.loads(output)
        except json.JSONDecodeError:
            # Some wrappers (npx) print a banner before the JSON.
            start = output.find("{")
            if start == -1:
                raise AuditUnavailable("Lighthouse output was not JSON") from None
            try:
                return json.loads(output[start:])
            except json.JSONDecodeError as exc:
                raise AuditUnavailable(f"Could not parse Lighthouse JSON: {exc}") from exc
