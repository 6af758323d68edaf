"""Analysis orchestrator — validates, runs the stages, merges the result.

Stage failures never abort the request: each stage's outcome is either a
value or a ``StageFailure``, and a failure degrades that stage's contribution
to empty/null while the other stages still run.
"""

from __future__ import annotations

import asyncio
import logging

from pageaudit.audits.performance import PerformanceAuditRunner
from pageaudit.audits.scanner import Scanner
from pageaudit.errors import AuditUnavailable
from pageaudit.schemas.analysis import (
    AnalysisRequest,
    AnalysisResult,
    FailureKind,
    PerformanceReport,
    ScanOutcome,
    StageFailure,
)
from pageaudit.schemas.config import ServiceConfig

logger = logging.getLogger(__name__)


class AnalysisOrchestrator:
    """Coordinates the scanner and the performance runner for one request.

    Pipeline flow:
        validate → scan (axe + responsiveness) → performance (optional) → merge
    """

    def __init__(
        self,
        config: ServiceConfig,
        scanner: Scanner,
        performance: PerformanceAuditRunner,
    ) -> None:
        self.config = config
        self.scanner = scanner
        self.performance = performance

    async def analyse(self, request: AnalysisRequest) -> AnalysisResult:
        """Run every applicable stage; raises only ``InvalidRequest``."""
        request.validate_target()
        target = "html" if request.html is not None else request.url
        logger.info(
            "Analysing %s (performance=%s)", target, request.performance_required
        )

        result = AnalysisResult()

        match await self._run_scan(request):
            case ScanOutcome() as outcome:
                result.violations = outcome.violations
                result.responsiveness = outcome.responsiveness
                result.failures.extend(outcome.failures)
            case StageFailure() as failure:
                result.failures.append(failure)

        if request.performance_required:
            match await self._run_performance(request):
                case PerformanceReport() as report:
                    result.performance = report
                case StageFailure() as failure:
                    result.failures.append(failure)
                case None:
                    pass

        for failure in result.failures:
            logger.warning(
                "Stage %s degraded (%s): %s", failure.stage, failure.kind.value, failure.message
            )
        return result

    async def _run_scan(self, request: AnalysisRequest) -> ScanOutcome | StageFailure:
        try:
            return await asyncio.wait_for(
                self.scanner.scan(html=request.html, url=request.url),
                timeout=self.config.scan_timeout,
            )
        except asyncio.TimeoutError:
            return StageFailure(
                stage="scan",
                kind=FailureKind.TIMEOUT,
                message=f"Scan timed out after {self.config.scan_timeout:g}s",
            )
        except Exception as exc:
            logger.exception("Scanner failed")
            return StageFailure(stage="scan", kind=FailureKind.SCAN, message=str(exc))

    async def _run_performance(
        self, request: AnalysisRequest
    ) -> PerformanceReport | StageFailure | None:
        """Return ``None`` when no performance audit applies to this request."""
        if request.html is not None:
            audit = self.performance.run(request.html)
        elif request.url is not None and self.config.audit_urls_directly:
            audit = self.performance.audit_url(request.url)
        else:
            logger.info("Skipping performance audit: only raw HTML is audited")
            return None

        try:
            return await asyncio.wait_for(audit, timeout=self.config.performance_timeout)
        except asyncio.TimeoutError:
            return StageFailure(
                stage="performance",
                kind=FailureKind.TIMEOUT,
                message=f"Performance audit timed out after {self.config.performance_timeout:g}s",
            )
        except AuditUnavailable as exc:
            return StageFailure(stage="performance", kind=FailureKind.AUDIT, message=str(exc))
        except Exception as exc:
            logger.exception("Performance audit failed")
            return StageFailure(stage="performance", kind=FailureKind.AUDIT, message=str(exc))
