"""Accessibility and responsiveness scanner.

Loads the target into a fresh Chromium page, runs axe-core in-page, then
resizes the viewport through a fixed list of device profiles looking for
horizontal overflow and oversized images.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, NamedTuple
from urllib.parse import urlparse

from playwright.async_api import Page

from pageaudit.errors import LoadFailure, ScanFailure
from pageaudit.schemas.analysis import (
    AccessibilityViolation,
    FailureKind,
    ResponsivenessResult,
    ScanOutcome,
    StageFailure,
    ViolationNode,
)
from pageaudit.schemas.config import ServiceConfig
from pageaudit.shared.browser import BrowserManager

logger = logging.getLogger(__name__)


class Viewport(NamedTuple):
    name: str
    width: int
    height: int


# Evaluated strictly in this order.
VIEWPORTS: tuple[Viewport, ...] = (
    Viewport("Desktop Large", 1920, 1080),
    Viewport("Desktop Standard", 1280, 800),
    Viewport("Tablet", 768, 1024),
    Viewport("Phone", 375, 667),
)

_LAYOUT_PROBE = """async () => {
    // Let two frames pass so the resize has been laid out and painted.
    await new Promise(r => requestAnimationFrame(() => requestAnimationFrame(r)));
    const body = document.body || document.documentElement;
    return {
        overflow: body.scrollWidth > window.innerWidth,
        imagesOversize: Array.from(document.images).some(
            img => img.naturalWidth > img.clientWidth
        ),
    };
}"""


def validate_url(url: str) -> str:
    """Return ``url`` stripped, or raise ``LoadFailure`` if it is not an http(s) URL."""
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise LoadFailure(f"Invalid URL scheme: {parsed.scheme or '(none)'} (must be http or https)")
    if not parsed.netloc:
        raise LoadFailure(f"Invalid URL format: missing host in {url!r}")
    return url


def normalize_violations(raw: list[dict[str, Any]]) -> list[AccessibilityViolation]:
    """Convert axe-core violations into our model, blanking absent fields."""
    violations: list[AccessibilityViolation] = []
    for v in raw or []:
        nodes = [
            ViolationNode(
                impact=node.get("impact") or "",
                html=node.get("html") or "",
                failure_summary=node.get("failureSummary") or "",
            )
            for node in v.get("nodes") or []
        ]
        violations.append(
            AccessibilityViolation(
                id=v.get("id") or "",
                description=v.get("description") or "",
                help=v.get("help") or "",
                nodes=nodes,
            )
        )
    return violations


class Scanner:
    """Runs the load, axe and responsiveness stages against one target.

    ``browser_factory`` returns an un-entered ``BrowserManager``; the scanner
    enters it once per scan so every scan owns its own browser process.
    """

    def __init__(
        self,
        config: ServiceConfig,
        browser_factory: Callable[[], BrowserManager] | None = None,
    ) -> None:
        self.config = config
        self._browser_factory = browser_factory or (
            lambda: BrowserManager(
                headless=config.headless,
                args=config.chromium_args,
                navigation_timeout_ms=config.navigation_timeout_ms,
            )
        )

    async def scan(self, *, html: str | None = None, url: str | None = None) -> ScanOutcome:
        """Scan raw ``html`` or a ``url``; stage failures end up in ``outcome.failures``.

        Only a rejected target skips the later stages. A navigation error
        such as a ``networkidle`` timeout is recorded, and whatever the page
        holds is still audited.
        """
        outcome = ScanOutcome()

        async with self._browser_factory() as browser:
            page = await browser.new_page()

            try:
                if html is None:
                    url = validate_url(url or "")
            except LoadFailure as exc:
                logger.warning("Rejected target: %s", exc)
                outcome.failures.append(
                    StageFailure(stage="load", kind=FailureKind.LOAD, message=str(exc))
                )
                return outcome

            try:
                await self._load(page, html=html, url=url)
            except LoadFailure as exc:
                logger.warning("Content load failed, auditing what loaded: %s", exc)
                outcome.failures.append(
                    StageFailure(stage="load", kind=FailureKind.LOAD, message=str(exc))
                )

            try:
                outcome.violations = await self._run_axe(page)
            except ScanFailure as exc:
                logger.warning("Accessibility scan failed: %s", exc)
                outcome.failures.append(
                    StageFailure(stage="accessibility", kind=FailureKind.SCAN, message=str(exc))
                )

            failure = await self._sweep(page, outcome.responsiveness)
            if failure is not None:
                outcome.failures.append(failure)

        return outcome

    async def _load(self, page: Page, *, html: str | None, url: str | None) -> None:
        try:
            if html is not None:
                await page.set_content(html, wait_until="networkidle")
            else:
                await page.goto(url, wait_until="networkidle")
        except Exception as exc:
            what = "set HTML content" if html is not None else "load URL"
            raise LoadFailure(f"Failed to {what}: {exc}") from exc

    async def _run_axe(self, page: Page) -> list[AccessibilityViolation]:
        try:
            if self.config.axe_script_path:
                await page.add_script_tag(path=self.config.axe_script_path)
            else:
                await page.add_script_tag(url=self.config.axe_script_url)
            results = await page.evaluate("() => axe.run()")
        except Exception as exc:
            raise ScanFailure(f"axe-core run failed: {exc}") from exc

        violations = normalize_violations((results or {}).get("violations", []))
        logger.debug("axe-core reported %d violations", len(violations))
        return violations

    async def _sweep(
        self, page: Page, results: list[ResponsivenessResult]
    ) -> StageFailure | None:
        """Append one result per viewport to ``results``; stop at the first failure."""
        for vp in VIEWPORTS:
            try:
                await page.set_viewport_size({"width": vp.width, "height": vp.height})
                await page.wait_for_timeout(self.config.settle_delay_ms)
                probe = await page.evaluate(_LAYOUT_PROBE)
            except Exception as exc:
                logger.warning("Responsiveness sweep stopped at %s: %s", vp.name, exc)
                return StageFailure(
                    stage="responsiveness",
                    kind=FailureKind.SCAN,
                    message=f"{vp.name}: {exc}",
                )
            results.append(
                ResponsivenessResult(
                    viewport_name=vp.name,
                    has_horizontal_overflow=bool(probe.get("overflow")),
                    images_oversize=bool(probe.get("imagesOversize")),
                )
            )
        return None
