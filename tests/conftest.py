"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from pageaudit.schemas.config import ServiceConfig
from pageaudit.shared.sessions import SessionRegistry

# Root of the test fixtures
FIXTURES_DIR = Path(__file__).parent / "fixtures"

AXE_RESULTS: dict[str, Any] = {
    "violations": [
        {
            "id": "image-alt",
            "description": "Ensures <img> elements have alternate text",
            "help": "Images must have alternate text",
            "nodes": [
                {
                    "impact": "critical",
                    "html": "<img src=\"hero.jpg\">",
                    "failureSummary": "Fix any of the following:\n  Element does not have an alt attribute",
                },
                {"html": "<img src=\"logo.png\">"},
            ],
        },
        {"id": "html-has-lang", "nodes": []},
    ]
}


class FakeBrowser:
    """Stands in for BrowserManager; records whether it was entered and closed."""

    def __init__(self, page: Any = None, *, port: int = 9222, fail_on_enter: Exception | None = None) -> None:
        self.page = page if page is not None else make_page()
        self.port = port
        self.fail_on_enter = fail_on_enter
        self.entered = False
        self.closed = False

    async def __aenter__(self) -> "FakeBrowser":
        if self.fail_on_enter is not None:
            raise self.fail_on_enter
        self.entered = True
        return self

    async def __aexit__(self, *args: object) -> None:
        self.closed = True

    async def new_page(self) -> Any:
        return self.page


class FakeProcess:
    """Stands in for a Lighthouse subprocess; ``delay`` makes it hang."""

    def __init__(self, stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0, delay: float = 0) -> None:
        self._stdout = stdout
        self._stderr = stderr
        self._final_returncode = returncode
        self._delay = delay
        self.returncode: int | None = None
        self.killed = False

    async def communicate(self) -> tuple[bytes, bytes]:
        if self._delay:
            await asyncio.sleep(self._delay)
        self.returncode = self._final_returncode
        return self._stdout, self._stderr

    def kill(self) -> None:
        self.killed = True
        self.returncode = -9

    async def wait(self) -> int:
        return self.returncode


def make_page(
    axe_results: dict[str, Any] | None = None,
    probes: list[Any] | None = None,
) -> AsyncMock:
    """Build a fake Playwright page.

    ``probes`` are returned, in order, by the layout probe evaluations; an
    Exception instance in the list is raised instead.
    """
    page = AsyncMock()
    remaining = list(probes) if probes is not None else [
        {"overflow": False, "imagesOversize": False}
    ] * 4

    async def evaluate(script: str, *args: Any) -> Any:
        if "axe.run" in script:
            return axe_results if axe_results is not None else AXE_RESULTS
        probe = remaining.pop(0)
        if isinstance(probe, Exception):
            raise probe
        return probe

    page.evaluate.side_effect = evaluate
    return page


@pytest.fixture
def config() -> ServiceConfig:
    """A config with no settle delay and short timeouts."""
    return ServiceConfig(
        settle_delay_ms=0,
        scan_timeout=5,
        performance_timeout=5,
        lighthouse_timeout=5,
    )


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def tmp_config(tmp_path: Path) -> Path:
    """Write a minimal valid config YAML and return its path."""
    cfg = tmp_path / "pageaudit.yml"
    cfg.write_text(
        """\
port: 4100
settle_delay_ms: 50
lighthouse_command: "npx lighthouse"
"""
    )
    return cfg
