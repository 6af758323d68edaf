"""Playwright browser managers — one browser process per ``async with`` block."""

from __future__ import annotations

import asyncio
import logging
import socket
import tempfile
from pathlib import Path
from types import TracebackType

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright

logger = logging.getLogger(__name__)


class BrowserManager:
    """Owns a Playwright Chromium instance for the lifetime of the block.

    Usage::

        async with BrowserManager() as bm:
            page = await bm.new_page()
            await page.set_content("<p>hi</p>")

    The browser and the Playwright driver are stopped on exit, whether the
    block finished normally, raised, or was cancelled.
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        args: list[str] | None = None,
        navigation_timeout_ms: int = 30_000,
    ) -> None:
        self.headless = headless
        self.args = list(args or [])
        self.navigation_timeout_ms = navigation_timeout_ms
        self._pw: Playwright | None = None
        self._browser: Browser | None = None

    def _launch_args(self) -> list[str]:
        return self.args

    async def __aenter__(self) -> "BrowserManager":
        self._pw = await async_playwright().start()
        try:
            self._browser = await self._pw.chromium.launch(
                headless=self.headless, args=self._launch_args()
            )
        except BaseException:
            await self._pw.stop()
            self._pw = None
            raise
        logger.info("Browser launched")
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            if self._browser:
                await self._browser.close()
        finally:
            self._browser = None
            if self._pw:
                await self._pw.stop()
                self._pw = None
        logger.info("Browser closed")

    async def new_page(self) -> Page:
        assert self._browser is not None, "BrowserManager not entered"
        page = await self._browser.new_page()
        page.set_default_navigation_timeout(self.navigation_timeout_ms)
        return page


class DebuggableBrowser(BrowserManager):
    """A Chromium instance exposing the DevTools protocol on a local port.

    Lighthouse drives this browser itself (navigation, throttling, tracing),
    so nothing else should open pages in it.

    Without an explicit ``port`` Chromium binds ``--remote-debugging-port=0``
    and the chosen port is read back from ``DevToolsActivePort`` in a
    throwaway profile directory, so concurrent audits never race for a port.
    """

    def __init__(self, *, port: int | None = None, **kwargs: object) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        self.port = port or 0
        self._profile: tempfile.TemporaryDirectory[str] | None = None
        self._context: BrowserContext | None = None

    def _launch_args(self) -> list[str]:
        return [*self.args, f"--remote-debugging-port={self.port}"]

    async def __aenter__(self) -> "DebuggableBrowser":
        self._profile = tempfile.TemporaryDirectory(prefix="pageaudit-devtools-")
        try:
            self._pw = await async_playwright().start()
            self._context = await self._pw.chromium.launch_persistent_context(
                self._profile.name, headless=self.headless, args=self._launch_args()
            )
            if not self.port:
                self.port = await read_devtools_port(Path(self._profile.name))
        except BaseException:
            await self._shutdown()
            raise
        logger.info("Browser launched, DevTools on port %d", self.port)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self._shutdown()
        logger.info("Browser closed")

    async def _shutdown(self) -> None:
        try:
            if self._context:
                await self._context.close()
        finally:
            self._context = None
            try:
                if self._pw:
                    await self._pw.stop()
            finally:
                self._pw = None
                if self._profile:
                    self._profile.cleanup()
                    self._profile = None


async def read_devtools_port(profile_dir: Path, timeout: float = 10.0) -> int:
    """Wait for Chromium to write ``DevToolsActivePort`` and return its port.

    The file's first line is the port, the second the browser target path.
    """
    port_file = profile_dir / "DevToolsActivePort"
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        if port_file.exists():
            first_line = port_file.read_text().partition("\n")[0].strip()
            if first_line.isdigit():
                return int(first_line)
        if loop.time() >= deadline:
            raise RuntimeError(f"Chromium did not report a DevTools port within {timeout:g}s")
        await asyncio.sleep(0.05)


def free_port() -> int:
    """Ask the OS for an unused TCP port on the loopback interface."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
