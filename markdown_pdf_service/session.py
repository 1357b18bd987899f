"""
Ownership of the shared Chromium process.

One ``RenderSessionManager`` holds at most one browser for its whole lifetime.
Concurrent callers share a single launch, each conversion gets its own
browser context, and contexts are closed on every exit path.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional, Sequence

from playwright.async_api import Error as PlaywrightError, async_playwright

from .config import Config
from .errors import BrowserCrashedError, BrowserLaunchError, RenderError
from .log import logger


CRASH_MARKERS = (
    "Connection closed",
    "Browser has been closed",
    "Target closed",
    "Target page, context or browser has been closed",
    "crashed",
    "Protocol error",
)


def looks_like_crash(error: BaseException) -> bool:
    """True when a Playwright error message says the browser went away."""
    message = str(error)
    return any(marker in message for marker in CRASH_MARKERS)


class BrowserProcess:
    """A launched Chromium browser together with the Playwright driver that started it."""

    def __init__(self, browser, playwright=None):
        self.browser = browser
        self.playwright = playwright
        self.launched_at = time.monotonic()

    def is_alive(self) -> bool:
        return self.browser.is_connected()

    async def new_context(self):
        # Service workers would answer requests without passing the admission filter
        return await self.browser.new_context(service_workers="block")

    async def close(self) -> None:
        """Close the browser, then stop the driver. Errors are logged, not raised."""
        try:
            if self.browser.is_connected():
                await self.browser.close()
        except PlaywrightError as e:
            logger.warning(f"Error closing browser: {e}")
        if self.playwright is not None:
            try:
                await self.playwright.stop()
            except PlaywrightError as e:
                logger.warning(f"Error stopping Playwright: {e}")


async def launch_chromium(browser_args: Sequence[str]) -> BrowserProcess:
    """Launch a fresh headless Chromium instance."""
    playwright = await async_playwright().start()
    try:
        browser = await playwright.chromium.launch(headless=True, args=list(browser_args))
    except BaseException:
        await playwright.stop()
        raise
    browser.on("disconnected", lambda _: logger.warning("Chromium browser disconnected"))
    return BrowserProcess(browser, playwright)


Launcher = Callable[[], Awaitable[BrowserProcess]]


class RenderSessionManager:
    """Lazily launches, shares and tears down the browser process."""

    def __init__(self, config: Optional[Config] = None, launcher: Optional[Launcher] = None):
        self.config = config or Config()
        self._launcher = launcher or self._default_launcher
        self._process: Optional[BrowserProcess] = None
        self._launch_task: Optional[asyncio.Task] = None
        self._shutdown_task: Optional[asyncio.Task] = None
        self._open_contexts = 0
        self.launch_count = 0

    async def _default_launcher(self) -> BrowserProcess:
        return await launch_chromium(self.config.get_browser_args())

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.is_alive()

    @property
    def is_launching(self) -> bool:
        return self._launch_task is not None

    @property
    def open_contexts(self) -> int:
        """Number of rendering contexts currently handed out."""
        return self._open_contexts

    async def _launch(self) -> BrowserProcess:
        self.launch_count += 1
        logger.debug(f"Launching Chromium browser (launch #{self.launch_count})")
        try:
            process = await self._launcher()
            self._process = process
        except Exception as e:
            logger.error(f"Failed to launch browser: {e}")
            raise BrowserLaunchError(f"Failed to launch browser: {e}", cause=e) from e
        finally:
            self._launch_task = None
        logger.success("Chromium browser launched successfully")
        return process

    async def _discard(self, process: BrowserProcess) -> None:
        """Drop a process that is no longer connected."""
        if self._process is not process:
            # Another caller already discarded it
            return
        self._process = None
        logger.warning("Browser connection stale, restarting...")
        await process.close()

    async def acquire_process(self) -> BrowserProcess:
        """Return the live shared process, launching it if needed.

        Concurrent callers await the same launch; if it fails they all get the same
        BrowserLaunchError and the next call tries again.
        """
        while True:
            if self._shutdown_task is not None:
                # Never hand out a process that is being torn down
                await asyncio.shield(self._shutdown_task)
                continue

            process = self._process
            if process is not None:
                if process.is_alive():
                    return process
                await self._discard(process)
                continue

            if self._launch_task is None:
                task = asyncio.create_task(self._launch())
                # Mark the exception retrieved even if every waiter was cancelled
                task.add_done_callback(lambda t: t.cancelled() or t.exception())
                self._launch_task = task
            # Shielded so a cancelled waiter does not cancel everyone's launch
            await asyncio.shield(self._launch_task)

    @asynccontextmanager
    async def session(self) -> AsyncIterator:
        """Open an isolated browser context for one conversion and always close it."""
        process = await self.acquire_process()
        try:
            context = await process.new_context()
        except PlaywrightError as e:
            if looks_like_crash(e) or not process.is_alive():
                raise BrowserCrashedError(f"Browser died while opening a rendering context: {e}", cause=e) from e
            raise RenderError(f"Failed to open a rendering context: {e}", cause=e) from e

        self._open_contexts += 1
        try:
            yield context
        finally:
            self._open_contexts -= 1
            try:
                await context.close()
            except PlaywrightError as e:
                logger.warning(f"Error closing rendering context: {e}")

    async def shutdown(self) -> None:
        """Close the shared process. Waits for an in-flight launch to settle first.

        Concurrent calls share one teardown, and acquire_process() waits for it to
        finish so no caller is handed the process being closed.
        """
        if self._shutdown_task is None:
            task = asyncio.create_task(self._shutdown())
            task.add_done_callback(lambda t: t.cancelled() or t.exception())
            self._shutdown_task = task
        await asyncio.shield(self._shutdown_task)

    async def _shutdown(self) -> None:
        try:
            await self._close_process()
        finally:
            self._shutdown_task = None

    async def _close_process(self) -> None:
        while self._launch_task is not None:
            try:
                await asyncio.shield(self._launch_task)
            except BrowserLaunchError:
                # Reported to the caller that started the launch
                logger.debug("In-flight launch failed while shutting down")

        process, self._process = self._process, None
        if process is None:
            return

        logger.info("Closing Chromium browser")
        await process.close()
        logger.success("Chromium browser closed")
