# Copyright 2026 Firefly Software Solutions Inc
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Browser session management for pagecast.

This module provides the BrowserManager class which handles the lifecycle
of the Playwright Chromium instance being recorded: launching, opening a
page with a fixed viewport, navigating, opening a CDP session for the
screencast, and cleanup.
"""

from __future__ import annotations

from typing import Any, List, Optional

from playwright.async_api import Browser, BrowserContext, CDPSession, Page, async_playwright

from pagecast.exceptions import BrowserError, NavigationError
from pagecast.utils.logger import logger


class BrowserManager:
    """
    Manages the Playwright Chromium instance for one recording.

    Chromium is required: the screencast is driven through the Chrome
    DevTools Protocol.

    Attributes:
        headless: Whether the browser runs without a visible window
        width: Viewport width in CSS pixels
        height: Viewport height in CSS pixels
        launch_options: Additional Playwright launch options

    Example:
        >>> manager = BrowserManager(headless=True, width=1080, height=1920)
        >>> await manager.start()
        >>> await manager.goto("https://example.com")
        >>> session = await manager.new_cdp_session()
        >>> await manager.stop()
    """

    def __init__(
        self,
        headless: bool = True,
        width: int = 1080,
        height: int = 1920,
        **launch_options: Any,
    ) -> None:
        """
        Initialize the browser manager with configuration.

        Args:
            headless: Whether to run the browser without a window. Default: True
            width: Viewport width. Default: 1080
            height: Viewport height. Default: 1920
            **launch_options: Additional Playwright launch options such as
                ``args`` or ``executable_path``
        """
        self.headless = headless
        self.width = width
        self.height = height
        self.launch_options = launch_options
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    async def start(self) -> None:
        """
        Start Chromium and open a page.

        This method:
        1. Initializes Playwright
        2. Launches Chromium
        3. Creates a context with a fixed viewport at device scale factor 1
        4. Opens a page

        Raises:
            BrowserError: If the browser fails to start
        """
        try:
            logger.info(f"Starting chromium browser (headless={self.headless})")
            self._playwright = await async_playwright().start()

            self._browser = await self._playwright.chromium.launch(
                headless=self.headless, **self.launch_options
            )

            self._context = await self._browser.new_context(
                viewport={"width": self.width, "height": self.height},
                device_scale_factor=1,
            )

            self._page = await self._context.new_page()

            logger.info("Browser started successfully")
        except Exception as e:
            logger.error(f"Failed to start browser: {e}")
            # Close whatever was opened before the failure
            await self._release()
            raise BrowserError(f"Failed to start browser: {e}") from e

    async def goto(self, url: str, timeout_ms: int = 60000) -> None:
        """
        Navigate the page and wait for DOMContentLoaded.

        Raises:
            NavigationError: If navigation fails or times out
        """
        page = self.page
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        except Exception as e:
            raise NavigationError(f"Failed to load {url}: {e}") from e

    async def new_cdp_session(self) -> CDPSession:
        """Open a Chrome DevTools Protocol session attached to the page."""
        page = self.page
        try:
            return await self.context.new_cdp_session(page)
        except Exception as e:
            raise BrowserError(f"Failed to create CDP session: {e}") from e

    async def stop(self) -> None:
        """
        Stop the browser and cleanup all resources. Safe to call twice.

        Every handle is closed even if an earlier close fails.

        Raises:
            BrowserError: If any cleanup step fails
        """
        if not (self._page or self._context or self._browser or self._playwright):
            return
        logger.info("Stopping browser")
        errors = await self._release()
        if errors:
            raise BrowserError(f"Failed to stop browser: {errors[0]}") from errors[0]
        logger.info("Browser stopped successfully")

    async def _release(self) -> List[Exception]:
        """Close page, context, browser and Playwright; return the failures."""
        steps = [
            ("page", self._page, "close"),
            ("context", self._context, "close"),
            ("browser", self._browser, "close"),
            ("playwright", self._playwright, "stop"),
        ]
        self._page = self._context = self._browser = self._playwright = None

        errors: List[Exception] = []
        for name, handle, method in steps:
            if handle is None:
                continue
            try:
                await getattr(handle, method)()
            except Exception as e:
                logger.error(f"Error closing {name}: {e}")
                errors.append(e)
        return errors

    @property
    def page(self) -> Page:
        """Get the current page."""
        if not self._page:
            raise BrowserError("No active page. Call start() first.")
        return self._page

    @property
    def context(self) -> BrowserContext:
        """Get the browser context."""
        if not self._context:
            raise BrowserError("Browser context not initialized. Call start() first.")
        return self._context

    async def __aenter__(self) -> "BrowserManager":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.stop()
