"""Chromium page lifecycle for CLI runs."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Tuple

from playwright.async_api import Page, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class BrowserConfig:
    headless: bool = True
    slow_mo: float = 0
    action_timeout_ms: int = 10000
    navigation_timeout_ms: int = 45000
    viewport: Tuple[int, int] = (1280, 720)
    locale: Optional[str] = None


@asynccontextmanager
async def open_page(config: Optional[BrowserConfig] = None) -> AsyncIterator[Page]:
    """Launch Chromium, yield a fresh page and tear everything down afterwards."""
    config = config or BrowserConfig()
    width, height = config.viewport
    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(
            headless=config.headless, slow_mo=config.slow_mo
        )
        try:
            context = await browser.new_context(
                viewport={"width": width, "height": height}, locale=config.locale
            )
            page = await context.new_page()
            page.set_default_timeout(config.action_timeout_ms)
            page.set_default_navigation_timeout(config.navigation_timeout_ms)
            yield page
        finally:
            await browser.close()


async def goto_and_settle(
    page: Page, url: str, logger: Optional[logging.Logger] = None
) -> str:
    """Navigate and wait for the network to go quiet.

    Pages that keep polling never reach ``networkidle``; for those the ``load``
    state reached by ``goto`` is accepted.
    """
    logger = logger or LOGGER
    await page.goto(url, wait_until="load")
    try:
        await page.wait_for_load_state("networkidle")
    except PlaywrightTimeoutError:
        logger.debug("Network never went idle on %s; continuing after load", page.url)
    return page.url


__all__ = ["BrowserConfig", "open_page", "goto_and_settle"]
