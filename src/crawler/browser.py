from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional

from src.collectors.dom import SoupDom

logger = logging.getLogger(__name__)

DEFAULT_NAVIGATION_TIMEOUT_MS = 45000
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)


class PageStatusError(Exception):
    def __init__(self, url: str, status: int):
        super().__init__(f"Navigation to {url} answered with HTTP {status}")
        self.url = url
        self.status = status


def _run_query(html: str, query_fn: Callable[..., Any], args: tuple, kwargs: dict) -> Any:
    return query_fn(SoupDom(html), *args, **kwargs)


class PageRenderer:
    """One loaded page. Every call that talks to the browser is a suspension point."""

    async def navigate(self, url: str) -> None:
        raise NotImplementedError

    async def wait_for_load(self) -> None:
        raise NotImplementedError

    async def content(self) -> str:
        raise NotImplementedError

    async def query_all(self, selector: str) -> list[Any]:
        raise NotImplementedError

    async def click(self, element: Any) -> None:
        raise NotImplementedError

    async def wait_for_selector(self, selector: str) -> None:
        raise NotImplementedError

    async def evaluate(self, query_fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a selector-based extraction function against the current DOM."""
        html = await self.content()
        return await asyncio.to_thread(_run_query, html, query_fn, args, kwargs)


class PlaywrightRenderer(PageRenderer):
    def __init__(self, page: Any, timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS):
        self._page = page
        self._timeout_ms = timeout_ms

    async def navigate(self, url: str) -> None:
        response = await self._page.goto(url, wait_until="domcontentloaded", timeout=self._timeout_ms)
        if response is not None and response.status >= 500:
            raise PageStatusError(url, response.status)

    async def wait_for_load(self) -> None:
        await self._page.wait_for_load_state("load", timeout=self._timeout_ms)

    async def content(self) -> str:
        return await self._page.content()

    async def query_all(self, selector: str) -> list[Any]:
        return await self._page.query_selector_all(selector)

    async def click(self, element: Any) -> None:
        await element.click(timeout=self._timeout_ms)

    async def wait_for_selector(self, selector: str) -> None:
        await self._page.wait_for_selector(selector, timeout=self._timeout_ms)


class BrowserSession:
    """Owns one Chromium instance; every job gets its own isolated context."""

    def __init__(
        self,
        *,
        headless: bool = True,
        proxy_url: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ):
        self.headless = headless
        self.proxy_url = proxy_url if proxy_url is not None else os.getenv("CRAWL_PROXY_URL") or None
        self.timeout_ms = timeout_ms or int(
            os.getenv("CRAWL_NAVIGATION_TIMEOUT_MS", str(DEFAULT_NAVIGATION_TIMEOUT_MS))
        )
        self._playwright: Any = None
        self._browser: Any = None

    async def __aenter__(self) -> "BrowserSession":
        try:
            from playwright.async_api import async_playwright
        except ImportError as exc:
            raise RuntimeError(
                "Playwright is required for rendering product pages. "
                "Install dependencies and browser: pip install -e . && python -m playwright install chromium"
            ) from exc

        self._playwright = await async_playwright().start()
        launch_kwargs: dict[str, Any] = {"headless": self.headless}
        if self.proxy_url:
            launch_kwargs["proxy"] = {"server": self.proxy_url}
        self._browser = await self._playwright.chromium.launch(**launch_kwargs)
        logger.info("Browser launched (headless=%s, proxy=%s)", self.headless, bool(self.proxy_url))
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        try:
            if self._browser is not None:
                await self._browser.close()
        finally:
            if self._playwright is not None:
                await self._playwright.stop()

    @asynccontextmanager
    async def open_page(self) -> AsyncIterator[PageRenderer]:
        context = await self._browser.new_context(locale="en-US", user_agent=USER_AGENT)
        try:
            page = await context.new_page()
            yield PlaywrightRenderer(page, self.timeout_ms)
        finally:
            await context.close()
