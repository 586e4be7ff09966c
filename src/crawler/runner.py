from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncContextManager, Awaitable, Callable

from src.crawler.browser import PageRenderer
from src.crawler.queue import CrawlRequest, RequestQueue

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 50
DEFAULT_MAX_REQUEST_RETRIES = 3
IDLE_POLL_SECONDS = 0.05

PageHandler = Callable[[CrawlRequest, PageRenderer], Awaitable[Any]]
PageOpener = Callable[[], AsyncContextManager[PageRenderer]]


@dataclass
class CrawlStats:
    total_requests: int
    handled_requests: int
    failed_requests: int
    retried_requests: int


class PlaywrightCrawler:
    def __init__(
        self,
        queue: RequestQueue,
        handle_page: PageHandler,
        open_page: PageOpener,
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        max_request_retries: int = DEFAULT_MAX_REQUEST_RETRIES,
    ):
        self.queue = queue
        self.handle_page = handle_page
        self.open_page = open_page
        self.max_concurrency = max(1, max_concurrency)
        self.max_request_retries = max_request_retries
        self._retried = 0

    async def run(self) -> CrawlStats:
        workers = [asyncio.create_task(self._worker()) for _ in range(self.max_concurrency)]
        await asyncio.gather(*workers)
        stats = CrawlStats(
            total_requests=self.queue.total_count,
            handled_requests=self.queue.handled_count,
            failed_requests=len(self.queue.failed),
            retried_requests=self._retried,
        )
        logger.info(
            "Crawl finished: %d handled, %d failed, %d retries, %d total",
            stats.handled_requests,
            stats.failed_requests,
            stats.retried_requests,
            stats.total_requests,
        )
        return stats

    async def _worker(self) -> None:
        while True:
            request = self.queue.fetch_next()
            if request is None:
                if self.queue.is_finished():
                    return
                # another worker may still enqueue links
                await asyncio.sleep(IDLE_POLL_SECONDS)
                continue
            await self._process(request)

    async def _process(self, request: CrawlRequest) -> None:
        try:
            async with self.open_page() as renderer:
                await renderer.navigate(request.url)
                logger.info("Page opened. label=%s url=%s", request.label, request.url)
                await self.handle_page(request, renderer)
        except Exception as exc:
            request.error_messages.append(str(exc) or type(exc).__name__)
            if request.retry_count < self.max_request_retries:
                request.retry_count += 1
                self._retried += 1
                logger.warning(
                    "Request %s failed (attempt %d), retrying: %s", request.url, request.retry_count, exc
                )
                self.queue.reclaim(request)
            else:
                logger.error(
                    "Request %s failed %d times and will not be retried: %s",
                    request.url,
                    request.retry_count + 1,
                    "; ".join(request.error_messages),
                )
                self.queue.mark_failed(request)
            return
        self.queue.mark_handled(request)
