from __future__ import annotations

import argparse
import asyncio
import logging
import os
from datetime import datetime, timezone
from typing import Optional

from src.collectors.amazon_search import build_search_url
from src.crawler.browser import BrowserSession, PageRenderer
from src.crawler.queue import PRODUCT, START, CrawlRequest, RequestQueue
from src.crawler.runner import (
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_REQUEST_RETRIES,
    CrawlStats,
    PageOpener,
    PlaywrightCrawler,
)
from src.db.migrate import run_migrations
from src.db.repository import AnomalyRepository, OfferRepository, finish_crawl_run, start_crawl_run
from src.reporting.anomalies import AnomalyReporter
from src.reporting.snapshots import FileSnapshotStore, snapshot_store_from_env
from src.routes.context import CrawlContext
from src.routes.product import handle_product
from src.routes.start import handle_start

logger = logging.getLogger(__name__)

DEFAULT_MAX_SEARCH_PAGES = 1


async def route_request(request: CrawlRequest, renderer: PageRenderer, ctx: CrawlContext) -> object:
    if request.label == START:
        return await handle_start(request, renderer, ctx)
    if request.label == PRODUCT:
        return await handle_product(request, renderer, ctx)
    raise ValueError("Received a request without a label.")


async def crawl(
    keyword: str,
    ctx: CrawlContext,
    open_page: PageOpener,
    *,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    max_request_retries: int = DEFAULT_MAX_REQUEST_RETRIES,
    search_url: Optional[str] = None,
) -> CrawlStats:
    ctx.queue.add_request(build_search_url(keyword, search_url), START, {"keyword": keyword, "page": 1})

    async def handle_page(request: CrawlRequest, renderer: PageRenderer) -> object:
        return await route_request(request, renderer, ctx)

    crawler = PlaywrightCrawler(
        ctx.queue,
        handle_page,
        open_page,
        max_concurrency=max_concurrency,
        max_request_retries=max_request_retries,
    )
    logger.info("Starting the crawl for keyword %r.", keyword)
    return await crawler.run()


async def _crawl_with_browser(
    keyword: str,
    ctx: CrawlContext,
    *,
    max_concurrency: int,
    max_request_retries: int,
    headless: bool,
    proxy_url: Optional[str],
) -> CrawlStats:
    async with BrowserSession(headless=headless, proxy_url=proxy_url) as session:
        return await crawl(
            keyword,
            ctx,
            session.open_page,
            max_concurrency=max_concurrency,
            max_request_retries=max_request_retries,
        )


def run_crawl(
    keyword: str,
    *,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    max_request_retries: int = DEFAULT_MAX_REQUEST_RETRIES,
    max_search_pages: int = DEFAULT_MAX_SEARCH_PAGES,
    headless: bool = True,
    proxy_url: Optional[str] = None,
    snapshot_store: Optional[FileSnapshotStore] = None,
) -> CrawlStats:
    run_migrations()
    started_at = datetime.now(timezone.utc)
    crawl_run_id = start_crawl_run(keyword=keyword, started_at=started_at.isoformat())

    offer_store = OfferRepository(crawl_run_id)
    anomaly_store = AnomalyRepository(crawl_run_id)
    ctx = CrawlContext(
        queue=RequestQueue(),
        offer_store=offer_store,
        reporter=AnomalyReporter(snapshot_store or snapshot_store_from_env(), anomaly_store),
        max_search_pages=max_search_pages,
    )

    status = "SUCCESS"
    error_message: Optional[str] = None
    stats: Optional[CrawlStats] = None
    try:
        stats = asyncio.run(
            _crawl_with_browser(
                keyword,
                ctx,
                max_concurrency=max_concurrency,
                max_request_retries=max_request_retries,
                headless=headless,
                proxy_url=proxy_url,
            )
        )
        return stats
    except Exception as exc:
        status = "FAILED"
        error_message = str(exc)
        raise
    finally:
        finish_crawl_run(
            crawl_run_id,
            finished_at=datetime.now(timezone.utc).isoformat(),
            status=status,
            total_requests=ctx.queue.total_count,
            handled_requests=ctx.queue.handled_count,
            failed_requests=len(ctx.queue.failed),
            total_offers=offer_store.appended,
            total_anomalies=anomaly_store.appended,
            error_message=error_message,
        )


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() not in {"0", "false", "no"}


def main() -> None:
    parser = argparse.ArgumentParser(description="Crawl product offers for a search keyword.")
    parser.add_argument("--keyword", default=os.getenv("CRAWL_KEYWORD"))
    parser.add_argument(
        "--max-concurrency",
        type=int,
        default=int(os.getenv("CRAWL_MAX_CONCURRENCY", str(DEFAULT_MAX_CONCURRENCY))),
    )
    parser.add_argument(
        "--max-request-retries",
        type=int,
        default=int(os.getenv("CRAWL_MAX_REQUEST_RETRIES", str(DEFAULT_MAX_REQUEST_RETRIES))),
    )
    parser.add_argument(
        "--max-search-pages",
        type=int,
        default=int(os.getenv("CRAWL_MAX_SEARCH_PAGES", str(DEFAULT_MAX_SEARCH_PAGES))),
    )
    parser.add_argument("--headed", action="store_true", help="Run with visible browser")
    parser.add_argument("--proxy-url", default=os.getenv("CRAWL_PROXY_URL"))
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"))
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if not args.keyword:
        parser.error("Specify keyword in input.")

    stats = run_crawl(
        args.keyword,
        max_concurrency=args.max_concurrency,
        max_request_retries=args.max_request_retries,
        max_search_pages=args.max_search_pages,
        headless=not args.headed and _env_flag("CRAWL_HEADLESS", "1"),
        proxy_url=args.proxy_url,
    )
    print(
        f"Crawl for {args.keyword!r} completed at {datetime.now(timezone.utc).isoformat()}: "
        f"{stats.handled_requests} handled, {stats.failed_requests} failed"
    )


if __name__ == "__main__":
    main()
