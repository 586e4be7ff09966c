from __future__ import annotations

import logging

from src.collectors.amazon_product import ensure_not_blocked
from src.collectors.amazon_search import get_next_page_link, get_product_links
from src.collectors.dom import DomQuery
from src.crawler.browser import PageRenderer
from src.crawler.queue import PRODUCT, START, CrawlRequest
from src.routes.context import CrawlContext

logger = logging.getLogger(__name__)


def _search_page_links(dom: DomQuery, page_url: str) -> tuple[list[str], str | None]:
    ensure_not_blocked(dom)
    return get_product_links(dom, page_url), get_next_page_link(dom, page_url)


async def handle_start(request: CrawlRequest, renderer: PageRenderer, ctx: CrawlContext) -> list[str]:
    await renderer.wait_for_load()
    product_links, next_page = await renderer.evaluate(_search_page_links, request.url)

    logger.info("[%s] Enqueued %d %s", request.label, len(product_links), PRODUCT)
    logger.debug("[%s] Enqueued the following links with label %s: %s", request.label, PRODUCT, product_links)
    for link in product_links:
        ctx.queue.add_request(link, PRODUCT, {"keyword": request.keyword})

    page_number = int(request.user_data.get("page", 1))
    if next_page is not None and page_number < ctx.max_search_pages:
        ctx.queue.add_request(next_page, START, {"keyword": request.keyword, "page": page_number + 1})
        logger.info("[%s] Enqueued search page %d: %s", request.label, page_number + 1, next_page)

    return product_links
