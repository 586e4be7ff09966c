from __future__ import annotations

import asyncio
import logging

from src.collectors.amazon_product import get_main_offer, get_other_offers, get_shared_data
from src.collectors.base import Offer, missing_fields
from src.crawler.browser import PageRenderer
from src.crawler.queue import CrawlRequest
from src.reporting.anomalies import has_missing_fields
from src.routes.context import CrawlContext

logger = logging.getLogger(__name__)


async def handle_product(request: CrawlRequest, renderer: PageRenderer, ctx: CrawlContext) -> list[Offer]:
    logger.debug("[%s] Handling: %s", request.label, request.url)

    try:
        await renderer.wait_for_load()
        shared = await renderer.evaluate(get_shared_data, item_url=request.url, keyword=request.keyword)
        main_offer = await renderer.evaluate(get_main_offer, shared)
        other_offers = await get_other_offers(renderer, shared)
    except Exception as exc:
        try:
            await ctx.reporter.report_unexpected_html(request, renderer, exc)
        except Exception:
            logger.exception("Could not report unexpected HTML on %s", request.url)
        raise

    offers: list[Offer] = []
    if main_offer is not None:
        offers.append(main_offer)
    offers.extend(other_offers)
    logger.info("Data for %s: %d offer(s)", request.url, len(offers))

    # an unavailable product has no main offer, which is not a content gap
    main_offer_missing = missing_fields(main_offer)[0] if main_offer is not None else []
    other_offers_missing = missing_fields(*other_offers)
    if has_missing_fields(main_offer_missing, other_offers_missing):
        await ctx.reporter.report_missing_properties(request, renderer, main_offer_missing, other_offers_missing)

    await asyncio.to_thread(ctx.offer_store.append, offers)
    return offers
