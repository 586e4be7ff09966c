from __future__ import annotations

import logging
from typing import Optional

from src.collectors.base import BlockedPageError, Offer, SharedOfferData, UnexpectedHtmlError
from src.collectors.dom import DomQuery
from src.crawler.browser import PageRenderer

logger = logging.getLogger(__name__)

# there are two possible tags which can hold the product title
TITLE_SELECTOR = "#title"
TITLE_FALLBACK_SELECTOR = "div[data-cel-widget='Title']"
DESCRIPTION_SELECTOR = "#productDescription"
DETAILS_TABLE_SELECTOR = "#productDetails_detailBullets_sections1"
IDENTIFIER_LABEL = "ASIN"

AVAILABILITY_WIDGET_SELECTOR = "div[cel_widget_id='Availability']"
AVAILABILITY_TEXT_SELECTOR = "#availability span"
UNAVAILABLE_TEXT = "Currently unavailable."
SELLER_SELECTOR = (
    "#tabular-buybox .tabular-buybox-container div.tabular-buybox-text[tabular-attribute-name='Sold by']"
)
PRICE_SELECTOR = "#corePrice_desktop span.a-price span.a-offscreen"
PRICE_FALLBACK_SELECTOR = "#newAccordionRow #corePrice_feature_div span.a-offscreen"

OTHER_OFFERS_LINK_SELECTOR = "#olpLinkWidget_feature_div a"
OTHER_OFFERS_LIST_SELECTOR = "#aod-offer-list"
OTHER_OFFER_ROW_SELECTOR = "#aod-offer-list > div"
OTHER_OFFER_PRICE_SELECTOR = "#aod-price-{position} span.a-offscreen"
OTHER_OFFER_SELLER_SELECTOR = "#aod-offer-soldBy a"

CAPTCHA_SELECTOR = "form[action='/errors/validateCaptcha']"


def _single_text(dom: DomQuery, selector: str, too_many: str) -> Optional[str]:
    """Zero matches -> None, one match -> trimmed text, more -> structural error."""
    nodes = dom.select(selector)
    if not nodes:
        return None
    if len(nodes) > 1:
        raise UnexpectedHtmlError(too_many)
    return nodes[0].text().strip()


def ensure_not_blocked(dom: DomQuery) -> None:
    if dom.select(CAPTCHA_SELECTOR):
        raise BlockedPageError("Captcha page detected")


def extract_title(dom: DomQuery) -> Optional[str]:
    primary = dom.select(TITLE_SELECTOR)
    if len(primary) == 1:
        return primary[0].text().strip()
    if len(primary) > 1:
        raise UnexpectedHtmlError("Found too many title elements")
    return _single_text(dom, TITLE_FALLBACK_SELECTOR, "Found too many title elements")


def extract_description(dom: DomQuery) -> Optional[str]:
    return _single_text(dom, DESCRIPTION_SELECTOR, "Found too many descriptions")


def extract_identifier(dom: DomQuery) -> Optional[str]:
    tables = dom.select(DETAILS_TABLE_SELECTOR)
    if not tables:
        return None
    if len(tables) > 1:
        raise UnexpectedHtmlError("Found too many details table bodies")

    label_cell = None
    for th in tables[0].select("th"):
        if th.text().strip() == IDENTIFIER_LABEL:
            label_cell = th
            break
    if label_cell is None:
        return None

    value_cells = label_cell.siblings("td")
    if len(value_cells) != 1:
        raise UnexpectedHtmlError(
            f"Found row with th, which has text '{IDENTIFIER_LABEL}', but couldn't find td with actual value "
            "(either there are no td tags in the same row or there is more than one)"
        )
    return value_cells[0].text().strip()


def get_shared_data(dom: DomQuery, *, item_url: str, keyword: Optional[str]) -> SharedOfferData:
    ensure_not_blocked(dom)
    return SharedOfferData(
        item_url=item_url,
        keyword=keyword,
        title=extract_title(dom),
        description=extract_description(dom),
        identifier=extract_identifier(dom),
    )


def is_unavailable(dom: DomQuery) -> bool:
    # either signal is enough
    if dom.select(AVAILABILITY_WIDGET_SELECTOR):
        return True
    availability_text = "".join(node.text() for node in dom.select(AVAILABILITY_TEXT_SELECTOR))
    return availability_text.strip() == UNAVAILABLE_TEXT


def extract_main_price(dom: DomQuery) -> Optional[str]:
    # the price is rendered once or twice depending on the product; the
    # accordion price only disambiguates the second case
    prices = dom.select(PRICE_SELECTOR)
    if not prices:
        return None
    if len(prices) == 1:
        return prices[0].text().strip()
    fallback = dom.select(PRICE_FALLBACK_SELECTOR)
    if len(fallback) != 1:
        raise UnexpectedHtmlError("Unexpected pricing HTML")
    return fallback[0].text().strip()


def get_main_offer(dom: DomQuery, shared: SharedOfferData) -> Optional[Offer]:
    """The buy box offer, or None when the product is currently unavailable."""
    if is_unavailable(dom):
        return None
    seller_name = _single_text(dom, SELLER_SELECTOR, "Found too many seller names for main offer")
    price = extract_main_price(dom)
    return Offer.from_shared(shared, price=price, seller_name=seller_name)


def parse_other_offers(dom: DomQuery, shared: SharedOfferData) -> list[Offer]:
    """Offers listed in the already opened side panel, in row order."""
    offers: list[Offer] = []
    for position, row in enumerate(dom.select(OTHER_OFFER_ROW_SELECTOR), start=1):
        price = _single_text(row, OTHER_OFFER_PRICE_SELECTOR.format(position=position), "Found more than one offer")
        seller_name = _single_text(row, OTHER_OFFER_SELLER_SELECTOR, "Found more then one seller of an offer")
        offers.append(Offer.from_shared(shared, price=price, seller_name=seller_name))
    return offers


async def get_other_offers(renderer: PageRenderer, shared: SharedOfferData) -> list[Offer]:
    links = await renderer.query_all(OTHER_OFFERS_LINK_SELECTOR)
    if not links:
        return []
    if len(links) > 1:
        raise UnexpectedHtmlError("Found too many other offers links")

    await renderer.click(links[0])
    await renderer.wait_for_selector(OTHER_OFFERS_LIST_SELECTOR)
    offers = await renderer.evaluate(parse_other_offers, shared)
    logger.debug("Found %d other offer(s) on %s", len(offers), shared.item_url)
    return offers
