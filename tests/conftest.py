from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Optional, Sequence

import pytest

from src.collectors.dom import SoupDom
from src.crawler.browser import PageRenderer
from src.crawler.queue import RequestQueue
from src.db.migrate import run_migrations
from src.reporting.anomalies import AnomalyReporter
from src.reporting.snapshots import FileSnapshotStore
from src.routes.context import CrawlContext


def build_product_page(
    *,
    titles: Sequence[str] = ("Widget",),
    fallback_titles: Sequence[str] = (),
    descriptions: Sequence[str] = ("A very useful widget",),
    details_tables: int = 1,
    asin: Optional[str] = "B08ABC123",
    asin_cells: int = 1,
    availability_widget: bool = False,
    availability_text: str = "In Stock.",
    sellers: Sequence[str] = ("Amazon.com",),
    prices: Sequence[str] = ("$19.99",),
    fallback_prices: Sequence[str] = (),
    other_offers_links: int = 0,
    captcha: bool = False,
) -> str:
    parts = ["<html><body>"]
    if captcha:
        parts.append("<form action='/errors/validateCaptcha'><input name='field-keywords'></form>")
    for title in titles:
        parts.append(f"<h1 id='title'>{title}</h1>")
    for title in fallback_titles:
        parts.append(f"<div data-cel-widget='Title'>{title}</div>")
    for description in descriptions:
        parts.append(f"<div id='productDescription'>{description}</div>")
    for _ in range(details_tables):
        rows = "<tr><th> Manufacturer </th><td> Acme </td></tr>"
        if asin is not None:
            cells = "".join(f"<td> {asin} </td>" for _ in range(asin_cells))
            rows += f"<tr><th> ASIN </th>{cells}</tr>"
        parts.append(f"<table><tbody id='productDetails_detailBullets_sections1'>{rows}</tbody></table>")
    if availability_widget:
        parts.append("<div cel_widget_id='Availability'><span>Currently unavailable.</span></div>")
    parts.append(f"<div id='availability'><span>{availability_text}</span></div>")
    seller_cells = "".join(
        f"<div class='tabular-buybox-text' tabular-attribute-name='Sold by'> {seller} </div>" for seller in sellers
    )
    parts.append(f"<div id='tabular-buybox'><div class='tabular-buybox-container'>{seller_cells}</div></div>")
    price_spans = "".join(f"<span class='a-price'><span class='a-offscreen'>{p}</span></span>" for p in prices)
    parts.append(f"<div id='corePrice_desktop'>{price_spans}</div>")
    if fallback_prices:
        spans = "".join(f"<span class='a-offscreen'>{p}</span>" for p in fallback_prices)
        parts.append(f"<div id='newAccordionRow'><div id='corePrice_feature_div'>{spans}</div></div>")
    if other_offers_links:
        links = "".join("<a href='#aod'>See All Buying Options</a>" for _ in range(other_offers_links))
        parts.append(f"<div id='olpLinkWidget_feature_div'>{links}</div>")
    parts.append("</body></html>")
    return "".join(parts)


def build_offers_panel(rows: Sequence[tuple[Optional[str], Optional[str]]]) -> str:
    """Side panel markup; each row is (price, seller), None leaves the element out."""
    out = ["<div id='aod-container'><div id='aod-offer-list'>"]
    for position, (price, seller) in enumerate(rows, start=1):
        out.append("<div id='aod-offer'>")
        if price is not None:
            out.append(
                f"<div id='aod-price-{position}'><span class='a-price'>"
                f"<span class='a-offscreen'> {price} </span></span></div>"
            )
        if seller is not None:
            out.append(f"<div id='aod-offer-soldBy'><a href='/seller'> {seller} </a></div>")
        out.append("</div>")
    out.append("</div></div>")
    return "".join(out)


def build_search_page(hrefs: Sequence[Optional[str]], next_href: Optional[str] = None) -> str:
    results = []
    for href in hrefs:
        href_attr = f" href='{href}'" if href is not None else ""
        results.append(
            "<div data-component-type='s-search-result'>"
            f"<h2 class='a-size-mini'><a{href_attr}><span>Result</span></a></h2></div>"
        )
    pagination = f"<a class='s-pagination-next' href='{next_href}'>Next</a>" if next_href else ""
    return f"<html><body><div class='s-main-slot'>{''.join(results)}</div>{pagination}</body></html>"


class FakeRenderer(PageRenderer):
    """Serves fixed HTML; a click swaps in the post-click page when one is given."""

    def __init__(
        self,
        html: str = "",
        *,
        after_click_html: Optional[str] = None,
        pages: Optional[dict[str, str]] = None,
    ):
        self.html = html
        self.after_click_html = after_click_html
        self.pages = pages
        self.navigated: list[str] = []
        self.clicked: list[Any] = []
        self.loaded = False

    async def navigate(self, url: str) -> None:
        self.navigated.append(url)
        if self.pages is not None:
            self.html = self.pages[url]

    async def wait_for_load(self) -> None:
        self.loaded = True

    async def content(self) -> str:
        return self.html

    async def query_all(self, selector: str) -> list[Any]:
        return SoupDom(self.html).select(selector)

    async def click(self, element: Any) -> None:
        self.clicked.append(element)
        if self.after_click_html is not None:
            self.html = self.after_click_html

    async def wait_for_selector(self, selector: str) -> None:
        if not SoupDom(self.html).select(selector):
            raise TimeoutError(f"Timeout 45000ms exceeded waiting for selector {selector!r}")


class ListStore:
    def __init__(self) -> None:
        self.items: list[Any] = []

    def append(self, item: Any) -> None:
        self.items.append(item)


def page_opener(pages: dict[str, str]):
    @asynccontextmanager
    async def open_page():
        yield FakeRenderer(pages=pages)

    return open_page


@pytest.fixture
def snapshot_store(tmp_path) -> FileSnapshotStore:
    return FileSnapshotStore(tmp_path / "storage")


@pytest.fixture
def ctx(snapshot_store) -> CrawlContext:
    return CrawlContext(
        queue=RequestQueue(),
        offer_store=ListStore(),
        reporter=AnomalyReporter(snapshot_store, ListStore()),
    )


@pytest.fixture
def db(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("APP_DB_PATH", str(tmp_path / "app.db"))
    monkeypatch.delenv("DATABASE_URL", raising=False)
    run_migrations()
