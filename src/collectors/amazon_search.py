from __future__ import annotations

import os
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

from src.collectors.dom import DomQuery

DEFAULT_SEARCH_URL = "https://www.amazon.com/s/ref=nb_sb_noss?url=search-alias%3Daps"
KEYWORD_PARAM = "field-keywords"

SEARCH_RESULT_LINK_SELECTOR = ".s-main-slot div[data-component-type='s-search-result'] h2.a-size-mini a"
NEXT_PAGE_SELECTOR = "a.s-pagination-next"


def _add_or_replace_query(url: str, key: str, value: str) -> str:
    parsed = urlparse(url)
    query = dict(parse_qsl(parsed.query, keep_blank_values=True))
    query[key] = value
    return urlunparse(parsed._replace(query=urlencode(query)))


def build_search_url(keyword: str, search_url: Optional[str] = None) -> str:
    base = search_url or os.getenv("CRAWL_SEARCH_URL", DEFAULT_SEARCH_URL)
    return _add_or_replace_query(base, KEYWORD_PARAM, keyword)


def get_product_links(dom: DomQuery, page_url: str) -> list[str]:
    """Absolute product page URLs of every search result on the page, in page order."""
    links: list[str] = []
    for anchor in dom.select(SEARCH_RESULT_LINK_SELECTOR):
        href = anchor.attr("href")
        if href is None:
            continue
        links.append(urljoin(page_url, href))
    return links


def get_next_page_link(dom: DomQuery, page_url: str) -> Optional[str]:
    for anchor in dom.select(NEXT_PAGE_SELECTOR):
        href = anchor.attr("href")
        if href:
            return urljoin(page_url, href)
    return None
