from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Union

from src.crawler.browser import PageRenderer
from src.crawler.queue import CrawlRequest
from src.reporting.snapshots import FileSnapshotStore

logger = logging.getLogger(__name__)

MISSING_PROPERTY = "MISSING-PROPERTY"
UNEXPECTED_HTML = "UNEXPECTED-HTML"


@dataclass(frozen=True)
class MissingPropertyAnomaly:
    product_page_url: str
    main_offer_missing_fields: list[str]
    other_offers_missing_fields: list[list[str]]
    html_snapshot_location: str
    label: str = field(default=MISSING_PROPERTY, init=False)

    def to_record(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "productPageUrl": self.product_page_url,
            "mainOfferMissingFields": list(self.main_offer_missing_fields),
            "otherOffersMissingFields": [list(m) for m in self.other_offers_missing_fields],
            "htmlSnapshotLocation": self.html_snapshot_location,
        }


@dataclass(frozen=True)
class UnexpectedHtmlAnomaly:
    product_page_url: str
    html_snapshot_location: str
    error_message: str
    label: str = field(default=UNEXPECTED_HTML, init=False)

    def to_record(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "productPageUrl": self.product_page_url,
            "htmlSnapshotLocation": self.html_snapshot_location,
            "errorMessage": self.error_message,
        }


AnomalyRecord = Union[MissingPropertyAnomaly, UnexpectedHtmlAnomaly]


class AnomalyStore(Protocol):
    def append(self, record: AnomalyRecord) -> None: ...


def has_missing_fields(main_offer_missing: list[str], other_offers_missing: list[list[str]]) -> bool:
    return bool(main_offer_missing) or any(other_offers_missing)


class AnomalyReporter:
    def __init__(self, snapshot_store: FileSnapshotStore, anomaly_store: AnomalyStore):
        self.snapshot_store = snapshot_store
        self.anomaly_store = anomaly_store

    async def _snapshot(self, key: str, renderer: PageRenderer) -> str:
        html = await renderer.content()
        return await asyncio.to_thread(self.snapshot_store.put, key, html, "text/html")

    async def report_missing_properties(
        self,
        request: CrawlRequest,
        renderer: PageRenderer,
        main_offer_missing: list[str],
        other_offers_missing: list[list[str]],
    ) -> MissingPropertyAnomaly:
        location = await self._snapshot(f"HTML-PROPERTY-NOT-FOUND-{request.id}", renderer)
        anomaly = MissingPropertyAnomaly(
            product_page_url=request.url,
            main_offer_missing_fields=main_offer_missing,
            other_offers_missing_fields=other_offers_missing,
            html_snapshot_location=location,
        )
        await asyncio.to_thread(self.anomaly_store.append, anomaly)
        logger.warning("Missing properties on %s, snapshot at %s", request.url, location)
        return anomaly

    async def report_unexpected_html(
        self, request: CrawlRequest, renderer: PageRenderer, error: BaseException
    ) -> UnexpectedHtmlAnomaly:
        location = await self._snapshot(f"UNEXPECTED-HTML-{request.id}", renderer)
        anomaly = UnexpectedHtmlAnomaly(
            product_page_url=request.url,
            html_snapshot_location=location,
            error_message=str(error) or type(error).__name__,
        )
        await asyncio.to_thread(self.anomaly_store.append, anomaly)
        logger.warning("Unexpected HTML on %s (%s), snapshot at %s", request.url, anomaly.error_message, location)
        return anomaly
