from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from src.collectors.base import Offer
from src.crawler.queue import RequestQueue
from src.reporting.anomalies import AnomalyReporter


class OfferStore(Protocol):
    def append(self, offers: list[Offer]) -> None: ...


@dataclass
class CrawlContext:
    queue: RequestQueue
    offer_store: OfferStore
    reporter: AnomalyReporter
    max_search_pages: int = 1
