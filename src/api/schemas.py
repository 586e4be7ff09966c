from typing import List, Optional
from pydantic import BaseModel


class OfferOut(BaseModel):
    id: int
    crawl_run_id: Optional[int]
    item_url: str
    keyword: Optional[str]
    position: int
    title: Optional[str]
    description: Optional[str]
    identifier: Optional[str]
    price: Optional[str]
    seller_name: Optional[str]
    created_at: str


class OfferListResponse(BaseModel):
    items: List[OfferOut]


class AnomalyOut(BaseModel):
    id: int
    crawl_run_id: Optional[int]
    label: str
    product_page_url: str
    html_snapshot_location: str
    error_message: Optional[str]
    main_offer_missing_fields: Optional[List[str]]
    other_offers_missing_fields: Optional[List[List[str]]]
    created_at: str


class AnomalyListResponse(BaseModel):
    items: List[AnomalyOut]


class CrawlRunStatus(BaseModel):
    keyword: str
    started_at: str
    finished_at: Optional[str]
    status: str
    total_requests: int
    handled_requests: int
    failed_requests: int
    total_offers: int
    total_anomalies: int
    error_message: Optional[str]
    created_at: str
