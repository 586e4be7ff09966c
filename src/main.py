from __future__ import annotations

from fastapi import FastAPI, Query
from fastapi.staticfiles import StaticFiles
from typing import Optional

from src.api.schemas import AnomalyListResponse, AnomalyOut, CrawlRunStatus, OfferListResponse, OfferOut
from src.db.migrate import run_migrations
from src.db.repository import fetch_anomalies, fetch_latest_crawl_run, fetch_offers
from src.reporting.snapshots import snapshot_store_from_env

app = FastAPI(title="Keyword Offer Crawler API", version="0.1.0")

# snapshot locations built from SNAPSHOT_PUBLIC_BASE_URL resolve here
app.mount(
    "/snapshots",
    StaticFiles(directory=str(snapshot_store_from_env().records_dir), check_dir=False),
    name="snapshots",
)


@app.on_event("startup")
def startup() -> None:
    run_migrations()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/status/latest", response_model=Optional[CrawlRunStatus])
def get_latest_status() -> Optional[CrawlRunStatus]:
    row = fetch_latest_crawl_run()
    if row is None:
        return None
    return CrawlRunStatus(**row)


@app.get("/offers", response_model=OfferListResponse)
def get_offers(
    keyword: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
) -> OfferListResponse:
    rows = fetch_offers(keyword=keyword, limit=limit)
    return OfferListResponse(items=[OfferOut(**row) for row in rows])


@app.get("/anomalies", response_model=AnomalyListResponse)
def get_anomalies(
    label: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
) -> AnomalyListResponse:
    rows = fetch_anomalies(label=label, limit=limit)
    return AnomalyListResponse(items=[AnomalyOut(**row) for row in rows])
