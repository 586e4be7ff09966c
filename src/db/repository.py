from __future__ import annotations

import json
from typing import Any, Optional

from src.collectors.base import Offer
from src.db.connection import get_conn
from src.reporting.anomalies import AnomalyRecord, MissingPropertyAnomaly


def start_crawl_run(*, keyword: str, started_at: str) -> int:
    with get_conn() as conn:
        return conn.insert(
            "INSERT INTO crawl_runs (keyword, started_at, status) VALUES (?, ?, ?)",
            (keyword, started_at, "RUNNING"),
        )


def finish_crawl_run(
    crawl_run_id: int,
    *,
    finished_at: str,
    status: str,
    total_requests: int,
    handled_requests: int,
    failed_requests: int,
    total_offers: int,
    total_anomalies: int,
    error_message: str | None,
) -> None:
    with get_conn() as conn:
        conn.execute(
            """
            UPDATE crawl_runs SET
              finished_at = ?,
              status = ?,
              total_requests = ?,
              handled_requests = ?,
              failed_requests = ?,
              total_offers = ?,
              total_anomalies = ?,
              error_message = ?
            WHERE id = ?
            """,
            (
                finished_at,
                status,
                total_requests,
                handled_requests,
                failed_requests,
                total_offers,
                total_anomalies,
                error_message,
                crawl_run_id,
            ),
        )


def insert_offers(offers: list[Offer], *, crawl_run_id: Optional[int] = None) -> int:
    if not offers:
        return 0
    rows = []
    for position, offer in enumerate(offers):
        record = offer.to_record()
        rows.append(
            (
                crawl_run_id,
                record["itemUrl"],
                record["keyword"],
                position,
                record["title"],
                record["description"],
                record["identifier"],
                record["price"],
                record["sellerName"],
            )
        )
    with get_conn() as conn:
        conn.executemany(
            """
            INSERT INTO offers (
              crawl_run_id, item_url, keyword, position, title, description, identifier, price, seller_name
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
    return len(rows)


def insert_anomaly(anomaly: AnomalyRecord, *, crawl_run_id: Optional[int] = None) -> int:
    if isinstance(anomaly, MissingPropertyAnomaly):
        error_message = None
        main_missing = json.dumps(anomaly.main_offer_missing_fields)
        other_missing = json.dumps(anomaly.other_offers_missing_fields)
    else:
        error_message = anomaly.error_message
        main_missing = None
        other_missing = None
    with get_conn() as conn:
        return conn.insert(
            """
            INSERT INTO anomalies (
              crawl_run_id, label, product_page_url, html_snapshot_location, error_message,
              main_offer_missing_fields, other_offers_missing_fields
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                crawl_run_id,
                anomaly.label,
                anomaly.product_page_url,
                anomaly.html_snapshot_location,
                error_message,
                main_missing,
                other_missing,
            ),
        )


class OfferRepository:
    """Output store: one append per product page, offers kept in page order."""

    def __init__(self, crawl_run_id: Optional[int] = None):
        self.crawl_run_id = crawl_run_id
        self.appended = 0

    def append(self, offers: list[Offer]) -> None:
        self.appended += insert_offers(offers, crawl_run_id=self.crawl_run_id)


class AnomalyRepository:
    def __init__(self, crawl_run_id: Optional[int] = None):
        self.crawl_run_id = crawl_run_id
        self.appended = 0

    def append(self, record: AnomalyRecord) -> None:
        insert_anomaly(record, crawl_run_id=self.crawl_run_id)
        self.appended += 1


def fetch_offers(*, keyword: str | None = None, limit: int = 100) -> list[dict[str, Any]]:
    conditions: list[str] = []
    params: list[Any] = []
    if keyword:
        conditions.append("keyword = ?")
        params.append(keyword)
    where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    params.append(limit)

    with get_conn() as conn:
        rows = conn.execute(
            f"""
            SELECT id, crawl_run_id, item_url, keyword, position, title, description,
                   identifier, price, seller_name, created_at
            FROM offers
            {where_clause}
            ORDER BY id ASC
            LIMIT ?
            """,
            tuple(params),
        ).fetchall()
    return [dict(row) for row in rows]


def fetch_anomalies(*, label: str | None = None, limit: int = 100) -> list[dict[str, Any]]:
    conditions: list[str] = []
    params: list[Any] = []
    if label:
        conditions.append("label = ?")
        params.append(label)
    where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    params.append(limit)

    with get_conn() as conn:
        rows = conn.execute(
            f"""
            SELECT id, crawl_run_id, label, product_page_url, html_snapshot_location, error_message,
                   main_offer_missing_fields, other_offers_missing_fields, created_at
            FROM anomalies
            {where_clause}
            ORDER BY id ASC
            LIMIT ?
            """,
            tuple(params),
        ).fetchall()

    out: list[dict[str, Any]] = []
    for row in rows:
        item = dict(row)
        for key in ("main_offer_missing_fields", "other_offers_missing_fields"):
            if item[key] is not None:
                item[key] = json.loads(item[key])
        out.append(item)
    return out


def fetch_latest_crawl_run() -> dict[str, Any] | None:
    with get_conn() as conn:
        row = conn.execute(
            """
            SELECT
              id,
              keyword,
              started_at,
              finished_at,
              status,
              total_requests,
              handled_requests,
              failed_requests,
              total_offers,
              total_anomalies,
              error_message,
              created_at
            FROM crawl_runs
            ORDER BY id DESC
            LIMIT 1
            """
        ).fetchone()
    if row is None:
        return None
    return dict(row)
