import asyncio

import pytest

from conftest import FakeRenderer, ListStore
from src.collectors.base import NOT_ATTEMPTED, Offer, SharedOfferData, missing_fields
from src.crawler.queue import PRODUCT, CrawlRequest
from src.reporting.anomalies import AnomalyReporter, has_missing_fields
from src.reporting.snapshots import FileSnapshotStore, LocalSnapshotLocator, UrlSnapshotLocator, snapshot_store_from_env


def test_missing_fields_lists_null_fields_per_offer() -> None:
    complete = Offer("u", "k", "t", "d", "i", "$1", "s")
    partial = Offer("u", "k", None, "d", None, "$1", None)
    assert missing_fields(complete, partial) == [[], ["title", "identifier", "sellerName"]]
    assert missing_fields() == []


def test_has_missing_fields() -> None:
    assert has_missing_fields([], []) is False
    assert has_missing_fields([], [[], []]) is False
    assert has_missing_fields(["price"], []) is True
    assert has_missing_fields([], [[], ["sellerName"]]) is True


def test_offer_never_serialised_with_unattempted_fields() -> None:
    shared = SharedOfferData(item_url="u", keyword="k", title="t", description=None)
    offer = Offer.from_shared(shared, price="$1", seller_name=None)
    assert offer.identifier is NOT_ATTEMPTED
    assert offer.unattempted_fields() == ["identifier"]
    with pytest.raises(ValueError, match="identifier"):
        offer.to_record()


def test_unattempted_is_not_counted_as_missing() -> None:
    offer = Offer(item_url="u", keyword="k")
    assert missing_fields(offer) == [[]]


def test_local_and_url_locators() -> None:
    assert LocalSnapshotLocator("data/storage").locate("KEY") == "data/storage/key_value_stores/KEY.html"
    assert (
        UrlSnapshotLocator("https://crawler.example.com/snapshots/").locate("KEY", ".json")
        == "https://crawler.example.com/snapshots/KEY.json"
    )


def test_snapshot_store_writes_record_and_returns_location(tmp_path) -> None:
    store = FileSnapshotStore(tmp_path, UrlSnapshotLocator("https://h/snapshots"))
    location = store.put("UNEXPECTED-HTML-abc", "<html></html>", content_type="text/html")
    assert location == "https://h/snapshots/UNEXPECTED-HTML-abc.html"
    assert (tmp_path / "key_value_stores" / "UNEXPECTED-HTML-abc.html").read_text(encoding="utf-8") == "<html></html>"


def test_snapshot_store_from_env_picks_locator(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("SNAPSHOT_DIR", str(tmp_path))
    monkeypatch.delenv("SNAPSHOT_PUBLIC_BASE_URL", raising=False)
    assert isinstance(snapshot_store_from_env().locator, LocalSnapshotLocator)

    monkeypatch.setenv("SNAPSHOT_PUBLIC_BASE_URL", "https://h/snapshots")
    store = snapshot_store_from_env()
    assert store.put("K", "x") == "https://h/snapshots/K.html"


def test_reporter_emits_records_with_snapshot(tmp_path) -> None:
    anomalies = ListStore()
    reporter = AnomalyReporter(FileSnapshotStore(tmp_path), anomalies)
    request = CrawlRequest(url="https://www.amazon.com/dp/B1", label=PRODUCT)
    renderer = FakeRenderer("<html><body>page</body></html>")

    missing = asyncio.run(reporter.report_missing_properties(request, renderer, ["price"], [["sellerName"]]))
    unexpected = asyncio.run(reporter.report_unexpected_html(request, renderer, ValueError("boom")))

    assert anomalies.items == [missing, unexpected]
    assert missing.to_record() == {
        "label": "MISSING-PROPERTY",
        "productPageUrl": "https://www.amazon.com/dp/B1",
        "mainOfferMissingFields": ["price"],
        "otherOffersMissingFields": [["sellerName"]],
        "htmlSnapshotLocation": missing.html_snapshot_location,
    }
    assert unexpected.to_record()["errorMessage"] == "boom"
    assert unexpected.to_record()["label"] == "UNEXPECTED-HTML"


def test_error_without_message_falls_back_to_type_name(tmp_path) -> None:
    reporter = AnomalyReporter(FileSnapshotStore(tmp_path), ListStore())
    request = CrawlRequest(url="https://www.amazon.com/dp/B1", label=PRODUCT)
    anomaly = asyncio.run(reporter.report_unexpected_html(request, FakeRenderer(""), TimeoutError()))
    assert anomaly.error_message == "TimeoutError"
