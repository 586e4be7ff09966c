from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from hashlib import sha256
from typing import Any, Optional

START = "START"
PRODUCT = "PRODUCT"


def _request_id(unique_key: str) -> str:
    return sha256(unique_key.encode("utf-8")).hexdigest()[:15]


@dataclass
class CrawlRequest:
    url: str
    label: str
    user_data: dict[str, Any] = field(default_factory=dict)
    retry_count: int = 0
    error_messages: list[str] = field(default_factory=list)

    @property
    def unique_key(self) -> str:
        return self.url

    @property
    def id(self) -> str:
        return _request_id(self.unique_key)

    @property
    def keyword(self) -> Optional[str]:
        return self.user_data.get("keyword")


class RequestQueue:
    """In-memory crawl frontier. Requests are deduplicated by URL."""

    def __init__(self) -> None:
        self._pending: deque[CrawlRequest] = deque()
        self._seen: set[str] = set()
        self._in_progress: dict[str, CrawlRequest] = {}
        self.handled_count = 0
        self.failed: list[CrawlRequest] = []

    def add_request(self, url: str, label: str, metadata: Optional[dict[str, Any]] = None) -> bool:
        request = CrawlRequest(url=url, label=label, user_data={"label": label, **(metadata or {})})
        if request.unique_key in self._seen:
            return False
        self._seen.add(request.unique_key)
        self._pending.append(request)
        return True

    def fetch_next(self) -> Optional[CrawlRequest]:
        if not self._pending:
            return None
        request = self._pending.popleft()
        self._in_progress[request.id] = request
        return request

    def mark_handled(self, request: CrawlRequest) -> None:
        self._in_progress.pop(request.id, None)
        self.handled_count += 1

    def reclaim(self, request: CrawlRequest) -> None:
        self._in_progress.pop(request.id, None)
        self._pending.append(request)

    def mark_failed(self, request: CrawlRequest) -> None:
        self._in_progress.pop(request.id, None)
        self.failed.append(request)

    @property
    def total_count(self) -> int:
        return len(self._seen)

    def is_finished(self) -> bool:
        return not self._pending and not self._in_progress
