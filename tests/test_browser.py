import asyncio
import threading
from types import SimpleNamespace

import pytest

from conftest import FakeRenderer
from src.crawler.browser import PageStatusError, PlaywrightRenderer


class StubPage:
    def __init__(self, response):
        self.response = response
        self.visited: list[str] = []

    async def goto(self, url, **kwargs):
        self.visited.append(url)
        return self.response


def test_evaluate_runs_extraction_off_the_event_loop_thread() -> None:
    renderer = FakeRenderer("<p id='x'> hi </p>")

    def query(dom, selector):
        return threading.get_ident(), [node.text() for node in dom.select(selector)]

    async def run():
        loop_thread = threading.get_ident()
        worker_thread, texts = await renderer.evaluate(query, "#x")
        return loop_thread, worker_thread, texts

    loop_thread, worker_thread, texts = asyncio.run(run())

    assert texts == [" hi "]
    assert worker_thread != loop_thread


@pytest.mark.parametrize("status", [500, 503])
def test_server_error_on_navigation_raises(status) -> None:
    renderer = PlaywrightRenderer(StubPage(SimpleNamespace(status=status)))

    with pytest.raises(PageStatusError, match=f"HTTP {status}"):
        asyncio.run(renderer.navigate("https://www.amazon.com/dp/B1"))


@pytest.mark.parametrize("response", [SimpleNamespace(status=200), SimpleNamespace(status=404), None])
def test_navigation_accepts_non_server_error_responses(response) -> None:
    page = StubPage(response)

    asyncio.run(PlaywrightRenderer(page).navigate("https://www.amazon.com/dp/B1"))

    assert page.visited == ["https://www.amazon.com/dp/B1"]
