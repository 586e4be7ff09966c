from __future__ import annotations

from typing import Optional, Protocol

import soupsieve
from bs4 import BeautifulSoup
from bs4.element import Tag


class DomQuery(Protocol):
    def select(self, selector: str) -> list["DomNode"]: ...


class DomNode:
    """One matched element. Selecting from a node is scoped to its descendants."""

    def __init__(self, tag: Tag):
        self._tag = tag

    def text(self) -> str:
        return self._tag.get_text()

    def attr(self, name: str) -> Optional[str]:
        value = self._tag.get(name)
        if isinstance(value, list):
            # multi-valued attributes such as class
            return " ".join(value)
        return value

    def select(self, selector: str) -> list[DomNode]:
        return [DomNode(t) for t in self._tag.select(selector)]

    def siblings(self, selector: str) -> list[DomNode]:
        parent = self._tag.parent
        if parent is None:
            return []
        compiled = soupsieve.compile(selector)
        return [
            DomNode(t)
            for t in parent.find_all(True, recursive=False)
            if t is not self._tag and compiled.match(t)
        ]


class SoupDom:
    """Selector queries against one rendered-HTML snapshot."""

    def __init__(self, html: str, parser: str = "html.parser"):
        self._soup = BeautifulSoup(html or "", parser)

    def select(self, selector: str) -> list[DomNode]:
        return [DomNode(t) for t in self._soup.select(selector)]
