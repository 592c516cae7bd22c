"""Parsed DOM snapshot backed by BeautifulSoup.

Extraction strategies run against this tree instead of a live page, so
they stay pure functions testable from an HTML string. Selection goes
through soupsieve, so any standard CSS selector works, including
``:scope`` relative to the node ``select`` is called on.

Snapshots come from the browser's own serialization, where every
element is explicitly closed, so the stdlib ``html.parser`` tree builder
is enough.
"""

from typing import Optional, Union

from bs4 import BeautifulSoup, Tag
from bs4.element import NavigableString, PreformattedString
from soupsieve import SelectorSyntaxError

RAW_TEXT_ELEMENTS = frozenset({"script", "style", "template", "noscript"})


class SelectorError(ValueError):
    """Raised for selectors soupsieve cannot compile."""
    pass


class DomNode:
    """One element (or the document) of a parsed snapshot."""

    def __init__(self, element: Union[BeautifulSoup, Tag]):
        self.element = element

    def __repr__(self) -> str:
        return f"DomNode({self.tag!r}, {self.attrs!r})"

    @property
    def tag(self) -> str:
        return "#document" if isinstance(self.element, BeautifulSoup) else self.element.name

    @property
    def is_document(self) -> bool:
        return isinstance(self.element, BeautifulSoup)

    @property
    def attrs(self) -> dict[str, str]:
        # bs4 splits multi-valued attributes such as class into lists
        return {
            name: " ".join(value) if isinstance(value, list) else value
            for name, value in self.element.attrs.items()
        }

    @property
    def classes(self) -> list[str]:
        return self.element.get("class") or []

    @property
    def text(self) -> str:
        """Descendant text joined without separators, like ``textContent``."""
        return "".join(
            s for s in self.element.descendants
            if isinstance(s, NavigableString)
            and not isinstance(s, PreformattedString)
            and s.parent.name not in RAW_TEXT_ELEMENTS
        )

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attrs.get(name, default)

    def select(self, selector: str) -> list["DomNode"]:
        """All descendants matching ``selector``, in document order."""
        try:
            return [DomNode(tag) for tag in self.element.select(selector)]
        except (SelectorSyntaxError, NotImplementedError) as e:
            raise SelectorError(f"Invalid selector {selector!r}: {e}") from e

    def select_one(self, selector: str) -> Optional["DomNode"]:
        try:
            tag = self.element.select_one(selector)
        except (SelectorSyntaxError, NotImplementedError) as e:
            raise SelectorError(f"Invalid selector {selector!r}: {e}") from e
        return DomNode(tag) if tag is not None else None

    def has(self, selector: str) -> bool:
        return self.select_one(selector) is not None


def parse_html(html: str) -> DomNode:
    """Parse serialized HTML into a document node."""
    return DomNode(BeautifulSoup(html or "", "html.parser"))
