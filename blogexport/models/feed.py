"""
Feed document models.

Typed views over parsed Atom documents. Repeatable children such as links and
categories are always exposed as lists, and every model keeps the element it
was read from so that unknown markup passes through reassembly untouched.
"""
import copy
from enum import Enum
from typing import Any, Dict, List, Optional
import xml.etree.ElementTree as ET

from pydantic import BaseModel, ConfigDict, Field

from blogexport.feeds.codec import OPENSEARCH_NS, THR_NS, atom, child_elements, child_text, qname

ENTRY_TAG = atom("entry")
FEED_TAG = atom("feed")
TOTAL_RESULTS_TAG = qname(OPENSEARCH_NS, "totalResults")
THREAD_TOTAL_TAG = qname(THR_NS, "total")


class EntryKind(str, Enum):
    """Classification of a feed entry."""
    POST = "post"
    NON_POST = "non_post"


class Link(BaseModel):
    """An Atom ``<link>``."""
    rel: Optional[str] = None
    type: Optional[str] = None
    href: Optional[str] = None
    title: Optional[str] = None

    @classmethod
    def from_element(cls, element: ET.Element) -> "Link":
        return cls(
            rel=element.get("rel"),
            type=element.get("type"),
            href=element.get("href"),
            title=element.get("title"),
        )


class Category(BaseModel):
    """An Atom ``<category>``."""
    scheme: Optional[str] = None
    term: str = ""

    @classmethod
    def from_element(cls, element: ET.Element) -> "Category":
        return cls(scheme=element.get("scheme"), term=element.get("term", ""))


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


class Entry(BaseModel):
    """
    One ``<entry>`` of an Atom feed.

    Whether it is a post or a settings/template record is decided by
    ``blogexport.feeds.classify`` from these fields alone.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None
    updated: Optional[str] = None
    published: Optional[str] = None
    links: List[Link] = Field(default_factory=list)
    categories: List[Category] = Field(default_factory=list)
    thread_total: Optional[int] = None
    element: Optional[ET.Element] = Field(default=None, exclude=True, repr=False)

    @classmethod
    def from_element(cls, element: ET.Element) -> "Entry":
        """Build an entry view from an ``<atom:entry>`` element."""
        return cls(
            id=child_text(element, atom("id")),
            title=child_text(element, atom("title")),
            content=child_text(element, atom("content"), atom("summary")),
            updated=child_text(element, atom("updated")),
            published=child_text(element, atom("published")),
            links=[Link.from_element(e) for e in child_elements(element, atom("link"))],
            categories=[Category.from_element(e) for e in child_elements(element, atom("category"))],
            thread_total=_parse_int(child_text(element, THREAD_TOTAL_TAG)),
            element=element,
        )

    def find_link(self, rel: str, type: Optional[str] = None) -> Optional[Link]:
        """Return the first link with the given rel (and type, if given)."""
        for link in self.links:
            if link.rel == rel and (type is None or link.type == type):
                return link
        return None

    def to_element(self) -> ET.Element:
        """Return a detached copy of the source element."""
        if self.element is None:
            raise ValueError("Entry has no source element")
        return copy.deepcopy(self.element)


class FeedDocument(BaseModel):
    """
    A whole Atom feed: feed-level metadata plus ordered entries.

    ``head`` holds every non-entry child of the root in document order; it is
    what gets written back, once, when the document is reassembled.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: Optional[str] = None
    title: Optional[str] = None
    updated: Optional[str] = None
    generator: Optional[str] = None
    total_results: Optional[int] = None
    links: List[Link] = Field(default_factory=list)
    entries: List[Entry] = Field(default_factory=list)
    root_attributes: Dict[str, str] = Field(default_factory=dict)
    head: List[Any] = Field(default_factory=list, repr=False)

    @staticmethod
    def is_feed_root(element: Optional[ET.Element]) -> bool:
        """Check whether an element is an Atom ``<feed>`` root."""
        return element is not None and element.tag == FEED_TAG

    @classmethod
    def from_element(cls, root: ET.Element) -> "FeedDocument":
        """
        Build a document view from a parsed ``<atom:feed>`` root.

        Raises:
            ValueError: If the root is not an Atom feed
        """
        if not cls.is_feed_root(root):
            raise ValueError(f"Not an Atom feed root: {root.tag}")

        head = [child for child in root if child.tag != ENTRY_TAG]
        return cls(
            id=child_text(root, atom("id")),
            title=child_text(root, atom("title")),
            updated=child_text(root, atom("updated")),
            generator=child_text(root, atom("generator")),
            total_results=_parse_int(child_text(root, TOTAL_RESULTS_TAG)),
            links=[Link.from_element(e) for e in child_elements(root, atom("link"))],
            entries=[Entry.from_element(e) for e in child_elements(root, ENTRY_TAG)],
            root_attributes=dict(root.attrib),
            head=head,
        )

    @classmethod
    def empty(cls) -> "FeedDocument":
        """An Atom feed with no metadata and no entries."""
        return cls()

    def has_total_results(self) -> bool:
        return any(element.tag == TOTAL_RESULTS_TAG for element in self.head)

    def find_link(self, rel: str) -> Optional[Link]:
        for link in self.links:
            if link.rel == rel:
                return link
        return None

    def to_element(self) -> ET.Element:
        """Reassemble the feed: root attributes, head metadata, then entries."""
        root = ET.Element(FEED_TAG, dict(self.root_attributes))
        for element in self.head:
            element = copy.deepcopy(element)
            if element.tag == TOTAL_RESULTS_TAG and self.total_results is not None:
                element.text = str(self.total_results)
            root.append(element)
        for entry in self.entries:
            root.append(entry.to_element())
        return root


class PaginationCursor(BaseModel):
    """Position in a paginated feed; ``start_index`` is 1-based."""
    start_index: int = 1
    page_size: int = 500

    def advance(self) -> None:
        self.start_index += self.page_size

    def query_params(self, request_atom: bool = True) -> Dict[str, str]:
        params = {
            "start-index": str(self.start_index),
            "max-results": str(self.page_size),
        }
        if request_atom:
            params["alt"] = "atom"
        return params
