from typing import Callable, Dict, List, Optional
from xml.sax.saxutils import quoteattr

import httpx
import pytest

from blogexport.config import AggregatorConfig, Settings, TranscoderConfig, load_profile

BLOG_URL = "https://example.blogspot.com"
BLOG_ID = "tag:blogger.com,1999:blog-1234567890"

POST_TERM = "http://schemas.google.com/blogger/2008/kind#post"
SETTINGS_TERM = "http://schemas.google.com/blogger/2008/kind#settings"


def post_entry_xml(n: int, *, alternate: bool = True, term: str = POST_TERM) -> str:
    alternate_link = (
        f'<link rel="alternate" type="text/html" href="{BLOG_URL}/2024/01/post-{n}.html" title="Post {n}"/>'
        if alternate else ""
    )
    return (
        "<entry>"
        f"<id>{BLOG_ID}.post-{n}</id>"
        "<published>2024-01-01T00:00:00.000-08:00</published>"
        "<updated>2024-01-02T00:00:00.000-08:00</updated>"
        f'<category scheme="http://schemas.google.com/g/2005#kind" term="{term}"/>'
        f'<title type="text">Post {n}</title>'
        f'<content type="html">&lt;p&gt;Body {n}&lt;/p&gt;</content>'
        f"{alternate_link}"
        "<thr:total>2</thr:total>"
        "</entry>"
    )


def settings_entry_xml(key: str) -> str:
    return (
        "<entry>"
        f"<id>{BLOG_ID}.settings.{key}</id>"
        f'<category scheme="http://schemas.google.com/g/2005#kind" term="{SETTINGS_TERM}"/>'
        f'<title type="text">{key}</title>'
        '<content type="text">value</content>'
        "</entry>"
    )


def feed_page_xml(
    entries: List[str],
    *,
    next_href: Optional[str] = None,
    total: Optional[int] = None,
) -> str:
    next_link = f'<link rel="next" type="application/atom+xml" href={quoteattr(next_href)}/>' if next_href else ""
    total_element = f"<openSearch:totalResults>{total}</openSearch:totalResults>" if total is not None else ""
    return (
        "<?xml version='1.0' encoding='UTF-8'?>"
        '<feed xmlns="http://www.w3.org/2005/Atom"'
        ' xmlns:openSearch="http://a9.com/-/spec/opensearchrss/1.0/"'
        ' xmlns:gd="http://schemas.google.com/g/2005"'
        ' xmlns:georss="http://www.georss.org/georss"'
        ' xmlns:thr="http://purl.org/syndication/thread/1.0">'
        f"<id>{BLOG_ID}</id>"
        "<updated>2024-02-01T00:00:00.000-08:00</updated>"
        '<title type="text">Example Blog</title>'
        f'<link rel="alternate" type="text/html" href="{BLOG_URL}/"/>'
        f"{next_link}"
        '<generator version="7.00" uri="http://www.blogger.com">Blogger</generator>'
        f"{total_element}"
        + "".join(entries)
        + "</feed>"
    )


def posts_xml(start: int, count: int) -> List[str]:
    return [post_entry_xml(n) for n in range(start, start + count)]


class FeedServer:
    """Serves canned pages keyed by start-index and records every request."""

    def __init__(self, pages: Dict[int, httpx.Response]):
        self.pages = pages
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        start = int(request.url.params.get("start-index", "1"))
        response = self.pages.get(start)
        if response is None:
            return httpx.Response(200, text=feed_page_xml([]))
        return response

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def feed_server() -> Callable[[Dict[int, httpx.Response]], FeedServer]:
    def _make(pages: Dict[int, httpx.Response]) -> FeedServer:
        return FeedServer(pages)
    return _make


@pytest.fixture
def aggregator_config() -> AggregatorConfig:
    return AggregatorConfig()


@pytest.fixture
def profile():
    return load_profile(TranscoderConfig())


@pytest.fixture
def settings() -> Settings:
    return Settings()


def rss_item_xml(n: int, title: Optional[str] = None, description: Optional[str] = None) -> str:
    title = title if title is not None else f"Post {n}"
    description = description if description is not None else f"&lt;p&gt;Body {n}&lt;/p&gt;"
    return (
        "<item>"
        f'<guid isPermaLink="false">{BLOG_ID}.post-{n}</guid>'
        f"<pubDate>Mon, 03 Mar 2025 08:54:00 +0000</pubDate>"
        f"<atom:updated>2025-03-04T10:00:00.000-08:00</atom:updated>"
        f"<title>{title}</title>"
        f"<description>{description}</description>"
        f"<link>{BLOG_URL}/2025/03/post-{n}.html</link>"
        "<thr:total>3</thr:total>"
        "</item>"
    )


def rss_xml(items: List[str], *, blog_id: str = BLOG_ID, title: Optional[str] = "Example Blog") -> str:
    title_element = f"<title>{title}</title>" if title is not None else ""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss xmlns:atom="http://www.w3.org/2005/Atom"'
        ' xmlns:openSearch="http://a9.com/-/spec/opensearchrss/1.0/"'
        ' xmlns:blogger="http://schemas.google.com/blogger/2008"'
        ' xmlns:georss="http://www.georss.org/georss"'
        ' xmlns:gd="http://schemas.google.com/g/2005"'
        ' xmlns:thr="http://purl.org/syndication/thread/1.0" version="2.0">'
        "<channel>"
        f"<atom:id>{blog_id}</atom:id>"
        "<lastBuildDate>Tue, 04 Mar 2025 18:00:00 +0000</lastBuildDate>"
        f"{title_element}"
        "<description></description>"
        f"<link>{BLOG_URL}/</link>"
        "<generator>Blogger</generator>"
        + "".join(items)
        + "</channel></rss>"
    )
