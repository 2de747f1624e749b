"""
Paginated feed aggregation for the blog exporter.

Blogger serves at most 500 entries per feed request. This module walks the
pages of ``{blog}/feeds/posts/default`` one request at a time, keeps the posts
of every page in remote order, and rebuilds a single Atom document that carries
the feed-level metadata of the first page exactly once.

The main entry point is ``FeedAggregator.aggregate``.
"""
from typing import List, Optional, Set
from urllib.parse import urlparse

import httpx
import structlog
from prometheus_client import Counter
from pydantic import BaseModel, ConfigDict, Field

from blogexport import DEFAULT_FEED_PATH
from blogexport.config import AggregatorConfig, FailurePolicy
from blogexport.errors import InputError, UpstreamFetchError
from blogexport.feeds.classify import split_entries
from blogexport.feeds.codec import atom, parse_xml, serialize
from blogexport.models.feed import Entry, FeedDocument, PaginationCursor

# Set up structured logger
logger = structlog.get_logger()

# Define metrics
PAGES_FETCHED_TOTAL = Counter('feed_pages_fetched_total', 'Total number of feed pages fetched', ['outcome'])
AGGREGATIONS_TOTAL = Counter('feed_aggregations_total', 'Total number of feed aggregations', ['status'])

DEFAULT_HEADERS = {
    "Accept": "application/atom+xml,application/xml;q=0.9,*/*;q=0.1",
    "Accept-Language": "en-US,en;q=0.9",
}

# Links that point at other pages of the paginated feed
PAGING_RELS = ("next", "previous")


def build_feed_url(base_url: str, feed_path: str = DEFAULT_FEED_PATH) -> str:
    """
    Build the feed URL of a blog.

    Args:
        base_url: Blog address, with or without trailing slash
        feed_path: Absolute feed path to append

    Returns:
        str: Feed URL without query string

    Raises:
        InputError: If the URL is empty or not an absolute http(s) URL
    """
    url = (base_url or "").strip()
    if not url:
        raise InputError("URL is required")

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InputError(f"URL must be an absolute http(s) URL: {url}")

    return url.rstrip("/") + feed_path


class FeedPage(BaseModel):
    """One fetched page, split into posts and other entries."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    document: FeedDocument
    posts: List[Entry] = Field(default_factory=list)
    non_posts: List[Entry] = Field(default_factory=list)

    @property
    def entry_count(self) -> int:
        return len(self.document.entries)

    @property
    def has_next(self) -> bool:
        return self.document.find_link("next") is not None


def should_continue(
    page: FeedPage,
    next_start_index: int,
    page_size: int,
    *,
    link_paginated: bool,
    total_results: Optional[int],
) -> bool:
    """
    Decide whether another page must be fetched after ``page``.

    The first applicable signal wins: ``rel=next`` links when the feed uses
    them, then the declared total, then a page shorter than ``page_size``.
    An empty page always ends the walk.

    Args:
        page: Page just fetched
        next_start_index: Start index of the page that would be fetched next
        page_size: Entries requested per page
        link_paginated: Whether the first page advertised a ``rel=next`` link
        total_results: Total declared by the first page, if any

    Returns:
        bool: True to fetch the next page
    """
    if page.entry_count == 0:
        return False
    if link_paginated:
        return page.has_next
    if total_results is not None:
        return next_start_index <= total_results
    return page.entry_count >= page_size


class FeedAggregator:
    """
    Rebuilds a complete feed from Blogger's paginated feed.

    Pages are fetched strictly in sequence, once each: the decision to fetch
    a page depends on the content of the previous one. All accumulation state
    lives inside a single ``aggregate`` call.
    """

    def __init__(
        self,
        config: AggregatorConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the aggregator.

        Args:
            config: Aggregation configuration
            transport: Optional httpx transport, used by tests to stub the remote blog
        """
        self.config = config
        self.transport = transport
        self.headers = {
            **DEFAULT_HEADERS,
            "User-Agent": config.user_agent,
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self.transport,
            headers=self.headers,
            timeout=httpx.Timeout(self.config.request_timeout_seconds),
            follow_redirects=True,
        )

    async def fetch_page(
        self,
        client: httpx.AsyncClient,
        feed_url: str,
        cursor: PaginationCursor,
    ) -> bytes:
        """
        Fetch one page of the feed.

        Args:
            client: HTTP client to use for the request
            feed_url: Feed URL without query string
            cursor: Position of the page to fetch

        Returns:
            bytes: Raw page content

        Raises:
            UpstreamFetchError: On a non-success status or a transport failure
        """
        params = cursor.query_params(self.config.request_atom)
        logger.debug("Fetching feed page", url=feed_url, start_index=cursor.start_index)

        try:
            response = await client.get(feed_url, params=params)
        except httpx.HTTPError as e:
            PAGES_FETCHED_TOTAL.labels(outcome="transport_error").inc()
            logger.error(
                "HTTP error fetching feed page",
                url=feed_url,
                start_index=cursor.start_index,
                error=str(e),
            )
            raise UpstreamFetchError("Failed to fetch RSS feed", status_code=502, url=feed_url) from e

        if not response.is_success:
            PAGES_FETCHED_TOTAL.labels(outcome="http_error").inc()
            logger.error(
                "Failed to fetch feed page",
                url=feed_url,
                start_index=cursor.start_index,
                status_code=response.status_code,
                reason=response.reason_phrase,
            )
            raise UpstreamFetchError(
                "Failed to fetch RSS feed",
                status_code=response.status_code,
                url=feed_url,
            )

        PAGES_FETCHED_TOTAL.labels(outcome="success").inc()
        return response.content

    def parse_page(self, content: bytes) -> Optional[FeedPage]:
        """
        Parse a page body.

        Returns:
            Optional[FeedPage]: The page, or None if the body holds no Atom feed

        Raises:
            ParseError: If the body is not well-formed XML
        """
        if not content.strip():
            return None

        root = parse_xml(content)
        if not FeedDocument.is_feed_root(root):
            logger.info("Document has no feed root", root=root.tag)
            return None

        document = FeedDocument.from_element(root)
        posts, non_posts = split_entries(document.entries, self.config.classification)
        return FeedPage(document=document, posts=posts, non_posts=non_posts)

    def assemble(
        self,
        first: FeedDocument,
        non_posts: List[Entry],
        posts: List[Entry],
    ) -> FeedDocument:
        """Attach the merged entries to the first page's metadata."""
        if self.config.keep_non_post_entries:
            entries = non_posts + posts
        else:
            entries = list(posts)

        # The merged feed is one page; links to other pages are dropped
        head = [
            element for element in first.head
            if not (element.tag == atom("link") and element.get("rel") in PAGING_RELS)
        ]
        links = [link for link in first.links if link.rel not in PAGING_RELS]

        update = {"entries": entries, "head": head, "links": links}
        if first.has_total_results():
            update["total_results"] = len(posts)
        return first.model_copy(update=update)

    async def aggregate(self, base_url: str) -> FeedDocument:
        """
        Fetch every page of a blog's feed and merge them into one document.

        Args:
            base_url: Blog address

        Returns:
            FeedDocument: Reassembled feed; an empty feed if the blog serves none

        Raises:
            InputError: If the URL is unusable
            UpstreamFetchError: If the first page (or, with the ``fail`` policy,
                any page) cannot be fetched
            ParseError: If a page is not well-formed XML
        """
        feed_url = build_feed_url(base_url, self.config.feed_path)
        cursor = PaginationCursor(page_size=self.config.page_size)

        first: Optional[FeedDocument] = None
        link_paginated = False
        non_posts: List[Entry] = []
        posts: List[Entry] = []
        seen_ids: Set[str] = set()
        duplicates = 0
        pages = 0

        logger.info("Aggregating feed", url=feed_url, page_size=cursor.page_size)

        try:
            async with self._client() as client:
                while True:
                    if pages >= self.config.max_pages:
                        logger.warning(
                            "Page limit reached, stopping aggregation",
                            url=feed_url,
                            max_pages=self.config.max_pages,
                        )
                        break

                    try:
                        content = await self.fetch_page(client, feed_url, cursor)
                    except UpstreamFetchError as e:
                        if first is None or self.config.mid_pagination_failure == FailurePolicy.FAIL:
                            raise
                        logger.warning(
                            "Feed page failed, keeping partial results",
                            url=feed_url,
                            start_index=cursor.start_index,
                            status_code=e.status_code,
                            posts=len(posts),
                        )
                        break
                    pages += 1

                    page = self.parse_page(content)
                    if page is None:
                        break

                    if first is None:
                        first = page.document
                        non_posts = page.non_posts
                        link_paginated = page.has_next

                    for entry in page.posts:
                        if entry.id:
                            if entry.id in seen_ids:
                                duplicates += 1
                                continue
                            seen_ids.add(entry.id)
                        posts.append(entry)

                    cursor.advance()
                    if not should_continue(
                        page,
                        cursor.start_index,
                        cursor.page_size,
                        link_paginated=link_paginated,
                        total_results=first.total_results,
                    ):
                        break
        except Exception as e:
            AGGREGATIONS_TOTAL.labels(status=type(e).__name__).inc()
            raise

        if first is None:
            logger.info("Feed has no entries, returning empty feed", url=feed_url)
            AGGREGATIONS_TOTAL.labels(status="empty").inc()
            return FeedDocument.empty()

        if duplicates:
            logger.warning("Skipped duplicate posts across pages", url=feed_url, duplicates=duplicates)

        logger.info(
            "Feed aggregated",
            url=feed_url,
            pages=pages,
            posts=len(posts),
            non_posts=len(non_posts),
        )
        AGGREGATIONS_TOTAL.labels(status="success").inc()
        return self.assemble(first, non_posts, posts)

    async def aggregate_to_xml(self, base_url: str) -> str:
        """Aggregate a blog's feed and serialize the result."""
        document = await self.aggregate(base_url)
        return serialize(document.to_element())
