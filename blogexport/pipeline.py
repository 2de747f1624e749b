"""
End-to-end export: aggregate a blog's feed, then turn it into an import document.
"""
from typing import Optional, Tuple
from urllib.parse import urlparse

import httpx
import structlog

from blogexport.config import Settings, load_profile
from blogexport.errors import InputError
from blogexport.feeds.aggregator import FeedAggregator
from blogexport.feeds.codec import serialize
from blogexport.feeds.transcoder import FeedTranscoder, export_filename

logger = structlog.get_logger()

BLOGSPOT_SUFFIX = ".blogspot.com"


def validate_blog_url(url: str) -> str:
    """
    Check that a URL points at a blogspot blog over HTTPS.

    Raises:
        InputError: If the URL is not an https ``*.blogspot.com`` address
    """
    url = (url or "").strip()
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    if not host.endswith(BLOGSPOT_SUFFIX):
        raise InputError(f"The URL must end with {BLOGSPOT_SUFFIX}.")
    if parsed.scheme != "https":
        raise InputError("The URL must use HTTPS.")
    return url


async def export_blog(
    url: str,
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Tuple[str, str]:
    """
    Export a blog as a Blogger import document.

    Args:
        url: Blog address
        settings: Application settings
        transport: Optional httpx transport for the feed requests

    Returns:
        Tuple[str, str]: Download file name and document
    """
    url = validate_blog_url(url)
    aggregator = FeedAggregator(settings.aggregator, transport=transport)
    transcoder = FeedTranscoder(load_profile(settings.transcoder), settings.aggregator.classification)

    document = await aggregator.aggregate(url)
    xml = transcoder.transcode(serialize(document.to_element()))

    logger.info("Blog exported", url=url, posts=len(document.entries))
    return export_filename(), xml
