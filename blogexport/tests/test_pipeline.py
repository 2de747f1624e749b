import re

import httpx
import pytest

from blogexport.errors import InputError, UpstreamFetchError
from blogexport.feeds.codec import atom, parse_xml
from blogexport.feeds.transcoder import ERROR_DOCUMENT
from blogexport.pipeline import export_blog, validate_blog_url
from conftest import BLOG_ID, BLOG_URL, feed_page_xml, posts_xml, settings_entry_xml


@pytest.mark.parametrize("url", [
    "https://example.blogspot.com",
    "https://example.blogspot.com/",
    "  https://Example.Blogspot.com/2024/01/post.html ",
])
def test_validate_blog_url_accepts_blogspot(url):
    assert validate_blog_url(url) == url.strip()


def test_validate_blog_url_requires_blogspot_host():
    with pytest.raises(InputError, match="blogspot.com"):
        validate_blog_url("https://example.com")


def test_validate_blog_url_requires_https():
    with pytest.raises(InputError, match="HTTPS"):
        validate_blog_url("http://example.blogspot.com")


def test_validate_blog_url_rejects_empty():
    with pytest.raises(InputError):
        validate_blog_url("")


@pytest.mark.asyncio
async def test_export_blog_builds_import_document(settings, feed_server):
    server = feed_server({
        1: httpx.Response(200, text=feed_page_xml([settings_entry_xml("BLOG_NAME")] + posts_xml(1, 8))),
    })

    filename, xml = await export_blog(BLOG_URL, settings, transport=server.transport)

    assert re.fullmatch(r"blog-\d{2}-\d{2}-\d{4}\.xml", filename)
    assert xml != ERROR_DOCUMENT
    ids = [entry.findtext(atom("id")) for entry in parse_xml(xml.encode("utf-8")).findall(atom("entry"))]
    assert ids[0] == f"{BLOG_ID}.template"
    assert ids[-5:] == [f"{BLOG_ID}.post-{n}" for n in range(1, 6)]
    # the upstream settings entry is not copied over
    assert ids.count(f"{BLOG_ID}.settings.BLOG_NAME") == 1


@pytest.mark.asyncio
async def test_export_blog_rejects_non_blogspot_url(settings, feed_server):
    server = feed_server({})

    with pytest.raises(InputError):
        await export_blog("https://example.com", settings, transport=server.transport)

    assert server.requests == []


@pytest.mark.asyncio
async def test_export_blog_propagates_upstream_failure(settings, feed_server):
    server = feed_server({1: httpx.Response(500, text="boom")})

    with pytest.raises(UpstreamFetchError) as exc_info:
        await export_blog(BLOG_URL, settings, transport=server.transport)

    assert exc_info.value.status_code == 500
