"""
Blogger import document synthesis.

Converts a blog feed (RSS 2.0 as Blogger serves it, or the Atom document the
aggregator produces) into the Atom shape Blogger accepts on import: a template
entry, one settings entry per configured setting, then a bounded number of
post entries.
"""
import re
from datetime import date
from typing import Optional, Union
from urllib.parse import urlparse
import xml.etree.ElementTree as ET

import emoji
import structlog
from dateutil import parser as date_parser
from prometheus_client import Counter

from blogexport.config import ClassificationStrategy, TranscoderProfile
from blogexport.errors import ExportError, MalformedId, ParseError
from blogexport.feeds.classify import is_post_entry
from blogexport.feeds.codec import (
    GD_NS,
    THR_NS,
    XML_DECLARATION,
    atom,
    child_elements,
    child_text,
    parse_xml,
    qname,
    serialize,
)
from blogexport.models.feed import FeedDocument
from blogexport.models.source import SourceChannel, SourceItem

# Set up structured logger
logger = structlog.get_logger()

TRANSCODES_TOTAL = Counter('feed_transcodes_total', 'Total number of feed transcodes', ['status'])

ERROR_DOCUMENT = f"{XML_DECLARATION}<error>Failed to process RSS feed</error>"

KIND_SCHEME = "http://schemas.google.com/g/2005#kind"
SETTINGS_KIND = "http://schemas.google.com/blogger/2008/kind#settings"
POST_KIND = "http://schemas.google.com/blogger/2008/kind#post"
THUMBNAIL_REL = "http://schemas.google.com/g/2005#thumbnail"

BLOG_ID_DELIMITER = "blog-"
POST_ID_DELIMITER = ".post-"


def _parse_numeric_id(value: str, delimiter: str) -> str:
    match = re.search(re.escape(delimiter) + r"(\d+)$", (value or "").strip())
    if not match:
        raise MalformedId(value, delimiter)
    return match.group(1)


def parse_blog_id(value: str) -> str:
    """
    Extract the numeric blog id from ``tag:blogger.com,1999:blog-<id>``.

    Raises:
        MalformedId: If the value does not end in ``blog-<digits>``
    """
    return _parse_numeric_id(value, BLOG_ID_DELIMITER)


def parse_post_id(value: str) -> str:
    """
    Extract the numeric post id from ``tag:blogger.com,1999:blog-<id>.post-<id>``.

    Raises:
        MalformedId: If the value does not end in ``.post-<digits>``
    """
    return _parse_numeric_id(value, POST_ID_DELIMITER)


def _code_point_references(chars: str) -> str:
    return "".join(f"&#{ord(char)};" for char in chars)


def convert_emojis(text: str) -> str:
    """
    Replace every emoji with numeric character references.

    Each code point of an emoji sequence (ZWJ joiners, skin tones, variation
    selectors included) becomes its own ``&#N;`` reference. ZWJ sequences
    that are not standard emoji are kept whole, joiners included.
    """
    if not text:
        return ""
    parts = []
    for token in emoji.analyze(text, non_emoji=True, join_emoji=True):
        if isinstance(token.value, str):
            parts.append(token.chars)
        else:
            parts.append(_code_point_references(token.chars))
    return "".join(parts)


def export_filename(day: Optional[date] = None) -> str:
    """Return the download name of an import document, ``blog-MM-DD-YYYY.xml``."""
    day = day or date.today()
    return f"blog-{day:%m-%d-%Y}.xml"


def _thread_total(value: Optional[str]) -> int:
    try:
        return int((value or "").strip())
    except ValueError:
        return 0


def _read_rss(root: ET.Element) -> SourceChannel:
    channel = root.find("channel")
    if channel is None:
        raise ParseError("RSS document has no channel")

    items = []
    for item in child_elements(channel, "item"):
        items.append(SourceItem(
            guid=child_text(item, "guid") or "",
            title=child_text(item, "title") or "",
            link=child_text(item, "link") or "",
            description=child_text(item, "description") or "",
            published=child_text(item, "pubDate"),
            updated=child_text(item, atom("updated")),
            thread_total=_thread_total(child_text(item, qname(THR_NS, "total"))),
        ))

    return SourceChannel(
        id=child_text(channel, atom("id"), "id") or "",
        title=child_text(channel, "title"),
        generator=child_text(channel, "generator"),
        link=child_text(channel, "link"),
        items=items,
    )


def _read_atom(root: ET.Element, classification: ClassificationStrategy) -> SourceChannel:
    document = FeedDocument.from_element(root)
    alternate = document.find_link("alternate")

    items = []
    for entry in document.entries:
        if not is_post_entry(entry, classification):
            continue
        link = entry.find_link("alternate", "text/html")
        items.append(SourceItem(
            guid=entry.id or "",
            title=entry.title or "",
            link=link.href if link and link.href else "",
            description=entry.content or "",
            published=entry.published,
            updated=entry.updated,
            thread_total=entry.thread_total or 0,
        ))

    return SourceChannel(
        id=document.id or "",
        title=document.title,
        generator=document.generator,
        link=alternate.href if alternate else None,
        items=items,
    )


def read_source(
    root: ET.Element,
    classification: ClassificationStrategy = ClassificationStrategy.CATEGORY,
) -> SourceChannel:
    """
    Read the blog and its posts from an RSS 2.0 or Atom document.

    Raises:
        ParseError: If the document is neither an RSS channel nor an Atom feed
    """
    if root.tag == "rss":
        return _read_rss(root)
    if FeedDocument.is_feed_root(root):
        return _read_atom(root, classification)
    raise ParseError(f"Unsupported feed document root: {root.tag}")


def _site_root(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    parsed = urlparse(url.strip())
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"


def _add(parent: ET.Element, tag: str, text: Optional[str] = None, **attrib: str) -> ET.Element:
    element = ET.SubElement(parent, tag, attrib)
    if text is not None:
        element.text = text
    return element


class FeedTranscoder:
    """
    Builds Blogger import documents.

    All static data comes from the ``TranscoderProfile`` given at
    construction; nothing is shared between calls.
    """

    def __init__(
        self,
        profile: TranscoderProfile,
        classification: ClassificationStrategy = ClassificationStrategy.CATEGORY,
    ):
        self.profile = profile
        self.classification = classification

    def transcode(self, data: Union[bytes, str]) -> str:
        """
        Convert a feed into a Blogger import document.

        Never raises: on any failure the ``<error>`` document is returned, so
        callers always receive a document.

        Args:
            data: RSS 2.0 or Atom document

        Returns:
            str: Import document, or the error document
        """
        try:
            channel = read_source(parse_xml(data), self.classification)
            document = self.build_document(channel)
        except ExportError as e:
            logger.warning("Error parsing RSS XML", error=e.message)
            TRANSCODES_TOTAL.labels(status="error").inc()
            return ERROR_DOCUMENT
        except Exception as e:
            logger.exception("Unexpected error transcoding feed", error=str(e))
            TRANSCODES_TOTAL.labels(status="error").inc()
            return ERROR_DOCUMENT

        TRANSCODES_TOTAL.labels(status="success").inc()
        return document

    def build_document(self, channel: SourceChannel) -> str:
        """
        Synthesize the import document for a blog.

        Raises:
            MalformedId: If the blog id or a post guid has no numeric id
        """
        profile = self.profile
        blog_id = channel.id
        numeric_id = parse_blog_id(blog_id)
        title = channel.title or profile.default_title
        generator = channel.generator or profile.default_generator
        site_root = _site_root(channel.link)

        root = ET.Element(atom("feed"))
        _add(root, atom("id"), f"{blog_id}.archive")
        _add(root, atom("updated"), profile.updated)
        _add(root, atom("title"), title, type="text")
        root.append(self.author_element())
        _add(root, atom("generator"), generator, version=profile.generator_version, uri=profile.platform_url)

        root.append(self.template_entry(blog_id, numeric_id, title))
        for key, value in profile.settings:
            root.append(self.settings_entry(blog_id, numeric_id, key, value))

        items = channel.items[:profile.max_posts]
        for item in items:
            root.append(self.post_entry(item, numeric_id, site_root))

        logger.info(
            "Import document built",
            blog_id=numeric_id,
            settings=len(profile.settings),
            posts=len(items),
            skipped_posts=len(channel.items) - len(items),
        )
        # Emoji still raw in titles and attributes become character references
        return convert_emojis(serialize(root, stylesheet=profile.stylesheet_href))

    def author_element(self) -> ET.Element:
        author = self.profile.author
        element = ET.Element(atom("author"))
        _add(element, atom("name"), author.name)
        _add(element, atom("uri"), author.uri)
        _add(element, atom("email"), author.email)
        _add(
            element,
            qname(GD_NS, "image"),
            rel=THUMBNAIL_REL,
            width=str(author.image_size),
            height=str(author.image_size),
            src=author.image_src,
        )
        return element

    def _entry(self, entry_id: str, published: str, updated: str, kind: str) -> ET.Element:
        entry = ET.Element(atom("entry"))
        _add(entry, atom("id"), entry_id)
        _add(entry, atom("published"), published)
        _add(entry, atom("updated"), updated)
        _add(entry, atom("category"), scheme=KIND_SCHEME, term=kind)
        return entry

    def template_entry(self, blog_id: str, numeric_id: str, title: str) -> ET.Element:
        profile = self.profile
        href = f"{profile.platform_url}/feeds/{numeric_id}/template/default"

        entry = self._entry(f"{blog_id}.template", profile.published, profile.updated, SETTINGS_KIND)
        _add(entry, atom("title"), f"Template: {title}", type="text")
        _add(entry, atom("content"), profile.template_markup, type="text")
        _add(entry, atom("link"), rel="edit", type="application/atom+xml", href=href)
        _add(entry, atom("link"), rel="self", type="application/atom+xml", href=href)
        _add(entry, atom("link"), rel="alternate", type="text/html", href=href)
        entry.append(self.author_element())
        return entry

    def settings_entry(self, blog_id: str, numeric_id: str, key: str, value: str) -> ET.Element:
        profile = self.profile
        href = f"{profile.platform_url}/feeds/{numeric_id}/settings/{key}"

        entry = self._entry(f"{blog_id}.settings.{key}", profile.published, profile.updated, SETTINGS_KIND)
        _add(entry, atom("title"), key, type="text")
        _add(entry, atom("content"), value, type="text")
        _add(entry, atom("link"), rel="edit", type="application/atom+xml", href=href)
        _add(entry, atom("link"), rel="self", type="application/atom+xml", href=href)
        entry.append(self.author_element())
        return entry

    def _timestamp(self, value: Optional[str]) -> Optional[str]:
        if not value or not value.strip():
            return None
        try:
            return date_parser.parse(value).isoformat(timespec="milliseconds")
        except (ValueError, OverflowError) as e:
            logger.debug("Unparseable post date", date=value, error=str(e))
            return None

    def post_entry(self, item: SourceItem, numeric_id: str, site_root: Optional[str]) -> ET.Element:
        """
        Build the entry of one post.

        Raises:
            MalformedId: If the guid has no numeric post id
        """
        profile = self.profile
        post_id = parse_post_id(item.guid)
        published = self._timestamp(item.published) or profile.post_published
        updated = (item.updated or "").strip() or published
        title = item.title
        post_href = f"{profile.platform_url}/feeds/{numeric_id}/posts/default/{post_id}"
        comments_root = site_root or _site_root(item.link) or profile.platform_url

        entry = self._entry(item.guid, published, updated, POST_KIND)
        _add(entry, atom("title"), title, type="text")
        _add(entry, atom("content"), convert_emojis(item.description), type="html")
        _add(
            entry,
            atom("link"),
            rel="replies",
            type="application/atom+xml",
            href=f"{comments_root}/feeds/{post_id}/comments/default",
            title="Post Comments",
        )
        _add(
            entry,
            atom("link"),
            rel="replies",
            type="text/html",
            href=f"{item.link}#comment-form",
            title=f"{item.thread_total} Comments",
        )
        _add(entry, atom("link"), rel="edit", type="application/atom+xml", href=post_href)
        _add(entry, atom("link"), rel="self", type="application/atom+xml", href=post_href)
        _add(entry, atom("link"), rel="alternate", type="text/html", href=item.link, title=title)
        entry.append(self.author_element())
        _add(entry, qname(THR_NS, "total"), str(item.thread_total))
        return entry
