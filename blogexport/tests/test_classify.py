import pytest

from blogexport.config import ClassificationStrategy
from blogexport.feeds.classify import classify_entry, is_post_entry, split_entries
from blogexport.feeds.codec import parse_xml
from blogexport.models import Entry, EntryKind, FeedDocument
from conftest import SETTINGS_TERM, feed_page_xml, post_entry_xml, settings_entry_xml


def entries_of(*entries: str):
    return FeedDocument.from_element(parse_xml(feed_page_xml(list(entries)))).entries


def test_category_term_marks_posts():
    post, settings = entries_of(post_entry_xml(1), settings_entry_xml("BLOG_NAME"))

    assert is_post_entry(post)
    assert not is_post_entry(settings)


def test_alternate_link_marks_posts():
    with_link, without_link = entries_of(post_entry_xml(1), post_entry_xml(2, alternate=False))

    assert is_post_entry(with_link, ClassificationStrategy.ALTERNATE_LINK)
    assert not is_post_entry(without_link, ClassificationStrategy.ALTERNATE_LINK)


def test_term_with_post_suffix_is_a_post():
    (entry,) = entries_of(post_entry_xml(1, term="tag:example.com,2024:kind#post"))

    assert is_post_entry(entry)


def test_entry_without_categories_is_not_a_post():
    assert not is_post_entry(Entry(id="x"))
    assert not is_post_entry(Entry(id="x"), ClassificationStrategy.ALTERNATE_LINK)


@pytest.mark.parametrize("strategy", list(ClassificationStrategy))
def test_classification_is_idempotent(strategy):
    entries = entries_of(post_entry_xml(1), post_entry_xml(2, alternate=False, term=SETTINGS_TERM))

    first = [classify_entry(entry, strategy) for entry in entries]
    second = [classify_entry(entry, strategy) for entry in entries]

    assert first == second


def test_classify_entry_returns_kind():
    post, settings = entries_of(post_entry_xml(1), settings_entry_xml("BLOG_NAME"))

    assert classify_entry(post) == EntryKind.POST
    assert classify_entry(settings) == EntryKind.NON_POST


def test_split_entries_preserves_order():
    entries = entries_of(
        settings_entry_xml("A"),
        post_entry_xml(1),
        settings_entry_xml("B"),
        post_entry_xml(2),
    )

    posts, non_posts = split_entries(entries)

    assert [e.id.rsplit(".", 1)[-1] for e in posts] == ["post-1", "post-2"]
    assert [e.title for e in non_posts] == ["A", "B"]


def test_entry_view_reads_fields():
    (entry,) = entries_of(post_entry_xml(7))

    assert entry.title == "Post 7"
    assert entry.content == "<p>Body 7</p>"
    assert entry.thread_total == 2
    assert entry.find_link("alternate", "text/html").href.endswith("/post-7.html")
    assert entry.categories[0].term.endswith("#post")
