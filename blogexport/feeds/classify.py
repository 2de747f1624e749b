"""
Entry classification.

Blogger exports mix real posts with settings, template and comment records.
Two signals identify a post: the ``kind#post`` category term used by older
feeds, and the HTML alternate link newer feeds carry on every post. The
verdict depends on the entry alone.
"""
from typing import Iterable, List, Tuple

from blogexport.config import ClassificationStrategy
from blogexport.models.feed import Entry, EntryKind

POST_KIND_TERM = "http://schemas.google.com/blogger/2008/kind#post"
POST_KIND_SUFFIX = "#post"


def has_post_category(entry: Entry) -> bool:
    """Check for a category term marking the entry as a post."""
    return any(
        category.term == POST_KIND_TERM or category.term.endswith(POST_KIND_SUFFIX)
        for category in entry.categories
    )


def has_alternate_html_link(entry: Entry) -> bool:
    """Check for a ``rel="alternate" type="text/html"`` link."""
    return entry.find_link("alternate", "text/html") is not None


def is_post_entry(
    entry: Entry,
    strategy: ClassificationStrategy = ClassificationStrategy.CATEGORY,
) -> bool:
    """
    Check whether an entry is a blog post.

    Args:
        entry: Entry to check
        strategy: Which signal identifies a post

    Returns:
        bool: True if the entry is a blog post
    """
    if strategy == ClassificationStrategy.ALTERNATE_LINK:
        return has_alternate_html_link(entry)
    return has_post_category(entry)


def classify_entry(
    entry: Entry,
    strategy: ClassificationStrategy = ClassificationStrategy.CATEGORY,
) -> EntryKind:
    return EntryKind.POST if is_post_entry(entry, strategy) else EntryKind.NON_POST


def split_entries(
    entries: Iterable[Entry],
    strategy: ClassificationStrategy = ClassificationStrategy.CATEGORY,
) -> Tuple[List[Entry], List[Entry]]:
    """Split entries into ``(posts, non_posts)``, each in original order."""
    posts: List[Entry] = []
    non_posts: List[Entry] = []
    for entry in entries:
        if is_post_entry(entry, strategy):
            posts.append(entry)
        else:
            non_posts.append(entry)
    return posts, non_posts
