"""
Central re-exports for the blog exporter data models.

This module exposes the canonical models from their dedicated modules to
provide stable import paths as "blogexport.models" without redefining types.
"""
from .feed import Category, Entry, EntryKind, FeedDocument, Link, PaginationCursor
from .source import SourceChannel, SourceItem

__all__ = [
    "Category",
    "Entry",
    "EntryKind",
    "FeedDocument",
    "Link",
    "PaginationCursor",
    "SourceChannel",
    "SourceItem",
]
