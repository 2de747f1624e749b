"""
Transcoder input models.

A ``SourceChannel`` is the blog as seen through either an RSS 2.0 channel or
an Atom feed; items are always a list, in document order.
"""
from typing import List, Optional

from pydantic import BaseModel, Field


class SourceItem(BaseModel):
    """One post of the source feed."""
    guid: str = ""
    title: str = ""
    link: str = ""
    description: str = ""
    published: Optional[str] = None
    updated: Optional[str] = None
    thread_total: int = 0


class SourceChannel(BaseModel):
    """Blog-level data of the source feed."""
    id: str = ""
    title: Optional[str] = None
    generator: Optional[str] = None
    link: Optional[str] = None
    items: List[SourceItem] = Field(default_factory=list)
