"""
Feed processing package for the blog exporter.

This package fetches a blog's paginated Atom feed and rebuilds it as one
document (``aggregator``), decides which entries are posts (``classify``),
converts feeds into Blogger import documents (``transcoder``) and handles
XML parsing and serialization (``codec``).
"""
