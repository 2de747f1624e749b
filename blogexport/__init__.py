"""
Blogger Archive Exporter

Rebuilds the complete Atom feed of a Blogger blog from its paginated feed and
converts it into the Atom import document Blogger expects.
"""

__version__ = "0.1.0"
__author__ = "Blogger Archive Exporter Team"
__description__ = "A service for exporting and re-importing Blogger blog archives"
__license__ = "MIT"

# Package level constants
DEFAULT_FEED_PATH = "/feeds/posts/default"
DEFAULT_PAGE_SIZE = 500
DEFAULT_MAX_POSTS = 5

# Version info tuple
VERSION_INFO = tuple(map(int, __version__.split('.')))
