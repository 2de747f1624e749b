"""
Web service module for the blog exporter.

This module exposes feed aggregation and import document synthesis as HTTP
endpoints.
"""
from blogexport.web.app import create_app

__all__ = ["create_app"]
