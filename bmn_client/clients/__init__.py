"""Expose constructed client wrappers."""

from .api_client import BMNAPIClient
from .endpoints import APIEndpoint, APINamespace, HTTPMethod
from .sqlite_store import SQLiteStore

__all__ = [
    "APIEndpoint",
    "APINamespace",
    "BMNAPIClient",
    "HTTPMethod",
    "SQLiteStore",
]
