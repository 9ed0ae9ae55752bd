"""
Catalog clients: Gutendex (full text), Open Library and Google Books.
"""

from .base_client import BaseAPIClient
from .google_books import GoogleBooksClient
from .gutenberg import GutendexClient
from .open_library import OpenLibraryClient

__all__ = [
    "BaseAPIClient",
    "GoogleBooksClient",
    "GutendexClient",
    "OpenLibraryClient",
]
