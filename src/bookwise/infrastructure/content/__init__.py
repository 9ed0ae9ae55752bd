"""Book content resolution."""

from .resolver import CatalogContentResolver

__all__ = ["CatalogContentResolver"]
