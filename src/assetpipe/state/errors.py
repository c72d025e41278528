"""Catalog state errors."""


class StateError(Exception):
    """Base exception for catalog operations."""


class CatalogError(StateError):
    """Raised when the catalog database cannot be opened or written."""
