"""Error types shared by the core and its adapters."""

from __future__ import annotations


class FetchError(Exception):
    """The contest list could not be fetched or was malformed."""


class StorageError(Exception):
    """A durable read or write failed."""
