from __future__ import annotations


class SalesDashError(Exception):
    """Base class for errors surfaced to the user as a notice."""


class IngestionError(SalesDashError):
    """An imported file could not be turned into a usable dataset."""


class AuthenticationError(SalesDashError):
    """Unknown user or wrong password."""
