"""Exception types raised inside the bulk analysis pipeline."""

from __future__ import annotations


class BulkAnalysisError(Exception):
    """Base class for pipeline errors."""


class AnalysisError(BulkAnalysisError):
    """The blog qualification call failed. Retried by the pipeline."""


class EmptyResultError(AnalysisError):
    """The qualification call returned, but found nothing to analyze.

    Treated like a transient failure so an empty response is retried
    instead of being stored as "no blog".
    """


class DiscoveryError(BulkAnalysisError):
    """Website discovery failed."""


class StoreError(BulkAnalysisError):
    """Reading or writing a target document failed."""
