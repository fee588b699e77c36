"""Bulk blog analysis for company lists."""

__version__ = "0.1.0"
