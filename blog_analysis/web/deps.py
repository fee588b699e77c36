"""Dependency injection for FastAPI — shared config, store, analyzer."""

from __future__ import annotations

from functools import lru_cache

from blog_analysis.analysis.client import HttpAnalysisClient
from blog_analysis.config import Config, load_config
from blog_analysis.pipeline import BulkBlogAnalyzer
from blog_analysis.store.targets import SqliteTargetStore


@lru_cache
def get_config() -> Config:
    return load_config()


_store_instance: SqliteTargetStore | None = None


def get_store() -> SqliteTargetStore:
    global _store_instance
    if _store_instance is None or _store_instance.conn is None:
        _store_instance = SqliteTargetStore(get_config().db_path)
    return _store_instance


def close_store() -> None:
    global _store_instance
    if _store_instance:
        _store_instance.close()
        _store_instance = None


def build_analyzer(store: SqliteTargetStore) -> BulkBlogAnalyzer:
    config = get_config()
    return BulkBlogAnalyzer(
        config, store, HttpAnalysisClient.from_config(config), verbose=False,
    )
