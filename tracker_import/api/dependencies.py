"""
Shared dependencies for the API routers.

Routers reach the store only through these providers so tests can swap in
an isolated session factory via ``app.dependency_overrides``.
"""
from typing import Optional

from sqlalchemy.orm import sessionmaker

from tracker_import.core.config import settings
from tracker_import.db.repositories import Repositories, build_repositories
from tracker_import.db.session import get_session_local
from tracker_import.domain.imports.jobs import ImportJobTracker
from tracker_import.domain.imports.parser import parse_csv
from tracker_import.domain.imports.types import RawTable
from tracker_import.utils.cache import RecordsCache, content_hash

# Parsed tables keyed by SHA-256 of the raw text
records_cache = RecordsCache(
    ttl_seconds=settings.records_cache_ttl_seconds,
    max_entries=settings.records_cache_max_entries,
)


def get_session_factory() -> sessionmaker:
    return get_session_local()


def get_records_cache() -> RecordsCache:
    return records_cache


def build_tracker(session_factory: sessionmaker) -> ImportJobTracker:
    return ImportJobTracker(session_factory)


def build_store(session_factory: sessionmaker) -> Repositories:
    return build_repositories(session_factory)


def parse_with_cache(csv_data: str, cache: Optional[RecordsCache]) -> RawTable:
    if cache is None:
        return parse_csv(csv_data)

    key = content_hash(csv_data)
    table = cache.get(key)
    if table is None:
        table = parse_csv(csv_data)
        cache.set(key, table)
    return table
