"""
Per-job name -> identifier resolution for reference data.

The cache is built once at the start of an import from one bulk read per
reference kind and is read-only afterwards; its lifetime never exceeds one
job, so it needs no invalidation.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from tracker_import.core.config import settings
from tracker_import.db.repositories import ReferenceKind, ReferenceRecord, ReferenceRepository

logger = logging.getLogger(__name__)


def _normalize(name: Optional[str]) -> str:
    return (name or "").strip().lower()


@dataclass(frozen=True)
class LookupCache:
    maps: Dict[ReferenceKind, Dict[str, str]] = field(default_factory=dict)
    default_type_id: Optional[str] = None
    default_status_id: Optional[str] = None

    @classmethod
    def build(
        cls,
        references: ReferenceRepository,
        default_status_name: Optional[str] = None,
    ) -> "LookupCache":
        records: Dict[ReferenceKind, List[ReferenceRecord]] = {
            kind: references.bulk_read(kind) for kind in ReferenceKind
        }

        maps: Dict[ReferenceKind, Dict[str, str]] = {}
        for kind, rows in records.items():
            # First occurrence wins when names collide case-insensitively.
            kind_map: Dict[str, str] = {}
            for record in rows:
                kind_map.setdefault(_normalize(record.name), record.id)
            maps[kind] = kind_map

        types = records[ReferenceKind.TYPE]
        statuses = records[ReferenceKind.STATUS]
        canonical = _normalize(default_status_name or settings.default_status_name)
        default_status = next((s for s in statuses if _normalize(s.name) == canonical), None)
        if default_status is None and statuses:
            default_status = statuses[0]

        cache = cls(
            maps=maps,
            default_type_id=types[0].id if types else None,
            default_status_id=default_status.id if default_status else None,
        )
        logger.debug(
            "Built lookup cache: %s",
            {kind.value: len(kind_map) for kind, kind_map in maps.items()},
        )
        return cache

    def lookup(self, kind: ReferenceKind, name: Optional[str]) -> Optional[str]:
        if not name:
            return None
        return self.maps.get(kind, {}).get(_normalize(name))

    def resolve_type(self, name: Optional[str]) -> Optional[str]:
        return self.lookup(ReferenceKind.TYPE, name) or self.default_type_id

    def resolve_status(self, name: Optional[str]) -> Optional[str]:
        return self.lookup(ReferenceKind.STATUS, name) or self.default_status_id

    def resolve_priority(self, name: Optional[str]) -> Optional[str]:
        return self.lookup(ReferenceKind.PRIORITY, name)

    def resolve_project(self, key: Optional[str]) -> Optional[str]:
        return self.lookup(ReferenceKind.PROJECT, key)

    def resolve_user(self, email: Optional[str]) -> Optional[str]:
        return self.lookup(ReferenceKind.USER, email)
