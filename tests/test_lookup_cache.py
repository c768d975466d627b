from tracker_import.db.repositories import ReferenceKind, ReferenceRecord
from tracker_import.domain.imports.lookup import LookupCache


class StaticReferences:
    def __init__(self, data):
        self.data = data
        self.reads = []

    def bulk_read(self, kind):
        self.reads.append(kind)
        return list(self.data.get(kind, []))


def _refs(**kinds):
    return StaticReferences({ReferenceKind(kind): records for kind, records in kinds.items()})


def test_one_bulk_read_per_reference_kind():
    references = _refs()
    LookupCache.build(references)
    assert sorted(references.reads) == sorted(ReferenceKind)


def test_names_resolve_case_insensitively():
    cache = LookupCache.build(_refs(priority=[ReferenceRecord("p1", "High")], project=[ReferenceRecord("pr1", "CORE")]))
    assert cache.resolve_priority("HIGH") == "p1"
    assert cache.resolve_project("core") == "pr1"
    assert cache.resolve_priority("Urgent") is None


def test_canonical_default_status_preferred_over_first():
    cache = LookupCache.build(_refs(status=[ReferenceRecord("s0", "Backlog"), ReferenceRecord("s1", "To Do")]))
    assert cache.default_status_id == "s1"
    assert cache.resolve_status("Nonexistent") == "s1"
    assert cache.resolve_status("backlog") == "s0"


def test_first_status_used_when_no_canonical_default():
    cache = LookupCache.build(_refs(status=[ReferenceRecord("s0", "Open"), ReferenceRecord("s1", "Closed")]))
    assert cache.resolve_status(None) == "s0"


def test_default_type_is_first_available():
    cache = LookupCache.build(_refs(type=[ReferenceRecord("t0", "Task"), ReferenceRecord("t1", "Bug")]))
    assert cache.resolve_type("Epic") == "t0"
    assert cache.resolve_type("bug") == "t1"


def test_empty_reference_tables_have_no_defaults():
    cache = LookupCache.build(_refs())
    assert cache.resolve_type("Task") is None
    assert cache.resolve_status("To Do") is None


def test_default_fallback_is_deterministic_against_store(store, seeded):
    first = LookupCache.build(store.references)
    second = LookupCache.build(store.references)
    assert first.resolve_status("Whatever") == second.resolve_status("Whatever") == seeded["statuses"]["To Do"]
    assert first.resolve_type("Whatever") == seeded["types"]["Task"]
