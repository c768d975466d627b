import pytest
from sqlalchemy import event, update

from tracker_import.db.models import ImportJob
from tracker_import.domain.imports.errors import ImportJobNotFoundError, InvalidJobTransitionError
from tracker_import.domain.imports.types import ImportStatus


def _create(tracker, **overrides):
    params = {
        "entity_type": "project",
        "csv_data": "Name,Key\nAlpha,AL1\nBeta,BE2\n",
        "field_mapping": {"name": "Name", "key": "Key"},
        "file_name": "projects.csv",
    }
    params.update(overrides)
    return tracker.create_job(**params)


def test_create_job_starts_pending(tracker):
    job = _create(tracker)
    assert job["status"] == ImportStatus.PENDING.value
    assert job["total_records"] == 2
    assert job["processed_records"] == 0
    assert job["started_at"] is None


def test_transitions_are_monotonic(tracker):
    job = _create(tracker)

    importing = tracker.advance_state(job["id"], ImportStatus.IMPORTING)
    assert importing["started_at"] is not None

    with pytest.raises(InvalidJobTransitionError):
        tracker.advance_state(job["id"], ImportStatus.PENDING)

    completed = tracker.complete_job(job["id"], successful=1, failed=1)
    assert completed["status"] == "completed"
    assert completed["processed_records"] == 2
    assert completed["completed_at"] is not None

    with pytest.raises(InvalidJobTransitionError):
        tracker.fail_job(job["id"], "too late")


def test_unknown_job(tracker):
    with pytest.raises(ImportJobNotFoundError):
        tracker.get_status("missing")
    with pytest.raises(ImportJobNotFoundError):
        tracker.advance_state("missing", ImportStatus.IMPORTING)
    assert tracker.get_job("missing") is None


def test_start_loses_to_a_concurrent_writer(tracker, session_factory):
    job = _create(tracker)
    jobs = ImportJob.__table__
    fired = []

    def competing_start(orm_execute_state):
        # Another worker commits "importing" between this worker's read and its write.
        if orm_execute_state.is_update and not fired:
            fired.append(True)
            orm_execute_state.session.connection().execute(
                update(jobs).where(jobs.c.id == job["id"]).values(status=ImportStatus.IMPORTING.value)
            )

    event.listen(session_factory, "do_orm_execute", competing_start)

    with pytest.raises(InvalidJobTransitionError) as excinfo:
        tracker.advance_state(job["id"], ImportStatus.IMPORTING)

    assert excinfo.value.current == ImportStatus.IMPORTING.value
    assert excinfo.value.requested == ImportStatus.IMPORTING.value


def test_status_errors_are_ordered_and_capped(tracker):
    job = _create(tracker)
    for row_number in reversed(range(2, 152)):
        tracker.append_error(
            job["id"],
            row_number=row_number,
            field_name="key",
            error_type="system",
            error_message="boom",
        )

    status = tracker.get_status(job["id"])
    assert status["error_count"] == 150
    assert len(status["errors"]) == 100
    assert [error["row_number"] for error in status["errors"]] == list(range(2, 102))

    page = tracker.get_status(job["id"], limit=500, offset=100)
    assert [error["row_number"] for error in page["errors"]] == list(range(102, 152))


def test_list_jobs(tracker):
    for i in range(3):
        _create(tracker, file_name=f"file-{i}.csv")

    jobs, total = tracker.list_jobs(limit=2)
    assert total == 3
    assert len(jobs) == 2
