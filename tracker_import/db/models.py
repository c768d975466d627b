"""
ORM models for import jobs and the tracker entities they write to.

Reference tables (types, priorities, statuses) carry a ``position`` column so
that bulk reads return rows in a stable order and "first available" defaults
are deterministic.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from tracker_import.db.session import Base


def _utcnow() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class ImportJob(Base):
    __tablename__ = "import_jobs"

    id = Column(String(36), primary_key=True, default=_new_id)
    entity_type = Column(String(50), nullable=False)
    file_name = Column(String(255), nullable=True)
    field_mapping = Column(JSON, nullable=False, default=dict)
    csv_data = Column(Text, nullable=False, default="")
    total_records = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="pending", index=True)
    processed_records = Column(Integer, nullable=False, default=0)
    successful_records = Column(Integer, nullable=False, default=0)
    failed_records = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    requested_by = Column(String(36), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class ImportErrorRecord(Base):
    """Append-only row-level failure recorded while a job is importing."""
    __tablename__ = "import_errors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(String(36), ForeignKey("import_jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    row_number = Column(Integer, nullable=False)
    field_name = Column(String(100), nullable=True)
    error_type = Column(String(20), nullable=False)
    error_message = Column(Text, nullable=False)
    original_value = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=_new_id)
    key = Column(String(10), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    project_type = Column(String(50), nullable=False, default="software")
    template = Column(String(50), nullable=False, default="scrum")
    lead_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class WorkItemType(Base):
    __tablename__ = "work_item_types"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False)
    position = Column(Integer, nullable=False, default=0)


class Priority(Base):
    __tablename__ = "priorities"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False)
    position = Column(Integer, nullable=False, default=0)


class WorkItemStatus(Base):
    __tablename__ = "work_item_statuses"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False)
    position = Column(Integer, nullable=False, default=0)


class Profile(Base):
    """User account profile; accounts are provisioned through signup only."""
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(254), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=True)
    department = Column(String(255), nullable=True)
    job_title = Column(String(255), nullable=True)
    location = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class WorkItem(Base):
    __tablename__ = "work_items"
    __table_args__ = (UniqueConstraint("project_id", "issue_number", name="uq_work_items_project_number"),)

    id = Column(String(36), primary_key=True, default=_new_id)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    issue_number = Column(Integer, nullable=False)
    issue_key = Column(String(32), unique=True, nullable=False)
    summary = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    issue_type_id = Column(String(36), ForeignKey("work_item_types.id"), nullable=False)
    priority_id = Column(String(36), ForeignKey("priorities.id"), nullable=True)
    status_id = Column(String(36), ForeignKey("work_item_statuses.id"), nullable=False)
    assignee_id = Column(String(36), nullable=True)
    reporter_id = Column(String(36), nullable=True)
    story_points = Column(Float, nullable=True)
    due_date = Column(Date, nullable=True)
    labels = Column(JSON, nullable=True)
    epic_key = Column(String(32), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


def create_tables(engine) -> None:
    """Create every table used by the import pipeline if it does not exist."""
    Base.metadata.create_all(bind=engine)
