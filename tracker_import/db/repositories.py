"""
Narrow repository contracts the import pipeline depends on, plus their
SQLAlchemy implementations.

Every write runs in its own session and transaction, so a rejected row
never leaves the session in a state that poisons the rows after it.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Set

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from tracker_import.db.models import (
    Priority,
    Profile,
    Project,
    WorkItem,
    WorkItemStatus,
    WorkItemType,
)

logger = logging.getLogger(__name__)

# Keeps IN (...) lists under SQLite's bound-parameter limit.
UNIQUE_KEY_CHUNK_SIZE = 500

PROFILE_FIELDS = ("display_name", "department", "job_title", "location")


class ReferenceKind(str, Enum):
    STATUS = "status"
    PRIORITY = "priority"
    TYPE = "type"
    PROJECT = "project"
    USER = "user"


@dataclass(frozen=True)
class ReferenceRecord:
    id: str
    name: str


@dataclass(frozen=True)
class WriteResult:
    ok: bool
    id: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, record_id: Optional[str] = None) -> "WriteResult":
        return cls(ok=True, id=record_id)

    @classmethod
    def failure(cls, message: str) -> "WriteResult":
        return cls(ok=False, message=message)


class ReferenceRepository(Protocol):
    def bulk_read(self, kind: ReferenceKind) -> List[ReferenceRecord]:
        ...


class ProjectRepository(Protocol):
    def find_by_unique_keys(self, keys: Iterable[str]) -> Set[str]:
        ...

    def insert(self, values: Dict[str, Any]) -> WriteResult:
        ...


class WorkItemRepository(Protocol):
    def insert(self, values: Dict[str, Any]) -> WriteResult:
        ...


class UserRepository(Protocol):
    def find_by_email(self, email: str) -> Optional[ReferenceRecord]:
        ...

    def update(self, profile_id: str, values: Dict[str, Any]) -> WriteResult:
        ...


@dataclass
class Repositories:
    references: ReferenceRepository
    projects: ProjectRepository
    work_items: WorkItemRepository
    users: UserRepository


def _describe_error(exc: SQLAlchemyError) -> str:
    origin = getattr(exc, "orig", None)
    return str(origin or exc)


def _run_write(session_factory: sessionmaker, operation: Callable[[Session], WriteResult]) -> WriteResult:
    session = session_factory()
    try:
        result = operation(session)
        if result.ok:
            session.commit()
        else:
            session.rollback()
        return result
    except SQLAlchemyError as exc:
        session.rollback()
        message = _describe_error(exc)
        logger.debug("Store rejected write: %s", message)
        return WriteResult.failure(message)
    finally:
        session.close()


class SqlAlchemyReferenceRepository:
    _ORDERED_MODELS = {
        ReferenceKind.STATUS: WorkItemStatus,
        ReferenceKind.PRIORITY: Priority,
        ReferenceKind.TYPE: WorkItemType,
    }

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def bulk_read(self, kind: ReferenceKind) -> List[ReferenceRecord]:
        with self._session_factory() as session:
            if kind == ReferenceKind.PROJECT:
                stmt = select(Project.id, Project.key).order_by(Project.key)
            elif kind == ReferenceKind.USER:
                stmt = select(Profile.id, Profile.email).order_by(Profile.email)
            else:
                model = self._ORDERED_MODELS[kind]
                stmt = select(model.id, model.name).order_by(model.position, model.name, model.id)
            return [ReferenceRecord(id=row[0], name=row[1]) for row in session.execute(stmt)]


class SqlAlchemyProjectRepository:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def find_by_unique_keys(self, keys: Iterable[str]) -> Set[str]:
        """Return the subset of ``keys`` (upper-cased) that already exist."""
        candidates = sorted({key.upper() for key in keys if key})
        found: Set[str] = set()
        if not candidates:
            return found

        with self._session_factory() as session:
            for start in range(0, len(candidates), UNIQUE_KEY_CHUNK_SIZE):
                chunk = candidates[start:start + UNIQUE_KEY_CHUNK_SIZE]
                stmt = select(Project.key).where(Project.key.in_(chunk))
                found.update(session.scalars(stmt))
        return found

    def insert(self, values: Dict[str, Any]) -> WriteResult:
        def _insert(session: Session) -> WriteResult:
            project = Project(**values)
            session.add(project)
            session.flush()
            return WriteResult.success(project.id)

        return _run_write(self._session_factory, _insert)


class SqlAlchemyWorkItemRepository:
    """Inserts work items, assigning the next ``<KEY>-<n>`` issue key per project."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def insert(self, values: Dict[str, Any]) -> WriteResult:
        def _insert(session: Session) -> WriteResult:
            project = session.get(Project, values.get("project_id"))
            if project is None:
                return WriteResult.failure(f"Project {values.get('project_id')} does not exist")

            last_number = session.scalar(
                select(func.max(WorkItem.issue_number)).where(WorkItem.project_id == project.id)
            )
            issue_number = (last_number or 0) + 1
            work_item = WorkItem(
                issue_number=issue_number,
                issue_key=f"{project.key}-{issue_number}",
                **values,
            )
            session.add(work_item)
            session.flush()
            return WriteResult.success(work_item.id)

        return _run_write(self._session_factory, _insert)


class SqlAlchemyUserRepository:
    """Read-only account lookup plus profile updates; never creates accounts."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def find_by_email(self, email: str) -> Optional[ReferenceRecord]:
        with self._session_factory() as session:
            stmt = select(Profile.id, Profile.email).where(func.lower(Profile.email) == email.strip().lower())
            row = session.execute(stmt).first()
            return ReferenceRecord(id=row[0], name=row[1]) if row else None

    def update(self, profile_id: str, values: Dict[str, Any]) -> WriteResult:
        changes = {key: value for key, value in values.items() if key in PROFILE_FIELDS and value}

        def _update(session: Session) -> WriteResult:
            profile = session.get(Profile, profile_id)
            if profile is None:
                return WriteResult.failure(f"Profile {profile_id} does not exist")
            for key, value in changes.items():
                setattr(profile, key, value)
            session.flush()
            return WriteResult.success(profile.id)

        return _run_write(self._session_factory, _update)


def build_repositories(session_factory: sessionmaker) -> Repositories:
    return Repositories(
        references=SqlAlchemyReferenceRepository(session_factory),
        projects=SqlAlchemyProjectRepository(session_factory),
        work_items=SqlAlchemyWorkItemRepository(session_factory),
        users=SqlAlchemyUserRepository(session_factory),
    )
