"""
Transactional unit-of-work over the Flask-SQLAlchemy session.

Every workflow transition opens exactly one ``unit_of_work()`` block. All
reads and writes inside the block commit together or not at all, and the
Project row is claimed for the duration so that two transitions on the same
project serialise: the first to write wins and the other fails with
ConflictError.

Usage:
    with unit_of_work():
        project = lock_project(project_id)
        ...mutate...
    # committed here; dispatch notifications afterwards
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from isp_manager.core.exceptions import ConflictError, InternalError, NotFoundError, WorkflowError
from isp_manager.models import db
from isp_manager.models.project import Project

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work():
    """Commit on success, roll back on any failure.

    Classified workflow errors are re-raised unchanged. IntegrityError
    (unique project name, second BOQ row from a racing request) becomes
    ConflictError, and so does StaleDataError (another transition changed
    or deleted the Project first). Any other store failure becomes
    InternalError.
    """
    try:
        yield db.session
        db.session.commit()
    except WorkflowError:
        db.session.rollback()
        raise
    except StaleDataError as exc:
        db.session.rollback()
        logger.warning("Concurrent update lost: %s", exc)
        raise ConflictError("The project was changed by another request. Reload and retry.") from exc
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        raise ConflictError("Duplicate or constraint violation") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Database error inside unit of work")
        raise InternalError("Database error") from exc
    except Exception:
        db.session.rollback()
        raise


def _for_update(stmt):
    # SQLite has no row locks; lock_project relies on the versioned UPDATE there.
    if db.engine.dialect.name == "sqlite":
        return stmt
    return stmt.with_for_update()


def lock_project(project_id: int) -> Project:
    """Load a Project with a row-level lock, or raise NotFoundError.

    The row is also touched so the next flush issues a versioned UPDATE.
    That flush takes the write lock on every backend (SQLite included), and
    a transition that read the row before another one committed fails with
    StaleDataError instead of acting on a stale status. populate_existing
    makes a later reader see the committed state instead of a stale
    identity-map copy.
    """
    project = db.session.execute(
        _for_update(select(Project).where(Project.id == project_id))
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    project.updated_at = datetime.now(timezone.utc)
    return project


def lock_row(model, pk, label: str | None = None):
    """Load any model row by PK with a row-level lock, or raise NotFoundError."""
    obj = db.session.execute(
        _for_update(select(model).where(model.id == pk))
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if obj is None:
        raise NotFoundError(resource=label or model.__name__, resource_id=pk)
    return obj
