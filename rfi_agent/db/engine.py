# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# The job store is written from two places: the FastAPI process (job
# creation, status polling) and the Celery worker (orchestration). Both use
# the same synchronous engine. FastAPI runs the sync job-store endpoints in
# its threadpool, so the event loop is never blocked by a query.
#
# SESSION LIFECYCLE:
#   create → yield → commit (or rollback on error) → close
#
# The engine is created lazily: importing this module never opens a
# connection, and tests build their own in-memory engine instead.
# =============================================================================

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from rfi_agent.config import settings

_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def _ensure_sqlite_dir(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return
    if not url.database or url.database == ":memory:":
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


def get_engine() -> Engine:
    """Lazily create and cache the SQLAlchemy engine."""
    global _engine
    if _engine is None:
        _ensure_sqlite_dir(settings.database_url)
        _engine = create_engine(
            settings.database_url,
            echo=settings.debug,
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory() -> sessionmaker:
    """Lazily create and cache the session factory."""
    global _session_factory
    if _session_factory is None:
        # expire_on_commit=False: records are converted to pydantic models
        # after the commit, outside the session.
        _session_factory = sessionmaker(
            bind=get_engine(),
            class_=Session,
            expire_on_commit=False,
        )
    return _session_factory


@contextmanager
def get_sync_session(
    factory: sessionmaker | None = None,
) -> Generator[Session, None, None]:
    """
    Context manager that provides a database session.

    Usage:
        with get_sync_session() as session:
            record = session.get(BatchJobRecord, job_id)
            # Auto-commits on exit, auto-rollbacks on exception

    Args:
        factory: Session factory to use. Defaults to the configured one;
            the job store passes its own so tests can inject SQLite.
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine | None = None) -> None:
    """Create missing tables. Idempotent; safe to call from every process."""
    from rfi_agent.db.models import Base

    Base.metadata.create_all(bind=engine or get_engine())
