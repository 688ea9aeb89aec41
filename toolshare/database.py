# ToolShare - Community Tool Lending Service
# Copyright (C) 2025 Oleg Tokmakov
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Database setup and connection management."""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from toolshare.config import get_settings
from toolshare.errors import ConflictError, DomainError, UnavailableError

logger = logging.getLogger(__name__)

# Base class for all models
Base = declarative_base()

# Global engine and session factory
_engine = None
_SessionLocal = None


def get_database_url() -> str:
    """Get the database URL from settings."""
    url = get_settings().database.url

    # Ensure directory exists for file-based SQLite
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database and parsed.database != ":memory:":
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)

    return url


def build_engine(database_url: str, timeout_seconds: float, echo: bool = False):
    """Create an engine with the store call timeout applied."""
    connect_args = {}
    if make_url(database_url).get_backend_name() == "sqlite":
        connect_args = {
            "check_same_thread": False,  # Needed for SQLite
            "timeout": timeout_seconds,
        }

    engine = create_engine(database_url, connect_args=connect_args, echo=echo)

    if engine.dialect.name == "sqlite":
        # Enable foreign keys for SQLite
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def init_engine():
    """Initialize the database engine."""
    global _engine, _SessionLocal

    settings = get_settings()
    _engine = build_engine(
        get_database_url(),
        settings.database.timeout_seconds,
        echo=settings.app.debug,
    )
    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)

    return _engine


def get_engine():
    """Get the database engine, initializing if needed."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def get_session_local():
    """Get the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """Dependency to get database session."""
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Generator[Session, None, None]:
    """Commit everything done inside the block, or nothing at all.

    Store failures are translated into domain errors here so that no
    driver detail leaks to callers:

    - a version mismatch (concurrent writer won) becomes ``ConflictError``
    - an integrity violation becomes ``ConflictError``
    - lock timeouts and other driver failures become ``UnavailableError``
    """
    try:
        yield db
        db.commit()
    except DomainError:
        db.rollback()
        raise
    except StaleDataError as exc:
        db.rollback()
        logger.info("Optimistic lock lost: %s", exc)
        raise ConflictError("The record was modified concurrently, please retry") from exc
    except IntegrityError as exc:
        db.rollback()
        logger.info("Integrity violation: %s", exc.orig)
        raise ConflictError() from exc
    except OperationalError as exc:
        db.rollback()
        logger.warning("Store operation failed: %s", exc.orig)
        raise UnavailableError() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Unexpected store error")
        raise UnavailableError() from exc
    except Exception:
        db.rollback()
        raise


def create_tables(engine=None):
    """Create all database tables."""
    # Import all models to ensure they're registered
    from toolshare.models import auth, booking, community, rating, tool, user  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())


def init_database():
    """Initialize database with tables."""
    create_tables()
    logger.info("Database initialized successfully")
