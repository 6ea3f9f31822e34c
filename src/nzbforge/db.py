"""Database utilities for the binary and release passes.

A :class:`Store` owns one SQLAlchemy engine and hands out sessions bound to
it. The grouping and promotion passes both enter :meth:`Store.writer` so two
passes never mutate the same store concurrently from one process; running
several processes against one database still has to be serialized by the
caller.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional
from urllib.parse import urlparse

from sqlalchemy import create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import settings
from .errors import GroupNotFoundError, WriterBusyError
from .logging import QueryLogger
from .models import Base, Group, Part, Segment

logger = logging.getLogger(__name__)


@dataclass
class PartSummary:
    """Segment availability for one stored part."""

    id: int
    subject: str
    total_segments: int
    available_segments: int


def normalize_url(url: str) -> str:
    """Return a SQLAlchemy URL for ``url``.

    PostgreSQL URLs are pointed at the ``psycopg`` driver. Anything without a
    scheme is treated as a SQLite database file whose parent directory is
    created on demand.
    """

    parsed = urlparse(url)
    if parsed.scheme.startswith("postgres"):
        if url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql+psycopg://", 1)
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+psycopg://", 1)
        if url.startswith("postgresql+asyncpg://"):
            return url.replace("postgresql+asyncpg://", "postgresql+psycopg://", 1)
        return url
    if "://" in url:
        return url
    if url == ":memory:":
        return "sqlite://"
    path = Path(url)
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


def _sqlite_pragmas(dbapi_conn: Any, _record: Any) -> None:
    cur = dbapi_conn.cursor()
    try:
        cur.execute("PRAGMA journal_mode=WAL")
        cur.execute("PRAGMA synchronous=NORMAL")
        cur.execute("PRAGMA foreign_keys=ON")
    finally:
        cur.close()


class Store:
    """Transactional access to groups, parts, segments, binaries and releases."""

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        query_logger: Optional[QueryLogger] = None,
        engine: Optional[Engine] = None,
    ) -> None:
        if engine is not None:
            self.url = engine.url.render_as_string(hide_password=False)
            self.engine = engine
        else:
            self.url = normalize_url(url or settings.database_url)
            self.engine = create_engine(self.url, future=True)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _sqlite_pragmas)
        self.query_logger = query_logger
        if query_logger is not None:
            event.listen(self.engine, "before_cursor_execute", self._trace_query)
        self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._writer_lock = threading.Lock()
        logger.info(
            "store_opened",
            extra={"event": "store_opened", "dialect": self.engine.dialect.name},
        )

    def _trace_query(
        self,
        _conn: Any,
        _cursor: Any,
        statement: str,
        parameters: Any,
        _context: Any,
        _executemany: bool,
    ) -> None:
        if self.query_logger is not None:
            self.query_logger.log_query(statement, parameters)

    def session(self) -> Session:
        """Return a new session; use it as a context manager."""
        return self._sessions()

    @contextmanager
    def writer(self) -> Iterator[None]:
        """Hold the single-writer guard for the duration of a pass."""
        if not self._writer_lock.acquire(blocking=False):
            logger.warning("writer_busy", extra={"event": "writer_busy"})
            raise WriterBusyError("another grouping or promotion pass is running")
        try:
            yield
        finally:
            self._writer_lock.release()

    def create_schema(self) -> None:
        """Create every table that does not exist yet."""
        Base.metadata.create_all(self.engine)
        logger.info("schema_created", extra={"event": "schema_created"})

    def dispose(self) -> None:
        self.engine.dispose()

    def add_group(self, name: str, active: bool = True) -> Group:
        with self.session() as session:
            group = Group(name=name, active=active)
            session.add(group)
            session.commit()
            return group

    def find_group_by_name(self, name: str, session: Optional[Session] = None) -> Group:
        """Return the group called ``name``.

        Raises :class:`GroupNotFoundError` when no such group is stored.
        """
        if session is None:
            with self.session() as own:
                return self.find_group_by_name(name, own)
        group = session.scalars(select(Group).where(Group.name == name)).first()
        if group is None:
            raise GroupNotFoundError(name)
        return group

    def active_groups(self) -> list[Group]:
        with self.session() as session:
            return list(
                session.scalars(
                    select(Group).where(Group.active.is_(True)).order_by(Group.name)
                )
            )

    def create_part(self, part: Part) -> Part:
        """Persist ``part`` together with any segments attached to it."""
        with self.session() as session:
            session.add(part)
            session.commit()
            return part

    def list_parts(self) -> list[PartSummary]:
        stmt = (
            select(
                Part.id,
                Part.subject,
                Part.total_segments,
                func.count(Segment.id),
            )
            .outerjoin(Segment, Segment.part_id == Part.id)
            .group_by(Part.id)
            .order_by(Part.id)
        )
        with self.session() as session:
            return [PartSummary(*row) for row in session.execute(stmt)]
