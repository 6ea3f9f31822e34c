"""Promote complete binaries to releases."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy import and_, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .config import settings
from .db import Store
from .errors import GroupNotFoundError, ManifestError, PersistenceError
from .models import Binary, Part, Release, Segment
from .nzb import build_nzb
from .parsers import clean_release_name

logger = logging.getLogger(__name__)

ManifestBuilder = Callable[[Binary], str]


def find_ready_binaries(session: Session, threshold: Optional[int] = None) -> list[Binary]:
    """Return binaries with every part present and enough segments retrieved.

    A binary qualifies when it has at least ``total_parts`` parts with one or
    more segments and the retrieved segments across those parts reach
    ``threshold`` percent of the segments they announce. Newest first.
    """
    if threshold is None:
        threshold = settings.completion_threshold

    available = (
        select(
            Part.id.label("id"),
            Part.binary_id.label("binary_id"),
            Part.total_segments.label("total_segments"),
            func.count(Segment.id).label("available_segments"),
        )
        .join(Segment, Segment.part_id == Part.id)
        .group_by(Part.id)
        .subquery()
    )
    percent = (func.sum(available.c.available_segments) * 100.0) / func.nullif(
        func.sum(available.c.total_segments), 0
    )
    stmt = (
        select(Binary)
        .join(available, available.c.binary_id == Binary.id)
        .group_by(Binary.id)
        .having(
            and_(
                func.count(available.c.id) >= Binary.total_parts,
                percent >= threshold,
            )
        )
        .order_by(Binary.posted.desc(), Binary.id.desc())
    )
    return list(session.scalars(stmt))


def _delete_binary(session: Session, binary_id: int) -> None:
    part_ids = select(Part.id).where(Part.binary_id == binary_id)
    opts = {"synchronize_session": False}
    session.execute(
        delete(Segment).where(Segment.part_id.in_(part_ids)), execution_options=opts
    )
    session.execute(delete(Part).where(Part.binary_id == binary_id), execution_options=opts)
    session.execute(delete(Binary).where(Binary.id == binary_id), execution_options=opts)


def _promote(store: Store, candidate: Binary, build_manifest: ManifestBuilder) -> bool:
    info = {"binary_id": candidate.id, "binary_name": candidate.name}
    with store.session() as session:
        try:
            existing = session.scalars(
                select(Release.id).where(
                    Release.name == candidate.name, Release.posted == candidate.posted
                )
            ).first()
            if existing is not None:
                logger.info(
                    "duplicate_binary",
                    extra={"event": "duplicate_binary", "release_id": existing, **info},
                )
                _delete_binary(session, candidate.id)
                session.commit()
                return False

            binary = session.get(
                Binary,
                candidate.id,
                options=[selectinload(Binary.parts).selectinload(Part.segments)],
            )
            if binary is None:
                logger.info("binary_vanished", extra={"event": "binary_vanished", **info})
                return False

            try:
                group = store.find_group_by_name(binary.group_name, session)
            except GroupNotFoundError:
                logger.warning(
                    "unknown_group",
                    extra={"event": "unknown_group", "group": binary.group_name, **info},
                )
                group = None

            try:
                nzb = build_manifest(binary)
            except ManifestError as exc:
                logger.error(
                    "manifest_failed",
                    extra={"event": "manifest_failed", "error": str(exc), **info},
                )
                return False
            except Exception as exc:
                logger.exception(
                    "manifest_failed",
                    extra={"event": "manifest_failed", "error": str(exc), **info},
                )
                return False

            session.add(
                Release(
                    name=binary.name,
                    original_name=binary.name,
                    search_name=clean_release_name(binary.name),
                    posted=binary.posted,
                    poster=binary.poster,
                    group_id=group.id if group is not None else None,
                    group_name=binary.group_name,
                    size=binary.size,
                    nzb=nzb,
                )
            )
            _delete_binary(session, binary.id)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception(
                "release_promotion_failed",
                extra={"event": "release_promotion_failed", **info},
            )
            raise PersistenceError(f"failed to promote binary {candidate.id}") from exc
    logger.info("release_created", extra={"event": "release_created", **info})
    return True


def promote_ready_binaries(
    store: Store,
    build_manifest: ManifestBuilder = build_nzb,
    threshold: Optional[int] = None,
) -> int:
    """Turn every complete binary into a release and drop its raw rows.

    Each candidate runs in its own transaction. Duplicates of an existing
    release are deleted without creating anything and any manifest builder error
    leaves the binary for the next run; both are logged and processing moves
    on. A store error aborts the pass with :class:`PersistenceError`.
    Returns the number of releases created.
    """
    with store.writer():
        with store.session() as session:
            try:
                ready = find_ready_binaries(session, threshold)
            except SQLAlchemyError as exc:
                logger.exception("ready_binaries_query_failed")
                raise PersistenceError("failed to query complete binaries") from exc

        created = 0
        for candidate in ready:
            if _promote(store, candidate, build_manifest):
                created += 1

    logger.info(
        "Promoted %d of %d complete binaries (%d skipped).",
        created,
        len(ready),
        len(ready) - created,
    )
    return created
