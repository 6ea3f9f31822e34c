"""Group ungrouped parts into binaries."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from .db import Store
from .errors import PersistenceError, SubjectParseError
from .models import Binary, Part
from .parsers import SubjectParser, make_binary_hash

logger = logging.getLogger(__name__)


def group_binaries(store: Store, parser: Optional[SubjectParser] = None) -> int:
    """Attach every part without a binary to the binary its subject names.

    Parts whose subject cannot be parsed are logged and left ungrouped so the
    next run sees them again. Each part is committed as soon as it joins its
    binary; a store error rolls back that part only and aborts the run with
    :class:`PersistenceError`. Returns the number of parts grouped.
    """
    parser = parser or SubjectParser()
    grouped = 0
    skipped = 0
    with store.writer(), store.session() as session:
        try:
            parts = list(
                session.scalars(
                    select(Part).where(Part.binary_id.is_(None)).order_by(Part.id)
                )
            )
        except SQLAlchemyError as exc:
            logger.exception("ungrouped_parts_query_failed")
            raise PersistenceError("failed to load ungrouped parts") from exc

        binaries: dict[str, Binary] = {}
        for part in parts:
            part_id = part.id
            try:
                parsed = parser.parse(part.subject)
            except SubjectParseError as exc:
                skipped += 1
                logger.info(
                    "subject_unparsed",
                    extra={
                        "event": "subject_unparsed",
                        "part_id": part_id,
                        "subject": part.subject,
                        "reason": exc.reason,
                        "fields": exc.fields,
                    },
                )
                continue

            binhash = make_binary_hash(
                parsed.name, part.group_name, part.poster or "", str(parsed.total)
            )
            try:
                binary = binaries.get(binhash)
                if binary is None:
                    binary = session.scalars(
                        select(Binary).where(Binary.hash == binhash)
                    ).first()
                    if binary is None:
                        binary = Binary(
                            hash=binhash,
                            name=parsed.name,
                            poster=part.poster or "",
                            group_name=part.group_name,
                            posted=part.posted,
                            total_parts=parsed.total,
                        )
                        session.add(binary)
                    binaries[binhash] = binary
                binary.parts.append(part)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.exception(
                    "binary_save_failed",
                    extra={"event": "binary_save_failed", "part_id": part_id, "hash": binhash},
                )
                raise PersistenceError(f"failed to save binary {binhash}") from exc
            grouped += 1

    logger.info(
        "Grouped %d parts into %d binaries (%d skipped).",
        grouped,
        len(binaries),
        skipped,
    )
    return grouped
