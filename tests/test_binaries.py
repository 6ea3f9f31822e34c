from __future__ import annotations

import logging

import pytest
from sqlalchemy import func, select

from nzbforge.binaries import group_binaries
from nzbforge.errors import PersistenceError, WriterBusyError
from nzbforge.models import Binary, Part
from nzbforge.parsers import make_binary_hash

from conftest import GROUP, POSTED, POSTER


def _binaries(store) -> list[Binary]:
    with store.session() as session:
        return list(session.scalars(select(Binary).order_by(Binary.id)))


def _binary_ids(store) -> list[int | None]:
    with store.session() as session:
        return list(session.scalars(select(Part.binary_id).order_by(Part.id)))


def test_parts_of_one_file_share_a_binary(store, add_part) -> None:
    for n in range(1, 4):
        add_part(f'[{n:02d}/03] - "My.Show.S01E01.mkv" yEnc')

    assert group_binaries(store) == 3

    binaries = _binaries(store)
    assert len(binaries) == 1
    binary = binaries[0]
    assert binary.name == "My.Show.S01E01"
    assert binary.total_parts == 3
    assert binary.group_name == GROUP
    assert binary.poster == POSTER
    assert binary.posted == POSTED
    assert binary.hash == make_binary_hash("My.Show.S01E01", GROUP, POSTER, "3")
    assert _binary_ids(store) == [binary.id] * 3


def test_distinct_tuples_get_distinct_binaries(store, add_part) -> None:
    add_part('[1/2] - "Show.mkv" yEnc')
    add_part('[1/2] - "Show.mkv" yEnc', poster="other@example.com")
    add_part('[1/2] - "Show.mkv" yEnc', group="alt.binaries.misc")
    add_part('[1/3] - "Show.mkv" yEnc')

    group_binaries(store)

    assert len(_binaries(store)) == 4
    assert None not in _binary_ids(store)


def test_zero_padded_totals_hash_alike(store, add_part) -> None:
    add_part('[01/34] - "My.Show.S01E01.mkv" yEnc')
    add_part('[002/034] - "My.Show.S01E01.mkv" yEnc')

    group_binaries(store)

    assert len(_binaries(store)) == 1


def test_unparsed_subject_is_left_ungrouped(store, add_part, caplog) -> None:
    add_part("nothing to see here")
    add_part('[1/1] - "File.nfo" yEnc')

    with caplog.at_level(logging.INFO):
        assert group_binaries(store) == 1

    assert _binary_ids(store)[0] is None
    record = next(r for r in caplog.records if r.getMessage() == "subject_unparsed")
    assert record.subject == "nothing to see here"


def test_empty_quoted_stem_creates_no_binaries(store, add_part) -> None:
    add_part('[1/2] - ".mkv" yEnc')
    add_part('[2/2] - ".mkv" yEnc')

    assert group_binaries(store) == 0

    assert _binaries(store) == []
    assert _binary_ids(store) == [None, None]


def test_later_parts_join_existing_binary(store, add_part) -> None:
    add_part('[1/2] - "Show.mkv" yEnc')
    group_binaries(store)
    add_part('[2/2] - "Show.mkv" yEnc')

    assert group_binaries(store) == 1

    binaries = _binaries(store)
    assert len(binaries) == 1
    assert _binary_ids(store) == [binaries[0].id] * 2


def test_rerun_without_new_parts_changes_nothing(store, add_part) -> None:
    add_part('[1/2] - "Show.mkv" yEnc')
    group_binaries(store)

    assert group_binaries(store) == 0
    with store.session() as session:
        assert session.scalar(select(func.count(Binary.id))) == 1


def test_concurrent_pass_is_rejected(store, add_part) -> None:
    add_part('[1/2] - "Show.mkv" yEnc')
    with store.writer():
        with pytest.raises(WriterBusyError):
            group_binaries(store)
    assert _binary_ids(store) == [None]


def test_store_failure_aborts_run(store, add_part) -> None:
    add_part('[1/2] - "Show.mkv" yEnc')
    Binary.__table__.drop(store.engine)

    with pytest.raises(PersistenceError):
        group_binaries(store)
