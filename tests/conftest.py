import itertools
import sys
from datetime import datetime
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest  # noqa: E402

from nzbforge.db import Store  # noqa: E402
from nzbforge.models import Part, Segment  # noqa: E402

POSTED = datetime(2024, 2, 1, 12, 0, 0)
GROUP = "alt.binaries.teevee"
POSTER = "poster@example.com"


@pytest.fixture()
def store():
    s = Store("sqlite://")
    s.create_schema()
    yield s
    s.dispose()


@pytest.fixture()
def add_part(store):
    """Insert a part with ``segments`` of its ``total_segments`` retrieved."""
    counter = itertools.count(1)

    def _add(
        subject: str,
        *,
        group: str = GROUP,
        poster: str = POSTER,
        posted: datetime = POSTED,
        total_segments: int = 2,
        segments: int | None = None,
        size: int = 100,
    ) -> Part:
        available = total_segments if segments is None else segments
        part = Part(
            subject=subject,
            group_name=group,
            poster=poster,
            posted=posted,
            total_segments=total_segments,
            segments=[
                Segment(number=n, size=size, message_id=f"{next(counter)}@news.example")
                for n in range(1, available + 1)
            ],
        )
        return store.create_part(part)

    return _add
