"""NZB builder utilities.

:func:`build_nzb` turns a binary whose parts and segments are loaded into an
NZB XML document. Each part becomes one ``<file>`` entry listing the group it
was posted to and its segments ordered by number.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from datetime import timezone

from .errors import ManifestError
from .models import Binary, Part

log = logging.getLogger(__name__)

NZB_XMLNS = "http://www.newzbin.com/DTD/2003/nzb"
NZB_DOCTYPE = (
    '<!DOCTYPE nzb PUBLIC "-//newzBin//DTD NZB 1.1//EN" '
    '"http://www.newzbin.com/DTD/nzb/nzb-1.1.dtd">'
)


def _posted_epoch(part: Part) -> str:
    if part.posted is None:
        return "0"
    posted = part.posted
    if posted.tzinfo is None:
        posted = posted.replace(tzinfo=timezone.utc)
    return str(int(posted.timestamp()))


def _file_element(root: ET.Element, part: Part) -> None:
    file_el = ET.SubElement(
        root,
        "file",
        {"poster": part.poster or "", "date": _posted_epoch(part), "subject": part.subject},
    )
    groups_el = ET.SubElement(file_el, "groups")
    ET.SubElement(groups_el, "group").text = part.group_name
    segs_el = ET.SubElement(file_el, "segments")
    for seg in sorted(part.segments, key=lambda s: s.number):
        seg_el = ET.SubElement(
            segs_el, "segment", {"bytes": str(seg.size or 0), "number": str(seg.number)}
        )
        seg_el.text = seg.message_id.strip("<>")


def build_nzb(binary: Binary) -> str:
    """Return an NZB XML document for ``binary``.

    Raises :class:`ManifestError` when the binary has no segments to list.
    """
    parts = [p for p in binary.parts if p.segments]
    if not parts:
        log.warning(
            "missing_segments",
            extra={"event": "missing_segments", "binary_id": binary.id, "binary_name": binary.name},
        )
        raise ManifestError(f"binary {binary.name!r} has no segments")

    root = ET.Element("nzb", xmlns=NZB_XMLNS)
    head = ET.SubElement(root, "head")
    ET.SubElement(head, "meta", {"type": "name"}).text = binary.name
    for part in parts:
        _file_element(root, part)
    body = ET.tostring(root, encoding="unicode")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + NZB_DOCTYPE + "\n" + body
