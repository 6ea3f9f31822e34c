"""Subject parsing helpers for grouping parts into binaries."""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Pattern

from .errors import SubjectParseError

logger = logging.getLogger(__name__)

# File extensions that terminate a quoted filename stem.
FILE_EXTENSIONS = (
    "sample",
    "mkv",
    "avi",
    "mp4",
    "vol",
    "ogm",
    "par",
    "rar",
    "sfv",
    "nfo",
    "nzb",
    "srt",
    "ass",
    "mpg",
    "txt",
    "zip",
    "wmv",
    "ssa",
    r"r\d{1,3}",
    "7z",
    "tar",
    "mov",
    "divx",
    "m2ts",
    "rmvb",
    "iso",
    "dmg",
    "sub",
    "idx",
    "rm",
    "ac3",
    r"t\d{1,2}",
    r"u\d{1,3}",
)

SUBJECT_RE = re.compile(
    r".*?(?P<parts>\d{1,3}/\d{1,3}).*?\"(?P<name>.*?)\.(?:"
    + "|".join(FILE_EXTENSIONS)
    + r")",
    re.IGNORECASE,
)

REQUEST_ID_RE = re.compile(r"^\s*\[\s*(?P<reqid>\d{3,})\s*\]")

PART_RE = re.compile(
    r"[\[\( ]((\d{1,3}/\d{1,3})|(\d{1,3} of \d{1,3})|(\d{1,3}-\d{1,3})|(\d{1,3}~\d{1,3}))[\)\] ]",
    re.IGNORECASE,
)

DEFAULT_PATTERNS: tuple[Pattern[str], ...] = (SUBJECT_RE, REQUEST_ID_RE)

REMOVE_CHARS = ("#", "@", "$", "%", "^", "§", "¨", "©", "Ö")
SPACE_CHARS = ("_", ".", "-")


@dataclass(frozen=True)
class ParsedSubject:
    """Name and position of a part within its binary."""

    name: str
    part: int
    total: int


def normalize_part_count(raw: str) -> tuple[int, int]:
    """Return ``(index, total)`` for counters like ``3/7``, ``3 of 7`` or ``[3-7]``.

    Raises :class:`ValueError` when ``raw`` has no usable separator.
    """
    value = raw
    if "/" not in value:
        for sep in ("-", "~", " of "):
            value = value.replace(sep, "/")
        for bracket in "[]()":
            value = value.replace(bracket, "")
    if "/" not in value:
        raise ValueError(f"part count {raw!r} has no separator")
    index, total = value.split("/", 1)
    return int(index.strip()), int(total.strip())


class SubjectParser:
    """Extract a binary name and part counter from free-text subjects.

    ``patterns`` are searched in order and the named groups of every match
    are merged, earlier patterns winning on conflicts. ``name``, ``parts``
    and ``reqid`` have special meaning; any other group only contributes to
    the synthesized name when no ``name`` or ``reqid`` was captured. A
    ``name`` group that matched an empty string is a parse failure.
    """

    def __init__(self, patterns: Optional[Iterable[Pattern[str]]] = None) -> None:
        self.patterns = tuple(patterns) if patterns is not None else DEFAULT_PATTERNS

    def captures(self, subject: str) -> dict[str, str]:
        fields: dict[str, str] = {}
        for pattern in self.patterns:
            match = pattern.search(subject)
            if not match:
                continue
            for key, value in match.groupdict().items():
                if value is not None and key not in fields:
                    fields[key] = value.strip()
        return fields

    def parse(self, subject: str) -> ParsedSubject:
        fields = self.captures(subject)

        if not fields.get("name") and fields.get("reqid"):
            fields["name"] = fields["reqid"]

        if "name" in fields and not fields["name"]:
            # Empty quoted stem, e.g. ``".mkv"``.
            raise SubjectParseError(subject, "empty name", fields)

        if not fields.get("name"):
            # Sorted so the same captures always give the same name.
            fields["name"] = " ".join(
                fields[key] for key in sorted(fields) if fields[key]
            )

        if "parts" not in fields:
            match = PART_RE.search(subject)
            if match:
                fields["parts"] = match.group(1)

        if not fields["name"] or not fields.get("parts"):
            raise SubjectParseError(subject, "missing name or parts", fields)

        try:
            part, total = normalize_part_count(fields["parts"])
        except ValueError as exc:
            raise SubjectParseError(subject, str(exc), fields) from exc
        return ParsedSubject(name=fields["name"], part=part, total=total)


_default_parser = SubjectParser()


def parse_subject(subject: str) -> ParsedSubject:
    """Parse ``subject`` with the default pattern set."""
    return _default_parser.parse(subject)


def make_binary_hash(name: str, group: str, poster: str, total_parts: str) -> str:
    """Return a stable 64-bit hex digest identifying one binary."""
    digest = hashlib.blake2b(
        (name + group + poster + total_parts).encode("utf-8", "surrogateescape"),
        digest_size=8,
    )
    return digest.hexdigest()


def clean_release_name(name: str) -> str:
    """Strip symbols and turn separators into spaces for search matching."""
    for char in REMOVE_CHARS:
        name = name.replace(char, "")
    for char in SPACE_CHARS:
        name = name.replace(char, " ")
    return name
