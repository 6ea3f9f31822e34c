"""Exceptions raised by the binary and release passes."""

from __future__ import annotations


class NzbforgeError(Exception):
    """Base class for nzbforge errors."""


class SubjectParseError(NzbforgeError, ValueError):
    """A subject did not yield both a name and a part count."""

    def __init__(self, subject: str, reason: str, fields: dict[str, str] | None = None):
        super().__init__(f"{reason}: {subject!r}")
        self.subject = subject
        self.reason = reason
        self.fields = dict(fields or {})


class PersistenceError(NzbforgeError, RuntimeError):
    """A read or write against the store failed."""


class GroupNotFoundError(NzbforgeError, LookupError):
    """No group row exists for the requested name."""

    def __init__(self, name: str):
        super().__init__(f"group not found: {name!r}")
        self.name = name


class ManifestError(NzbforgeError):
    """The manifest for a binary could not be built."""


class WriterBusyError(NzbforgeError, RuntimeError):
    """Another grouping or promotion pass already holds the store."""
