"""Recoverable error taxonomy.

Nothing here is fatal to a caller of the engine: each error is raised by a
collaborator (or a parsing helper) and caught at the point where the engine
can degrade to the data that is still available.
"""

from __future__ import annotations


class ReplylineError(Exception):
    """Base class for all replyline errors."""


class SourceUnavailable(ReplylineError):
    """A log store or the retrieval gateway could not be reached."""

    def __init__(self, source: str, reason: str = ""):
        self.source = source
        self.reason = reason
        message = f"{source} unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class SchemaMismatch(ReplylineError):
    """None of the candidate field names resolved on a source's rows."""

    def __init__(self, source: str, candidates: list[str]):
        self.source = source
        self.candidates = list(candidates)
        super().__init__(f"{source}: no field among {', '.join(candidates)} resolved")


class IdentityNotFound(ReplylineError):
    """A contact is absent from the directory."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"No directory entry for {email!r}")


class InvalidTimestamp(ReplylineError):
    """A row carries a date that cannot be parsed."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Unparseable timestamp: {value!r}")
