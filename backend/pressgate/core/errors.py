"""
pressgate/core/errors.py
Authorization error taxonomy.

`NotFound` and `Unauthenticated` always end in a denial. `StoreUnavailable` is a
transient infrastructure failure: callers on the authoritative path retry it, the
client guard degrades to least privilege. `PolicyMismatch` signals that the two
rule statements disagree and is only expected to surface in tests. `Conflict` is
a create on an id that is already taken; it is not retried.
"""
from typing import Optional


class PressgateError(Exception):
    """Base class for every error raised by the decision subsystem."""


class NotFound(PressgateError):
    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class StoreUnavailable(PressgateError):
    """The document store could not be reached or did not answer in time."""


class Unauthenticated(PressgateError):
    def __init__(self, detail: str = "Authentication required"):
        self.detail = detail
        super().__init__(detail)


class PermissionDenied(PressgateError):
    def __init__(self, action: str, message: Optional[str] = None):
        self.action = action
        self.message = message or f"You are not allowed to perform {action}."
        super().__init__(self.message)


class PolicyMismatch(PressgateError):
    """The rule table is incomplete or the client and storage statements diverge."""


class Conflict(PressgateError):
    """A create targeted a document id that already exists."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} already exists: {key}")
