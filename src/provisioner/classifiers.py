"""Retry classification for remote errors.

The remote API exposes no structured error codes or retry-after hints for
transient conditions such as a connection that still has service bindings.
The only signal is the wording of the error message, so classification is
content based and isolated here behind the ErrorClassifier protocol.

KNOWN FRAGILITY: matches are case- and wording-sensitive by default. The
remote API does not document message stability; if a message changes the
affected operation stops being retried and fails on the first attempt.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .errors import RemoteOperationError


class ErrorClassifier(Protocol):
    """Decides whether a failed attempt should be retried."""

    def __call__(self, error: BaseException) -> bool: ...


@dataclass(frozen=True)
class MessageContains:
    """Retry remote operation errors whose message contains any marker."""

    markers: tuple[str, ...]
    case_sensitive: bool = True

    def __call__(self, error: BaseException) -> bool:
        if not isinstance(error, RemoteOperationError):
            return False
        for message in error.messages:
            haystack = message if self.case_sensitive else message.lower()
            for marker in self.markers:
                needle = marker if self.case_sensitive else marker.lower()
                if needle in haystack:
                    return True
        return False


def never_retry(error: BaseException) -> bool:
    """Classifier for call sites without transient failure modes."""
    return False


# Private link connection deletion is blocked until service bindings are gone
DEPENDENT_BINDINGS = MessageContains(("existing bindings",))

# Attaching to a new private link races the asynchronous detach from the old one
STILL_ATTACHED = MessageContains(("already attached",))

# Read replicas cannot fork from a primary before its first backup exists
BACKUPS_NOT_READY = MessageContains(("doesn't yet have any backups or snapshots available",))
