"""Exceptions raised across the session store."""

from __future__ import annotations


class SweepError(Exception):
    """Base class for sessionsweep errors."""


class NotFoundError(SweepError, LookupError):
    """No entry matches the given id or id prefix."""

    kind = "entry"

    def __init__(self, ident: str):
        self.ident = ident
        super().__init__(f"{self.kind} not found: {ident}")


class SessionNotFoundError(NotFoundError):
    kind = "session"


class TrashItemNotFoundError(NotFoundError):
    kind = "session in trash"


class AmbiguousIdError(SweepError, LookupError):
    """An id prefix matches more than one entry."""

    def __init__(self, ident: str, matches: list[str]):
        self.ident = ident
        self.matches = matches
        super().__init__(
            f"id prefix {ident!r} is ambiguous ({len(matches)} matches: "
            f"{', '.join(m[:12] for m in matches[:5])})"
        )


def match_id(ident: str, candidates: list[str]) -> str | None:
    """Resolve `ident` against candidates by exact match, then unique prefix.

    Returns None if nothing matches; raises AmbiguousIdError if the prefix
    matches more than one candidate.
    """
    if not ident:
        return None
    if ident in candidates:
        return ident
    matches = [c for c in candidates if c.startswith(ident)]
    if len(matches) > 1:
        raise AmbiguousIdError(ident, matches)
    return matches[0] if matches else None
