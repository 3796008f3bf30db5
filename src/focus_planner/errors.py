# src/focus_planner/errors.py

"""
Error taxonomy shared by every layer.

Backends translate driver/transport errors into these types; services never
recover or retry, they let the caller decide what to show the user.
"""

from __future__ import annotations


class FocusError(RuntimeError):
    """Base class for all errors raised by focus_planner."""


class NotFound(FocusError):
    """The addressed record does not exist or is not owned by the caller."""


class ConstraintViolation(FocusError):
    """A uniqueness, foreign-key or ownership rule rejected a write."""


class SectionFull(ConstraintViolation):
    """The target planning section already holds its maximum number of commitments."""


class AuthFailure(FocusError):
    """The identity provider rejected credentials/token, or nobody is signed in."""


class SuggestionFailed(FocusError):
    """The suggestion backend returned an error or no data."""


class TransportFailure(FocusError):
    """The persistence/identity backend could not be reached."""


def friendly_error_message(err: Exception) -> str:
    """Short user-facing text for console output."""
    msg = str(err).strip()
    if isinstance(err, NotFound):
        return f"Not found: {msg}" if msg else "Not found."
    if isinstance(err, SectionFull):
        return msg or "That section is full."
    if isinstance(err, ConstraintViolation):
        return f"Rejected: {msg}" if msg else "Rejected by a data constraint."
    if isinstance(err, AuthFailure):
        return f"Authentication failed: {msg}" if msg else "Authentication failed."
    if isinstance(err, SuggestionFailed):
        return f"Suggestions unavailable: {msg}" if msg else "Suggestions unavailable."
    if isinstance(err, TransportFailure):
        return f"Backend unreachable: {msg}" if msg else "Backend unreachable."
    return msg or err.__class__.__name__
