"""Error taxonomy for locating comments."""

from __future__ import annotations

from typing import Any, Sequence


class LocateError(Exception):
    """Base class for failures to resolve a comment or an edit."""

    code = "locate"
    user_message = "The comment could not be located."


class NoSourceError(LocateError):
    """The caller did not supply source text to search in."""

    code = "no-source"
    user_message = "The page source has not been loaded."

    def __init__(self, message: str = "No source text supplied") -> None:
        super().__init__(message)


class NoCandidateError(LocateError):
    """No span passed the filters or cleared the acceptance threshold."""

    code = "no-candidate"
    user_message = "The comment could not be located. It may have been removed or changed."


class AmbiguousMatchError(LocateError):
    """Two or more candidates are equally strong."""

    code = "ambiguous"
    user_message = (
        "The comment could not be located. Its text is too similar to another comment "
        "to tell which one is meant."
    )

    def __init__(self, message: str, candidates: Sequence[Any] = ()) -> None:
        super().__init__(message)
        self.candidates = list(candidates)


class MalformedTimestamp(ValueError):
    """A timestamp did not fit the site's grammar. Never aborts a scan."""

    def __init__(self, text: str, reason: str = "") -> None:
        super().__init__(f"Malformed timestamp {text!r}" + (f": {reason}" if reason else ""))
        self.text = text
        self.reason = reason


class ConfigError(Exception):
    """A site configuration file could not be read or validated."""
