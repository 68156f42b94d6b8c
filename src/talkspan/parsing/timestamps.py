"""Per-site timestamp grammar.

A "timestamp" is the string as it appears in wiki source
(``23:29, 10 May 2019 (UTC)``); a "date" is the parsed ``datetime``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from functools import lru_cache
from typing import Pattern
from zoneinfo import ZoneInfo

from talkspan.errors import MalformedTimestamp

LOGGER = logging.getLogger(__name__)

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

# Patterns must use the named groups year, month, day, hour, minute and, optionally,
# second. ``{months}`` is replaced with an alternation of the configured month names.
DEFAULT_TIMESTAMP_PATTERN = (
    r"(?P<hour>\d{2}):(?P<minute>\d{2}), (?P<day>\d{1,2}) (?P<month>{months}) (?P<year>\d{4})"
)
ISO_TIMESTAMP_PATTERN = (
    r"(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})[T ]"
    r"(?P<hour>\d{2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?Z?"
)

_NAMED_GROUP_RE = re.compile(r"\(\?P<\w+>")


@dataclass(slots=True, frozen=True)
class TimestampGrammar:
    """Timestamp formats and timezone rules of one wiki."""

    patterns: tuple[str, ...] = (DEFAULT_TIMESTAMP_PATTERN, ISO_TIMESTAMP_PATTERN)
    month_names: tuple[str, ...] = MONTH_NAMES
    timezone_suffix: str = " (UTC)"
    timezone: str = "UTC"

    @property
    def no_tz_pattern(self) -> str:
        """Regex source (without named groups) for a timestamp lacking the timezone."""
        return _compile(self).no_tz_pattern

    @property
    def content_pattern(self) -> str:
        """Regex source (without named groups) for a full timestamp with timezone."""
        return _compile(self).content_pattern

    def has_timezone(self, text: str) -> bool:
        return _compile(self).content_regexp.search(text) is not None

    def is_timestamp_without_timezone(self, text: str) -> bool:
        return _compile(self).no_tz_regexp.search(text) is not None

    def add_implicit_timezone(self, text: str) -> str:
        if self.has_timezone(text):
            return text
        return text.rstrip() + self.timezone_suffix

    def parse(self, text: str) -> datetime:
        """Parse a timestamp into an aware UTC ``datetime``.

        Raises:
            MalformedTimestamp: if no configured pattern fits or the values are
                out of range.
        """
        compiled = _compile(self)
        stripped = compiled.suffix_regexp.sub("", text.strip())
        for regexp in compiled.parse_regexps:
            match = regexp.fullmatch(stripped)
            if match is None:
                continue
            try:
                return self._to_datetime(match)
            except ValueError as exc:
                raise MalformedTimestamp(text, str(exc)) from exc
        raise MalformedTimestamp(text, "no timestamp pattern matched")

    def _to_datetime(self, match: re.Match[str]) -> datetime:
        month_text = match.group("month")
        if month_text.isdigit():
            month = int(month_text)
        else:
            lowered = [name.casefold() for name in self.month_names]
            month = lowered.index(month_text.casefold()) + 1
        groups = match.groupdict()
        local = datetime(
            int(groups["year"]),
            month,
            int(groups["day"]),
            int(groups["hour"]),
            int(groups["minute"]),
            int(groups.get("second") or 0),
            tzinfo=_zone(self.timezone),
        )
        return local.astimezone(timezone.utc)


@dataclass(slots=True, frozen=True)
class _CompiledGrammar:
    no_tz_pattern: str
    content_pattern: str
    no_tz_regexp: Pattern[str]
    content_regexp: Pattern[str]
    suffix_regexp: Pattern[str]
    parse_regexps: tuple[Pattern[str], ...]


def _strip_group_names(pattern: str) -> str:
    return _NAMED_GROUP_RE.sub("(?:", pattern)


@lru_cache(maxsize=32)
def _compile(grammar: TimestampGrammar) -> _CompiledGrammar:
    months = "|".join(re.escape(name) for name in grammar.month_names)
    filled = [pattern.replace("{months}", months) for pattern in grammar.patterns]
    no_tz = "|".join(f"(?:{_strip_group_names(pattern)})" for pattern in filled)
    suffix = re.escape(grammar.timezone_suffix.strip())
    content = f"(?:{no_tz}) ?{suffix}"
    LOGGER.debug("Compiled timestamp grammar with %d patterns", len(filled))
    return _CompiledGrammar(
        no_tz_pattern=f"(?:{no_tz})",
        content_pattern=content,
        no_tz_regexp=re.compile(no_tz, re.IGNORECASE),
        content_regexp=re.compile(content, re.IGNORECASE),
        suffix_regexp=re.compile(rf" ?{suffix}$", re.IGNORECASE),
        parse_regexps=tuple(re.compile(pattern, re.IGNORECASE) for pattern in filled),
    )


@lru_cache(maxsize=32)
def _zone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)
