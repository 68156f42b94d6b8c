"""Core talkspan data models."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, Literal, Optional

from talkspan.utils.text import remove_dir_marks

UNDATED_NAME = "<undated>"

SignatureKind = Literal["regular", "unsigned", "dummy"]


def normalize_user_name(raw: str) -> str:
    """Normalize a user name the way the wiki canonicalizes page titles."""
    name = remove_dir_marks(html.unescape(raw)).replace("_", " ")
    name = re.sub(r"\s+", " ", name).strip()
    if name and name != UNDATED_NAME:
        name = name[0].upper() + name[1:]
    return name


@dataclass(slots=True, frozen=True)
class AuthorId:
    """Normalized user identity, compared case- and underscore-insensitively."""

    name: str = field(compare=False)
    key: str = field(init=False, repr=False)

    UNDATED: ClassVar["AuthorId"]

    def __post_init__(self) -> None:
        normalized = normalize_user_name(self.name)
        object.__setattr__(self, "name", normalized)
        object.__setattr__(self, "key", normalized.casefold())

    @property
    def is_undated(self) -> bool:
        return self.key == UNDATED_NAME

    def __str__(self) -> str:
        return self.name


AuthorId.UNDATED = AuthorId(UNDATED_NAME)


@dataclass(slots=True, frozen=True)
class SignatureRecord:
    """One signature found in source text."""

    author: AuthorId
    timestamp_text: Optional[str]
    parsed_date: Optional[datetime]
    start_index: int
    end_index: int
    raw_text: str
    comment_start_index: int
    next_comment_start_index: int
    ordinal: int
    kind: SignatureKind = "regular"

    @property
    def malformed_timestamp(self) -> bool:
        return bool(self.timestamp_text) and self.parsed_date is None

    @property
    def is_dummy(self) -> bool:
        return self.kind == "dummy"


@dataclass(slots=True, frozen=True)
class CommentBoundary:
    """Source range attributed to one comment, ending at its signature."""

    signature: SignatureRecord
    span_start: int
    span_end: int

    def text(self, source: str) -> str:
        return source[self.span_start : self.span_end]


@dataclass(slots=True, frozen=True)
class PrecedingComment:
    author: AuthorId
    timestamp_text: Optional[str] = None


@dataclass(slots=True, frozen=True)
class TargetDescriptor:
    """What is known about the comment being searched for.

    ``previous_comments`` lists up to two preceding comments, nearest first.
    ``None`` means unknown, while an empty tuple means the comment has no
    predecessors.
    """

    author: AuthorId
    timestamp_text: Optional[str] = None
    ordinal: Optional[int] = None
    previous_comments: Optional[tuple[PrecedingComment, ...]] = None
    follows_heading_text: Optional[str] = None
    section_headline_text: Optional[str] = None
    full_text: str = ""
    date: Optional[datetime] = None


@dataclass(slots=True, frozen=True)
class ResolvedSpan:
    """The winning boundary and the score that won it."""

    boundary: CommentBoundary
    score: float

    @property
    def start(self) -> int:
        return self.boundary.span_start

    @property
    def end(self) -> int:
        return self.boundary.span_end

    def text(self, source: str) -> str:
        return self.boundary.text(source)


@dataclass(slots=True, frozen=True)
class RevisionMeta:
    """Minimal metadata describing one page revision."""

    revision_id: int
    timestamp: datetime
    user: Optional[AuthorId] = None
    summary: str = ""
