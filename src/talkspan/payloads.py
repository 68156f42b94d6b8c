"""JSON payloads accepted by the command line tools."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, Field, field_validator

from talkspan.models import AuthorId, PrecedingComment, RevisionMeta, TargetDescriptor


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class PrecedingCommentPayload(BaseModel):
    author: str
    timestamp: str | None = None

    def to_preceding(self) -> PrecedingComment:
        return PrecedingComment(author=AuthorId(self.author), timestamp_text=self.timestamp)


class TargetPayload(BaseModel):
    """Description of the comment to locate."""

    author: str
    timestamp: str | None = None
    ordinal: int | None = Field(default=None, ge=0)
    previous_comments: List[PrecedingCommentPayload] | None = Field(default=None, max_length=2)
    follows_heading: str | None = None
    section_headline: str | None = None
    text: str = ""
    date: datetime | None = None

    @field_validator("author")
    @classmethod
    def _author_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("author must not be empty")
        return value

    def to_descriptor(self) -> TargetDescriptor:
        previous = None
        if self.previous_comments is not None:
            previous = tuple(item.to_preceding() for item in self.previous_comments)
        return TargetDescriptor(
            author=AuthorId(self.author),
            timestamp_text=self.timestamp,
            ordinal=self.ordinal,
            previous_comments=previous,
            follows_heading_text=self.follows_heading,
            section_headline_text=self.section_headline,
            full_text=self.text,
            date=_as_utc(self.date),
        )


class RevisionPayload(BaseModel):
    """One revision and the diff it introduced. Naive timestamps are UTC."""

    revision_id: int
    timestamp: datetime
    user: str | None = None
    summary: str = ""
    diff: str

    def to_pair(self) -> tuple[RevisionMeta, str]:
        meta = RevisionMeta(
            revision_id=self.revision_id,
            timestamp=_as_utc(self.timestamp),  # type: ignore[arg-type]
            user=AuthorId(self.user) if self.user else None,
            summary=self.summary,
        )
        return meta, self.diff
