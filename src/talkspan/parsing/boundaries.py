"""Comment boundaries derived from ordered signatures."""

from __future__ import annotations

from typing import Iterable, List

from talkspan.models import CommentBoundary, SignatureRecord


def build_boundaries(records: Iterable[SignatureRecord]) -> List[CommentBoundary]:
    """Attribute to every signature the text from the previous comment's end to itself.

    ``records`` must come from :func:`talkspan.parsing.signatures.scan`, which
    already orders them and links each one to the end of its predecessor's
    line. Consecutive boundaries therefore never overlap, and the only text
    between two of them is the remainder of a signature's line.
    """
    return [
        CommentBoundary(
            signature=record,
            span_start=record.comment_start_index,
            span_end=record.end_index,
        )
        for record in records
    ]
