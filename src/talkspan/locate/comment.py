"""Locate a known comment in (possibly changed) page or section source."""

from __future__ import annotations

import bisect
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from functools import partial
from typing import Dict, List, Optional, Sequence, Union

from talkspan.config import SiteConfig
from talkspan.errors import LocateError, NoSourceError
from talkspan.matching import scoring
from talkspan.matching.matcher import (
    MatchContext,
    authors_compatible,
    match_comment,
    signature_filter,
    timestamps_compatible,
)
from talkspan.matching.scoring import LOCATE_WEIGHTS, ScoringWeights
from talkspan.models import CommentBoundary, ResolvedSpan, SignatureRecord, TargetDescriptor
from talkspan.parsing.boundaries import build_boundaries
from talkspan.parsing.masking import mask_distracting_code
from talkspan.parsing.signatures import scan
from talkspan.utils.text import calculate_word_overlap, remove_wiki_markup

LOGGER = logging.getLogger(__name__)

_HEADING_RE = re.compile(r"^(=+)[ \t]*(.+?)[ \t]*\1[ \t]*$", re.MULTILINE)


@dataclass(slots=True, frozen=True)
class Heading:
    start: int
    end: int
    text: str


def _normalize(text: str) -> str:
    return remove_wiki_markup(text).casefold()


def find_headings(source_text: str) -> List[Heading]:
    """Section headings of ``source_text`` outside comments and code examples."""
    masked = mask_distracting_code(source_text)
    return [
        Heading(start=m.start(), end=m.end(), text=source_text[m.start(2) : m.end(2)])
        for m in _HEADING_RE.finditer(masked)
    ]


class CommentLocator:
    """Scan a source text once and resolve any number of targets against it."""

    def __init__(
        self,
        source_text: Optional[str],
        config: SiteConfig | None = None,
        *,
        weights: ScoringWeights = LOCATE_WEIGHTS,
        threshold: float | None = None,
    ) -> None:
        if source_text is None:
            raise NoSourceError()
        self.source_text = source_text
        self.config = config or SiteConfig()
        self.records: List[SignatureRecord] = scan(source_text, self.config)
        self.boundaries: List[CommentBoundary] = build_boundaries(self.records)
        self.headings = find_headings(source_text)
        self._heading_starts = [heading.start for heading in self.headings]
        self._positions: Dict[int, int] = {}
        for boundary in self.boundaries:
            if not boundary.signature.is_dummy:
                self._positions[boundary.signature.ordinal] = len(self._positions)
        self._real = [b.signature for b in self.boundaries if not b.signature.is_dummy]
        self.context: MatchContext[CommentBoundary] = MatchContext(
            weights=weights,
            threshold=self.config.locate_threshold if threshold is None else threshold,
            features=self._features,
            hard_filter=signature_filter,
            tie_breaker=lambda item: item.features.get(scoring.INDEX_PROXIMITY, 0.0),
            label="comment",
        )
        LOGGER.debug(
            "Prepared %d boundaries and %d headings", len(self.boundaries), len(self.headings)
        )

    def locate(self, target: TargetDescriptor) -> ResolvedSpan:
        """Resolve ``target`` to one boundary of the source text.

        Raises:
            NoCandidateError: no boundary is a credible match.
            AmbiguousMatchError: several boundaries match equally well.
        """
        # Uniqueness depends only on the target.
        features = partial(self._features, uniqueness=self._uniqueness(target))
        return match_comment(target, self.boundaries, replace(self.context, features=features))

    def locate_many(
        self, targets: Sequence[TargetDescriptor], *, max_workers: int | None = None
    ) -> List[Union[ResolvedSpan, LocateError]]:
        """Resolve each target, returning the result or the error in target order."""
        if max_workers == 1 or len(targets) < 2:
            return [self._locate_or_error(target) for target in targets]
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(self._locate_or_error, targets))

    def _locate_or_error(self, target: TargetDescriptor) -> Union[ResolvedSpan, LocateError]:
        try:
            return self.locate(target)
        except LocateError as exc:
            return exc

    def _features(
        self,
        target: TargetDescriptor,
        boundary: CommentBoundary,
        uniqueness: Optional[float] = None,
    ) -> Dict[str, float]:
        if uniqueness is None:
            uniqueness = self._uniqueness(target)
        position = self._positions.get(boundary.signature.ordinal)
        return {
            scoring.INDEX_PROXIMITY: scoring.index_proximity(target.ordinal, position),
            scoring.CONTEXT_CONTINUITY: self._context_continuity(target, position),
            scoring.STRUCTURAL_CONTEXT: self._structural_context(target, boundary),
            scoring.TEXT_SIMILARITY: self._text_similarity(target, boundary),
            scoring.UNIQUENESS: uniqueness,
        }

    def _context_continuity(self, target: TargetDescriptor, position: Optional[int]) -> float:
        if target.previous_comments is None or position is None:
            return 0.0
        preceding = self._real[:position][::-1]
        if not target.previous_comments:
            return 1.0 if not preceding else 0.0
        agreeing = 0
        for expected, record in zip(target.previous_comments, preceding):
            if authors_compatible(expected.author, record.author) and timestamps_compatible(
                expected.timestamp_text, record.timestamp_text
            ):
                agreeing += 1
        return agreeing / len(target.previous_comments)

    def _structural_context(self, target: TargetDescriptor, boundary: CommentBoundary) -> float:
        checks: List[float] = []
        if target.section_headline_text is not None:
            heading = self._heading_before(boundary.signature.start_index)
            expected = _normalize(target.section_headline_text)
            checks.append(float(heading is not None and _normalize(heading.text) == expected))
        if target.follows_heading_text is not None:
            expected = _normalize(target.follows_heading_text)
            leading = self._leading_headings(boundary)
            checks.append(float(any(_normalize(h.text) == expected for h in leading)))
        if not checks:
            return 0.0
        return sum(checks) / len(checks)

    def _text_similarity(self, target: TargetDescriptor, boundary: CommentBoundary) -> float:
        if not target.full_text:
            return 0.0
        span_text = remove_wiki_markup(boundary.text(self.source_text))
        return calculate_word_overlap(remove_wiki_markup(target.full_text), span_text)

    def _uniqueness(self, target: TargetDescriptor) -> float:
        passing = sum(1 for boundary in self.boundaries if signature_filter(target, boundary))
        return 1.0 if passing == 1 else 0.0

    def _heading_before(self, index: int) -> Optional[Heading]:
        position = bisect.bisect_right(self._heading_starts, index) - 1
        while position >= 0:
            heading = self.headings[position]
            if heading.end <= index:
                return heading
            position -= 1
        return None

    def _leading_headings(self, boundary: CommentBoundary) -> List[Heading]:
        """Headings at the top of the span, possibly several in a row."""
        leading: List[Heading] = []
        cursor = boundary.span_start
        position = bisect.bisect_left(self._heading_starts, cursor)
        while position < len(self.headings):
            heading = self.headings[position]
            gap = self.source_text[cursor : heading.start]
            if heading.start >= boundary.span_end or gap.strip():
                break
            leading.append(heading)
            cursor = heading.end
            position += 1
        return leading


def locate(
    source_text: Optional[str], target: TargetDescriptor, config: SiteConfig | None = None
) -> ResolvedSpan:
    """Find the span of ``target`` in ``source_text``.

    Raises:
        NoSourceError: ``source_text`` is ``None``.
        NoCandidateError: no boundary is a credible match.
        AmbiguousMatchError: several boundaries match equally well.
    """
    return CommentLocator(source_text, config).locate(target)


