"""Identify the revision that added a comment."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from talkspan.config import SiteConfig
from talkspan.errors import MalformedTimestamp
from talkspan.locate.diffs import extract_added_lines
from talkspan.matching import scoring
from talkspan.matching.matcher import MatchContext, authors_compatible, match, record_matches
from talkspan.matching.scoring import EDIT_ORIGIN_WEIGHTS, ScoringWeights
from talkspan.models import AuthorId, RevisionMeta, SignatureRecord, TargetDescriptor
from talkspan.parsing.signatures import scan
from talkspan.utils.text import calculate_word_overlap, normalize_whitespace, remove_wiki_markup

LOGGER = logging.getLogger(__name__)

RevisionDiff = Tuple[RevisionMeta, str]


@dataclass(slots=True, frozen=True)
class RevisionCandidate:
    """A revision with the wikitext it added, reduced for comparison."""

    revision: RevisionMeta
    added_lines: tuple[str, ...]
    plain_lines: tuple[str, ...]
    signatures: tuple[SignatureRecord, ...]

    @property
    def plain_text(self) -> str:
        return normalize_whitespace(self.plain_lines)


def _minute(value: datetime) -> datetime:
    return value.replace(second=0, microsecond=0)


class EditOriginLocator:
    """Score revision diffs against a comment and pick the one that added it."""

    def __init__(
        self,
        config: SiteConfig | None = None,
        *,
        weights: ScoringWeights = EDIT_ORIGIN_WEIGHTS,
        threshold: float | None = None,
    ) -> None:
        self.config = config or SiteConfig()
        self.window_before = timedelta(minutes=self.config.edit_window_before_minutes)
        self.window_after = timedelta(minutes=self.config.edit_window_after_minutes)
        self.context: MatchContext[RevisionCandidate] = MatchContext(
            weights=weights,
            threshold=self.config.edit_origin_threshold if threshold is None else threshold,
            features=self._features,
            hard_filter=self._hard_filter,
            tie_breaker=lambda item: item.features.get(scoring.TEMPORAL_PROXIMITY, 0.0),
            label="revision",
        )

    def prepare(self, revision_diffs: Iterable[RevisionDiff]) -> List[RevisionCandidate]:
        """Reduce each diff to its added text, skipping diffs with nothing to compare."""
        candidates: List[RevisionCandidate] = []
        for revision, diff_text in revision_diffs:
            added = extract_added_lines(diff_text)
            plain = tuple(line for line in (remove_wiki_markup(text) for text in added) if line)
            if not plain:
                LOGGER.debug("Skipping revision %s: no added text", revision.revision_id)
                continue
            signatures = tuple(scan("\n".join(added) + "\n", self.config))
            candidates.append(
                RevisionCandidate(
                    revision=revision,
                    added_lines=tuple(added),
                    plain_lines=plain,
                    signatures=signatures,
                )
            )
        return candidates

    def find(self, target: TargetDescriptor, revision_diffs: Iterable[RevisionDiff]) -> RevisionMeta:
        """Return the revision whose added text best matches ``target``.

        Raises:
            NoCandidateError: no revision is a credible origin.
            AmbiguousMatchError: several revisions match equally well.
        """
        candidates = self.prepare(revision_diffs)
        LOGGER.debug("Comparing %s against %d revisions", target.author, len(candidates))
        return match(target, candidates, self.context).candidate.revision

    def target_date(self, target: TargetDescriptor) -> Optional[datetime]:
        if target.date is not None:
            return target.date
        if not target.timestamp_text:
            return None
        try:
            return self.config.timestamp.parse(target.timestamp_text)
        except MalformedTimestamp as exc:
            LOGGER.debug("%s", exc)
            return None

    def _hard_filter(self, target: TargetDescriptor, candidate: RevisionCandidate) -> bool:
        user: Optional[AuthorId] = candidate.revision.user
        if user is not None and not authors_compatible(target.author, user):
            return False
        date = self.target_date(target)
        if date is None:
            return True
        timestamp = candidate.revision.timestamp
        return date - self.window_before <= timestamp <= date + self.window_after

    def _features(self, target: TargetDescriptor, candidate: RevisionCandidate) -> Dict[str, float]:
        return {
            scoring.TEXT_SIMILARITY: self._text_similarity(target, candidate),
            scoring.TEMPORAL_PROXIMITY: scoring.temporal_proximity(
                self.target_date(target), _minute(candidate.revision.timestamp)
            ),
            scoring.SIGNATURE_PRESENCE: float(
                any(record_matches(target, record) for record in candidate.signatures)
            ),
        }

    def _text_similarity(self, target: TargetDescriptor, candidate: RevisionCandidate) -> float:
        """Overlap with the whole diff or with its best line, whichever is higher.

        An edit may add several comments, so a single line can match better
        than the diff as a whole.
        """
        comment_text = remove_wiki_markup(target.full_text)
        if not comment_text:
            return 0.0
        best_line = max(
            (calculate_word_overlap(line, comment_text) for line in candidate.plain_lines),
            default=0.0,
        )
        return max(calculate_word_overlap(candidate.plain_text, comment_text), best_line)


def find_originating_edit(
    target: TargetDescriptor,
    revision_diffs: Iterable[RevisionDiff],
    config: SiteConfig | None = None,
) -> RevisionMeta:
    """Find which of ``revision_diffs`` added the comment described by ``target``."""
    return EditOriginLocator(config).find(target, revision_diffs)
