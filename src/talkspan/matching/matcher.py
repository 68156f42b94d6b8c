"""Generic weighted candidate selection with hard filters and tie detection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Iterable, List, Optional, Sequence, TypeVar

import numpy as np

from talkspan.errors import AmbiguousMatchError, NoCandidateError
from talkspan.matching.scoring import ScoringWeights
from talkspan.models import (
    AuthorId,
    CommentBoundary,
    ResolvedSpan,
    SignatureRecord,
    TargetDescriptor,
)

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

FeatureFunction = Callable[[TargetDescriptor, T], Dict[str, float]]


@dataclass(slots=True)
class MatchCandidate(Generic[T]):
    """A candidate that passed the hard filter, with its features and score."""

    candidate: T
    score: float
    features: Dict[str, float] = field(default_factory=dict)


@dataclass(slots=True)
class MatchContext(Generic[T]):
    """How to filter, score and disambiguate one kind of candidate."""

    weights: ScoringWeights
    threshold: float
    features: FeatureFunction
    hard_filter: Callable[[TargetDescriptor, T], bool]
    tie_breaker: Optional[Callable[[MatchCandidate[T]], float]] = None
    label: str = "comment"


def authors_compatible(target: AuthorId, other: Optional[AuthorId]) -> bool:
    """Same user, or either side carries no real user name."""
    if other is None:
        return False
    return other == target or other.is_undated or target.is_undated


def timestamps_compatible(target: Optional[str], other: Optional[str]) -> bool:
    """Equal timestamps, or one being a prefix of the other.

    The prefix rule accepts a timestamp whose timezone suffix was dropped or
    added. A target without a timestamp constrains nothing.
    """
    if not target:
        return True
    if not other:
        return False
    return other == target or other.startswith(target) or target.startswith(other)


def record_matches(target: TargetDescriptor, record: SignatureRecord) -> bool:
    if record.is_dummy:
        return False
    return authors_compatible(target.author, record.author) and timestamps_compatible(
        target.timestamp_text, record.timestamp_text
    )


def signature_filter(target: TargetDescriptor, boundary: CommentBoundary) -> bool:
    return record_matches(target, boundary.signature)


def _score_all(
    target: TargetDescriptor, candidates: Iterable[T], context: MatchContext[T]
) -> List[MatchCandidate[T]]:
    scored: List[MatchCandidate[T]] = []
    for candidate in candidates:
        if not context.hard_filter(target, candidate):
            continue
        features = context.features(target, candidate)
        scored.append(
            MatchCandidate(
                candidate=candidate,
                score=context.weights.score(features),
                features=features,
            )
        )
    return scored


def _tied(scores: Sequence[float]) -> np.ndarray:
    values = np.asarray(scores, dtype=np.float64)
    return np.isclose(values, values.max())


def match(
    target: TargetDescriptor, candidates: Iterable[T], context: MatchContext[T]
) -> MatchCandidate[T]:
    """Pick the single best candidate for ``target``.

    Raises:
        NoCandidateError: nothing passed the hard filter, or the best score does
            not exceed the threshold.
        AmbiguousMatchError: several candidates share the best score and the
            tie-breaker, if any, does not separate them.
    """
    scored = _score_all(target, candidates, context)
    if not scored:
        LOGGER.debug("No %s candidate passed the filter for %s", context.label, target.author)
        raise NoCandidateError(f"No {context.label} candidate for {target.author}")

    scored.sort(key=lambda item: item.score, reverse=True)
    best = scored[0]
    # Acceptance needs a score strictly above the threshold.
    if best.score <= context.threshold or np.isclose(best.score, context.threshold):
        LOGGER.debug(
            "Best %s score %.3f does not exceed the threshold %.3f",
            context.label,
            best.score,
            context.threshold,
        )
        raise NoCandidateError(
            f"Best {context.label} score {best.score:.3f} does not exceed {context.threshold:.3f}"
        )

    tied = [item for item, flag in zip(scored, _tied([item.score for item in scored])) if flag]
    if len(tied) > 1 and context.tie_breaker is not None:
        secondary = [context.tie_breaker(item) for item in tied]
        tied = [item for item, flag in zip(tied, _tied(secondary)) if flag]
    if len(tied) > 1:
        LOGGER.info("%d %s candidates tie at %.3f", len(tied), context.label, best.score)
        raise AmbiguousMatchError(
            f"{len(tied)} {context.label} candidates tie at score {best.score:.3f}",
            candidates=[item.candidate for item in tied],
        )

    winner = tied[0]
    LOGGER.debug("Matched %s with score %.3f %s", context.label, winner.score, winner.features)
    return winner


def match_comment(
    target: TargetDescriptor,
    boundaries: Iterable[CommentBoundary],
    context: MatchContext[CommentBoundary],
) -> ResolvedSpan:
    winner = match(target, boundaries, context)
    return ResolvedSpan(boundary=winner.candidate, score=winner.score)
