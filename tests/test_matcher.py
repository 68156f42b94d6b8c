"""Tests for the generic candidate matcher."""

from __future__ import annotations

from typing import Dict

import pytest

from talkspan.errors import AmbiguousMatchError, NoCandidateError
from talkspan.matching.matcher import (
    MatchContext,
    authors_compatible,
    match,
    match_comment,
    record_matches,
    signature_filter,
    timestamps_compatible,
)
from talkspan.matching.scoring import ScoringWeights
from talkspan.models import AuthorId, TargetDescriptor
from talkspan.parsing.boundaries import build_boundaries
from talkspan.parsing.signatures import scan

TARGET = TargetDescriptor(author=AuthorId("A"))
WEIGHTS = ScoringWeights.from_mapping({"value": 1.0})


def _context(threshold: float = 0.5, **kwargs) -> MatchContext[int]:
    def features(target: TargetDescriptor, candidate: int) -> Dict[str, float]:
        return {"value": candidate / 10}

    return MatchContext(
        weights=WEIGHTS,
        threshold=threshold,
        features=kwargs.pop("features", features),
        hard_filter=kwargs.pop("hard_filter", lambda target, candidate: True),
        **kwargs,
    )


class TestCompatibility:
    """Test the hard filter predicates."""

    def test_authors(self) -> None:
        """Should accept equal authors and the undated user on either side."""
        assert authors_compatible(AuthorId("Alice"), AuthorId("alice"))
        assert authors_compatible(AuthorId("Alice"), AuthorId.UNDATED)
        assert authors_compatible(AuthorId.UNDATED, AuthorId("Bob"))
        assert not authors_compatible(AuthorId("Alice"), AuthorId("Bob"))
        assert not authors_compatible(AuthorId("Alice"), None)

    def test_timestamps(self) -> None:
        """Should accept equal timestamps and prefixes."""
        assert timestamps_compatible(None, "10:00, 1 January 2020 (UTC)")
        assert timestamps_compatible("10:00, 1 January 2020", "10:00, 1 January 2020 (UTC)")
        assert timestamps_compatible("10:00, 1 January 2020 (UTC)", "10:00, 1 January 2020")
        assert not timestamps_compatible("10:00, 1 January 2020 (UTC)", None)
        assert not timestamps_compatible("10:00, 1 January 2020 (UTC)", "10:01, 1 January 2020 (UTC)")

    def test_dummy_never_matches(self) -> None:
        """Should reject the placeholder signature."""
        records = scan("Draft ~~~~")

        assert not record_matches(TargetDescriptor(author=AuthorId.UNDATED), records[0])


class TestMatch:
    """Test match function."""

    def test_best_candidate(self) -> None:
        """Should return the highest scoring candidate."""
        winner = match(TARGET, [6, 9, 7], _context())

        assert winner.candidate == 9
        assert winner.score == pytest.approx(0.9)
        assert winner.features == {"value": pytest.approx(0.9)}

    def test_hard_filter(self) -> None:
        """Should never return a filtered candidate."""
        winner = match(TARGET, [6, 9, 7], _context(hard_filter=lambda t, c: c != 9))

        assert winner.candidate == 7

    def test_nothing_passes_filter(self) -> None:
        """Should raise NoCandidateError when the filter rejects everything."""
        with pytest.raises(NoCandidateError):
            match(TARGET, [6, 9], _context(hard_filter=lambda t, c: False))

    def test_single_candidate_below_threshold(self) -> None:
        """Should not return a lone candidate whose score is too low."""
        with pytest.raises(NoCandidateError):
            match(TARGET, [3], _context(threshold=0.5))

    def test_score_equal_to_threshold_rejected(self) -> None:
        """Should accept only scores strictly above the threshold."""
        with pytest.raises(NoCandidateError):
            match(TARGET, [5], _context(threshold=0.5))

        assert match(TARGET, [6], _context(threshold=0.5)).candidate == 6

    def test_tie_is_ambiguous(self) -> None:
        """Should raise AmbiguousMatchError for equal scores."""
        with pytest.raises(AmbiguousMatchError) as info:
            match(TARGET, [8, 8, 2], _context())

        assert info.value.candidates == [8, 8]
        assert info.value.code == "ambiguous"

    def test_tie_breaker(self) -> None:
        """Should separate equal scores with the tie-breaker."""
        context = _context(
            features=lambda target, candidate: {"value": 0.8},
            tie_breaker=lambda item: float(item.candidate),
        )

        assert match(TARGET, [1, 3, 2], context).candidate == 3

    def test_tie_breaker_tied(self) -> None:
        """Should stay ambiguous when the tie-breaker also ties."""
        context = _context(
            features=lambda target, candidate: {"value": 0.8},
            tie_breaker=lambda item: 1.0,
        )

        with pytest.raises(AmbiguousMatchError):
            match(TARGET, [1, 2], context)


class TestMatchComment:
    """Test match_comment with real boundaries."""

    def test_identical_boundaries_ambiguous(self) -> None:
        """Should refuse to choose between byte-identical candidates."""
        line = "Same text. [[User:A|A]] 10:00, 1 January 2020 (UTC)\n"
        boundaries = build_boundaries(scan(line + line))
        context = MatchContext(
            weights=ScoringWeights.from_mapping({"constant": 1.0}),
            threshold=0.3,
            features=lambda target, boundary: {"constant": 0.35},
            hard_filter=signature_filter,
        )

        with pytest.raises(AmbiguousMatchError):
            match_comment(TARGET, boundaries, context)

    def test_returns_resolved_span(self) -> None:
        """Should wrap the winning boundary and its score."""
        source = "Hi. [[User:A|A]] 10:00, 1 January 2020 (UTC)\nYo. [[User:B|B]] 10:05, 1 January 2020 (UTC)\n"
        boundaries = build_boundaries(scan(source))
        context = MatchContext(
            weights=ScoringWeights.from_mapping({"constant": 1.0}),
            threshold=0.3,
            features=lambda target, boundary: {"constant": 0.5},
            hard_filter=signature_filter,
        )

        span = match_comment(TargetDescriptor(author=AuthorId("B")), boundaries, context)

        assert span.boundary is boundaries[1]
        assert span.score == pytest.approx(0.5)
        assert span.text(source).startswith("Yo.")
