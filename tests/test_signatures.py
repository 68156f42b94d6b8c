"""Tests for the signature scanner."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from talkspan.config import SiteConfig
from talkspan.models import AuthorId
from talkspan.parsing.masking import mask_distracting_code, prepare_for_scan
from talkspan.parsing.signatures import (
    SignatureDraft,
    find_first_timestamp,
    last_pass_wins,
    prefer_longer_match,
    scan,
)

ALICE = "Hello world. [[User:Alice|Alice]] ([[User talk:Alice|talk]]) 23:29, 10 May 2019 (UTC)\n"


def _signed_lines(count: int) -> str:
    return "".join(
        f"Comment number {i}. [[User:User{i}|User{i}]] 10:0{i}, 1 January 2020 (UTC)\n"
        for i in range(count)
    )


class TestRegularSignatures:
    """Test signatures made of a user link and a timestamp."""

    def test_single_signature(self) -> None:
        """Should find the author, the timestamp and the signature span."""
        records = scan(ALICE)

        assert len(records) == 1
        record = records[0]
        assert record.author == AuthorId("Alice")
        assert record.timestamp_text == "23:29, 10 May 2019 (UTC)"
        assert record.parsed_date == datetime(2019, 5, 10, 23, 29, tzinfo=timezone.utc)
        assert record.start_index == ALICE.index("[[User:Alice")
        assert record.end_index == ALICE.index("(UTC)") + len("(UTC)")
        assert record.next_comment_start_index == len(ALICE)
        assert record.kind == "regular"

    def test_no_signatures(self) -> None:
        """Should return an empty list for text without signatures."""
        assert scan("Just some text.\nAnother line with [[a link]].\n") == []
        assert scan("") == []

    def test_many_signatures(self) -> None:
        """Should return ordered records with sequential ordinals."""
        records = scan(_signed_lines(5))

        assert len(records) == 5
        assert [record.ordinal for record in records] == list(range(5))
        starts = [record.start_index for record in records]
        assert starts == sorted(set(starts))
        assert [record.author.name for record in records] == [f"User{i}" for i in range(5)]

    def test_scan_is_idempotent(self) -> None:
        """Should give equal results for repeated scans."""
        text = _signed_lines(3)

        assert scan(text) == scan(text)

    def test_comment_starts_chain(self) -> None:
        """Should start each comment where the previous one ended."""
        records = scan(_signed_lines(3))

        assert records[0].comment_start_index == 0
        for previous, current in zip(records, records[1:]):
            assert current.comment_start_index == previous.next_comment_start_index

    def test_timestamp_without_author_dropped(self) -> None:
        """Should drop timestamps that have no author link."""
        assert scan("Some text 10:00, 1 January 2020 (UTC)\n") == []

    def test_quoted_timestamp_ignored(self) -> None:
        """Should skip timestamps followed by a quotation mark."""
        text = '[[User:A|A]] said "10:00, 1 January 2020 (UTC)" earlier\n'

        assert scan(text) == []

    def test_user_name_normalized(self) -> None:
        """Should normalize underscores and the first letter of user names."""
        records = scan("Hi [[User:john_smith|John]] 10:00, 1 January 2020 (UTC)\n")

        assert records[0].author.name == "John smith"

    def test_contributions_link(self) -> None:
        """Should accept links to the contributions page as author links."""
        records = scan("Hi [[Special:Contributions/192.0.2.1|192.0.2.1]] 10:00, 1 January 2020 (UTC)\n")

        assert records[0].author.name == "192.0.2.1"

    def test_malformed_timestamp_kept(self) -> None:
        """Should keep signatures whose timestamp does not parse."""
        records = scan("Hi [[User:A|A]] 99:99, 1 January 2020 (UTC)\n")

        assert len(records) == 1
        assert records[0].parsed_date is None
        assert records[0].malformed_timestamp

    def test_signature_starts_at_first_author_link(self) -> None:
        """Should start the signature at the first link to the author, not another user."""
        text = (
            "Agree with [[User:Bob|Bob]]. [[User:Alice|Alice]] "
            "([[User talk:Alice|talk]]) 10:00, 1 January 2020 (UTC)\n"
        )
        records = scan(text)

        assert records[0].author == AuthorId("Alice")
        assert records[0].start_index == text.index("[[User:Alice")

    def test_user_subpage_link_skipped(self) -> None:
        """Should not start the signature at a link to a user subpage."""
        text = (
            "See [[User:Alice/Sandbox|my draft]]. [[User:Alice|Alice]] "
            "10:00, 1 January 2020 (UTC)\n"
        )
        records = scan(text)

        assert records[0].author == AuthorId("Alice")
        assert records[0].start_index == text.index("[[User:Alice|")

    def test_author_link_window(self) -> None:
        """Should ignore author links too far before the timestamp."""
        text = (
            "[[User:Alice|Alice]] " + "x" * 300 + " [[User:Alice|Alice]] "
            "10:00, 1 January 2020 (UTC)\n"
        )
        records = scan(text)

        assert len(records) == 1
        assert records[0].start_index == text.rindex("[[User:Alice")

    def test_find_first_timestamp(self) -> None:
        """Should return the timestamp of the first signature."""
        assert find_first_timestamp(_signed_lines(2)) == "10:00, 1 January 2020 (UTC)"
        assert find_first_timestamp("nothing") is None


class TestMaskedRegions:
    """Test that masked markup yields no signatures."""

    def test_nowiki(self) -> None:
        """Should ignore signatures inside nowiki tags."""
        text = "<nowiki>[[User:A|A]] 10:00, 1 January 2020 (UTC)</nowiki>\n"

        assert scan(text) == []

    def test_html_comment(self) -> None:
        """Should ignore signatures inside HTML comments."""
        text = "<!-- [[User:A|A]] 10:00, 1 January 2020 (UTC) -->\n"

        assert scan(text) == []

    def test_blockquote(self) -> None:
        """Should ignore quoted signatures."""
        text = "<blockquote>[[User:A|A]] 10:00, 1 January 2020 (UTC)</blockquote>\n"

        assert scan(text) == []

    def test_antipattern_class(self) -> None:
        """Should ignore lines carrying a no-signature class."""
        text = 'Done <div class="resolved">[[User:A|A]] 10:00, 1 January 2020 (UTC)</div>\n'

        assert scan(text) == []

    def test_masking_preserves_offsets(self) -> None:
        """Should keep masked text the same length as the source."""
        text = "a <!-- [[User:X|X]] --> b <nowiki>c</nowiki> {{tq|quoted}}"

        assert len(mask_distracting_code(text)) == len(text)
        assert len(prepare_for_scan(text, SiteConfig())) == len(text)


class TestUnsignedTemplates:
    """Test signatures supplied by unsigned templates."""

    def test_template_with_timestamp(self) -> None:
        """Should read the author and add the implicit timezone."""
        text = "Text. {{unsigned|Alice|2020-01-01T00:00:00}}"
        records = scan(text)

        assert len(records) == 1
        record = records[0]
        assert record.author == AuthorId("Alice")
        assert record.timestamp_text is not None
        assert record.timestamp_text.endswith(" (UTC)")
        assert record.start_index == text.index("{{")
        assert record.kind == "unsigned"
        assert record.parsed_date == datetime(2020, 1, 1, tzinfo=timezone.utc)

    def test_swapped_parameters(self) -> None:
        """Should recognize a timestamp given as the first parameter."""
        records = scan("Text. {{unsigned|10:00, 1 January 2020|Bob}}\n")

        assert records[0].author == AuthorId("Bob")
        assert records[0].timestamp_text == "10:00, 1 January 2020 (UTC)"

    def test_named_parameters(self) -> None:
        """Should read named author parameters."""
        records = scan("Text. {{Unsigned|user=Carol}}\n")

        assert records[0].author == AuthorId("Carol")
        assert records[0].timestamp_text is None

    def test_template_timestamp_spaces_collapsed(self) -> None:
        """Should collapse repeated spaces in template timestamps."""
        records = scan("Text. {{unsigned|Bob|on  10:00, 1 January 2020}}\n")

        assert records[0].author == AuthorId("Bob")
        assert records[0].timestamp_text == "on 10:00, 1 January 2020 (UTC)"

    def test_missing_author_is_undated(self) -> None:
        """Should attribute a template without an author to the undated user."""
        records = scan("Text. {{undated}}\n")

        assert len(records) == 1
        assert records[0].author.is_undated

    def test_manual_signature_then_template(self) -> None:
        """Should keep one record when a template follows a manual signature."""
        text = (
            "Text [[User:Bob|Bob]] 10:00, 1 January 2020 (UTC) "
            "{{unsigned|Bob|10:00, 1 January 2020}}\n"
        )
        records = scan(text)

        assert len(records) == 1
        assert records[0].kind == "unsigned"
        assert records[0].author == AuthorId("Bob")

    def test_template_claims_authorless_timestamp(self) -> None:
        """Should use the template author for a bare timestamp on the same line."""
        records = scan("Text 10:00, 1 January 2020 (UTC) {{unsigned|Dave}}\n")

        assert len(records) == 1
        assert records[0].author == AuthorId("Dave")


class TestOverlapPolicies:
    """Test the policies resolving conflicting drafts."""

    def _draft(self, start: int, end: int, kind: str = "regular") -> SignatureDraft:
        return SignatureDraft(
            author=AuthorId("A"),
            timestamp_text=None,
            start_index=start,
            end_index=end,
            raw_text="",
            next_comment_start_index=100,
            kind=kind,  # type: ignore[arg-type]
        )

    def test_last_pass_wins(self) -> None:
        """Should replace the conflicting draft with the incoming one."""
        existing = self._draft(0, 50)
        incoming = self._draft(60, 70, kind="unsigned")

        assert last_pass_wins([existing], incoming) == [incoming]

    def test_prefer_longer_match(self) -> None:
        """Should keep the longer of two conflicting drafts."""
        existing = self._draft(0, 50)
        incoming = self._draft(60, 70, kind="unsigned")

        assert prefer_longer_match([existing], incoming) == [existing]
        assert prefer_longer_match([self._draft(65, 68)], incoming) == [incoming]

    def test_policy_passed_to_scan(self) -> None:
        """Should let the caller choose the overlap policy."""
        text = (
            "Text [[User:Bob|Bob]] 10:00, 1 January 2020 (UTC) "
            "{{unsigned|Bob|10:00, 1 January 2020}}\n"
        )
        records = scan(text, overlap_policy=prefer_longer_match)

        assert len(records) == 1
        assert records[0].kind == "regular"


class TestDummySignature:
    """Test the placeholder signature for unsaved comments."""

    def test_sign_code(self) -> None:
        """Should add a dummy record for the sign code."""
        text = _signed_lines(1) + "New comment ~~~~\n"
        records = scan(text)

        assert [record.kind for record in records] == ["regular", "dummy"]
        assert records[1].author.is_undated
        assert records[1].start_index == text.index("~~~~")

    def test_session_user(self) -> None:
        """Should attribute the dummy record to the session user."""
        records = scan("Draft ~~~~", SiteConfig(session_user="Eve"))

        assert records[0].author == AuthorId("Eve")
        assert records[0].is_dummy
