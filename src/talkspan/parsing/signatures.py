"""Signature scanner.

Recovers the ordered list of signatures (author link + timestamp, or an
"unsigned" template) from raw wiki source. Only the masked copy of the text is
searched; offsets and extracted snippets always refer to the original text.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Pattern

from talkspan.config import SiteConfig
from talkspan.errors import MalformedTimestamp
from talkspan.models import AuthorId, SignatureKind, SignatureRecord
from talkspan.parsing.masking import prepare_for_scan
from talkspan.parsing.timestamps import TimestampGrammar
from talkspan.utils.text import page_name_pattern, remove_dir_marks

LOGGER = logging.getLogger(__name__)

# Quote marks right after a timestamp mean it is quoted, not signed.
AFTER_TIMESTAMP = r"(?![\"»])(?:\}\}|</small>)?"
LINE_ENDING = r"(?:\n*|$)"
# Maximum signature length (255) minus the shortest user link prefix plus the space
# before the timestamp.
AUTHOR_LINK_WINDOW = 255


@dataclass(slots=True)
class SignatureDraft:
    """Signature found by one pass, before ordering and validation."""

    author: Optional[AuthorId]
    timestamp_text: Optional[str]
    start_index: int
    end_index: int
    raw_text: str
    next_comment_start_index: int
    kind: SignatureKind = "regular"

    @property
    def length(self) -> int:
        return self.end_index - self.start_index


OverlapPolicy = Callable[[List[SignatureDraft], SignatureDraft], List[SignatureDraft]]


def _conflicts(existing: SignatureDraft, incoming: SignatureDraft) -> bool:
    return existing.next_comment_start_index == incoming.next_comment_start_index


def last_pass_wins(drafts: List[SignatureDraft], incoming: SignatureDraft) -> List[SignatureDraft]:
    """Drop drafts ending the same comment as ``incoming`` and keep ``incoming``.

    A manual signature followed by an unsigned template on the same line is the
    common case: the manual text is a substring of the templated signature.
    """
    kept = [draft for draft in drafts if not _conflicts(draft, incoming)]
    if len(kept) != len(drafts):
        LOGGER.debug("Template at %d replaces a regular signature", incoming.start_index)
    kept.append(incoming)
    return kept


def prefer_longer_match(
    drafts: List[SignatureDraft], incoming: SignatureDraft
) -> List[SignatureDraft]:
    """Keep whichever of the conflicting drafts covers more text."""
    rivals = [draft for draft in drafts if _conflicts(draft, incoming)]
    if any(rival.length > incoming.length for rival in rivals):
        return list(drafts)
    return [draft for draft in drafts if draft not in rivals] + [incoming]


@dataclass(slots=True, frozen=True)
class _ScanPatterns:
    timestamp_line: Pattern[str]
    signature_line: Pattern[str]
    author_link: Pattern[str]
    last_author_link: Pattern[str]
    unsigned: Optional[Pattern[str]]


def user_link_pattern(config: SiteConfig) -> str:
    """Regex source for a link to a user page, user talk page or contributions.

    Groups: ``name`` (the user name) and ``subpage`` (set for links into the
    user's subpages, which are usually not part of the signature).
    """
    namespaces = "|".join(page_name_pattern(ns) for ns in config.user_namespaces)
    contributions = page_name_pattern(config.contributions_page)
    return (
        rf"\[\[[ _]*:?(?:\w*:){{0,2}}(?:(?:{namespaces})[ _]*:|{contributions}[ _]*/)[ _]*"
        r"(?P<name>[^|\[\]<>\n#/]+?)[ _]*(?P<subpage>/[^|\[\]<>\n#]*)?"
        r"(?:#[^|\[\]<>\n]*)?[ _]*(?=\||\]\])"
    )


@lru_cache(maxsize=16)
def _patterns(config: SiteConfig) -> _ScanPatterns:
    timestamp = config.timestamp.content_pattern
    user_link = user_link_pattern(config)
    # (?:^|[^=]) skips timestamps given as template parameter values.
    timestamp_line = re.compile(
        rf"^(?P<signature>(?P<prefix>.*?(?:^|[^=]))(?P<timestamp>{timestamp}){AFTER_TIMESTAMP})"
        rf".*{LINE_ENDING}",
        re.IGNORECASE | re.MULTILINE,
    )
    signature_line = re.compile(
        rf"^(?P<signature>(?P<before_timestamp>(?P<before_link>.*?){user_link}"
        rf".{{1,{config.signature_scan_limit - 1}}}?[^=])"
        rf"(?P<timestamp>{timestamp}){AFTER_TIMESTAMP}).*{LINE_ENDING}",
        re.IGNORECASE,
    )
    unsigned = None
    if config.unsigned_templates:
        names = "|".join(page_name_pattern(name) for name in config.unsigned_templates)
        unsigned = re.compile(
            rf"(?P<template>\{{\{{ *(?:{names}) *(?P<params>\|[^{{}}]*)?\}}\}})[^\n]*{LINE_ENDING}"
        )
    return _ScanPatterns(
        timestamp_line=timestamp_line,
        signature_line=signature_line,
        author_link=re.compile(user_link, re.IGNORECASE),
        last_author_link=re.compile(rf"^.*{user_link}", re.IGNORECASE),
        unsigned=unsigned,
    )


def extract_regular_signatures(
    masked: str, text: str, config: SiteConfig
) -> List[SignatureDraft]:
    """Find signatures made of a user link followed by a timestamp.

    Lines with a timestamp but no recognizable author link yield author-less
    drafts; they still matter if an unsigned template claims the same line.
    """
    patterns = _patterns(config)
    drafts: List[SignatureDraft] = []
    for line_match in patterns.timestamp_line.finditer(masked):
        line = line_match.group(0)
        line_start = line_match.start()
        author_match = patterns.signature_line.match(line)

        if author_match is None:
            start = line_start + len(line_match["prefix"])
            end = line_start + len(line_match["signature"])
            timestamp = text[start : start + len(line_match["timestamp"])]
            drafts.append(
                SignatureDraft(
                    author=None,
                    timestamp_text=remove_dir_marks(timestamp),
                    start_index=start,
                    end_index=end,
                    raw_text=text[start:end],
                    next_comment_start_index=line_start + len(line),
                )
            )
            continue

        before_timestamp = len(author_match["before_timestamp"])
        timestamp_start = line_start + before_timestamp
        timestamp_end = timestamp_start + len(author_match["timestamp"])
        start = line_start + len(author_match["before_link"])
        end = line_start + len(author_match["signature"])

        # The last link before the timestamp names the author; the signature starts
        # at the first link to the same author within the window.
        window_start = max(0, before_timestamp - AUTHOR_LINK_WINDOW)
        window = line[window_start:before_timestamp]
        last_link = patterns.last_author_link.match(window)
        if last_link is None:
            continue
        author = AuthorId(last_link["name"])
        for link in patterns.author_link.finditer(window):
            if link["subpage"]:
                continue
            if AuthorId(link["name"]) == author:
                start = line_start + window_start + link.start()
                break

        drafts.append(
            SignatureDraft(
                author=author,
                timestamp_text=remove_dir_marks(text[timestamp_start:timestamp_end]),
                start_index=start,
                end_index=end,
                raw_text=text[start:end],
                next_comment_start_index=line_start + len(author_match.group(0)),
            )
        )
    return drafts


def _template_parameters(params: str) -> tuple[List[str], Dict[str, str]]:
    positional: List[str] = []
    named: Dict[str, str] = {}
    for part in params.split("|")[1:]:
        key, sep, value = part.partition("=")
        if sep and re.fullmatch(r" *[\w -]+ *", key):
            named[key.strip().lower()] = value.strip()
        else:
            positional.append(part.strip())
    return positional, named


def _pick_parameter(
    names: tuple[str, ...], named: Dict[str, str], positional: List[str], index: int
) -> Optional[str]:
    for name in names:
        if named.get(name):
            return named[name]
    if index < len(positional) and positional[index]:
        return positional[index]
    return None


def extract_unsigned_signatures(
    masked: str,
    text: str,
    config: SiteConfig,
    drafts: List[SignatureDraft],
    overlap_policy: OverlapPolicy,
) -> List[SignatureDraft]:
    """Add signatures supplied by unsigned templates to ``drafts``.

    Returns the resulting list of drafts; which of two conflicting drafts
    survives is decided by ``overlap_policy``.
    """
    regexp = _patterns(config).unsigned
    if regexp is None:
        return drafts
    grammar = config.timestamp

    for match in regexp.finditer(masked):
        positional, named = _template_parameters(match["params"] or "")
        first = _pick_parameter(config.unsigned_author_params, named, positional, 0)
        second = _pick_parameter(config.unsigned_timestamp_params, named, positional, 1)

        author_text: Optional[str]
        timestamp: Optional[str]
        if first and grammar.is_timestamp_without_timezone(first):
            timestamp, author_text = first, second
        elif second and grammar.is_timestamp_without_timezone(second):
            timestamp, author_text = second, first
        else:
            timestamp, author_text = None, first

        if timestamp:
            timestamp = re.sub(r" +", " ", grammar.add_implicit_timezone(timestamp))

        start = match.start()
        end = start + len(match["template"])
        incoming = SignatureDraft(
            author=AuthorId(author_text) if author_text else AuthorId.UNDATED,
            timestamp_text=timestamp,
            start_index=start,
            end_index=end,
            raw_text=text[start:end],
            next_comment_start_index=match.end(),
            kind="unsigned",
        )
        drafts = overlap_policy(drafts, incoming)
    return drafts


def _dummy_signature(masked: str, config: SiteConfig) -> Optional[SignatureDraft]:
    index = masked.find(config.sign_code) if config.sign_code else -1
    if index == -1:
        return None
    line_end = masked.find("\n", index)
    author = AuthorId(config.session_user) if config.session_user else AuthorId.UNDATED
    return SignatureDraft(
        author=author,
        timestamp_text=None,
        start_index=index,
        end_index=index + len(config.sign_code),
        raw_text=config.sign_code,
        next_comment_start_index=len(masked) if line_end == -1 else line_end + 1,
        kind="dummy",
    )


def _parse_date(timestamp: Optional[str], grammar: TimestampGrammar) -> Optional[datetime]:
    if not timestamp:
        return None
    try:
        return grammar.parse(timestamp)
    except MalformedTimestamp as exc:
        LOGGER.debug("%s", exc)
        return None


def finalize(drafts: List[SignatureDraft], config: SiteConfig) -> List[SignatureRecord]:
    """Order drafts, drop author-less ones and link each to its comment start."""
    ordered = sorted(drafts, key=lambda draft: draft.start_index)
    kept = [draft for draft in ordered if draft.author is not None]
    if len(kept) != len(ordered):
        LOGGER.debug("Dropped %d timestamps without an author", len(ordered) - len(kept))

    records: List[SignatureRecord] = []
    comment_start = 0
    for ordinal, draft in enumerate(kept):
        records.append(
            SignatureRecord(
                author=draft.author,  # type: ignore[arg-type]
                timestamp_text=draft.timestamp_text,
                parsed_date=_parse_date(draft.timestamp_text, config.timestamp),
                start_index=draft.start_index,
                end_index=draft.end_index,
                raw_text=draft.raw_text,
                comment_start_index=comment_start,
                next_comment_start_index=draft.next_comment_start_index,
                ordinal=ordinal,
                kind=draft.kind,
            )
        )
        comment_start = draft.next_comment_start_index
    return records


def scan(
    text: str,
    config: SiteConfig | None = None,
    *,
    overlap_policy: OverlapPolicy = last_pass_wins,
) -> List[SignatureRecord]:
    """Extract the ordered signatures of ``text``.

    Never raises on odd input; text without signatures gives an empty list.
    """
    config = config or SiteConfig()
    masked = prepare_for_scan(text, config)

    drafts = extract_regular_signatures(masked, text, config)
    drafts = extract_unsigned_signatures(masked, text, config, drafts, overlap_policy)
    dummy = _dummy_signature(masked, config)
    if dummy is not None:
        drafts.append(dummy)

    records = finalize(drafts, config)
    LOGGER.debug("Found %d signatures in %d characters", len(records), len(text))
    return records


def find_first_timestamp(text: str, config: SiteConfig | None = None) -> Optional[str]:
    """Timestamp of the first signature in ``text``, if any."""
    for record in scan(text, config):
        if record.timestamp_text:
            return record.timestamp_text
    return None
