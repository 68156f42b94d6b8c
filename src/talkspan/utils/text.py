"""Text helpers for comparing wiki markup with rendered comment text."""

from __future__ import annotations

import re
from typing import Iterable, List

DIR_MARKS_RE = re.compile("[\u200e\u200f]")

_FILE_EMBED_RE = re.compile(
    r"\[\[(?:File|Image):[^\]]+?(?:\|[^\]]+?\| *((?:\[\[[^\]]+?\]\]|[^|\]])+))? *\]\]",
    re.IGNORECASE,
)
_THUMB_RE = re.compile(r"\|\s*(?:thumb|thumbnail|frame|framed)\s*[|\]]", re.IGNORECASE)
_EXTENSION_TAGS_RE = re.compile(
    r"</?(?:nowiki|pre|source|syntaxhighlight|poem|ref|imagemap|categorytree|hiero|"
    r"charinsert|timeline|gallery|includeonly|noinclude|onlyinclude)\b[^>]*?>"
)
_HTML_TAG_RE = re.compile(r"</?[a-zA-Z][^<>\n]*>")


def remove_dir_marks(text: str) -> str:
    """Remove left-to-right and right-to-left marks."""
    return DIR_MARKS_RE.sub("", text)


def collapse_spaces(text: str) -> str:
    return re.sub(r" {2,}", " ", text)


def normalize_code(text: str) -> str:
    """Normalize newlines and replace tabs with four spaces.

    Callers should run this before scanning so that offsets computed later refer
    to the same string they will slice.
    """
    return text.replace("\r\n", "\n").replace("\r", "\n").replace("\t", "    ")


def remove_wiki_markup(code: str) -> str:
    """Strip wiki and HTML markup, keeping roughly what a reader would see.

    The output is meant for comparisons, not for display: template names are
    dropped and only their first parameter is kept.
    """

    def _file_embed(match: re.Match[str]) -> str:
        return match.group(1) or "" if _THUMB_RE.search(match.group(0)) else ""

    code = re.sub(r"<!--.*?-->", "", code, flags=re.DOTALL)
    # Masked comments left by the scanner
    code = re.sub(r"\x01 *\x02", "", code)
    code = _FILE_EMBED_RE.sub(_file_embed, code)
    code = re.sub(r"\[\[:?(?:[^|\[\]<>\n]+\|)?(.+?)\]\]", r"\1", code)
    code = re.sub(r"\{\{:?(?:[^|{}<>\n]+)(?:\|(.+?))?\}\}", r"\1", code)
    code = re.sub(r"\[https?://[^\[\]<>\"\n ]+ *([^\]]*)\]", r"\1", code)
    code = re.sub(r"RFC ?\d+|PMID ?\d+|ISBN (?:\d[ -]?)+", "", code)
    code = re.sub(r"^[*#:]+\s*", "", code, flags=re.MULTILINE)
    code = code.replace("'", "")
    code = _EXTENSION_TAGS_RE.sub("", code)
    code = _HTML_TAG_RE.sub("", code)
    code = re.sub(r"^=+(.*?)=+", r"\1", code, flags=re.MULTILINE)
    return collapse_spaces(code).strip()


def split_words(text: str, *, min_length: int = 3, case_insensitive: bool = False) -> List[str]:
    if case_insensitive:
        text = text.lower()
    return [word for word in text.split() if len(word) >= min_length]


def calculate_word_overlap(first: str, second: str, *, case_insensitive: bool = False) -> float:
    """Share of words from the shorter text that also occur in the longer one.

    Words shorter than three characters are ignored. Returns a value in [0, 1];
    0 when either text has no countable words.
    """
    words1 = split_words(first, case_insensitive=case_insensitive)
    words2 = split_words(second, case_insensitive=case_insensitive)
    shorter, longer = (words1, words2) if len(words1) <= len(words2) else (words2, words1)
    if not shorter:
        return 0.0
    vocabulary = set(longer)
    return sum(1 for word in shorter if word in vocabulary) / len(shorter)


def mask(text: str) -> str:
    """Replace every character except newlines with a space."""
    return re.sub(r"[^\n]", " ", text)


def page_name_pattern(name: str) -> str:
    """Regex source matching a page name the way the wiki resolves it.

    The first letter is case-insensitive and spaces match runs of spaces or
    underscores.
    """
    name = name.strip().replace("_", " ")
    if not name:
        return ""
    first, rest = name[0], name[1:]
    if first.upper() != first.lower():
        head = f"[{re.escape(first.upper())}{re.escape(first.lower())}]"
    else:
        head = re.escape(first)
    tail = "[ _]+".join(re.escape(part) for part in rest.split(" "))
    return head + tail


def normalize_whitespace(lines: Iterable[str]) -> str:
    """Collapse whitespace and join lines."""
    return "\n".join(line.strip() for line in lines if line.strip())
