"""Read the lines an edit added from its diff."""

from __future__ import annotations

import html
import re
from typing import List

# Added lines of a MediaWiki compare body, without their deleted counterpart.
# colspan="2" marks the empty deleted side more reliably than diff-empty.
_ADDED_LINE_RE = re.compile(
    r'<td [^>]*colspan="2" class="[^"]*\bdiff-side-deleted\b[^"]*"[^>]*>\s*</td>\s*'
    r'<td [^>]*class="[^"]*\bdiff-marker\b[^"]*"[^>]*>\s*</td>\s*'
    r'<td [^>]*class="[^"]*\bdiff-addedline\b[^"]*"[^>]*>\s*<div[^>]*>(.+?)</div>\s*</td>',
    re.DOTALL,
)
_INLINE_TAG_RE = re.compile(r"</?(?:ins|del|span)\b[^>]*>")
_HUNK_RE = re.compile(r"^@@ .* @@", re.MULTILINE)


def looks_like_html_diff(diff_text: str) -> bool:
    return "diff-addedline" in diff_text


def looks_like_unified_diff(diff_text: str) -> bool:
    return diff_text.startswith(("--- ", "diff ")) or _HUNK_RE.search(diff_text) is not None


def _is_heading(line: str) -> bool:
    return line.lstrip().startswith("=")


def extract_added_lines(diff_text: str) -> List[str]:
    """Wikitext lines added by an edit, headings excluded.

    Accepts a MediaWiki HTML compare body, a unified diff, or plain added text.
    """
    if not diff_text or not diff_text.strip():
        return []
    if looks_like_html_diff(diff_text):
        lines = [
            html.unescape(_INLINE_TAG_RE.sub("", match.group(1)))
            for match in _ADDED_LINE_RE.finditer(diff_text)
        ]
    elif looks_like_unified_diff(diff_text):
        lines = [
            line[1:]
            for line in diff_text.splitlines()
            if line.startswith("+") and not line.startswith("+++")
        ]
    else:
        lines = diff_text.splitlines()
    return [line for line in lines if line.strip() and not _is_heading(line)]
