"""Offset-preserving masking of markup that must not yield signatures.

Every replacement here has exactly the length of what it replaces, so an index
into masked text is also an index into the original text.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Optional, Pattern

from talkspan.config import SiteConfig
from talkspan.utils.text import DIR_MARKS_RE, mask, page_name_pattern

HTML_COMMENT_START = "\x01"
HTML_COMMENT_END = "\x02"

_QUOTE_TAGS_RE = re.compile(
    r"(<(?:blockquote|q)\b[^<>]*>)(.*?)(</(?:blockquote|q)>)", re.IGNORECASE | re.DOTALL
)
_HTML_COMMENT_RE = re.compile(r"<!--(.*?)-->", re.DOTALL)
_LINE_BREAK_TAG_RE = re.compile(r"(</?(?:br|p)\b.*)(\n+)(>)")


def generate_tags_regexp(tags: Iterable[str]) -> Pattern[str]:
    """Regexp for tags with their content: opening tag, content, closing tag."""
    joined = "|".join(tags)
    return re.compile(
        rf"(<({joined})(?: [\w ]+(?:=[^<>]+?)?| *)>)(.*?)(</\2>)", re.IGNORECASE | re.DOTALL
    )


_CODE_TAGS_RE = generate_tags_regexp(["nowiki", "syntaxhighlight", "source", "pre"])


def mask_distracting_code(code: str) -> str:
    """Hide code examples, HTML comments and direction marks."""
    code = _CODE_TAGS_RE.sub(lambda m: m.group(1) + mask(m.group(3)) + m.group(4), code)
    code = _HTML_COMMENT_RE.sub(
        lambda m: HTML_COMMENT_START + mask(m.group(1) + "-----") + HTML_COMMENT_END, code
    )
    code = DIR_MARKS_RE.sub(" ", code)
    return _LINE_BREAK_TAG_RE.sub(lambda m: m.group(1) + " " * len(m.group(2)) + m.group(3), code)


def mask_quotes(code: str, config: SiteConfig) -> str:
    code = _QUOTE_TAGS_RE.sub(lambda m: m.group(1) + mask(m.group(2)) + m.group(3), code)
    quote_templates = _quote_templates_regexp(config.quote_templates)
    if quote_templates is not None:
        code = quote_templates.sub(lambda m: m.group(1) + mask(m.group(2)) + m.group(3), code)
    return code


def mask_antipattern_lines(code: str, config: SiteConfig) -> str:
    """Blank whole lines that carry markup known not to contain signatures."""
    regexp = _antipatterns_regexp(
        config.no_signature_classes, config.no_signature_templates, config.comment_antipatterns
    )
    if regexp is None:
        return code
    return regexp.sub(lambda m: mask(m.group(0)), code)


def prepare_for_scan(code: str, config: SiteConfig) -> str:
    return mask_antipattern_lines(mask_quotes(mask_distracting_code(code), config), config)


@lru_cache(maxsize=32)
def _quote_templates_regexp(names: tuple[str, ...]) -> Optional[Pattern[str]]:
    if not names:
        return None
    pattern = "|".join(page_name_pattern(name) for name in names)
    return re.compile(rf"(\{{\{{ *(?:{pattern}) *\|)([^{{}}]*)(\}}\}})")


@lru_cache(maxsize=32)
def _antipatterns_regexp(
    classes: tuple[str, ...], templates: tuple[str, ...], extra: tuple[str, ...]
) -> Optional[Pattern[str]]:
    parts = []
    if classes:
        joined = r"\b|\b".join(re.escape(name) for name in classes)
        parts.append(rf"class=(?P<quote>['\"])[^'\"\n]*(?:\b{joined}\b)[^'\"\n]*(?P=quote)")
    if templates:
        joined = "|".join(page_name_pattern(name) for name in templates)
        parts.append(rf"\{{\{{ *(?:{joined}) *(?:\||\}}\}})")
    parts.extend(extra)
    if not parts:
        return None
    return re.compile(rf"^.*(?:{'|'.join(parts)}).*$", re.MULTILINE)
