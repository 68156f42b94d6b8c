"""Site configuration defaults."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from talkspan.errors import ConfigError
from talkspan.parsing.timestamps import TimestampGrammar

DEFAULT_UNSIGNED_TEMPLATES = (
    "Unsigned",
    "Unsigned2",
    "Unsigned3",
    "Unsig",
    "Unsign",
    "Uns",
    "Unsigned comment",
    "Preceding unsigned comment",
    "Unsigned IP",
    "Unsignedip",
    "UnsignedIP",
    "Unsigned IP2",
    "Unsigned2ip",
    "IP unsigned",
    "Undated",
)

DEFAULT_NO_SIGNATURE_CLASSES = ("unresolved", "resolved", "ambox", "tmbox", "NavFrame")

DEFAULT_NO_SIGNATURE_TEMPLATES = (
    "Moved discussion from",
    "Discussion moved from",
    "Moved from",
    "Moved discussion to",
    "Discussion moved to",
    "Moved to",
    "Discussion moved",
)


@dataclass(slots=True, frozen=True)
class SiteConfig:
    """Immutable description of one wiki's signature conventions."""

    unsigned_templates: tuple[str, ...] = DEFAULT_UNSIGNED_TEMPLATES
    unsigned_author_params: tuple[str, ...] = ("1", "user", "owner", "name")
    unsigned_timestamp_params: tuple[str, ...] = ("2", "timestamp", "date")
    no_signature_classes: tuple[str, ...] = DEFAULT_NO_SIGNATURE_CLASSES
    no_signature_templates: tuple[str, ...] = DEFAULT_NO_SIGNATURE_TEMPLATES
    comment_antipatterns: tuple[str, ...] = ()
    quote_templates: tuple[str, ...] = ("Tq", "Talk quote", "Talkquote", "Tqb")
    user_namespaces: tuple[str, ...] = ("User", "User talk", "U", "UT")
    contributions_page: str = "Special:Contributions"
    sign_code: str = "~~~~"
    session_user: Optional[str] = None
    timestamp: TimestampGrammar = field(default_factory=TimestampGrammar)
    signature_scan_limit: int = 251
    locate_threshold: float = 0.3
    edit_origin_threshold: float = 0.2
    edit_window_before_minutes: int = 10
    edit_window_after_minutes: int = 3


class TimestampGrammarFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    patterns: Optional[List[str]] = None
    month_names: Optional[List[str]] = None
    timezone_suffix: Optional[str] = None
    timezone: Optional[str] = None


class SiteConfigFile(BaseModel):
    """JSON shape accepted by :func:`load_site_config`. Omitted keys keep defaults."""

    model_config = ConfigDict(extra="forbid")

    unsigned_templates: Optional[List[str]] = None
    unsigned_author_params: Optional[List[str]] = None
    unsigned_timestamp_params: Optional[List[str]] = None
    no_signature_classes: Optional[List[str]] = None
    no_signature_templates: Optional[List[str]] = None
    comment_antipatterns: Optional[List[str]] = None
    quote_templates: Optional[List[str]] = None
    user_namespaces: Optional[List[str]] = None
    contributions_page: Optional[str] = None
    sign_code: Optional[str] = None
    session_user: Optional[str] = None
    timestamp: Optional[TimestampGrammarFile] = None
    signature_scan_limit: Optional[int] = None
    locate_threshold: Optional[float] = None
    edit_origin_threshold: Optional[float] = None
    edit_window_before_minutes: Optional[int] = None
    edit_window_after_minutes: Optional[int] = None

    def to_config(self, base: SiteConfig | None = None) -> SiteConfig:
        base = base or SiteConfig()
        overrides: Dict[str, Any] = {}
        for key, value in self.model_dump(exclude_none=True, exclude={"timestamp"}).items():
            overrides[key] = tuple(value) if isinstance(value, list) else value
        if self.timestamp is not None:
            grammar = {
                key: tuple(value) if isinstance(value, list) else value
                for key, value in self.timestamp.model_dump(exclude_none=True).items()
            }
            overrides["timestamp"] = replace(base.timestamp, **grammar)
        return replace(base, **overrides)


def load_site_config(path: Path) -> SiteConfig:
    """Read a JSON site configuration, filling gaps with the defaults."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read site configuration {path}: {exc}") from exc
    try:
        return SiteConfigFile.model_validate(raw).to_config()
    except ValidationError as exc:
        raise ConfigError(f"Invalid site configuration {path}: {exc}") from exc
