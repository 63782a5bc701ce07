"""Core configuration dataclasses.

Settings arrive from the control surface as loose JSON. ``BotSettings.merged``
is the single place that validates and clamps them, so the rest of the core
can trust the values it reads.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Tuple

from core.errors import ConfigurationError

ACTION_MODES = ("react", "reply")
DEFAULT_EMOJI = "✅"
DEFAULT_HISTORY_LIMIT = 200
MIN_HISTORY_LIMIT = 10


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a backfill start time into an aware UTC datetime.

    Accepts datetimes, ISO-8601 strings and epoch numbers. Values above 1e11
    are treated as milliseconds, which is what browser clients usually send.
    Empty values return None. Values that cannot be represented as a date
    raise ``ConfigurationError``.
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool):
        raise ValueError(f"Unsupported timestamp: {value!r}")
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise ConfigurationError(f"Timestamp out of range: {value!r}") from exc
    if isinstance(value, str):
        raw = value.strip()
        if raw.lstrip("-").replace(".", "", 1).isdigit():
            return parse_timestamp(float(raw))
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        parsed = datetime.fromisoformat(raw)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise ValueError(f"Unsupported timestamp: {value!r}")


def normalize_threshold(value: Any) -> float:
    """Accept a 0-1 fraction or a 0-100 percentage and clamp into [0, 1]."""

    number = float(value)
    if number > 1:
        number = number / 100
    return min(1.0, max(0.0, number))


def clamp_history_limit(value: Any) -> int:
    try:
        number = int(float(value)) if value not in (None, "") else DEFAULT_HISTORY_LIMIT
    except (TypeError, ValueError):
        number = DEFAULT_HISTORY_LIMIT
    if number <= 0:
        number = DEFAULT_HISTORY_LIMIT
    return max(MIN_HISTORY_LIMIT, number)


def _terms(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        value = value.split(",")
    return tuple(term.strip() for term in value if str(term).strip())


@dataclass(frozen=True)
class ArchiveSettings:
    """History backfill settings used when the bot starts."""

    enabled: bool = False
    start_at: Optional[datetime] = None
    limit: int = DEFAULT_HISTORY_LIMIT


@dataclass(frozen=True)
class BotSettings:
    """Active settings snapshot, replaced atomically on every start."""

    mode: str = "react"
    emoji: str = DEFAULT_EMOJI
    reply_text: str = ""
    threshold: float = 1.0
    cooldown_seconds: float = 3.0
    rate_limit: int = 20
    required_terms: Tuple[str, ...] = ()
    excluded_terms: Tuple[str, ...] = ()
    normalize_arabic: bool = True
    enable_ocr: bool = False
    dry_run: bool = False
    archive: ArchiveSettings = field(default_factory=ArchiveSettings)

    def merged(self, overrides: Mapping[str, Any]) -> "BotSettings":
        """Return a new snapshot with caller-supplied fields over this one.

        Keys follow the control surface's camelCase names. The legacy
        ``historyOnStart``/``archiveStart``/``historyLimit`` keys are still
        honored for older clients.
        """

        mode = str(overrides.get("mode", self.mode) or self.mode).lower()
        if mode not in ACTION_MODES:
            raise ConfigurationError(f"Unsupported action mode: {mode}")

        reply_text = str(overrides.get("replyText", self.reply_text) or "")
        if mode == "reply" and not reply_text.strip():
            raise ConfigurationError("replyText is required when mode is reply")

        cooldown = overrides.get("cooldown", self.cooldown_seconds)
        rate_limit = overrides.get("rateLimit", self.rate_limit)

        # The archive block is a one-shot trigger for this start; it is not
        # carried over from the previous snapshot.
        defaults = ArchiveSettings()
        raw_archive = overrides.get("archive") or {}
        enabled = raw_archive.get("enabled", overrides.get("historyOnStart", defaults.enabled))
        start_at = raw_archive.get("startAt", overrides.get("archiveStart", defaults.start_at))
        limit = raw_archive.get("limit", overrides.get("historyLimit", defaults.limit))

        return replace(
            self,
            mode=mode,
            emoji=overrides.get("emoji") or self.emoji,
            reply_text=reply_text,
            threshold=normalize_threshold(overrides.get("threshold", self.threshold)),
            cooldown_seconds=max(0.0, float(cooldown or 0)),
            rate_limit=max(1, int(float(rate_limit or 1))),
            required_terms=_terms(overrides.get("requiredTerms", self.required_terms)),
            excluded_terms=_terms(overrides.get("excludedTerms", self.excluded_terms)),
            normalize_arabic=bool(overrides.get("normalizeArabic", self.normalize_arabic)),
            enable_ocr=bool(overrides.get("enableOCR", self.enable_ocr)),
            dry_run=bool(overrides.get("dryRun", self.dry_run)),
            archive=ArchiveSettings(
                enabled=bool(enabled),
                start_at=parse_timestamp(start_at),
                limit=clamp_history_limit(limit),
            ),
        )

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly view using the control surface's names."""

        return {
            "mode": self.mode,
            "emoji": self.emoji,
            "replyText": self.reply_text,
            "threshold": self.threshold,
            "cooldown": self.cooldown_seconds,
            "rateLimit": self.rate_limit,
            "requiredTerms": list(self.required_terms),
            "excludedTerms": list(self.excluded_terms),
            "normalizeArabic": self.normalize_arabic,
            "enableOCR": self.enable_ocr,
            "dryRun": self.dry_run,
            "archive": {
                "enabled": self.archive.enabled,
                "startAt": self.archive.start_at.isoformat() if self.archive.start_at else None,
                "limit": self.archive.limit,
            },
        }
