"""Natural-language time expressions for reminders.

``parse_reminder_time`` tries the matchers in :data:`TIME_PATTERNS` in order
and applies only the first one that matches. The matched expression is cut
from the text and what remains becomes the reminder body.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Pattern

from . import config

DAYPART_HOURS = {"morning": 9, "noon": 12, "evening": 18, "night": 21}
TOMORROW_HOUR = 9

# a number directly after "+" or ":" belongs to the shorthand or clock matchers,
# one after "." or "," is the tail of a decimal and must not match alone
_NUM = r"(?<![+:.,\d])\b(?:in\s+)?(\d+(?:[.,]\d+)?)\s*"
_PREFIX_RE = re.compile(r"^(?:remind\s+me\s+)?(?:to\s+)?", re.IGNORECASE)


@dataclass(frozen=True)
class TimePattern:
    name: str
    regex: Pattern
    resolve: Callable[[re.Match, datetime], datetime]


@dataclass
class ParsedReminder:
    remind_at: datetime
    message: str
    pattern: str


def _next_occurrence(now: datetime, hour: int, minute: int = 0) -> datetime:
    """Return today at ``hour:minute``, or tomorrow if that is not in the future."""
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return target


def _daypart(match: re.Match, now: datetime) -> datetime:
    return _next_occurrence(now, DAYPART_HOURS[match.group(1).lower()])


def _elapsed(now: datetime, delta: timedelta) -> datetime:
    """Return ``now`` plus ``delta`` of real time, whatever DST does meanwhile."""
    if now.tzinfo is None:
        return now + delta
    return (now.astimezone(timezone.utc) + delta).astimezone(now.tzinfo)


def _offset(unit: str) -> Callable[[re.Match, datetime], datetime]:
    def resolve(match: re.Match, now: datetime) -> datetime:
        amount = float(match.group(1).replace(",", "."))
        return _elapsed(now, timedelta(**{unit: amount}))

    return resolve


def _shorthand(match: re.Match, now: datetime) -> datetime:
    unit = {"m": "minutes", "h": "hours", "d": "days"}[match.group(2).lower()]
    return _elapsed(now, timedelta(**{unit: int(match.group(1))}))


def _clock(match: re.Match, now: datetime) -> datetime:
    return _next_occurrence(now, int(match.group(1)), int(match.group(2)))


def _tomorrow(match: re.Match, now: datetime) -> datetime:
    return (now + timedelta(days=1)).replace(
        hour=TOMORROW_HOUR, minute=0, second=0, microsecond=0
    )


TIME_PATTERNS = (
    TimePattern(
        "daypart",
        re.compile(
            r"(?:\b(?:this|in\s+the|at)\s+)?\b(morning|noon|evening|night)\b",
            re.IGNORECASE,
        ),
        _daypart,
    ),
    TimePattern(
        "seconds",
        re.compile(_NUM + r"(?:seconds?|secs?|s)\b", re.IGNORECASE),
        _offset("seconds"),
    ),
    TimePattern(
        "minutes",
        re.compile(_NUM + r"(?:minutes?|mins?|m)\b", re.IGNORECASE),
        _offset("minutes"),
    ),
    TimePattern(
        "hours",
        re.compile(_NUM + r"(?:hours?|hrs?|h)\b", re.IGNORECASE),
        _offset("hours"),
    ),
    TimePattern(
        "days",
        re.compile(_NUM + r"(?:days?|d)\b", re.IGNORECASE),
        _offset("days"),
    ),
    TimePattern(
        "shorthand",
        re.compile(r"\+(\d+)([mhd])\b", re.IGNORECASE),
        _shorthand,
    ),
    TimePattern(
        "clock",
        re.compile(r"(?:\bat\s+)?(?<!\d)([01]?\d|2[0-3]):([0-5]\d)(?!\d)", re.IGNORECASE),
        _clock,
    ),
    TimePattern(
        "tomorrow",
        re.compile(r"\btomorrow\b", re.IGNORECASE),
        _tomorrow,
    ),
)


def parse_reminder_time(
    text: str, now: Optional[datetime] = None
) -> Optional[ParsedReminder]:
    """Extract the reminder time and body from ``text``.

    Parameters
    ----------
    text:
        Free text such as ``"15:30 doctor appointment"`` or ``"+30m meeting"``.
    now:
        Reference time. Defaults to the current time in the bot timezone.

    Returns
    -------
    Optional[ParsedReminder]
        ``None`` when no time expression is recognized.
    """
    now = now or datetime.now(config.TZ)
    for pattern in TIME_PATTERNS:
        match = pattern.regex.search(text)
        if not match:
            continue
        remind_at = pattern.resolve(match, now)
        rest = text[: match.start()] + " " + text[match.end() :]
        message = " ".join(rest.split())
        message = _PREFIX_RE.sub("", message, count=1).strip()
        return ParsedReminder(remind_at, message, pattern.name)
    return None
