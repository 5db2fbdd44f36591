"""Placeholder substitution for front matter, titles and image prefixes.

Tokens look like ``{field}``, ``{field:kebab}``, ``{date:YYYY-MM-DD}`` or
``{keywords:, }``. Unknown tokens are removed from the output.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from .models import Article, ConversionOptions
from .utils import sanitize_filename, sanitize_path


DATE_TOKEN_RE = re.compile(r"\{date:(.+?)\}")
KEYWORDS_TOKEN_RE = re.compile(r"\{keywords(?::(.*?))?\}")
LEFTOVER_TOKEN_RE = re.compile(r"\{.*?\}")
MOMENT_TOKEN_RE = re.compile(
    r"\[([^\]]*)\]|YYYY|YY|MMMM|MMM|MM|M|Do|DD|D|dddd|ddd|d|HH|H|hh|h|mm|m|ss|s|SSS|A|a|ZZ|Z|X|x"
)


def _camel_words(value: str) -> str:
    return re.sub(r" .", lambda match: match.group(0).strip().upper(), value)


FIELD_TRANSFORMS: tuple[tuple[str, Callable[[str], str]], ...] = (
    ("", lambda value: value),
    (":kebab", lambda value: value.replace(" ", "-").lower()),
    (":snake", lambda value: value.replace(" ", "_").lower()),
    (":camel", lambda value: re.sub(r"^.", lambda m: m.group(0).lower(), _camel_words(value))),
    (":pascal", lambda value: re.sub(r"^.", lambda m: m.group(0).upper(), _camel_words(value))),
)


def _ordinal(day: int) -> str:
    if 10 <= day % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def _offset(now: datetime, separator: str) -> str:
    offset = now.utcoffset()
    minutes = int(offset.total_seconds() // 60) if offset is not None else 0
    sign = "-" if minutes < 0 else "+"
    hours, minutes = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}{separator}{minutes:02d}"


def _format_token(now: datetime, token: str) -> str:
    hour12 = now.hour % 12 or 12
    formatters: dict[str, Callable[[], str]] = {
        "YYYY": lambda: f"{now.year:04d}",
        "YY": lambda: f"{now.year % 100:02d}",
        "MMMM": lambda: now.strftime("%B"),
        "MMM": lambda: now.strftime("%b"),
        "MM": lambda: f"{now.month:02d}",
        "M": lambda: str(now.month),
        "Do": lambda: _ordinal(now.day),
        "DD": lambda: f"{now.day:02d}",
        "D": lambda: str(now.day),
        "dddd": lambda: now.strftime("%A"),
        "ddd": lambda: now.strftime("%a"),
        "d": lambda: str((now.weekday() + 1) % 7),
        "HH": lambda: f"{now.hour:02d}",
        "H": lambda: str(now.hour),
        "hh": lambda: f"{hour12:02d}",
        "h": lambda: str(hour12),
        "mm": lambda: f"{now.minute:02d}",
        "m": lambda: str(now.minute),
        "ss": lambda: f"{now.second:02d}",
        "s": lambda: str(now.second),
        "SSS": lambda: f"{now.microsecond // 1000:03d}",
        "A": lambda: "AM" if now.hour < 12 else "PM",
        "a": lambda: "am" if now.hour < 12 else "pm",
        "Z": lambda: _offset(now, ":"),
        "ZZ": lambda: _offset(now, ""),
        "X": lambda: str(int(now.timestamp())),
        "x": lambda: str(int(now.timestamp() * 1000)),
    }
    return formatters[token]()


def format_date(now: datetime, pattern: str) -> str:
    """Render *now* using moment.js style tokens; ``[...]`` is literal."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    def replace(match: re.Match[str]) -> str:
        if match.group(1) is not None:
            return match.group(1)
        return _format_token(now, match.group(0))

    return MOMENT_TOKEN_RE.sub(replace, pattern)


def _unescape_separator(separator: str) -> str:
    try:
        return json.loads(f'"{separator}"')
    except json.JSONDecodeError:
        return separator


def _fields(article: Article | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(article, Article):
        return article.template_fields()
    return dict(article)


def _keyword_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


def render(
    template: str,
    article: Article | Mapping[str, Any],
    disallowed_chars: str | None = None,
    *,
    now: datetime | None = None,
) -> str:
    fields = _fields(article)
    result = template
    for key, value in fields.items():
        if key == "content" or isinstance(value, (list, tuple, set, Mapping)):
            continue
        text = str(value) if value else ""
        if text and disallowed_chars:
            text = sanitize_filename(text, disallowed_chars)
        for suffix, transform in FIELD_TRANSFORMS:
            result = result.replace("{" + key + suffix + "}", transform(text))

    moment = now or datetime.now().astimezone()
    result = DATE_TOKEN_RE.sub(lambda match: format_date(moment, match.group(1)), result)

    keywords = _keyword_list(fields.get("keywords"))
    result = KEYWORDS_TOKEN_RE.sub(
        lambda match: _unescape_separator(match.group(1) or "").join(keywords),
        result,
    )
    return LEFTOVER_TOKEN_RE.sub("", result)


def format_title(article: Article, options: ConversionOptions) -> str:
    title = render(options.title, article, options.disallowed_chars + "/")
    return sanitize_path(title, options.disallowed_chars)


__all__ = ["render", "format_date", "format_title"]
