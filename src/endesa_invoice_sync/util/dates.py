from __future__ import annotations

import re
from datetime import date, datetime

from dateutil import parser as date_parser

from ..errors import DateParseError


# Longest tokens first so "YYYY" is not consumed as two "YY".
_TOKEN_RE = re.compile(r"YYYY|YY|MMMM|MMM|MM|M|DD|D")

_STRFTIME = {"YYYY": "%Y", "YY": "%y", "MM": "%m", "DD": "%d"}

_MONTHS: dict[str, tuple[tuple[str, str], ...]] = {
    "en": (
        ("January", "Jan"),
        ("February", "Feb"),
        ("March", "Mar"),
        ("April", "Apr"),
        ("May", "May"),
        ("June", "Jun"),
        ("July", "Jul"),
        ("August", "Aug"),
        ("September", "Sep"),
        ("October", "Oct"),
        ("November", "Nov"),
        ("December", "Dec"),
    ),
    "es": (
        ("enero", "ene"),
        ("febrero", "feb"),
        ("marzo", "mar"),
        ("abril", "abr"),
        ("mayo", "may"),
        ("junio", "jun"),
        ("julio", "jul"),
        ("agosto", "ago"),
        ("septiembre", "sep"),
        ("octubre", "oct"),
        ("noviembre", "nov"),
        ("diciembre", "dic"),
    ),
}


def _months_for(locale: str) -> tuple[tuple[str, str], ...]:
    lang = (locale or "en").strip().lower().replace("_", "-").split("-", 1)[0]
    if lang not in _MONTHS:
        raise DateParseError(f"Unsupported locale for month names: {locale!r}")
    return _MONTHS[lang]


def _to_regex(fmt: str, locale: str) -> re.Pattern[str]:
    parts: list[str] = []
    pos = 0
    for m in _TOKEN_RE.finditer(fmt):
        parts.append(re.escape(fmt[pos : m.start()]))
        tok = m.group(0)
        if tok == "YYYY":
            parts.append(r"(?P<year>\d{4})")
        elif tok == "YY":
            parts.append(r"(?P<year2>\d{2})")
        elif tok in ("MMMM", "MMM"):
            names = [n for pair in _months_for(locale) for n in pair]
            names.sort(key=len, reverse=True)
            parts.append(r"(?P<month_name>" + "|".join(re.escape(n) for n in names) + r")\.?")
        elif tok == "MM":
            parts.append(r"(?P<month>\d{2})")
        elif tok == "M":
            parts.append(r"(?P<month>\d{1,2})")
        elif tok == "DD":
            parts.append(r"(?P<day>\d{2})")
        else:
            parts.append(r"(?P<day>\d{1,2})")
        pos = m.end()
    parts.append(re.escape(fmt[pos:]))
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE)


def parse_portal_date(value: str, fmt: str, locale: str = "en") -> date:
    """
    Parse a date label shown on the portal using a moment-style format, e.g.:
    - "05/03/2024" with "DD/MM/YYYY"
    - "5 marzo 2024" with "D MMMM YYYY" and locale "es"
    """
    if value is None:
        raise DateParseError("parse_portal_date: value is None")
    s = " ".join(value.split())
    if not s:
        raise DateParseError("parse_portal_date: empty string")

    m = _to_regex(fmt, locale).match(s)
    if not m:
        raise DateParseError(f"Date {s!r} does not match format {fmt!r}")

    groups = m.groupdict()
    if groups.get("year"):
        year = int(groups["year"])
    elif groups.get("year2"):
        # Same pivot as strptime's %y.
        yy = int(groups["year2"])
        year = 2000 + yy if yy < 69 else 1900 + yy
    else:
        raise DateParseError(f"Format {fmt!r} has no year token")

    if groups.get("month_name"):
        needle = groups["month_name"].lower()
        month = 0
        for idx, (full, abbr) in enumerate(_months_for(locale), start=1):
            if needle in (full.lower(), abbr.lower()):
                month = idx
                break
    else:
        month = int(groups.get("month") or 0)

    day = int(groups.get("day") or 0)
    try:
        return date(year, month, day)
    except ValueError as e:
        raise DateParseError(f"Invalid date {s!r} for format {fmt!r}: {e}") from e


def format_invoice_date(value: date, fmt: str, locale: str = "en") -> str:
    """
    Render `value` with a moment-style format (e.g. "DD-MM-YY" -> "05-03-24").
    """
    out: list[str] = []
    pos = 0
    for m in _TOKEN_RE.finditer(fmt):
        out.append(fmt[pos : m.start()])
        tok = m.group(0)
        if tok in ("MMMM", "MMM"):
            full, abbr = _months_for(locale)[value.month - 1]
            out.append(full if tok == "MMMM" else abbr)
        elif tok == "M":
            out.append(str(value.month))
        elif tok == "D":
            out.append(str(value.day))
        else:
            out.append(value.strftime(_STRFTIME[tok]))
        pos = m.end()
    out.append(fmt[pos:])
    return "".join(out)


def parse_iso_date(value: str) -> date:
    """
    Parse user-supplied ISO dates such as "2024-03-05" (CLI flags, stored state).

    Day/month orders like "05/03/2024" are rejected rather than guessed.
    """
    if value is None:
        raise ValueError("parse_iso_date: value is None")
    s = value.strip()
    if not s:
        raise ValueError("parse_iso_date: empty string")
    try:
        dt: datetime = date_parser.isoparse(s)
    except ValueError as e:
        raise ValueError(f"Expected an ISO date (YYYY-MM-DD), got {value!r}") from e
    return dt.date()
