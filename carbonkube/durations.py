"""Duration strings such as ``1h30m`` or ``250ms``, parsed and formatted."""

from __future__ import annotations

import re
from datetime import timedelta

_UNIT_NANOS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}
_MAX_NANOS = 2**63 - 1
_NUMBER = re.compile(r"([0-9]*)(?:\.([0-9]*))?")
_UNIT = re.compile(r"[^0-9.]*")


def _invalid(text: str) -> ValueError:
    return ValueError(f'time: invalid duration "{text}"')


def _parse_nanoseconds(text: str) -> int:
    rest = text
    negative = False
    if rest[:1] in ("+", "-"):
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return 0
    if not rest:
        raise _invalid(text)
    limit = _MAX_NANOS + (1 if negative else 0)
    total = 0
    while rest:
        number = _NUMBER.match(rest)
        whole, fraction = number.group(1), number.group(2)
        if not whole and not fraction:
            raise _invalid(text)
        rest = rest[number.end():]
        unit = _UNIT.match(rest).group(0)
        rest = rest[len(unit):]
        if not unit:
            raise ValueError(f'time: missing unit in duration "{text}"')
        scale = _UNIT_NANOS.get(unit)
        if scale is None:
            raise ValueError(f'time: unknown unit "{unit}" in duration "{text}"')
        total += int(whole or "0") * scale
        if fraction:
            total += int(fraction) * scale // 10 ** len(fraction)
        if total > limit:
            raise _invalid(text)
    return -total if negative else total


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``"1h30m"``, ``"5m"`` or ``"-1.5s"``.

    Raises ValueError when the text is not a valid duration. Precision below a
    microsecond is dropped.
    """
    if not isinstance(text, str):
        raise ValueError(f"duration must be a string, got {text!r}")
    nanos = _parse_nanoseconds(text)
    micros = abs(nanos) // 1000
    return timedelta(microseconds=-micros if nanos < 0 else micros)


def _with_fraction(value: int, unit: int) -> str:
    whole, remainder = divmod(value, unit)
    digits = str(remainder).rjust(len(str(unit)) - 1, "0").rstrip("0")
    return f"{whole}.{digits}" if digits else str(whole)


def format_duration(delta: timedelta) -> str:
    """Format a duration the way ``parse_duration`` reads it, e.g. ``"1h0m0s"``."""
    nanos = (delta // timedelta(microseconds=1)) * 1000
    if nanos == 0:
        return "0s"
    sign = "-" if nanos < 0 else ""
    nanos = abs(nanos)
    if nanos < 1_000:
        return f"{sign}{nanos}ns"
    if nanos < 1_000_000:
        return f"{sign}{_with_fraction(nanos, 1_000)}\u00b5s"
    if nanos < 1_000_000_000:
        return f"{sign}{_with_fraction(nanos, 1_000_000)}ms"
    seconds_part = _with_fraction(nanos % 60_000_000_000, 1_000_000_000)
    total_minutes = nanos // 60_000_000_000
    hours, minutes = divmod(total_minutes, 60)
    text = f"{seconds_part}s"
    if hours or minutes:
        text = f"{minutes}m{text}"
    if hours:
        text = f"{hours}h{text}"
    return sign + text