"""Request and response types of the schedule API, with their JSON forms."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})"
)


def parse_time(text: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware datetime."""
    if not isinstance(text, str):
        raise ValueError(f"expected an RFC 3339 time string, got {text!r}")
    match = _RFC3339.fullmatch(text)
    if match is None:
        raise ValueError(f"invalid RFC 3339 time: {text!r}")
    year, month, day, hour, minute, second = (int(part) for part in match.group(1, 2, 3, 4, 5, 6))
    fraction = match.group(7) or ""
    microsecond = int(fraction[:6].ljust(6, "0"))
    zone = match.group(8)
    try:
        if zone == "Z":
            tz = timezone.utc
        else:
            offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
            if zone[0] == "-":
                offset = -offset
            tz = timezone(offset) if offset else timezone.utc
        return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tz)
    except ValueError as exc:
        raise ValueError(f"invalid RFC 3339 time: {text!r}") from exc


def format_time(moment: datetime) -> str:
    """Format a datetime as RFC 3339, trimming trailing fractional zeros.

    Naive datetimes are taken to be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    offset = moment.utcoffset()
    if not offset:
        return text + "Z"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(offset) // timedelta(minutes=1)
    hours, minutes = divmod(minutes, 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be a JSON object")
    return data


def _reject_unknown(data: Mapping[str, Any], allowed: set, what: str) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValueError(f"unknown field {unknown[0]!r} in {what}")


def _get_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _get_float(data: Mapping[str, Any], key: str) -> float:
    value = data.get(key)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field {key!r} must be a number")
    return float(value)


def _get_time(data: Mapping[str, Any], key: str) -> datetime:
    value = data.get(key)
    return ZERO_TIME if value is None else parse_time(value)


def _get_list(data: Mapping[str, Any], key: str) -> list:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"field {key!r} must be a list")
    return value


@dataclass
class TimeRange:
    """A time window with a start and an end."""

    start: datetime
    end: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"start": format_time(self.start), "end": format_time(self.end)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TimeRange":
        data = _mapping(data, "time range")
        _reject_unknown(data, {"start", "end"}, "time range")
        return cls(start=_get_time(data, "start"), end=_get_time(data, "end"))


@dataclass
class ScheduleRequest:
    """The body of a schedule request."""

    windows: list[TimeRange] = field(default_factory=list)
    duration: str = ""
    zones: list[str] = field(default_factory=list)
    num_options: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "windows": [window.to_dict() for window in self.windows],
            "duration": self.duration,
            "zones": list(self.zones),
        }
        if self.num_options is not None:
            result["numOptions"] = self.num_options
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScheduleRequest":
        """Decode a request strictly: unknown fields and wrong types raise ValueError."""
        data = _mapping(data, "schedule request")
        _reject_unknown(data, {"windows", "duration", "zones", "numOptions"}, "schedule request")
        zones = _get_list(data, "zones")
        if not all(isinstance(zone, str) for zone in zones):
            raise ValueError("field 'zones' must be a list of strings")
        num_options = data.get("numOptions")
        if num_options is not None and (
            isinstance(num_options, bool) or not isinstance(num_options, int)
        ):
            raise ValueError("field 'numOptions' must be an integer")
        return cls(
            windows=[TimeRange.from_dict(item) for item in _get_list(data, "windows")],
            duration=_get_str(data, "duration"),
            zones=list(zones),
            num_options=num_options,
        )


@dataclass
class ScheduleOption:
    """A possible start time with its average carbon intensity."""

    time: datetime = ZERO_TIME
    zone: str = ""
    co2_intensity: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": format_time(self.time),
            "zone": self.zone,
            "co2Intensity": self.co2_intensity,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScheduleOption":
        data = _mapping(data, "schedule option")
        return cls(
            time=_get_time(data, "time"),
            zone=_get_str(data, "zone"),
            co2_intensity=_get_float(data, "co2Intensity"),
        )


@dataclass
class CarbonSavings:
    """Percentages of carbon saved against other choices of start time."""

    vs_worst_case: float = 0.0
    vs_naive_case: float = 0.0
    vs_median_case: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "vsWorstCase": self.vs_worst_case,
            "vsNaiveCase": self.vs_naive_case,
            "vsMedianCase": self.vs_median_case,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CarbonSavings":
        data = _mapping(data, "carbon savings")
        return cls(
            vs_worst_case=_get_float(data, "vsWorstCase"),
            vs_naive_case=_get_float(data, "vsNaiveCase"),
            vs_median_case=_get_float(data, "vsMedianCase"),
        )


@dataclass
class ScheduleResponse:
    """The answer to a schedule request."""

    ideal: ScheduleOption = field(default_factory=ScheduleOption)
    options: list[ScheduleOption] = field(default_factory=list)
    worst_case: ScheduleOption = field(default_factory=ScheduleOption)
    naive_case: ScheduleOption = field(default_factory=ScheduleOption)
    median_case: ScheduleOption = field(default_factory=ScheduleOption)
    carbon_savings: CarbonSavings = field(default_factory=CarbonSavings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ideal": self.ideal.to_dict(),
            "options": [option.to_dict() for option in self.options],
            "worstCase": self.worst_case.to_dict(),
            "naiveCase": self.naive_case.to_dict(),
            "medianCase": self.median_case.to_dict(),
            "carbonSavings": self.carbon_savings.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScheduleResponse":
        data = _mapping(data, "schedule response")

        def option(key: str) -> ScheduleOption:
            value = data.get(key)
            return ScheduleOption() if value is None else ScheduleOption.from_dict(value)

        savings = data.get("carbonSavings")
        return cls(
            ideal=option("ideal"),
            options=[ScheduleOption.from_dict(item) for item in _get_list(data, "options")],
            worst_case=option("worstCase"),
            naive_case=option("naiveCase"),
            median_case=option("medianCase"),
            carbon_savings=CarbonSavings() if savings is None else CarbonSavings.from_dict(savings),
        )