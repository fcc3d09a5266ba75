"""Choosing the start time with the lowest forecast carbon intensity."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Sequence

from carbonkube.durations import parse_duration
from carbonkube.types import CarbonSavings, ScheduleOption, ScheduleResponse, TimeRange
from carbonkube.watttime import ForecastDataPoint, ForecastProvider

logger = logging.getLogger(__name__)

SIGNAL_TYPE = "co2_moer"


class SchedulingError(Exception):
    """Raised when no schedule can be calculated."""


@dataclass(frozen=True)
class _Candidate:
    avg: float
    start: int


def _within(moment: datetime, windows: Sequence[TimeRange]) -> bool:
    return any(window.start <= moment <= window.end for window in windows)


def _savings(reference: float, ideal: float) -> float:
    if reference > 0:
        return (reference - ideal) / reference * 100
    return 0.0


def calculate_best_schedule(
    wt_client: ForecastProvider,
    windows: Sequence[TimeRange],
    duration: str,
    power_zones: Sequence[str],
    requested_zone_identifiers: Sequence[str],
    num_options: int = 3,
) -> ScheduleResponse:
    """Find the start times with the lowest average forecast intensity.

    Only the first power zone is forecast. A start time must lie inside one of
    ``windows``; the job may run past the window's end. Raises SchedulingError
    when no schedule can be produced.
    """
    if not power_zones:
        logger.error("calculate_best_schedule called with no power zones")
        raise SchedulingError("internal error: no valid power zones provided for scheduling")

    zone = power_zones[0]
    logger.info("Requesting WattTime forecast for region: %s, signal: %s", zone, SIGNAL_TYPE)
    try:
        forecast = wt_client.get_forecast(zone, SIGNAL_TYPE)
    except Exception as exc:
        logger.error("Error getting WattTime forecast: %s", exc)
        raise SchedulingError(f"failed to retrieve carbon forecast data: {exc}") from exc

    if forecast is None or not forecast.data:
        logger.warning("WattTime forecast contains no data points for region %s", zone)
        raise SchedulingError(f"forecast received but contains no data points for region {zone}")

    try:
        length = parse_duration(duration)
    except ValueError as exc:
        raise SchedulingError(f"invalid duration format '{duration}': {exc}") from exc

    points: list[ForecastDataPoint] = [
        point
        for point in forecast.data
        if any(w.start <= point.point_time <= w.end + length for w in windows)
    ]
    if not points:
        raise SchedulingError("no forecast data points found within the allowed time windows")

    period_seconds = forecast.meta.data_point_period_seconds
    if period_seconds <= 0:
        raise SchedulingError(f"invalid forecast data point period: {period_seconds} seconds")
    period = timedelta(seconds=period_seconds)

    needed = int(length / period)
    if length % period:
        logger.warning(
            "Requested duration (%s) is not an exact multiple of forecast period (%s); "
            "results might be approximate",
            length,
            period,
        )
    needed = max(needed, 1)
    span = period * (needed - 1)
    starts = range(len(points) - needed + 1)

    def contiguous(index: int) -> bool:
        return points[index + needed - 1].point_time - points[index].point_time == span

    def average(index: int) -> float:
        return sum(point.value for point in points[index : index + needed]) / needed

    candidates: list[_Candidate] = []
    for index in starts:
        if not contiguous(index):
            logger.debug("Skipping window at index %d: non-contiguous data points", index)
            continue
        if not _within(points[index].point_time, windows):
            continue
        candidates.append(_Candidate(average(index), index))

    if not candidates:
        raise SchedulingError(
            "no valid scheduling windows found for the requested duration within the "
            "allowed time ranges and forecast data"
        )

    candidates.sort(key=lambda c: (c.avg, points[c.start].point_time))

    zone_name = requested_zone_identifiers[0] if requested_zone_identifiers else ""

    def option(index: int, intensity: float) -> ScheduleOption:
        return ScheduleOption(time=points[index].point_time, zone=zone_name, co2_intensity=intensity)

    options = [option(c.start, c.avg) for c in candidates[: max(num_options, 0)]]
    if not options:
        raise SchedulingError(
            "internal error: failed to build schedule options after finding valid windows"
        )

    worst = candidates[-1]
    worst_case = option(worst.start, worst.avg)

    naive_index: Optional[int] = next(
        (i for i in starts if _within(points[i].point_time, windows) and contiguous(i)),
        None,
    )
    if naive_index is None:
        logger.warning("Could not determine naive case, using earliest valid window")
        naive_index = min(candidates, key=lambda c: points[c.start].point_time).start
    naive_case = option(naive_index, average(naive_index))

    median = candidates[len(candidates) // 2]
    median_case = option(median.start, median.avg)

    ideal = options[0]
    savings = CarbonSavings(
        vs_worst_case=_savings(worst_case.co2_intensity, ideal.co2_intensity),
        vs_naive_case=_savings(naive_case.co2_intensity, ideal.co2_intensity),
        vs_median_case=_savings(median_case.co2_intensity, ideal.co2_intensity),
    )

    return ScheduleResponse(
        ideal=ideal,
        options=options,
        worst_case=worst_case,
        naive_case=naive_case,
        median_case=median_case,
        carbon_savings=savings,
    )