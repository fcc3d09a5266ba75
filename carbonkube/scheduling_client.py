"""Client for the schedule API, as used by the operator."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

import requests

from carbonkube.durations import format_duration
from carbonkube.types import ScheduleRequest, ScheduleResponse, TimeRange


class SchedulingClientError(Exception):
    """Raised when the schedule API cannot be reached or answers badly."""


class SchedulingClient:
    """Asks the schedule API for the best time to start a job."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url
        self._timeout = timeout
        self._session = session if session is not None else requests.Session()

    def get_optimal_schedule(
        self,
        start_time: datetime,
        max_delay: timedelta,
        job_duration: timedelta,
        location: str,
    ) -> ScheduleResponse:
        """Return the schedule for a job that may start between ``start_time`` and
        ``start_time + max_delay`` and runs for ``job_duration`` in ``location``."""
        request = ScheduleRequest(
            windows=[TimeRange(start=start_time, end=start_time + max_delay)],
            duration=format_duration(job_duration),
            zones=[location],
        )
        try:
            response = self._session.post(
                f"{self.base_url}/api/schedule",
                json=request.to_dict(),
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise SchedulingClientError(f"failed to send request: {exc}") from exc

        if response.status_code != 200:
            raise SchedulingClientError(f"unexpected status code: {response.status_code}")

        try:
            return ScheduleResponse.from_dict(response.json())
        except ValueError as exc:
            raise SchedulingClientError(f"failed to decode response: {exc}") from exc