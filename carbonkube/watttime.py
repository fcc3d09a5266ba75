"""Client for the WattTime carbon intensity forecast API."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

import requests

from carbonkube.types import ZERO_TIME, parse_time

logger = logging.getLogger(__name__)

BASE_URL = "https://api.watttime.org"
LOGIN_PATH = "/login"
FORECAST_PATH = "/v3/forecast"


class WattTimeError(Exception):
    """Raised when the forecast service cannot be reached or answers badly."""


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be a JSON object")
    return data


def _number(data: Mapping[str, Any], key: str, kind: type) -> Any:
    value = data.get(key)
    if value is None:
        return kind(0)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field {key!r} must be a number")
    if kind is int and not isinstance(value, int):
        raise ValueError(f"field {key!r} must be an integer")
    return kind(value)


def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _items(data: Mapping[str, Any], key: str) -> list:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"field {key!r} must be a list")
    return value


@dataclass
class ForecastDataPoint:
    """One forecast value at one point in time."""

    point_time: datetime
    value: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ForecastDataPoint":
        data = _mapping(data, "forecast data point")
        raw_time = data.get("point_time")
        return cls(
            point_time=ZERO_TIME if raw_time is None else parse_time(raw_time),
            value=_number(data, "value", float),
        )


@dataclass
class ForecastMeta:
    """Metadata about a forecast."""

    data_point_period_seconds: int = 0
    generated_at: datetime = ZERO_TIME
    generated_at_period_seconds: int = 0
    region: str = ""
    signal_type: str = ""
    units: str = ""
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ForecastMeta":
        data = _mapping(data, "forecast metadata")
        raw_generated = data.get("generated_at")
        warnings = _items(data, "warnings")
        if not all(isinstance(item, str) for item in warnings):
            raise ValueError("field 'warnings' must be a list of strings")
        return cls(
            data_point_period_seconds=_number(data, "data_point_period_seconds", int),
            generated_at=ZERO_TIME if raw_generated is None else parse_time(raw_generated),
            generated_at_period_seconds=_number(data, "generated_at_period_seconds", int),
            region=_text(data, "region"),
            signal_type=_text(data, "signal_type"),
            units=_text(data, "units"),
            warnings=list(warnings),
        )


@dataclass
class ForecastResponse:
    """A forecast: its data points and metadata."""

    data: list[ForecastDataPoint] = field(default_factory=list)
    meta: ForecastMeta = field(default_factory=ForecastMeta)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ForecastResponse":
        data = _mapping(data, "forecast response")
        meta = data.get("meta")
        return cls(
            data=[ForecastDataPoint.from_dict(item) for item in _items(data, "data")],
            meta=ForecastMeta() if meta is None else ForecastMeta.from_dict(meta),
        )


@runtime_checkable
class ForecastProvider(Protocol):
    """Anything that can supply a carbon intensity forecast for a power zone."""

    def get_forecast(self, region: str, signal_type: str) -> ForecastResponse:
        """Return the forecast for ``region`` and ``signal_type``."""
        ...


class WattTimeClient(ForecastProvider):
    """Fetches forecasts, logging in on first use and again when the token expires."""

    def __init__(
        self,
        username: str,
        password: str,
        base_url: str = BASE_URL,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._username = username
        self._password = password
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session if session is not None else requests.Session()
        self._token = ""
        self._lock = threading.Lock()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "WattTimeClient":
        """Build a client from WATTIME_USERNAME and WATTIME_PASSWORD."""
        env = os.environ if environ is None else environ
        username = env.get("WATTIME_USERNAME", "")
        password = env.get("WATTIME_PASSWORD", "")
        if not username or not password:
            raise WattTimeError(
                "WATTIME_USERNAME and WATTIME_PASSWORD environment variables must be set"
            )
        return cls(username, password)

    def _current_token(self) -> str:
        with self._lock:
            return self._token

    def _login(self) -> str:
        with self._lock:
            if self._token:
                return self._token
            try:
                response = self._session.get(
                    self._base_url + LOGIN_PATH,
                    auth=(self._username, self._password),
                    timeout=self._timeout,
                )
            except requests.RequestException as exc:
                raise WattTimeError(f"error performing login request: {exc}") from exc
            if response.status_code != 200:
                raise WattTimeError(
                    f"login failed with status code: {response.status_code}, body: {response.text}"
                )
            try:
                payload = response.json()
            except ValueError as exc:
                raise WattTimeError(f"error decoding login response: {exc}") from exc
            token = payload.get("token") if isinstance(payload, Mapping) else None
            if not isinstance(token, str) or not token:
                raise WattTimeError("login successful but token is empty")
            self._token = token
            logger.info("Successfully obtained WattTime token.")
            return token

    def _request_forecast(self, token: str, params: dict[str, str]) -> requests.Response:
        try:
            return self._session.get(
                self._base_url + FORECAST_PATH,
                params=params,
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise WattTimeError(f"error performing forecast request: {exc}") from exc

    def get_forecast(self, region: str, signal_type: str = "") -> ForecastResponse:
        """Fetch the forecast for a power zone, logging in when needed."""
        token = self._current_token()
        if not token:
            try:
                token = self._login()
            except WattTimeError as exc:
                raise WattTimeError(f"automatic login failed: {exc}") from exc

        params = {"region": region}
        if signal_type:
            params["signal_type"] = signal_type

        response = self._request_forecast(token, params)
        if response.status_code in (401, 403):
            logger.info("WattTime token potentially expired or invalid, attempting re-login")
            with self._lock:
                self._token = ""
            try:
                token = self._login()
            except WattTimeError as exc:
                raise WattTimeError(f"re-login failed after auth error: {exc}") from exc
            response = self._request_forecast(token, params)

        if response.status_code != 200:
            raise WattTimeError(
                f"forecast request failed with status code: {response.status_code}, "
                f"body: {response.text}"
            )

        try:
            forecast = ForecastResponse.from_dict(response.json())
        except ValueError as exc:
            raise WattTimeError(f"error decoding forecast response: {exc}") from exc

        if forecast.meta.region != region:
            logger.warning(
                "WattTime response region %r does not match requested region %r",
                forecast.meta.region,
                region,
            )
        return forecast