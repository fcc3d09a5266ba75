"""HTTP front end of the scheduler: the schedule endpoint, health and metrics."""

from __future__ import annotations

import argparse
import json
import logging
import os
import threading
from collections import Counter
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Callable, Iterable, Optional, Sequence, Union
from wsgiref.simple_server import make_server

from carbonkube.scheduling import SchedulingError, calculate_best_schedule
from carbonkube.types import ScheduleRequest
from carbonkube.watttime import ForecastProvider, WattTimeClient, WattTimeError
from carbonkube.zones import SimpleZoneLookup, ZoneLookup

logger = logging.getLogger(__name__)

SCHEDULE_PATH = "/api/schedule"
HEALTH_PATH = "/health"
METRICS_PATH = "/metrics"
_KNOWN_PATHS = frozenset({SCHEDULE_PATH, HEALTH_PATH, METRICS_PATH})
_TEXT = "text/plain; charset=utf-8"


@dataclass
class Response:
    """An HTTP response: status code, body text and headers."""

    status: int
    body: str = ""
    headers: dict[str, str] = field(default_factory=dict)


def _error(status: int, message: str, **extra: str) -> Response:
    headers = {"Content-Type": _TEXT, "X-Content-Type-Options": "nosniff"}
    headers.update(extra)
    return Response(status, message + "\n", headers)


class ScheduleApp:
    """Routes requests to the schedule, health and metrics handlers; also a WSGI app."""

    def __init__(self, wt_client: ForecastProvider, zone_lookup: ZoneLookup) -> None:
        self._wt_client = wt_client
        self._zone_lookup = zone_lookup
        self._requests: Counter = Counter()
        self._lock = threading.Lock()

    def handle(self, method: str, path: str, body: Union[bytes, str] = b"") -> Response:
        """Answer one request."""
        if path == HEALTH_PATH:
            response = Response(200, "OK", {"Content-Type": _TEXT})
        elif path == SCHEDULE_PATH:
            response = self.schedule(method, body)
        elif path == METRICS_PATH:
            response = self._metrics()
        else:
            response = _error(404, "Not Found")
        label = path if path in _KNOWN_PATHS else "other"
        with self._lock:
            self._requests[(label, response.status)] += 1
        return response

    def schedule(self, method: str, body: Union[bytes, str]) -> Response:
        """Handle a schedule request: validate it and return the best start times."""
        if method != "POST":
            return _error(405, "Method Not Allowed", Allow="POST")

        try:
            payload = json.loads(body)
            request = ScheduleRequest() if payload is None else ScheduleRequest.from_dict(payload)
        except ValueError as exc:
            logger.info("Error decoding request body: %s", exc)
            return _error(400, "Bad Request")

        if not request.windows:
            return _error(400, "Missing required field 'windows'")
        if not request.duration:
            return _error(400, "Missing required field 'duration'")
        if not request.zones:
            return _error(400, "Missing or empty required field 'zones'")

        power_zones = []
        for identifier in request.zones:
            power_zone = self._zone_lookup.get_power_zone(identifier)
            if power_zone is None:
                logger.info("Invalid zone identifier requested: %s", identifier)
                return _error(400, "Invalid zone identifier provided")
            power_zones.append(power_zone)

        if len(power_zones) > 1:
            return _error(
                400, "Multi-zone scheduling is not yet supported. Please specify only one zone."
            )

        num_options = 3
        if request.num_options is not None:
            if not 2 <= request.num_options <= 10:
                return _error(400, "numOptions must be between 2 and 10 (inclusive)")
            num_options = request.num_options

        try:
            result = calculate_best_schedule(
                self._wt_client,
                request.windows,
                request.duration,
                power_zones,
                request.zones,
                num_options,
            )
        except SchedulingError as exc:
            return _error(500, f"Failed to calculate schedule: {exc}")

        return Response(
            200, json.dumps(result.to_dict()) + "\n", {"Content-Type": "application/json"}
        )

    def _metrics(self) -> Response:
        lines = [
            "# HELP carbonkube_http_requests_total Total HTTP requests handled, by path and code.",
            "# TYPE carbonkube_http_requests_total counter",
        ]
        with self._lock:
            counts = sorted(self._requests.items())
        lines.extend(
            f'carbonkube_http_requests_total{{code="{status}",path="{path}"}} {count}'
            for (path, status), count in counts
        )
        return Response(
            200, "\n".join(lines) + "\n", {"Content-Type": "text/plain; version=0.0.4; charset=utf-8"}
        )

    def __call__(
        self, environ: dict[str, Any], start_response: Callable[..., Any]
    ) -> Iterable[bytes]:
        try:
            length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        body = environ["wsgi.input"].read(length) if length > 0 else b""
        response = self.handle(
            environ.get("REQUEST_METHOD", "GET"), environ.get("PATH_INFO") or "/", body
        )
        payload = response.body.encode("utf-8")
        headers = list(response.headers.items())
        headers.append(("Content-Length", str(len(payload))))
        start_response(f"{response.status} {HTTPStatus(response.status).phrase}", headers)
        return [payload]


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the scheduler HTTP server until interrupted."""
    parser = argparse.ArgumentParser(
        prog="carbonkube-scheduler", description="Serve the carbon-aware schedule API."
    )
    parser.add_argument(
        "--port",
        type=int,
        default=os.environ.get("PORT") or "8080",
        help="port to listen on (default: $PORT or 8080)",
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    try:
        client = WattTimeClient.from_env()
    except WattTimeError as exc:
        logger.error("Failed to create WattTime client: %s", exc)
        return 1

    app = ScheduleApp(client, SimpleZoneLookup())
    logger.info("Server starting on port %s", args.port)
    try:
        with make_server("", args.port, app) as server:
            server.serve_forever()
    except OSError as exc:
        logger.error("Error starting server: %s", exc)
        return 1
    except KeyboardInterrupt:
        return 0
    return 0