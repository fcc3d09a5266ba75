# carbonkube

Carbon-aware scheduling for batch work. It picks the start time within
allowed windows when the grid is cleanest, using a carbon-intensity
forecast from WattTime.

The package has two parts:

- **Schedule service** (`carbonkube.api`). It takes allowed time windows,
  a job duration and a cloud zone. It fetches a marginal-emissions
  forecast (`co2_moer`) for the matching power zone and returns the best
  start times. It also returns the worst, naive (earliest possible start)
  and median cases, and the percentage saved against each.
- **Job reconciler** (`carbonkube.controller`). It moves `CarbonAwareJob`
  resources through the states
  `New → Pending → Scheduled/Running → Completed/Failed`. It asks the
  schedule service for the best start time. When that time comes, it
  creates the Job from the resource's template.

## Installation

```
pip install carbonkube
```

To run the test suite:

```
pip install "carbonkube[test]"
```

## Running the schedule service

The service reads WattTime credentials from `WATTIME_USERNAME` and
`WATTIME_PASSWORD`. If either is missing it exits with status 1. It
listens on `--port`. That defaults to `$PORT`, or to `8080` if `PORT` is
unset.

```
export WATTIME_USERNAME=...
export WATTIME_PASSWORD=...
carbonkube-scheduler --port 8080
```

Endpoints:

- `POST /api/schedule` computes a schedule. Any other method gets 405.
- `GET /health` returns `OK`.
- `GET /metrics` returns a request counter,
  `carbonkube_http_requests_total`, by path and status code, in
  Prometheus text format.

Example request body:

```json
{
  "windows": [{"start": "2025-01-01T10:00:00Z", "end": "2025-01-01T14:00:00Z"}],
  "duration": "1h30m",
  "zones": ["gcp:us-west2"],
  "numOptions": 3
}
```

Request rules:

- `windows`, `duration` and `zones` are required.
- Unknown fields are rejected with 400.
- `duration` uses the form read by `carbonkube.durations.parse_duration`,
  such as `5m`, `1h30m` or `1.5h`.
- Exactly one zone is supported per request.
- `numOptions` is optional. It defaults to 3 and must be between 2 and 10.
- A start time must fall inside one of the windows. The job may run past
  the window's end.

Supported zones (`carbonkube.zones`):

| Zone                       | Power zone    |
|----------------------------|---------------|
| `gcp:us-west2`             | `CAISO_NORTH` |
| `gcp:us-east4`             | `PJM_DC`      |
| `gcp:europe-west3`         | `DE`          |
| `gcp:australia-southeast1` | `NEM_NSW`     |

`ScheduleApp(wt_client, zone_lookup)` is also a WSGI application. You can
serve it with any WSGI server, or call `handle(method, path, body)` on it
directly. It accepts any `ZoneLookup`, such as `StaticZoneLookup`
for a fixed mapping.

## Using the library

```python
from datetime import datetime, timedelta, timezone

from carbonkube.scheduling import calculate_best_schedule
from carbonkube.types import TimeRange
from carbonkube.watttime import WattTimeClient
from carbonkube.zones import cloud_region_string_to_power_zone

client = WattTimeClient.from_env()
zone = cloud_region_string_to_power_zone("gcp:us-west2")
now = datetime.now(timezone.utc)

result = calculate_best_schedule(
    client,
    [TimeRange(start=now, end=now + timedelta(hours=4))],
    "1h",
    [zone],
    ["gcp:us-west2"],
    3,
)
print(result.ideal.time, result.ideal.co2_intensity)
print(result.carbon_savings.vs_naive_case)
```

When no schedule can be produced, `calculate_best_schedule` raises
`carbonkube.scheduling.SchedulingError`. Causes include a failed
forecast, no data in the windows, or a bad duration. Any object with a
`get_forecast(region, signal_type)` method returning a
`ForecastResponse` can stand in for `WattTimeClient`.

To call a running schedule service, use
`carbonkube.scheduling_client.SchedulingClient`:

```python
from carbonkube.scheduling_client import SchedulingClient

schedule = SchedulingClient("http://localhost:8080").get_optimal_schedule(
    now, timedelta(hours=4), timedelta(hours=1), "gcp:us-west2"
)
```

Failures raise `SchedulingClientError`.

## The reconciler

`CarbonAwareJobReconciler(client, scheduling_client)` works against any
object that implements the `KubeClient` interface. That interface covers:

- get and update for `CarbonAwareJob` objects and their status;
- get, create and delete for Job objects.

Missing objects are signalled by raising `NotFoundError`.

Each call to `reconcile(namespace, name)` advances one resource by a
single step. It returns a `ReconcileResult` that says whether to
requeue, and after how long. The steps are:

1. Set the submission time.
2. Add the finalizer.
3. Ask for a schedule.
4. Create the Job once its time has come.
5. Follow the Job's status every 30 seconds while it runs.

On deletion, the reconciler deletes the Job and removes the finalizer.

Defaults:

- The job duration defaults to one hour.
- The location defaults to `gcp:us-west-2`. That string is not among the
  supported zones above, so the schedule service rejects it. Set
  `location` on the resource's spec.
- If the schedule request fails for any reason, the job falls back to
  starting at its submission time. Its intensities are then recorded as
  `unknown`.

`CarbonAwareJobReconciler.from_env(client)` builds a reconciler whose
scheduling client points at `CARBON_AWARE_SCHEDULER_URL`. The default is
`http://carbon-aware-scheduler:8080`.

The resource types and their JSON forms are in `carbonkube.job_types`.

## What this package does not do

It has no connection to a Kubernetes cluster. There is no `KubeClient`
implementation that talks to an API server. There is no watch loop or
controller manager that calls `reconcile` when resources change, no
leader election, and no command that runs the reconciler. It also ships
no custom resource definitions or deployment manifests. To run the
reconciler against a cluster, you supply those pieces yourself.