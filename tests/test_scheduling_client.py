import json
from datetime import datetime, timedelta, timezone

import pytest
import responses

from carbonkube.scheduling_client import SchedulingClient, SchedulingClientError
from carbonkube.types import CarbonSavings, ScheduleOption, ScheduleResponse, parse_time

BASE = "http://scheduler.example.com"
URL = BASE + "/api/schedule"
NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def _mock_response() -> ScheduleResponse:
    return ScheduleResponse(
        ideal=ScheduleOption(time=NOW + timedelta(minutes=15), co2_intensity=100.0),
        options=[
            ScheduleOption(time=NOW, co2_intensity=150.0),
            ScheduleOption(time=NOW + timedelta(minutes=15), co2_intensity=100.0),
            ScheduleOption(time=NOW + timedelta(minutes=30), co2_intensity=120.0),
        ],
        worst_case=ScheduleOption(time=NOW, co2_intensity=150.0),
        naive_case=ScheduleOption(time=NOW, co2_intensity=150.0),
        median_case=ScheduleOption(time=NOW + timedelta(minutes=30), co2_intensity=120.0),
        carbon_savings=CarbonSavings(33.33, 33.33, 16.67),
    )


def test_returns_decoded_schedule(mocked):
    expected = _mock_response()
    mocked.add(responses.POST, URL, json=expected.to_dict(), status=200)
    client = SchedulingClient(BASE)
    result = client.get_optimal_schedule(NOW, timedelta(hours=1), timedelta(hours=1), "gcp:us-west2")
    assert result == expected
    assert result.carbon_savings.vs_median_case == 16.67


def test_request_body_describes_window_duration_and_zone(mocked):
    mocked.add(responses.POST, URL, json=_mock_response().to_dict(), status=200)
    client = SchedulingClient(BASE)
    client.get_optimal_schedule(NOW, timedelta(hours=2), timedelta(hours=1), "gcp:us-east4")
    sent = mocked.calls[0].request
    assert sent.headers["Content-Type"] == "application/json"
    body = json.loads(sent.body)
    assert body["duration"] == "1h0m0s"
    assert body["zones"] == ["gcp:us-east4"]
    assert "numOptions" not in body
    [window] = body["windows"]
    assert parse_time(window["start"]) == NOW
    assert parse_time(window["end"]) - parse_time(window["start"]) == timedelta(hours=2)


def test_non_ok_status_raises(mocked):
    mocked.add(responses.POST, URL, body="API unavailable", status=500)
    client = SchedulingClient(BASE)
    with pytest.raises(SchedulingClientError, match="unexpected status code: 500"):
        client.get_optimal_schedule(NOW, timedelta(hours=1), timedelta(hours=1), "gcp:us-west2")


def test_undecodable_body_raises(mocked):
    mocked.add(responses.POST, URL, body="not json", status=200)
    client = SchedulingClient(BASE)
    with pytest.raises(SchedulingClientError, match="failed to decode response"):
        client.get_optimal_schedule(NOW, timedelta(hours=1), timedelta(hours=1), "gcp:us-west2")


def test_unreachable_server_raises(mocked):
    client = SchedulingClient("http://unreachable.example.com")
    with pytest.raises(SchedulingClientError, match="failed to send request"):
        client.get_optimal_schedule(NOW, timedelta(hours=1), timedelta(hours=1), "gcp:us-west2")


def test_not_found_path_is_an_error(mocked):
    mocked.add(responses.POST, URL, status=404)
    client = SchedulingClient(BASE)
    with pytest.raises(SchedulingClientError, match="404"):
        client.get_optimal_schedule(NOW, timedelta(0), timedelta(minutes=5), "gcp:us-west2")