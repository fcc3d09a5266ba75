from datetime import datetime, timedelta, timezone

import pytest

from carbonkube.job_types import (
    CarbonAwareJob,
    CarbonAwareJobList,
    CarbonAwareJobSpec,
    CarbonAwareJobStatus,
    JobCarbonSavings,
    JobTemplateSpec,
    ObjectMeta,
    SchedulingDecision,
    group_version,
)

JOB_SPEC = {
    "template": {
        "spec": {
            "containers": [{"name": "test", "image": "test:latest"}],
            "restartPolicy": "Never",
        }
    }
}


def _sample_job() -> CarbonAwareJob:
    scheduled = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    return CarbonAwareJob(
        metadata=ObjectMeta(
            name="test-carbonawarejob",
            namespace="test-ns",
            uid="uid-1",
            labels={"team": "a"},
            finalizers=["batch.carbon-aware-kube.dev/finalizer"],
        ),
        spec=CarbonAwareJobSpec(
            template=JobTemplateSpec(metadata=ObjectMeta(labels={"x": "y"}), spec=JOB_SPEC),
            max_delay=timedelta(hours=1),
            max_duration=timedelta(minutes=30),
            location="gcp:us-west-2",
        ),
        status=CarbonAwareJobStatus(
            submission_time=scheduled - timedelta(minutes=30),
            scheduled_time=scheduled,
            scheduling_state="Pending",
            carbon_intensity="400.00",
            carbon_savings=JobCarbonSavings("42.85", "33.33", "27.27"),
            scheduling_decision=SchedulingDecision(
                optimal_time=scheduled,
                optimal_intensity="400.00",
                worst_case_intensity="700.00",
                immediate_intensity="600.00",
                forecast_source="carbon-aware-scheduler-api",
                decision_reason="Optimal time determined based on carbon intensity forecast",
            ),
        ),
    )


def test_group_version():
    assert group_version() == "batch.carbon-aware-kube.dev/v1alpha1"


def test_new_job_carries_api_version_and_kind():
    data = CarbonAwareJob().to_dict()
    assert data["apiVersion"] == group_version()
    assert data["kind"] == "CarbonAwareJob"


def test_job_round_trip():
    job = _sample_job()
    assert CarbonAwareJob.from_dict(job.to_dict()) == job


def test_spec_durations_use_duration_strings():
    spec = CarbonAwareJobSpec(max_delay=timedelta(hours=1))
    data = spec.to_dict()
    assert data["maxDelay"] == "1h0m0s"
    assert "maxDuration" not in data
    assert "location" not in data


def test_spec_from_manifest():
    spec = CarbonAwareJobSpec.from_dict(
        {"template": JOB_SPEC["template"], "maxDelay": "1h", "location": "gcp:us-west2"}
    )
    assert spec.max_delay == timedelta(hours=1)
    assert spec.max_duration is None
    assert spec.location == "gcp:us-west2"
    assert spec.template.spec["restartPolicy"] == "Never"


def test_invalid_duration_is_rejected():
    with pytest.raises(ValueError):
        CarbonAwareJobSpec.from_dict({"maxDelay": "soon"})


def test_empty_status_serialises_to_empty_object():
    assert CarbonAwareJobStatus().to_dict() == {}
    assert JobCarbonSavings().to_dict() == {}
    assert SchedulingDecision().to_dict() == {}


def test_timestamps_are_whole_seconds():
    moment = datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
    data = CarbonAwareJobStatus(submission_time=moment).to_dict()
    assert data["submissionTime"] == "2025-01-02T03:04:05Z"
    back = CarbonAwareJobStatus.from_dict(data)
    assert back.submission_time == moment.replace(microsecond=0)


def test_metadata_deletion_timestamp_round_trip():
    moment = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
    meta = ObjectMeta(name="a", deletion_timestamp=moment)
    back = ObjectMeta.from_dict(meta.to_dict())
    assert back.deletion_timestamp == moment
    assert back.name == "a"


def test_metadata_rejects_non_string_labels():
    with pytest.raises(ValueError):
        ObjectMeta.from_dict({"labels": {"a": 1}})


def test_template_omits_empty_metadata():
    data = JobTemplateSpec(spec={"parallelism": 1}).to_dict()
    assert data == {"spec": {"parallelism": 1}}


def test_status_job_status_and_conditions_round_trip():
    status = CarbonAwareJobStatus(
        job_name="job-1",
        job_status={"active": 1},
        conditions=[{"type": "Ready", "status": "True"}],
    )
    assert CarbonAwareJobStatus.from_dict(status.to_dict()) == status


def test_list_round_trip():
    items = CarbonAwareJobList(items=[_sample_job(), CarbonAwareJob()])
    data = items.to_dict()
    assert data["kind"] == "CarbonAwareJobList"
    assert CarbonAwareJobList.from_dict(data) == items


def test_from_dict_rejects_non_object():
    with pytest.raises(ValueError):
        CarbonAwareJob.from_dict(["not", "an", "object"])