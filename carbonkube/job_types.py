"""The CarbonAwareJob resource: its spec, status and JSON forms."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from carbonkube.durations import format_duration, parse_duration
from carbonkube.types import format_time, parse_time

GROUP = "batch.carbon-aware-kube.dev"
VERSION = "v1alpha1"
KIND = "CarbonAwareJob"
LIST_KIND = "CarbonAwareJobList"


def group_version() -> str:
    """Return the API group and version of the resource, e.g. for ``apiVersion``."""
    return f"{GROUP}/{VERSION}"


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be a JSON object")
    return data


def _str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _int(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {key!r} must be an integer")
    return value


def _str_map(data: Mapping[str, Any], key: str) -> dict[str, str]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        raise ValueError(f"field {key!r} must map strings to strings")
    return dict(value)


def _list(data: Mapping[str, Any], key: str) -> list:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"field {key!r} must be a list")
    return list(value)


def _dict(data: Mapping[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    return dict(_mapping(value, f"field {key!r}"))


def _time(data: Mapping[str, Any], key: str) -> Optional[datetime]:
    value = data.get(key)
    return None if value is None else parse_time(value)


def _format_time(moment: datetime) -> str:
    # Resource timestamps carry whole seconds only.
    return format_time(moment.replace(microsecond=0))


def _put_time(result: dict[str, Any], key: str, moment: Optional[datetime]) -> None:
    if moment is not None:
        result[key] = _format_time(moment)


@dataclass
class ObjectMeta:
    """The metadata of a resource: name, namespace, labels and the like."""

    name: str = ""
    generate_name: str = ""
    namespace: str = ""
    uid: str = ""
    resource_version: str = ""
    generation: int = 0
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    finalizers: list[str] = field(default_factory=list)
    owner_references: list[dict[str, Any]] = field(default_factory=list)
    creation_timestamp: Optional[datetime] = None
    deletion_timestamp: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in (
            ("name", self.name),
            ("generateName", self.generate_name),
            ("namespace", self.namespace),
            ("uid", self.uid),
            ("resourceVersion", self.resource_version),
        ):
            if value:
                result[key] = value
        if self.generation:
            result["generation"] = self.generation
        _put_time(result, "creationTimestamp", self.creation_timestamp)
        _put_time(result, "deletionTimestamp", self.deletion_timestamp)
        if self.labels:
            result["labels"] = dict(self.labels)
        if self.annotations:
            result["annotations"] = dict(self.annotations)
        if self.owner_references:
            result["ownerReferences"] = [dict(ref) for ref in self.owner_references]
        if self.finalizers:
            result["finalizers"] = list(self.finalizers)
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ObjectMeta":
        data = _mapping(data, "metadata")
        finalizers = _list(data, "finalizers")
        if not all(isinstance(item, str) for item in finalizers):
            raise ValueError("field 'finalizers' must be a list of strings")
        owners = _list(data, "ownerReferences")
        if not all(isinstance(item, Mapping) for item in owners):
            raise ValueError("field 'ownerReferences' must be a list of objects")
        return cls(
            name=_str(data, "name"),
            generate_name=_str(data, "generateName"),
            namespace=_str(data, "namespace"),
            uid=_str(data, "uid"),
            resource_version=_str(data, "resourceVersion"),
            generation=_int(data, "generation"),
            labels=_str_map(data, "labels"),
            annotations=_str_map(data, "annotations"),
            finalizers=finalizers,
            owner_references=[dict(item) for item in owners],
            creation_timestamp=_time(data, "creationTimestamp"),
            deletion_timestamp=_time(data, "deletionTimestamp"),
        )


@dataclass
class JobTemplateSpec:
    """The template of the Job to create: its metadata and Job spec."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        metadata = self.metadata.to_dict()
        if metadata:
            result["metadata"] = metadata
        result["spec"] = dict(self.spec)
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JobTemplateSpec":
        data = _mapping(data, "job template")
        metadata = data.get("metadata")
        return cls(
            metadata=ObjectMeta() if metadata is None else ObjectMeta.from_dict(metadata),
            spec=_dict(data, "spec"),
        )


@dataclass
class CarbonAwareJobSpec:
    """What the user asks for: a Job template, how long it may wait and where it runs."""

    template: JobTemplateSpec = field(default_factory=JobTemplateSpec)
    max_delay: timedelta = timedelta(0)
    max_duration: Optional[timedelta] = None
    location: str = ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "template": self.template.to_dict(),
            "maxDelay": format_duration(self.max_delay),
        }
        if self.max_duration is not None:
            result["maxDuration"] = format_duration(self.max_duration)
        if self.location:
            result["location"] = self.location
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CarbonAwareJobSpec":
        data = _mapping(data, "spec")
        template = data.get("template")
        max_delay = data.get("maxDelay")
        max_duration = data.get("maxDuration")
        return cls(
            template=JobTemplateSpec() if template is None else JobTemplateSpec.from_dict(template),
            max_delay=timedelta(0) if max_delay is None else parse_duration(max_delay),
            max_duration=None if max_duration is None else parse_duration(max_duration),
            location=_str(data, "location"),
        )


@dataclass
class JobCarbonSavings:
    """Carbon saved against other start times, as formatted percentages."""

    vs_worst_case: str = ""
    vs_naive_case: str = ""
    vs_median_case: str = ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in (
            ("vsWorstCase", self.vs_worst_case),
            ("vsNaiveCase", self.vs_naive_case),
            ("vsMedianCase", self.vs_median_case),
        ):
            if value:
                result[key] = value
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JobCarbonSavings":
        data = _mapping(data, "carbon savings")
        return cls(
            vs_worst_case=_str(data, "vsWorstCase"),
            vs_naive_case=_str(data, "vsNaiveCase"),
            vs_median_case=_str(data, "vsMedianCase"),
        )


@dataclass
class SchedulingDecision:
    """How the start time was chosen and what the forecast said."""

    optimal_time: Optional[datetime] = None
    worst_case_time: Optional[datetime] = None
    worst_case_intensity: str = ""
    immediate_intensity: str = ""
    optimal_intensity: str = ""
    forecast_source: str = ""
    decision_reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        _put_time(result, "optimalTime", self.optimal_time)
        _put_time(result, "worstCaseTime", self.worst_case_time)
        for key, value in (
            ("worstCaseIntensity", self.worst_case_intensity),
            ("immediateIntensity", self.immediate_intensity),
            ("optimalIntensity", self.optimal_intensity),
            ("forecastSource", self.forecast_source),
            ("decisionReason", self.decision_reason),
        ):
            if value:
                result[key] = value
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SchedulingDecision":
        data = _mapping(data, "scheduling decision")
        return cls(
            optimal_time=_time(data, "optimalTime"),
            worst_case_time=_time(data, "worstCaseTime"),
            worst_case_intensity=_str(data, "worstCaseIntensity"),
            immediate_intensity=_str(data, "immediateIntensity"),
            optimal_intensity=_str(data, "optimalIntensity"),
            forecast_source=_str(data, "forecastSource"),
            decision_reason=_str(data, "decisionReason"),
        )


@dataclass
class CarbonAwareJobStatus:
    """What the controller has observed and decided about a CarbonAwareJob."""

    submission_time: Optional[datetime] = None
    scheduled_time: Optional[datetime] = None
    job_name: str = ""
    job_status: Optional[dict[str, Any]] = None
    scheduling_state: str = ""
    carbon_intensity: str = ""
    carbon_savings: Optional[JobCarbonSavings] = None
    scheduling_decision: Optional[SchedulingDecision] = None
    conditions: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        _put_time(result, "submissionTime", self.submission_time)
        _put_time(result, "scheduledTime", self.scheduled_time)
        if self.job_name:
            result["jobName"] = self.job_name
        if self.job_status is not None:
            result["jobStatus"] = dict(self.job_status)
        if self.scheduling_state:
            result["schedulingState"] = self.scheduling_state
        if self.carbon_intensity:
            result["carbonIntensity"] = self.carbon_intensity
        if self.carbon_savings is not None:
            result["carbonSavings"] = self.carbon_savings.to_dict()
        if self.scheduling_decision is not None:
            result["schedulingDecision"] = self.scheduling_decision.to_dict()
        if self.conditions:
            result["conditions"] = [dict(condition) for condition in self.conditions]
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CarbonAwareJobStatus":
        data = _mapping(data, "status")
        job_status = data.get("jobStatus")
        savings = data.get("carbonSavings")
        decision = data.get("schedulingDecision")
        conditions = _list(data, "conditions")
        if not all(isinstance(item, Mapping) for item in conditions):
            raise ValueError("field 'conditions' must be a list of objects")
        return cls(
            submission_time=_time(data, "submissionTime"),
            scheduled_time=_time(data, "scheduledTime"),
            job_name=_str(data, "jobName"),
            job_status=None if job_status is None else _dict(data, "jobStatus"),
            scheduling_state=_str(data, "schedulingState"),
            carbon_intensity=_str(data, "carbonIntensity"),
            carbon_savings=None if savings is None else JobCarbonSavings.from_dict(savings),
            scheduling_decision=(
                None if decision is None else SchedulingDecision.from_dict(decision)
            ),
            conditions=[dict(item) for item in conditions],
        )


@dataclass
class CarbonAwareJob:
    """A Job that waits for the time of lowest forecast carbon intensity before it runs."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: CarbonAwareJobSpec = field(default_factory=CarbonAwareJobSpec)
    status: CarbonAwareJobStatus = field(default_factory=CarbonAwareJobStatus)
    api_version: str = field(default_factory=group_version)
    kind: str = KIND

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": self.metadata.to_dict(),
            "spec": self.spec.to_dict(),
            "status": self.status.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CarbonAwareJob":
        data = _mapping(data, "CarbonAwareJob")
        metadata = data.get("metadata")
        spec = data.get("spec")
        status = data.get("status")
        return cls(
            metadata=ObjectMeta() if metadata is None else ObjectMeta.from_dict(metadata),
            spec=CarbonAwareJobSpec() if spec is None else CarbonAwareJobSpec.from_dict(spec),
            status=(
                CarbonAwareJobStatus() if status is None else CarbonAwareJobStatus.from_dict(status)
            ),
            api_version=_str(data, "apiVersion") or group_version(),
            kind=_str(data, "kind") or KIND,
        )


@dataclass
class CarbonAwareJobList:
    """A list of CarbonAwareJobs with the list's own metadata."""

    items: list[CarbonAwareJob] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    api_version: str = field(default_factory=group_version)
    kind: str = LIST_KIND

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": dict(self.metadata),
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CarbonAwareJobList":
        data = _mapping(data, "CarbonAwareJobList")
        return cls(
            items=[CarbonAwareJob.from_dict(item) for item in _list(data, "items")],
            metadata=_dict(data, "metadata"),
            api_version=_str(data, "apiVersion") or group_version(),
            kind=_str(data, "kind") or LIST_KIND,
        )