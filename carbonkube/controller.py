"""Reconciliation of CarbonAwareJob resources into Jobs started at low-carbon times."""

from __future__ import annotations

import copy
import enum
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from carbonkube.job_types import (
    CarbonAwareJob,
    JobCarbonSavings,
    SchedulingDecision,
)
from carbonkube.scheduling_client import SchedulingClient
from carbonkube.types import format_time

logger = logging.getLogger(__name__)

CARBON_AWARE_JOB_FINALIZER = "batch.carbon-aware-kube.dev/finalizer"
DEFAULT_SCHEDULER_URL = "http://carbon-aware-scheduler:8080"
DEFAULT_LOCATION = "gcp:us-west-2"
DEFAULT_JOB_DURATION = timedelta(hours=1)
STATUS_CHECK_INTERVAL = timedelta(seconds=30)
PROPAGATION_BACKGROUND = "Background"


class SchedulingState(str, enum.Enum):
    """The stage a CarbonAwareJob has reached."""

    NEW = "New"
    PENDING = "Pending"
    SCHEDULED = "Scheduled"
    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"


class NotFoundError(LookupError):
    """Raised by a KubeClient when the requested object does not exist."""


@dataclass(frozen=True)
class ReconcileResult:
    """Whether, and when, the object should be looked at again."""

    requeue: bool = False
    requeue_after: Optional[timedelta] = None


@runtime_checkable
class KubeClient(Protocol):
    """The cluster operations the reconciler needs. Missing objects raise NotFoundError."""

    def get_carbon_aware_job(self, namespace: str, name: str) -> CarbonAwareJob:
        """Return the CarbonAwareJob with this namespace and name."""
        ...

    def update_carbon_aware_job(self, job: CarbonAwareJob) -> None:
        """Store the metadata and spec of ``job``."""
        ...

    def update_carbon_aware_job_status(self, job: CarbonAwareJob) -> None:
        """Store the status of ``job``."""
        ...

    def get_job(self, namespace: str, name: str) -> dict[str, Any]:
        """Return the Job object with this namespace and name."""
        ...

    def create_job(self, job: Mapping[str, Any]) -> None:
        """Create a Job object."""
        ...

    def delete_job(self, namespace: str, name: str, propagation_policy: str) -> None:
        """Delete a Job object."""
        ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CarbonAwareJobReconciler:
    """Drives each CarbonAwareJob from submission to a finished Job."""

    def __init__(self, client: KubeClient, scheduling_client: Any) -> None:
        self.client = client
        self.scheduling_client = scheduling_client

    @classmethod
    def from_env(
        cls, client: KubeClient, environ: Optional[Mapping[str, str]] = None
    ) -> "CarbonAwareJobReconciler":
        """Build a reconciler whose scheduling client uses CARBON_AWARE_SCHEDULER_URL."""
        env = os.environ if environ is None else environ
        url = env.get("CARBON_AWARE_SCHEDULER_URL") or DEFAULT_SCHEDULER_URL
        return cls(client, SchedulingClient(url))

    def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """Move the named CarbonAwareJob one step closer to its desired state."""
        try:
            job = self.client.get_carbon_aware_job(namespace, name)
        except NotFoundError:
            return ReconcileResult()

        if job.status.submission_time is None:
            logger.info("Initializing CarbonAwareJob status: %s", job.metadata.name)
            job.status.submission_time = _now()
            job.status.scheduling_state = SchedulingState.NEW.value
            self.client.update_carbon_aware_job_status(job)
            return ReconcileResult(requeue=True)

        if CARBON_AWARE_JOB_FINALIZER not in job.metadata.finalizers:
            logger.info("Adding finalizer %s", CARBON_AWARE_JOB_FINALIZER)
            job.metadata.finalizers.append(CARBON_AWARE_JOB_FINALIZER)
            self.client.update_carbon_aware_job(job)
            return ReconcileResult(requeue=True)

        if job.metadata.deletion_timestamp is not None:
            return self._handle_deletion(job)

        state = job.status.scheduling_state
        if state == SchedulingState.NEW.value:
            return self._handle_new_job(job)
        if state == SchedulingState.PENDING.value:
            return self._handle_pending_job(job)
        if state in (SchedulingState.SCHEDULED.value, SchedulingState.RUNNING.value):
            return self._handle_scheduled_job(job)
        if state in (SchedulingState.COMPLETED.value, SchedulingState.FAILED.value):
            return ReconcileResult()
        logger.info("CarbonAwareJob in unknown state: %s", state)
        return ReconcileResult()

    def _handle_deletion(self, job: CarbonAwareJob) -> ReconcileResult:
        logger.info("Handling deletion of CarbonAwareJob %s", job.metadata.name)
        job_name = job.status.job_name
        if job_name:
            try:
                self.client.get_job(job.metadata.namespace, job_name)
            except NotFoundError:
                pass
            else:
                try:
                    self.client.delete_job(
                        job.metadata.namespace, job_name, PROPAGATION_BACKGROUND
                    )
                except NotFoundError:
                    pass
                logger.info("Deleted Job %s", job_name)

        job.metadata.finalizers = [
            item for item in job.metadata.finalizers if item != CARBON_AWARE_JOB_FINALIZER
        ]
        self.client.update_carbon_aware_job(job)
        return ReconcileResult()

    def _handle_new_job(self, job: CarbonAwareJob) -> ReconcileResult:
        logger.info("Handling new CarbonAwareJob %s", job.metadata.name)
        submission = job.status.submission_time
        max_delay = job.spec.max_delay
        duration = job.spec.max_duration
        if duration is None or duration <= timedelta(0):
            duration = DEFAULT_JOB_DURATION
        location = job.spec.location or DEFAULT_LOCATION

        try:
            schedule = self.scheduling_client.get_optimal_schedule(
                submission, max_delay, duration, location
            )
        except Exception as exc:  # any failure falls back to running immediately
            logger.error("Failed to get optimal schedule from API: %s", exc)
            job.status.scheduling_decision = SchedulingDecision(
                optimal_time=submission,
                optimal_intensity="unknown",
                worst_case_time=submission,
                worst_case_intensity="unknown",
                immediate_intensity="unknown",
                forecast_source="fallback",
                decision_reason=f"Failed to get forecast: {exc}. Scheduling immediately.",
            )
            job.status.scheduled_time = submission
            job.status.carbon_intensity = "unknown"
            job.status.carbon_savings = JobCarbonSavings("0.00", "0.00", "0.00")
        else:
            decision = SchedulingDecision(
                optimal_time=schedule.ideal.time,
                optimal_intensity=f"{schedule.ideal.co2_intensity:.2f}",
                worst_case_time=schedule.worst_case.time,
                worst_case_intensity=f"{schedule.worst_case.co2_intensity:.2f}",
                immediate_intensity=f"{schedule.naive_case.co2_intensity:.2f}",
                forecast_source="carbon-aware-scheduler-api",
                decision_reason="Optimal time determined based on carbon intensity forecast",
            )
            job.status.scheduling_decision = decision
            job.status.scheduled_time = schedule.ideal.time
            savings = schedule.carbon_savings
            job.status.carbon_savings = JobCarbonSavings(
                vs_worst_case=f"{savings.vs_worst_case:.2f}",
                vs_naive_case=f"{savings.vs_naive_case:.2f}",
                vs_median_case=f"{savings.vs_median_case:.2f}",
            )
            job.status.carbon_intensity = decision.optimal_intensity

        job.status.scheduling_state = SchedulingState.PENDING.value
        self.client.update_carbon_aware_job_status(job)
        return ReconcileResult(requeue_after=job.status.scheduled_time - _now())

    def _handle_pending_job(self, job: CarbonAwareJob) -> ReconcileResult:
        logger.info("Handling pending CarbonAwareJob %s", job.metadata.name)
        scheduled = job.status.scheduled_time
        if scheduled is None:
            raise ValueError(f"CarbonAwareJob {job.metadata.name!r} has no scheduled time")
        now = _now()
        if now < scheduled:
            return ReconcileResult(requeue_after=scheduled - now)

        new_job = self.construct_job_from_template(job)
        new_job["metadata"].setdefault("ownerReferences", []).append(
            {
                "apiVersion": job.api_version,
                "kind": job.kind,
                "name": job.metadata.name,
                "uid": job.metadata.uid,
                "controller": True,
                "blockOwnerDeletion": True,
            }
        )
        self.client.create_job(new_job)

        job.status.job_name = new_job["metadata"]["name"]
        job.status.scheduling_state = SchedulingState.SCHEDULED.value
        self.client.update_carbon_aware_job_status(job)
        return ReconcileResult(requeue_after=STATUS_CHECK_INTERVAL)

    def _handle_scheduled_job(self, job: CarbonAwareJob) -> ReconcileResult:
        logger.info(
            "Handling scheduled CarbonAwareJob %s, job %s", job.metadata.name, job.status.job_name
        )
        try:
            found = self.client.get_job(job.metadata.namespace, job.status.job_name)
        except NotFoundError:
            job.status.scheduling_state = SchedulingState.FAILED.value
            job.status.job_status = None
            self.client.update_carbon_aware_job_status(job)
            return ReconcileResult()

        status = dict(found.get("status") or {})
        job.status.job_status = status
        if status.get("active", 0) > 0:
            job.status.scheduling_state = SchedulingState.RUNNING.value
        elif status.get("succeeded", 0) > 0:
            job.status.scheduling_state = SchedulingState.COMPLETED.value
        elif status.get("failed", 0) > 0:
            job.status.scheduling_state = SchedulingState.FAILED.value

        self.client.update_carbon_aware_job_status(job)
        if job.status.scheduling_state == SchedulingState.RUNNING.value:
            return ReconcileResult(requeue_after=STATUS_CHECK_INTERVAL)
        return ReconcileResult()

    def construct_job_from_template(self, carbon_aware_job: CarbonAwareJob) -> dict[str, Any]:
        """Build the Job object for a CarbonAwareJob from its template."""
        meta = carbon_aware_job.metadata
        status = carbon_aware_job.status
        scheduled = status.scheduled_time
        savings = status.carbon_savings
        labels = {
            "app.kubernetes.io/name": "carbon-aware-job",
            "app.kubernetes.io/instance": meta.name,
            "app.kubernetes.io/managed-by": "carbon-aware-operator",
        }
        annotations = {
            "carbon-aware-kube.dev/carbon-intensity": status.carbon_intensity,
            "carbon-aware-kube.dev/scheduled-time": (
                "" if scheduled is None else format_time(scheduled.replace(microsecond=0))
            ),
            "carbon-aware-kube.dev/carbon-savings-pct": (
                "" if savings is None else savings.vs_naive_case
            ),
            "carbon-aware-kube.dev/parent-resource-name": meta.name,
            "carbon-aware-kube.dev/parent-resource-uid": meta.uid,
        }
        template = carbon_aware_job.spec.template
        labels.update(template.metadata.labels)
        annotations.update(template.metadata.annotations)
        return {
            "apiVersion": "batch/v1",
            "kind": "Job",
            "metadata": {
                "name": f"{meta.name}-{int(time.time())}",
                "namespace": meta.namespace,
                "labels": labels,
                "annotations": annotations,
            },
            "spec": copy.deepcopy(template.spec),
        }