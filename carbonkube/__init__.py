"""Carbon-aware job scheduling from grid carbon-intensity forecasts: a schedule API and a job reconciler."""

__version__ = "0.1.0"

__all__ = [
    "api",
    "controller",
    "durations",
    "job_types",
    "scheduling",
    "scheduling_client",
    "types",
    "watttime",
    "zones",
]