"""Resource-specific convenience wrappers."""
from .adapters import AdaptersResource
from .cpcs import CpcsResource
from .jobs import Job, JobsResource
from .metrics import MetricSample, MetricsResource, parse_metrics_response
from .nics import NicsResource
from .partitions import PartitionsResource
from .storage_groups import StorageGroupsResource
from .virtual_switches import VirtualSwitchesResource

__all__ = [
    "AdaptersResource",
    "CpcsResource",
    "Job",
    "JobsResource",
    "MetricSample",
    "MetricsResource",
    "NicsResource",
    "PartitionsResource",
    "StorageGroupsResource",
    "VirtualSwitchesResource",
    "parse_metrics_response",
]
