"""Metrics service access and parsing of its text response format."""

from __future__ import annotations

import csv
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .base import ResourceBase, unmarshal_error

logger = logging.getLogger(__name__)

POWER_METRIC = "power-consumption-watts"


@dataclass(slots=True)
class MetricSample:
    timestamp: int
    values: list[Any] = field(default_factory=list)


def _parse_value(token: str) -> Any:
    if token in ("true", "false"):
        return token == "true"
    try:
        return int(token)
    except ValueError:
        pass
    try:
        return float(token)
    except ValueError:
        return token


def _unquote(line: str) -> str:
    line = line.strip()
    if len(line) < 2 or not (line.startswith('"') and line.endswith('"')):
        raise unmarshal_error(f"Expected a quoted name in metrics response, got {line!r}")
    return line[1:-1]


def parse_metrics_response(text: str) -> dict[str, dict[str, list[MetricSample]]]:
    """Decode the metrics service text format.

    The result maps metric group name to object URI to the samples reported
    for that object, oldest first. Each group starts with its quoted name and
    ends with an empty line; each object starts with its quoted URI followed
    by pairs of a timestamp line and a comma separated value line, and ends with
    an empty line.
    """

    groups: dict[str, dict[str, list[MetricSample]]] = {}
    lines = text.splitlines()
    index = 0

    def next_line() -> str | None:
        nonlocal index
        if index >= len(lines):
            return None
        line = lines[index]
        index += 1
        return line

    while True:
        line = next_line()
        if line is None or not line.strip():
            break
        objects = groups.setdefault(_unquote(line), {})
        while True:
            line = next_line()
            if line is None or not line.strip():
                break
            samples = objects.setdefault(_unquote(line), [])
            while True:
                line = next_line()
                if line is None or not line.strip():
                    break
                try:
                    timestamp = int(line.strip())
                except ValueError as exc:
                    raise unmarshal_error(f"Invalid metrics timestamp {line!r}") from exc
                row = next_line()
                if row is None:
                    raise unmarshal_error("Metrics response ended before a value row")
                values = next(csv.reader([row]), [])
                samples.append(MetricSample(timestamp, [_parse_value(v) for v in values]))
    return groups


def metric_index(context: Mapping[str, Any], metric_name: str) -> tuple[str, int]:
    """Find the group holding ``metric_name`` and its column in the value rows."""

    for group in context.get("metric-group-infos") or []:
        group_name = group.get("group-name") or group.get("name")
        infos = group.get("metric-infos")
        if infos is not None:
            names = [info.get("metric-name") for info in infos]
        else:
            names = list(group.get("metrics") or [])
        if metric_name in names:
            return group_name, names.index(metric_name)
    raise unmarshal_error(f"Metrics context does not provide {metric_name!r}")


class MetricsResource(ResourceBase):
    """Read values from the metrics context of the current session."""

    def get(self) -> dict[str, dict[str, list[MetricSample]]]:
        context = self._client.get_metrics_context()
        url = self._url(context["metrics-context-uri"])
        response = self._request("GET", url, expected=(200,))
        return parse_metrics_response(response.text)

    def get_live_energy(self, partition_uri: str) -> float:
        """Return the latest power consumption in watts reported for a partition.

        Returns 0 when the metrics service has no sample for the partition yet.
        """

        context = self._client.get_metrics_context()
        group_name, column = metric_index(context, POWER_METRIC)
        samples = self.get().get(group_name, {}).get(partition_uri)
        if not samples:
            logger.debug("No %s sample for %s yet", POWER_METRIC, partition_uri)
            return 0.0
        values = samples[-1].values
        if column >= len(values):
            raise unmarshal_error(f"Metrics row for {partition_uri} has no {POWER_METRIC} column")
        return float(values[column])
