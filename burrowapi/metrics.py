"""Prometheus gauges describing consumer lag and topic offsets."""

from __future__ import annotations

import math
import threading
from collections.abc import Mapping
from decimal import Decimal
from typing import Optional

from burrowapi.models import (
    ApplicationContext,
    ConsumerGroupStatus,
    EvaluatorRequest,
    StatusConstant,
    StorageRequest,
    StorageRequestType,
)
from burrowapi.responses import Request, Response

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def _format_value(value: float) -> str:
    """Format a sample value the way the exposition format's reference writer does."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    digits_tuple = Decimal(repr(abs(float(value)))).as_tuple()
    digits = "".join(str(d) for d in digits_tuple.digits).lstrip("0")
    exponent = int(digits_tuple.exponent)
    stripped = digits.rstrip("0")
    exponent += len(digits) - len(stripped)
    digits = stripped
    count = len(digits)
    point = count + exponent
    exp10 = point - 1
    if exp10 < -4 or exp10 >= 6:
        mantissa = digits[0] + ("." + digits[1:] if count > 1 else "")
        esign = "-" if exp10 < 0 else "+"
        return f"{sign}{mantissa}e{esign}{abs(exp10):02d}"
    if point <= 0:
        return f"{sign}0.{'0' * -point}{digits}"
    if point >= count:
        return f"{sign}{digits}{'0' * (point - count)}"
    return f"{sign}{digits[:point]}.{digits[point:]}"


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


class GaugeVec:
    """A family of gauges distinguished by label values."""

    def __init__(self, name: str, help_text: str, label_names: list[str]) -> None:
        self.name = name
        self.help = help_text
        self.label_names = tuple(label_names)
        self._series: dict[tuple[str, ...], float] = {}
        self._lock = threading.Lock()

    def _key(self, labels: Mapping[str, str]) -> tuple[str, ...]:
        if set(labels) != set(self.label_names) or len(labels) != len(self.label_names):
            raise ValueError(
                f"{self.name}: expected labels {sorted(self.label_names)}, got {sorted(labels)}"
            )
        return tuple(str(labels[name]) for name in self.label_names)

    def set(self, labels: Mapping[str, str], value: float) -> None:
        """Set the gauge for a full set of labels."""
        key = self._key(labels)
        with self._lock:
            self._series[key] = float(value)

    def delete(self, labels: Mapping[str, str]) -> bool:
        """Remove the series with exactly these labels; report whether one existed."""
        try:
            key = self._key(labels)
        except ValueError:
            return False
        with self._lock:
            return self._series.pop(key, None) is not None

    def delete_partial_match(self, labels: Mapping[str, str]) -> int:
        """Remove every series carrying all the given label values; return how many."""
        positions = {}
        for name, value in labels.items():
            if name not in self.label_names:
                return 0
            positions[self.label_names.index(name)] = value
        with self._lock:
            doomed = [
                key
                for key in self._series
                if all(key[index] == value for index, value in positions.items())
            ]
            for key in doomed:
                del self._series[key]
        return len(doomed)

    def render(self) -> str:
        """Render this family in the text exposition format; empty if it has no series."""
        with self._lock:
            series = dict(self._series)
        if not series:
            return ""
        order = sorted(range(len(self.label_names)), key=lambda i: self.label_names[i])
        rows = sorted(series.items(), key=lambda item: tuple(item[0][i] for i in order))
        lines = [f"# HELP {self.name} {self.help}", f"# TYPE {self.name} gauge"]
        for key, value in rows:
            pairs = ",".join(f'{self.label_names[i]}="{_escape(key[i])}"' for i in order)
            lines.append(f"{self.name}{{{pairs}}} {_format_value(value)}")
        return "\n".join(lines) + "\n"


class MetricsRegistry:
    """The gauges exported on the metrics endpoint."""

    def __init__(self) -> None:
        self.consumer_total_lag = GaugeVec(
            "burrow_kafka_consumer_lag_total",
            "The sum of all partition current lag values for the group",
            ["cluster", "consumer_group"],
        )
        self.consumer_status = GaugeVec(
            "burrow_kafka_consumer_status",
            "The status of the consumer group. It is calculated from the highest status for "
            "the individual partitions. Statuses are an index list from NOTFOUND, OK, WARN, or ERR",
            ["cluster", "consumer_group"],
        )
        self.partition_status = GaugeVec(
            "burrow_kafka_topic_partition_status",
            "The status of topic partition. It is calculated from the highest status for the "
            "individual partitions. Statuses are an index list from OK, WARN, STOP, STALL, REWIND",
            ["cluster", "consumer_group", "topic", "partition"],
        )
        self.consumer_partition_current_offset = GaugeVec(
            "burrow_kafka_consumer_current_offset",
            "Latest offset that Burrow is storing for this partition",
            ["cluster", "consumer_group", "topic", "partition"],
        )
        self.consumer_partition_lag = GaugeVec(
            "burrow_kafka_consumer_partition_lag",
            "Number of messages the consumer group is behind by for a partition as reported by Burrow",
            ["cluster", "consumer_group", "topic", "partition"],
        )
        self.topic_partition_offset = GaugeVec(
            "burrow_kafka_topic_partition_offset",
            "Latest offset the topic that Burrow is storing for this partition",
            ["cluster", "topic", "partition"],
        )

    @property
    def gauges(self) -> list[GaugeVec]:
        return [
            self.consumer_total_lag,
            self.consumer_status,
            self.partition_status,
            self.consumer_partition_current_offset,
            self.consumer_partition_lag,
            self.topic_partition_offset,
        ]

    def render(self) -> str:
        """Render all families, sorted by name."""
        return "".join(g.render() for g in sorted(self.gauges, key=lambda g: g.name))

    def delete_consumer_metrics(self, cluster: str, consumer: str) -> None:
        """Drop every series labelled with the consumer group."""
        labels = {"cluster": cluster, "consumer_group": consumer}
        self.consumer_total_lag.delete(labels)
        self.consumer_status.delete(labels)
        self.consumer_partition_lag.delete_partial_match(labels)
        self.consumer_partition_current_offset.delete_partial_match(labels)
        self.partition_status.delete_partial_match(labels)

    def delete_topic_metrics(self, cluster: str, topic: str) -> None:
        """Drop every series labelled with the topic."""
        labels = {"cluster": cluster, "topic": topic}
        self.topic_partition_offset.delete_partial_match(labels)
        self.consumer_partition_lag.delete_partial_match(labels)
        self.consumer_partition_current_offset.delete_partial_match(labels)
        self.consumer_total_lag.delete_partial_match(labels)
        self.consumer_status.delete_partial_match(labels)

    def delete_consumer_topic_metrics(self, cluster: str, consumer: str, topic: str) -> None:
        """Drop the series labelled with both the consumer group and the topic."""
        labels = {"cluster": cluster, "consumer_group": consumer, "topic": topic}
        self.partition_status.delete_partial_match(labels)
        self.consumer_partition_current_offset.delete_partial_match(labels)
        self.consumer_partition_lag.delete_partial_match(labels)

    def collect(self, app: ApplicationContext) -> None:
        """Refresh the gauges from storage and the evaluator."""
        for cluster in list_clusters(app):
            for consumer in list_consumers(app, cluster):
                status = get_full_consumer_status(app, cluster, consumer)
                if status is None or status.status == StatusConstant.NOTFOUND:
                    continue
                labels = {"cluster": cluster, "consumer_group": consumer}
                self.consumer_total_lag.set(labels, float(status.total_lag))
                self.consumer_status.set(labels, float(status.status))
                for partition in status.partitions:
                    part_labels = {
                        "cluster": cluster,
                        "consumer_group": consumer,
                        "topic": partition.topic,
                        "partition": str(partition.partition),
                    }
                    self.consumer_partition_lag.set(part_labels, float(partition.current_lag))
                    if partition.complete == 1.0:
                        end_offset = partition.end.offset if partition.end is not None else 0
                        self.consumer_partition_current_offset.set(part_labels, float(end_offset))
                        self.partition_status.set(part_labels, float(partition.status))

            for topic in list_topics(app, cluster):
                for number, offset in enumerate(get_topic_detail(app, cluster, topic)):
                    self.topic_partition_offset.set(
                        {"cluster": cluster, "topic": topic, "partition": str(number)},
                        float(offset),
                    )


DEFAULT_REGISTRY = MetricsRegistry()


def delete_consumer_metrics(cluster: str, consumer: str) -> None:
    """Drop the consumer group's series from the default registry."""
    DEFAULT_REGISTRY.delete_consumer_metrics(cluster, consumer)


def delete_topic_metrics(cluster: str, topic: str) -> None:
    """Drop the topic's series from the default registry."""
    DEFAULT_REGISTRY.delete_topic_metrics(cluster, topic)


def delete_consumer_topic_metrics(cluster: str, consumer: str, topic: str) -> None:
    """Drop the consumer group and topic series from the default registry."""
    DEFAULT_REGISTRY.delete_consumer_topic_metrics(cluster, consumer, topic)


def list_clusters(app: ApplicationContext) -> list[str]:
    reply = app.fetch_storage(StorageRequest(StorageRequestType.FETCH_CLUSTERS))
    return list(reply) if reply is not None else []


def list_consumers(app: ApplicationContext, cluster: str) -> list[str]:
    reply = app.fetch_storage(StorageRequest(StorageRequestType.FETCH_CONSUMERS, cluster=cluster))
    return list(reply) if reply is not None else []


def get_full_consumer_status(
    app: ApplicationContext, cluster: str, consumer: str
) -> Optional[ConsumerGroupStatus]:
    return app.evaluate(EvaluatorRequest(cluster=cluster, group=consumer, show_all=True))


def list_topics(app: ApplicationContext, cluster: str) -> list[str]:
    reply = app.fetch_storage(StorageRequest(StorageRequestType.FETCH_TOPICS, cluster=cluster))
    return list(reply) if reply is not None else []


def get_topic_detail(app: ApplicationContext, cluster: str, topic: str) -> list[int]:
    reply = app.fetch_storage(
        StorageRequest(StorageRequestType.FETCH_TOPIC, cluster=cluster, topic=topic)
    )
    return list(reply) if reply is not None else []


def handle_prometheus_metrics(
    app: ApplicationContext, registry: Optional[MetricsRegistry], request: Request
) -> Response:
    """Refresh the gauges and return them in the text exposition format."""
    target = registry if registry is not None else DEFAULT_REGISTRY
    target.collect(app)
    return Response(200, target.render().encode("utf-8"), {"Content-Type": CONTENT_TYPE})