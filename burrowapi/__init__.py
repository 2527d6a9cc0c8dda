"""HTTP interface for a Kafka consumer lag monitor: routing, JSON endpoints, settings and metrics."""

__version__ = "0.1.0"