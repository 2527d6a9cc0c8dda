"""Data exchanged between the HTTP layer, the storage module and the evaluator."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Optional


class StorageRequestType(Enum):
    """Kinds of request that can be sent to the storage module."""

    FETCH_CLUSTERS = "fetch-clusters"
    FETCH_TOPICS = "fetch-topics"
    FETCH_TOPIC = "fetch-topic"
    FETCH_CONSUMERS_FOR_TOPIC = "fetch-consumers-for-topic"
    FETCH_CONSUMERS = "fetch-consumers"
    FETCH_CONSUMER = "fetch-consumer"
    SET_DELETE_GROUP = "set-delete-group"


class StatusConstant(IntEnum):
    """Health of a consumer group or partition, ordered by severity."""

    NOTFOUND = 0
    OK = 1
    WARN = 2
    ERR = 3
    STOP = 4
    STALL = 5
    REWIND = 6

    def __str__(self) -> str:
        return self.name


@dataclass
class Lag:
    """Lag of a consumer offset behind the head of the partition."""

    value: int = 0

    def to_dict(self) -> int:
        """Return the JSON value, which is the bare number."""
        return self.value


@dataclass
class ConsumerOffset:
    """A single committed offset of a consumer."""

    offset: int = 0
    timestamp: int = 0
    lag: Optional[Lag] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "offset": self.offset,
            "timestamp": self.timestamp,
            "lag": self.lag.to_dict() if self.lag is not None else None,
        }


@dataclass
class ConsumerPartition:
    """Stored offsets and ownership of one partition for a consumer group."""

    offsets: list[Optional[ConsumerOffset]] = field(default_factory=list)
    owner: str = ""
    client_id: str = ""
    current_lag: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "offsets": [o.to_dict() if o is not None else None for o in self.offsets],
            "owner": self.owner,
            "client_id": self.client_id,
            "current-lag": self.current_lag,
        }


@dataclass
class PartitionStatus:
    """Evaluated status of one partition consumed by a group."""

    topic: str = ""
    partition: int = 0
    owner: str = ""
    client_id: str = ""
    status: StatusConstant = StatusConstant.NOTFOUND
    start: Optional[ConsumerOffset] = None
    end: Optional[ConsumerOffset] = None
    current_lag: int = 0
    complete: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic": self.topic,
            "partition": self.partition,
            "owner": self.owner,
            "client_id": self.client_id,
            "status": self.status.name,
            "start": self.start.to_dict() if self.start is not None else None,
            "end": self.end.to_dict() if self.end is not None else None,
            "current_lag": self.current_lag,
            "complete": self.complete,
        }


@dataclass
class ConsumerGroupStatus:
    """Evaluated status of a whole consumer group."""

    cluster: str = ""
    group: str = ""
    status: StatusConstant = StatusConstant.NOTFOUND
    complete: float = 0.0
    partitions: list[PartitionStatus] = field(default_factory=list)
    total_partitions: int = 0
    maxlag: Optional[PartitionStatus] = None
    total_lag: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "cluster": self.cluster,
            "group": self.group,
            "status": self.status.name,
            "complete": self.complete,
            "partitions": [p.to_dict() for p in self.partitions],
            "partition_count": self.total_partitions,
            "maxlag": self.maxlag.to_dict() if self.maxlag is not None else None,
            "totallag": self.total_lag,
        }


ConsumerTopics = Mapping[str, Sequence[Optional[ConsumerPartition]]]


def consumer_topics_to_dict(topics: ConsumerTopics) -> dict[str, list[Any]]:
    """Convert a topic-to-partitions mapping into its JSON form."""
    return {
        name: [p.to_dict() if p is not None else None for p in partitions]
        for name, partitions in topics.items()
    }


@dataclass
class StorageRequest:
    """A request addressed to the storage module."""

    request_type: StorageRequestType
    cluster: str = ""
    topic: str = ""
    group: str = ""


@dataclass
class EvaluatorRequest:
    """A request for the evaluated status of a consumer group."""

    cluster: str
    group: str
    show_all: bool = False


StorageHandler = Callable[[StorageRequest], Any]
EvaluatorHandler = Callable[[EvaluatorRequest], ConsumerGroupStatus]


@dataclass
class ApplicationContext:
    """Shared application state: the storage and evaluator modules, log level and readiness."""

    storage: Optional[StorageHandler] = None
    evaluator: Optional[EvaluatorHandler] = None
    log_level: int = logging.INFO
    app_ready: bool = False
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("burrowapi"))

    def fetch_storage(self, request: StorageRequest) -> Any:
        """Send a request to the storage module and return its reply."""
        if self.storage is None:
            raise RuntimeError("no storage module attached")
        return self.storage(request)

    def evaluate(self, request: EvaluatorRequest) -> ConsumerGroupStatus:
        """Ask the evaluator for the status of a consumer group."""
        if self.evaluator is None:
            raise RuntimeError("no evaluator module attached")
        return self.evaluator(request)


@dataclass
class RequestInfo:
    """Information about the request echoed back in every response."""

    uri: str
    host: str

    def to_dict(self) -> dict[str, str]:
        return {"url": self.uri, "host": self.host}


@dataclass
class TLSProfile:
    """A named TLS profile as shown by the API."""

    name: str
    noverify: bool = False
    certfile: str = ""
    keyfile: str = ""
    cafile: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "noverify": self.noverify,
            "certfile": self.certfile,
            "keyfile": self.keyfile,
            "cafile": self.cafile,
        }


@dataclass
class SASLProfile:
    """A named SASL profile as shown by the API."""

    name: str
    handshake_first: bool = False
    username: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "handshake-first": self.handshake_first,
            "username": self.username,
        }


@dataclass
class ClientProfile:
    """A named Kafka client profile as shown by the API."""

    name: str
    client_id: str = ""
    kafka_version: str = ""
    tls: Optional[TLSProfile] = None
    sasl: Optional[SASLProfile] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "client-id": self.client_id,
            "kafka-version": self.kafka_version,
            "tls": self.tls.to_dict() if self.tls is not None else None,
            "sasl": self.sasl.to_dict() if self.sasl is not None else None,
        }