import logging
import socket
import urllib.request

import pytest

from burrowapi.coordinator import Coordinator
from burrowapi.metrics import MetricsRegistry
from burrowapi.models import (
    ApplicationContext,
    ConsumerGroupStatus,
    ConsumerOffset,
    PartitionStatus,
    StatusConstant,
    StorageRequestType,
)
from burrowapi.responses import Request
from burrowapi.settings import Settings


def make_coordinator(storage=None, evaluator=None, settings=None, registry=None):
    app = ApplicationContext(storage=storage, evaluator=evaluator, app_ready=False)
    coordinator = Coordinator(
        app,
        settings if settings is not None else Settings(),
        registry=registry,
    )
    coordinator.configure()
    return coordinator


def test_handle_admin():
    coordinator = make_coordinator()
    response = coordinator.dispatch(Request("GET", "/burrow/admin"))
    assert response.status == 200
    assert response.body == b"GOOD"


def test_handle_admin_cors_header():
    settings = Settings()
    settings.set("general.access-control-allow-origin", "*")
    coordinator = make_coordinator(settings=settings)
    response = coordinator.dispatch(Request("GET", "/burrow/admin"))
    assert response.headers["Access-Control-Allow-Origin"] == "*"


def test_handle_ready():
    coordinator = make_coordinator()
    response = coordinator.dispatch(Request("GET", "/burrow/admin/ready"))
    assert response.status == 503
    assert response.body == b"STARTING"

    coordinator.app.app_ready = True
    response = coordinator.dispatch(Request("GET", "/burrow/admin/ready"))
    assert response.status == 200
    assert response.body == b"READY"


def test_get_log_level():
    coordinator = make_coordinator()
    response = coordinator.dispatch(Request("GET", "/v3/admin/loglevel"))
    assert response.status == 200
    body = response.json()
    assert body["error"] is False
    assert body["level"] == "info"


def test_set_log_level():
    coordinator = make_coordinator()
    response = coordinator.dispatch(
        Request("POST", "/v3/admin/loglevel", body=b'{"level": "debug"}')
    )
    assert response.status == 200
    assert response.json()["error"] is False
    assert coordinator.app.log_level == logging.DEBUG
    follow = coordinator.dispatch(Request("GET", "/v3/admin/loglevel"))
    assert follow.json()["level"] == "debug"


@pytest.mark.parametrize(
    "name, expected",
    [
        ("trace", logging.DEBUG),
        ("INFO", logging.INFO),
        ("Warning", logging.WARNING),
        ("warn", logging.WARNING),
        ("error", logging.ERROR),
        ("fatal", logging.CRITICAL),
    ],
)
def test_set_log_level_names(name, expected):
    coordinator = make_coordinator()
    body = ('{"level": "%s"}' % name).encode()
    response = coordinator.dispatch(Request("POST", "/v3/admin/loglevel", body=body))
    assert response.status == 200
    assert coordinator.app.log_level == expected


def test_set_log_level_unknown():
    coordinator = make_coordinator()
    response = coordinator.dispatch(
        Request("POST", "/v3/admin/loglevel", body=b'{"level": "loud"}')
    )
    assert response.status == 404
    assert response.json()["message"] == "unknown log level"
    assert coordinator.app.log_level == logging.INFO


@pytest.mark.parametrize("body", [b"", b"not json", b"[1, 2]", b'{"level": 5}'])
def test_set_log_level_bad_body(body):
    coordinator = make_coordinator()
    response = coordinator.dispatch(Request("POST", "/v3/admin/loglevel", body=body))
    assert response.status == 400
    assert response.json()["error"] is True


def test_default_handler():
    coordinator = make_coordinator()
    response = coordinator.dispatch(Request("GET", "/v3/no/such/uri"))
    assert response.status == 404
    assert response.json()["error"] is True


def test_method_not_allowed():
    coordinator = make_coordinator()
    response = coordinator.dispatch(Request("PUT", "/burrow/admin"))
    assert response.status == 405
    assert response.headers["Allow"] == "GET, OPTIONS"


def test_options_lists_allowed_methods():
    coordinator = make_coordinator()
    response = coordinator.dispatch(Request("OPTIONS", "/v3/admin/loglevel"))
    assert response.status == 200
    assert response.headers["Allow"] == "GET, POST, OPTIONS"


def test_trailing_slash_redirect():
    coordinator = make_coordinator()
    response = coordinator.dispatch(Request("GET", "/v3/kafka/"))
    assert response.status == 301
    assert response.headers["Location"] == "/v3/kafka"


def test_dispatch_cluster_list():
    seen = []

    def storage(request):
        seen.append(request)
        return ["testcluster"]

    coordinator = make_coordinator(storage=storage)
    response = coordinator.dispatch(Request("GET", "/v3/kafka"))
    assert response.status == 200
    assert response.json()["clusters"] == ["testcluster"]
    assert seen[0].request_type == StorageRequestType.FETCH_CLUSTERS


def test_dispatch_consumer_delete_with_topic():
    seen = []
    coordinator = make_coordinator(storage=seen.append)
    response = coordinator.dispatch(
        Request("DELETE", "/v3/kafka/testcluster/consumer/testgroup/topic/testtopic")
    )
    assert response.status == 200
    assert response.json()["error"] is False
    assert seen[0].request_type == StorageRequestType.SET_DELETE_GROUP
    assert (seen[0].cluster, seen[0].group, seen[0].topic) == (
        "testcluster",
        "testgroup",
        "testtopic",
    )


def test_dispatch_config_storage_list():
    settings = Settings()
    settings.set("storage.teststorage.class-name", "inmemory")
    coordinator = make_coordinator(settings=settings)
    response = coordinator.dispatch(Request("GET", "/v3/config/storage"))
    assert response.status == 200
    assert response.json()["modules"] == ["teststorage"]


def test_dispatch_metrics():
    replies = {
        StorageRequestType.FETCH_CLUSTERS: ["testcluster"],
        StorageRequestType.FETCH_CONSUMERS: ["testgroup"],
        StorageRequestType.FETCH_TOPICS: ["testtopic"],
        StorageRequestType.FETCH_TOPIC: [6556, 5566],
    }

    def evaluator(request):
        return ConsumerGroupStatus(
            cluster=request.cluster,
            group=request.group,
            status=StatusConstant.OK,
            complete=1.0,
            partitions=[
                PartitionStatus(
                    topic="testtopic",
                    partition=0,
                    status=StatusConstant.OK,
                    current_lag=100,
                    complete=1.0,
                    end=ConsumerOffset(offset=22663),
                )
            ],
            total_lag=2345,
        )

    coordinator = make_coordinator(
        storage=lambda request: replies[request.request_type],
        evaluator=evaluator,
        registry=MetricsRegistry(),
    )
    response = coordinator.dispatch(Request("GET", "/metrics"))
    assert response.status == 200
    text = response.body.decode()
    assert 'burrow_kafka_consumer_status{cluster="testcluster",consumer_group="testgroup"} 1' in text
    assert (
        'burrow_kafka_topic_partition_offset{cluster="testcluster",partition="1",topic="testtopic"} 5566'
        in text
    )


def test_configure_adds_default_listener():
    settings = Settings()
    make_coordinator(settings=settings)
    assert settings.get_string("httpserver.default.address") == ":0"
    assert settings.get_int("httpserver.default.timeout") == 300


def test_configure_rejects_bad_address():
    settings = Settings()
    settings.set("httpserver.bad.address", "nocolon")
    with pytest.raises(ValueError, match="invalid HTTP server listener address"):
        make_coordinator(settings=settings)


def test_configure_tls_missing_ca_file(tmp_path):
    settings = Settings()
    settings.set("httpserver.secure.address", ":0")
    settings.set("httpserver.secure.tls", "mytls")
    settings.set("tls.mytls.cafile", str(tmp_path / "missing.pem"))
    with pytest.raises(ValueError, match="cannot read TLS CA file"):
        make_coordinator(settings=settings)


def test_configure_tls_missing_key():
    settings = Settings()
    settings.set("httpserver.secure.address", ":0")
    settings.set("httpserver.secure.tls", "mytls")
    settings.set("tls.mytls.certfile", "/nonexistent/cert.pem")
    with pytest.raises(ValueError, match="missing certificate or key"):
        make_coordinator(settings=settings)


def test_configure_tls_unreadable_certificate(tmp_path):
    cert = tmp_path / "cert.pem"
    key = tmp_path / "key.pem"
    cert.write_text("garbage")
    key.write_text("garbage")
    settings = Settings()
    settings.set("httpserver.secure.address", ":0")
    settings.set("httpserver.secure.tls", "mytls")
    settings.set("tls.mytls.certfile", str(cert))
    settings.set("tls.mytls.keyfile", str(key))
    with pytest.raises(ValueError, match="cannot read TLS certificate or key file"):
        make_coordinator(settings=settings)


def test_start_serves_and_stop_closes():
    settings = Settings()
    settings.set("httpserver.test.address", "127.0.0.1:0")
    coordinator = make_coordinator(settings=settings)
    coordinator.start()
    try:
        host, port = coordinator.addresses["test"]
        with urllib.request.urlopen(f"http://127.0.0.1:{port}/burrow/admin", timeout=5) as reply:
            assert reply.status == 200
            assert reply.read() == b"GOOD"
    finally:
        coordinator.stop()
    assert coordinator.addresses == {}


def test_start_fails_when_port_in_use():
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen(1)
    try:
        port = blocker.getsockname()[1]
        settings = Settings()
        settings.set("httpserver.test.address", f"127.0.0.1:{port}")
        coordinator = make_coordinator(settings=settings)
        with pytest.raises(OSError):
            coordinator.start()
        assert coordinator.addresses == {}
    finally:
        blocker.close()


def test_start_requires_configuration():
    coordinator = Coordinator(ApplicationContext(), Settings())
    with pytest.raises(RuntimeError, match="not configured"):
        coordinator.start()