import pytest

from burrowapi.config_api import (
    config_cluster_list,
    config_consumer_detail,
    config_consumer_list,
    config_evaluator_detail,
    config_evaluator_list,
    config_main,
    config_notifier_detail,
    config_notifier_list,
    config_storage_detail,
    config_storage_list,
)
from burrowapi.models import ApplicationContext
from burrowapi.responses import Request
from burrowapi.settings import Settings


@pytest.fixture
def settings():
    s = Settings()
    s.set("client-profile.test.client-id", "testid")
    s.set("storage.teststorage.class-name", "inmemory")
    s.set("consumer.testconsumer.class-name", "kafka_zk")
    s.set("consumer.testconsumer.client-profile", "test")
    s.set("cluster.testcluster.class-name", "kafka")
    s.set("cluster.testcluster.client-profile", "test")
    s.set("evaluator.testevaluator.class-name", "caching")
    s.set("notifier.testnotifier.class-name", "null")
    return s


@pytest.fixture
def app():
    return ApplicationContext()


def test_config_main(app, settings):
    settings.set("httpserver.default.address", ":8000")
    settings.set("zookeeper.servers", ["zk1:2181", "zk2:2181"])
    resp = config_main(app, settings, Request(path="/v3/config"), {})
    assert resp.status == 200
    body = resp.json()
    assert body["error"] is False
    assert body["message"] == "main config returned"
    assert body["httpserver"]["default"]["address"] == ":8000"
    assert body["zookeeper"]["servers"] == ["zk1:2181", "zk2:2181"]
    assert body["request"]["url"] == "/v3/config"


@pytest.mark.parametrize(
    "handler, coordinator, expected",
    [
        (config_storage_list, "storage", ["teststorage"]),
        (config_consumer_list, "consumer", ["testconsumer"]),
        (config_cluster_list, "cluster", ["testcluster"]),
        (config_evaluator_list, "evaluator", ["testevaluator"]),
        (config_notifier_list, "notifier", ["testnotifier"]),
    ],
)
def test_module_lists(app, settings, handler, coordinator, expected):
    resp = handler(app, settings, Request(path=f"/v3/config/{coordinator}"), {})
    assert resp.status == 200
    body = resp.json()
    assert body["error"] is False
    assert body["coordinator"] == coordinator
    assert body["modules"] == expected


def test_storage_detail(app, settings):
    resp = config_storage_detail(app, settings, Request(), {"name": "teststorage"})
    assert resp.status == 200
    body = resp.json()
    assert body["error"] is False
    assert body["module"]["class-name"] == "inmemory"

    missing = config_storage_detail(app, settings, Request(), {"name": "nomodule"})
    assert missing.status == 404
    assert missing.json()["message"] == "storage module not found"


def test_consumer_detail(app, settings):
    resp = config_consumer_detail(app, settings, Request(), {"name": "testconsumer"})
    assert resp.status == 200
    body = resp.json()
    assert body["error"] is False
    assert body["module"]["class-name"] == "kafka_zk"
    assert body["module"]["client-profile"]["client-id"] == "testid"

    missing = config_consumer_detail(app, settings, Request(), {"name": "nomodule"})
    assert missing.status == 404


def test_consumer_detail_zookeeper_timeout_is_32_bit(app, settings):
    settings.set("consumer.testconsumer.zookeeper-timeout", 2**31)
    resp = config_consumer_detail(app, settings, Request(), {"name": "testconsumer"})
    assert resp.json()["module"]["zookeeper-timeout"] == -(2**31)


def test_evaluator_detail(app, settings):
    resp = config_evaluator_detail(app, settings, Request(), {"name": "testevaluator"})
    assert resp.status == 200
    body = resp.json()
    assert body["error"] is False
    assert body["module"]["class-name"] == "caching"

    missing = config_evaluator_detail(app, settings, Request(), {"name": "nomodule"})
    assert missing.status == 404


def test_notifier_detail_null(app, settings):
    resp = config_notifier_detail(app, settings, Request(), {"name": "testnotifier"})
    assert resp.status == 200
    body = resp.json()
    assert body["error"] is False
    assert body["module"]["class-name"] == "null"
    assert "server" not in body["module"]

    missing = config_notifier_detail(app, settings, Request(), {"name": "nomodule"})
    assert missing.status == 404


def test_notifier_detail_http(app, settings):
    settings.set("notifier.web.class-name", "http")
    settings.set("notifier.web.url-open", "http://example.com/open")
    settings.set("notifier.web.extras", {"team": "ops"})
    body = config_notifier_detail(app, settings, Request(), {"name": "web"}).json()
    assert body["module"]["url-open"] == "http://example.com/open"
    assert body["module"]["extra"] == {"team": "ops"}


def test_notifier_detail_email(app, settings):
    settings.set("notifier.mail.class-name", "email")
    settings.set("notifier.mail.port", 25)
    settings.set("notifier.mail.to", "ops@example.com")
    body = config_notifier_detail(app, settings, Request(), {"name": "mail"}).json()
    assert body["module"]["port"] == 25
    assert body["module"]["to"] == "ops@example.com"


def test_notifier_detail_slack(app, settings):
    settings.set("notifier.chat.class-name", "slack")
    settings.set("notifier.chat.channel", "#alerts")
    body = config_notifier_detail(app, settings, Request(), {"name": "chat"}).json()
    assert body["module"]["channel"] == "#alerts"


def test_notifier_detail_unknown_class_is_empty(app, settings):
    settings.set("notifier.odd.class-name", "pager")
    resp = config_notifier_detail(app, settings, Request(), {"name": "odd"})
    assert resp.status == 200
    assert resp.body == b""


def test_cors_header_added(app, settings):
    settings.set("general.access-control-allow-origin", "*")
    resp = config_storage_list(app, settings, Request(), {})
    assert resp.headers["Access-Control-Allow-Origin"] == "*"