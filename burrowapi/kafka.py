"""Handlers for the cluster, topic and consumer endpoints."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from burrowapi.models import (
    ApplicationContext,
    ClientProfile,
    EvaluatorRequest,
    SASLProfile,
    StatusConstant,
    StorageRequest,
    StorageRequestType,
    TLSProfile,
    consumer_topics_to_dict,
)
from burrowapi.responses import Request, Response, error_response, json_response, make_request_info
from burrowapi.settings import Settings

Params = Mapping[str, str]


def _is_set(settings: Settings, key: str) -> bool:
    try:
        return settings.is_set(key)
    except ValueError:
        return False


def get_tls_profile(settings: Settings, name: str) -> Optional[TLSProfile]:
    """Return the named TLS profile, or None when it is not configured."""
    root = f"tls.{name}"
    if not _is_set(settings, root):
        return None
    return TLSProfile(
        name=name,
        certfile=settings.get_string(root + ".certfile"),
        keyfile=settings.get_string(root + ".keyfile"),
        cafile=settings.get_string(root + ".cafile"),
        noverify=settings.get_bool(root + ".noverify"),
    )


def get_sasl_profile(settings: Settings, name: str) -> Optional[SASLProfile]:
    """Return the named SASL profile, or None when it is not configured."""
    root = f"sasl.{name}"
    if not _is_set(settings, root):
        return None
    return SASLProfile(
        name=name,
        handshake_first=settings.get_bool(root + ".handshake-first"),
        username=settings.get_string(root + ".username"),
    )


def get_client_profile(settings: Settings, name: str) -> ClientProfile:
    """Return the named client profile; unconfigured fields are left empty."""
    root = f"client-profile.{name}"
    if not _is_set(settings, root):
        return ClientProfile(name=name)
    return ClientProfile(
        name=name,
        client_id=settings.get_string(root + ".client-id"),
        kafka_version=settings.get_string(root + ".kafka-version"),
        tls=get_tls_profile(settings, settings.get_string(root + ".tls")),
        sasl=get_sasl_profile(settings, settings.get_string(root + ".sasl")),
    )


def _ok(settings: Settings, request: Request, message: str, **fields: Any) -> Response:
    payload: dict[str, Any] = {"error": False, "message": message}
    payload.update(fields)
    payload["request"] = make_request_info(request).to_dict()
    return json_response(settings, 200, payload)


def _as_list(value: Any) -> Optional[list]:
    return list(value) if value is not None else None


def handle_cluster_list(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """List the clusters known to storage."""
    clusters = app.fetch_storage(StorageRequest(StorageRequestType.FETCH_CLUSTERS))
    return _ok(settings, request, "cluster list returned", clusters=_as_list(clusters))


def handle_cluster_detail(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """Show the configuration of one cluster module."""
    root = f"cluster.{params.get('cluster', '')}"
    if not _is_set(settings, root):
        return error_response(settings, request, 404, "cluster module not found")
    module = {
        "class-name": settings.get_string(root + ".class-name"),
        "servers": settings.get_string_slice(root + ".servers"),
        "client-profile": get_client_profile(
            settings, settings.get_string(root + ".client-profile")
        ).to_dict(),
        "topic-refresh": settings.get_int(root + ".topic-refresh"),
        "offset-refresh": settings.get_int(root + ".offset-refresh"),
    }
    return _ok(settings, request, "cluster module detail returned", module=module)


def _storage_listing(
    app: ApplicationContext,
    settings: Settings,
    request: Request,
    storage_request: StorageRequest,
    not_found: str,
    message: str,
    field_name: str,
) -> Response:
    reply = app.fetch_storage(storage_request)
    if reply is None:
        return error_response(settings, request, 404, not_found)
    return _ok(settings, request, message, **{field_name: list(reply)})


def handle_topic_list(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """List the topics of a cluster."""
    return _storage_listing(
        app,
        settings,
        request,
        StorageRequest(StorageRequestType.FETCH_TOPICS, cluster=params.get("cluster", "")),
        "cluster not found",
        "topic list returned",
        "topics",
    )


def handle_topic_detail(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """Show the head offsets of a topic's partitions."""
    return _storage_listing(
        app,
        settings,
        request,
        StorageRequest(
            StorageRequestType.FETCH_TOPIC,
            cluster=params.get("cluster", ""),
            topic=params.get("topic", ""),
        ),
        "cluster or topic not found",
        "topic offsets returned",
        "offsets",
    )


def handle_topic_consumer_list(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """List the consumer groups that consume a topic."""
    return _storage_listing(
        app,
        settings,
        request,
        StorageRequest(
            StorageRequestType.FETCH_CONSUMERS_FOR_TOPIC,
            cluster=params.get("cluster", ""),
            topic=params.get("topic", ""),
        ),
        "cluster not found",
        "consumers of topic returned",
        "consumers",
    )


def handle_consumer_list(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """List the consumer groups of a cluster."""
    return _storage_listing(
        app,
        settings,
        request,
        StorageRequest(StorageRequestType.FETCH_CONSUMERS, cluster=params.get("cluster", "")),
        "cluster not found",
        "consumer list returned",
        "consumers",
    )


def handle_consumer_detail(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """Show the stored offsets of a consumer group."""
    reply = app.fetch_storage(
        StorageRequest(
            StorageRequestType.FETCH_CONSUMER,
            cluster=params.get("cluster", ""),
            group=params.get("consumer", ""),
        )
    )
    if reply is None:
        return error_response(settings, request, 404, "cluster or consumer not found")
    return _ok(settings, request, "consumer detail returned", topics=consumer_topics_to_dict(reply))


def _consumer_status(
    app: ApplicationContext, settings: Settings, request: Request, params: Params, show_all: bool
) -> Response:
    status = app.evaluate(
        EvaluatorRequest(
            cluster=params.get("cluster", ""),
            group=params.get("consumer", ""),
            show_all=show_all,
        )
    )
    code = 404 if status.status == StatusConstant.NOTFOUND else 200
    return json_response(
        settings,
        code,
        {
            "error": False,
            "message": "consumer status returned",
            "status": status.to_dict(),
            "request": make_request_info(request).to_dict(),
        },
    )


def handle_consumer_status(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """Show the evaluated status of a group, with only the problem partitions."""
    return _consumer_status(app, settings, request, params, show_all=False)


def handle_consumer_status_complete(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """Show the evaluated status of a group, with every partition."""
    return _consumer_status(app, settings, request, params, show_all=True)


def handle_consumer_delete(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """Ask storage to forget a consumer group, or one topic of it."""
    app.fetch_storage(
        StorageRequest(
            StorageRequestType.SET_DELETE_GROUP,
            cluster=params.get("cluster", ""),
            group=params.get("consumer", ""),
            topic=params.get("topic", ""),
        )
    )
    return _ok(settings, request, "consumer group removed")