"""Handlers for the configuration endpoints."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from burrowapi.kafka import get_client_profile
from burrowapi.models import ApplicationContext
from burrowapi.responses import Request, Response, error_response, json_response, make_request_info
from burrowapi.settings import Settings

Params = Mapping[str, str]


def _is_set(settings: Settings, key: str) -> bool:
    try:
        return settings.is_set(key)
    except ValueError:
        return False


def _int32(value: int) -> int:
    """Wrap an integer to a signed 32-bit value."""
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value >= 0x80000000 else value


def _ok(settings: Settings, request: Request, message: str, **fields: Any) -> Response:
    payload: dict[str, Any] = {"error": False, "message": message}
    payload.update(fields)
    payload["request"] = make_request_info(request).to_dict()
    return json_response(settings, 200, payload)


def config_main(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """Show the general, logging, zookeeper and HTTP server configuration."""
    general = {
        "pidfile": settings.get_string("general.pidfile"),
        "stdout-logfile": settings.get_string("general.stdout-logfile"),
        "access-control-allow-origin": settings.get_string("general.access-control-allow-origin"),
    }
    logging_config = {
        "filename": settings.get_string("logging.filename"),
        "max-size": settings.get_int("logging.maxsize"),
        "max-backups": settings.get_int("logging.maxbackups"),
        "max-age": settings.get_int("logging.maxage"),
        "use-local-time": settings.get_bool("logging.use-localtime"),
        "use-compression": settings.get_bool("logging.use-compression"),
        "level": settings.get_string("logging.level"),
    }
    zookeeper = {
        "servers": settings.get_string_slice("zookeeper.servers"),
        "timeout": settings.get_int("zookeeper.timeout"),
        "root-path": settings.get_string("zookeeper.root-path"),
    }
    servers = {}
    for name in settings.get_string_map("httpserver"):
        root = f"httpserver.{name}"
        servers[name] = {
            "address": settings.get_string(root + ".address"),
            "tls": settings.get_string(root + ".tls"),
            "timeout": settings.get_int(root + ".timeout"),
        }
    return _ok(
        settings,
        request,
        "main config returned",
        general=general,
        logging=logging_config,
        zookeeper=zookeeper,
        httpserver=servers,
    )


def _module_list(settings: Settings, request: Request, coordinator: str) -> Response:
    modules = sorted(settings.get_string_map(coordinator))
    return _ok(
        settings,
        request,
        "module list returned",
        coordinator=coordinator,
        modules=modules,
    )


def config_storage_list(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """List the configured storage modules."""
    return _module_list(settings, request, "storage")


def config_consumer_list(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """List the configured consumer modules."""
    return _module_list(settings, request, "consumer")


def config_cluster_list(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """List the configured cluster modules."""
    return _module_list(settings, request, "cluster")


def config_evaluator_list(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """List the configured evaluator modules."""
    return _module_list(settings, request, "evaluator")


def config_notifier_list(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """List the configured notifier modules."""
    return _module_list(settings, request, "notifier")


def _module_detail(
    settings: Settings,
    request: Request,
    kind: str,
    name: str,
    build: Callable[[str], dict[str, Any]],
) -> Response:
    root = f"{kind}.{name}"
    if not _is_set(settings, root):
        return error_response(settings, request, 404, f"{kind} module not found")
    return _ok(settings, request, f"{kind} module detail returned", module=build(root))


def config_storage_detail(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """Show the configuration of one storage module."""

    def build(root: str) -> dict[str, Any]:
        return {
            "class-name": settings.get_string(root + ".class-name"),
            "intervals": settings.get_int(root + ".intervals"),
            "min-distance": settings.get_int(root + ".min-distance"),
            "group-allowlist": settings.get_string(root + ".group-allowlist"),
            "expire-group": settings.get_int(root + ".expire-group"),
        }

    return _module_detail(settings, request, "storage", params.get("name", ""), build)


def config_consumer_detail(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """Show the configuration of one consumer module."""

    def build(root: str) -> dict[str, Any]:
        return {
            "class-name": settings.get_string(root + ".class-name"),
            "cluster": settings.get_string(root + ".cluster"),
            "servers": settings.get_string_slice(root + ".servers"),
            "group-allowlist": settings.get_string(root + ".group-allowlist"),
            "zookeeper-path": settings.get_string(root + ".zookeeper-path"),
            "zookeeper-timeout": _int32(settings.get_int(root + ".zookeeper-timeout")),
            "client-profile": get_client_profile(
                settings, settings.get_string(root + ".client-profile")
            ).to_dict(),
            "offsets-topic": settings.get_string(root + ".offsets-topic"),
            "start-latest": settings.get_bool(root + ".start-latest"),
        }

    return _module_detail(settings, request, "consumer", params.get("name", ""), build)


def config_evaluator_detail(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """Show the configuration of one evaluator module."""

    def build(root: str) -> dict[str, Any]:
        return {
            "class-name": settings.get_string(root + ".class-name"),
            "expire-cache": settings.get_int(root + ".expire-cache"),
        }

    return _module_detail(settings, request, "evaluator", params.get("name", ""), build)


def _notifier_common(settings: Settings, root: str) -> dict[str, Any]:
    return {
        "class-name": settings.get_string(root + ".class-name"),
        "group-allowlist": settings.get_string(root + ".group-allowlist"),
        "interval": settings.get_int(root + ".interval"),
        "threshold": settings.get_int(root + ".threshold"),
    }


def _notifier_templates(settings: Settings, root: str) -> dict[str, Any]:
    return {
        "template-open": settings.get_string(root + ".template-open"),
        "template-close": settings.get_string(root + ".template-close"),
        "extra": settings.get_string_map_string(root + ".extras"),
        "send-close": settings.get_bool(root + ".send-close"),
    }


def _notifier_http(settings: Settings, root: str) -> dict[str, Any]:
    module = _notifier_common(settings, root)
    module.update(
        {
            "timeout": settings.get_int(root + ".timeout"),
            "keepalive": settings.get_int(root + ".keepalive"),
            "url-open": settings.get_string(root + ".url-open"),
            "url-close": settings.get_string(root + ".url-close"),
            "method-open": settings.get_string(root + ".method-open"),
            "method-close": settings.get_string(root + ".method-close"),
        }
    )
    module.update(_notifier_templates(settings, root))
    module.update(
        {
            "extra-ca": settings.get_string(root + ".extra-ca"),
            "noverify": settings.get_string(root + ".noverify"),
        }
    )
    return module


def _notifier_slack(settings: Settings, root: str) -> dict[str, Any]:
    module = _notifier_common(settings, root)
    module.update(
        {
            "timeout": settings.get_int(root + ".timeout"),
            "keepalive": settings.get_int(root + ".keepalive"),
        }
    )
    module.update(_notifier_templates(settings, root))
    module.update(
        {
            "channel": settings.get_string(root + ".channel"),
            "username": settings.get_string(root + ".username"),
            "icon-url": settings.get_string(root + ".icon-url"),
            "icon-emoji": settings.get_string(root + ".icon-emoji"),
        }
    )
    return module


def _notifier_email(settings: Settings, root: str) -> dict[str, Any]:
    module = _notifier_common(settings, root)
    module.update(_notifier_templates(settings, root))
    module.update(
        {
            "server": settings.get_string(root + ".server"),
            "port": settings.get_int(root + ".port"),
            "auth-type": settings.get_string(root + ".auth-type"),
            "username": settings.get_string(root + ".username"),
            "from": settings.get_string(root + ".from"),
            "to": settings.get_string(root + ".to"),
            "extra-ca": settings.get_string(root + ".extra-ca"),
            "noverify": settings.get_string(root + ".noverify"),
        }
    )
    return module


def _notifier_null(settings: Settings, root: str) -> dict[str, Any]:
    module = _notifier_common(settings, root)
    module.update(_notifier_templates(settings, root))
    return module


_NOTIFIER_BUILDERS: dict[str, Callable[[Settings, str], dict[str, Any]]] = {
    "http": _notifier_http,
    "email": _notifier_email,
    "slack": _notifier_slack,
    "null": _notifier_null,
}


def config_notifier_detail(
    app: ApplicationContext, settings: Settings, request: Request, params: Params
) -> Response:
    """Show the configuration of one notifier module, shaped by its class.

    A notifier of an unknown class yields an empty 200 response.
    """
    root = f"notifier.{params.get('name', '')}"
    if not _is_set(settings, root):
        return error_response(settings, request, 404, "notifier module not found")
    builder = _NOTIFIER_BUILDERS.get(settings.get_string(root + ".class-name"))
    if builder is None:
        return Response(200)
    return _ok(
        settings, request, "notifier module detail returned", module=builder(settings, root)
    )