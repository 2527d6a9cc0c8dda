"""The HTTP coordinator: routing, listeners and the admin endpoints."""

from __future__ import annotations

import ipaddress
import json
import logging
import re
import socket
import ssl
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional
from urllib.parse import unquote, urlsplit

from burrowapi import config_api, kafka
from burrowapi.metrics import MetricsRegistry, handle_prometheus_metrics
from burrowapi.models import ApplicationContext
from burrowapi.responses import Request, Response, error_response, json_response, make_request_info
from burrowapi.settings import Settings

Params = Mapping[str, str]
Handler = Callable[[Request, Params], Response]

NOT_FOUND_BODY = b'{"error":true,"message":"invalid request type","result":{}}\n'
TEXT_PLAIN = "text/plain; charset=utf-8"
DEFAULT_TIMEOUT = 300

_HOSTNAME_RE = re.compile(
    r"^[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?(\.[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*$"
)

_LEVELS_BY_NAME = {
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}


def _level_name(level: int) -> str:
    if level <= logging.DEBUG:
        return "debug"
    if level <= logging.INFO:
        return "info"
    if level <= logging.WARNING:
        return "warn"
    if level <= logging.ERROR:
        return "error"
    return "fatal"


def _split_host_port(address: str) -> tuple[str, str]:
    if address.startswith("["):
        end = address.find("]")
        if end < 0 or address[end + 1 : end + 2] != ":":
            raise ValueError(f"invalid address: {address!r}")
        return address[1:end], address[end + 2 :]
    host, sep, port = address.rpartition(":")
    if not sep or ":" in host:
        raise ValueError(f"invalid address: {address!r}")
    return host, port


def _valid_host_port(address: str, allow_blank_host: bool) -> bool:
    try:
        host, port = _split_host_port(address)
    except ValueError:
        return False
    if not port.isdigit() or not 0 <= int(port) <= 65535:
        return False
    if host == "":
        return allow_blank_host
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        return bool(_HOSTNAME_RE.match(host))


def _is_set(settings: Settings, key: str) -> bool:
    try:
        return settings.is_set(key)
    except ValueError:
        return False


@dataclass
class _Route:
    method: str
    parts: tuple[str, ...]
    handler: Handler

    def match(self, parts: list[str]) -> Optional[dict[str, str]]:
        if len(parts) != len(self.parts):
            return None
        params: dict[str, str] = {}
        for pattern, segment in zip(self.parts, parts):
            if pattern.startswith(":"):
                if not segment:
                    return None
                params[pattern[1:]] = segment
            elif pattern != segment:
                return None
        return params


@dataclass
class _ListenerConfig:
    address: str
    timeout: int
    ssl_context: Optional[ssl.SSLContext] = None


class _Server(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(
        self,
        address: tuple,
        handler: type,
        family: int,
        keepalive: int,
        ssl_context: Optional[ssl.SSLContext],
    ) -> None:
        self.address_family = family
        self.keepalive = keepalive
        self.ssl_context = ssl_context
        super().__init__(address, handler)

    def get_request(self):
        conn, addr = super().get_request()
        if self.keepalive > 0:
            conn.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
            if hasattr(socket, "TCP_KEEPIDLE"):
                conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, self.keepalive)
        if self.ssl_context is not None:
            conn = self.ssl_context.wrap_socket(
                conn, server_side=True, do_handshake_on_connect=False
            )
        return conn, addr


def _make_handler_class(coordinator: Coordinator, timeout: int) -> type:
    class _RequestHandler(BaseHTTPRequestHandler):
        protocol_version = "HTTP/1.1"

        def _handle(self) -> None:
            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length) if length > 0 else b""
            request = Request(
                method=self.command,
                path=self.path,
                body=body,
                headers=dict(self.headers.items()),
            )
            try:
                response = coordinator.dispatch(request)
            except Exception:
                coordinator.log.exception("request handler failed")
                response = Response(500)
            self.send_response(response.status)
            for name, value in response.headers.items():
                self.send_header(name, value)
            self.send_header("Content-Length", str(len(response.body)))
            self.end_headers()
            if self.command != "HEAD":
                self.wfile.write(response.body)

        do_GET = do_POST = do_PUT = do_PATCH = do_DELETE = do_HEAD = do_OPTIONS = _handle

        def log_message(self, format: str, *args: Any) -> None:
            coordinator.log.debug("%s - %s", self.address_string(), format % args)

    _RequestHandler.timeout = timeout if timeout > 0 else None
    return _RequestHandler


class Coordinator:
    """Runs the HTTP interface, managing every configured listener."""

    def __init__(
        self,
        app: ApplicationContext,
        settings: Optional[Settings] = None,
        log: Optional[logging.Logger] = None,
        registry: Optional[MetricsRegistry] = None,
    ) -> None:
        self.app = app
        self.settings = settings if settings is not None else Settings()
        self.log = log if log is not None else logging.getLogger("burrowapi.httpserver")
        self.registry = registry
        self._routes: list[_Route] = []
        self._listeners: dict[str, _ListenerConfig] = {}
        self._servers: dict[str, tuple[_Server, threading.Thread]] = {}

    @property
    def addresses(self) -> dict[str, tuple]:
        """The bound socket address of each running listener."""
        return {name: server.server_address for name, (server, _) in self._servers.items()}

    def configure(self) -> None:
        """Validate listener settings and set up the routes; raise ValueError on bad config."""
        self.log.info("configuring")
        settings = self.settings
        servers = settings.get_string_map("httpserver")
        if not servers:
            settings.set("httpserver.default.address", ":0")
            servers = settings.get_string_map("httpserver")

        self._listeners = {}
        for name in servers:
            root = f"httpserver.{name}"
            address = settings.get_string(root + ".address")
            if not _valid_host_port(address, True):
                raise ValueError("invalid HTTP server listener address")
            settings.set_default(root + ".timeout", DEFAULT_TIMEOUT)
            timeout = settings.get_int(root + ".timeout")
            context = None
            if _is_set(settings, root + ".tls"):
                context = self._tls_context(settings.get_string(root + ".tls"))
            self._listeners[name] = _ListenerConfig(address, timeout, context)

        self._routes = []
        self._add("GET", "/burrow/admin", self.handle_admin)
        self._add("GET", "/burrow/admin/ready", self.handle_ready)
        self._add(
            "GET",
            "/metrics",
            lambda request, params: handle_prometheus_metrics(self.app, self.registry, request),
        )

        self._add("GET", "/v3/kafka", self._bind(kafka.handle_cluster_list))
        self._add("GET", "/v3/kafka/:cluster", self._bind(kafka.handle_cluster_detail))
        self._add("GET", "/v3/kafka/:cluster/topic", self._bind(kafka.handle_topic_list))
        self._add("GET", "/v3/kafka/:cluster/topic/:topic", self._bind(kafka.handle_topic_detail))
        self._add(
            "GET",
            "/v3/kafka/:cluster/topic/:topic/consumers",
            self._bind(kafka.handle_topic_consumer_list),
        )
        self._add("GET", "/v3/kafka/:cluster/consumer", self._bind(kafka.handle_consumer_list))
        self._add(
            "GET", "/v3/kafka/:cluster/consumer/:consumer", self._bind(kafka.handle_consumer_detail)
        )
        self._add(
            "GET",
            "/v3/kafka/:cluster/consumer/:consumer/status",
            self._bind(kafka.handle_consumer_status),
        )
        self._add(
            "GET",
            "/v3/kafka/:cluster/consumer/:consumer/lag",
            self._bind(kafka.handle_consumer_status_complete),
        )

        self._add("GET", "/v3/config", self._bind(config_api.config_main))
        self._add("GET", "/v3/config/storage", self._bind(config_api.config_storage_list))
        self._add("GET", "/v3/config/storage/:name", self._bind(config_api.config_storage_detail))
        self._add("GET", "/v3/config/evaluator", self._bind(config_api.config_evaluator_list))
        self._add(
            "GET", "/v3/config/evaluator/:name", self._bind(config_api.config_evaluator_detail)
        )
        self._add("GET", "/v3/config/cluster", self._bind(config_api.config_cluster_list))
        self._add("GET", "/v3/config/cluster/:cluster", self._bind(kafka.handle_cluster_detail))
        self._add("GET", "/v3/config/consumer", self._bind(config_api.config_consumer_list))
        self._add(
            "GET", "/v3/config/consumer/:name", self._bind(config_api.config_consumer_detail)
        )
        self._add("GET", "/v3/config/notifier", self._bind(config_api.config_notifier_list))
        self._add(
            "GET", "/v3/config/notifier/:name", self._bind(config_api.config_notifier_detail)
        )

        self._add(
            "DELETE",
            "/v3/kafka/:cluster/consumer/:consumer",
            self._bind(kafka.handle_consumer_delete),
        )
        self._add(
            "DELETE",
            "/v3/kafka/:cluster/consumer/:consumer/topic/:topic",
            self._bind(kafka.handle_consumer_delete),
        )
        self._add("GET", "/v3/admin/loglevel", self.get_log_level)
        self._add("POST", "/v3/admin/loglevel", self.set_log_level)

    def _tls_context(self, tls_name: str) -> ssl.SSLContext:
        settings = self.settings
        certfile = settings.get_string(f"tls.{tls_name}.certfile")
        keyfile = settings.get_string(f"tls.{tls_name}.keyfile")
        cafile = settings.get_string(f"tls.{tls_name}.cafile")
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        if cafile:
            try:
                with open(cafile, encoding="utf-8", errors="replace") as handle:
                    ca_text = handle.read()
            except OSError as exc:
                raise ValueError(f"cannot read TLS CA file: {exc}") from exc
            try:
                context.load_verify_locations(cadata=ca_text)
            except (ssl.SSLError, ValueError):
                pass
        if not certfile or not keyfile:
            raise ValueError("TLS HTTP server specified with missing certificate or key")
        try:
            context.load_cert_chain(certfile, keyfile)
        except (ssl.SSLError, OSError) as exc:
            raise ValueError(f"cannot read TLS certificate or key file: {exc}") from exc
        return context

    def _bind(self, handler: Callable[..., Response]) -> Handler:
        return lambda request, params: handler(self.app, self.settings, request, params)

    def _add(self, method: str, pattern: str, handler: Handler) -> None:
        self._routes.append(_Route(method, tuple(pattern.split("/")), handler))

    def start(self) -> None:
        """Bind every listener and serve each in a background thread.

        If any listener cannot be bound, those already bound are closed and the error is raised.
        """
        if not self._listeners:
            raise RuntimeError("coordinator is not configured")
        self.log.info("starting")
        bound: dict[str, _Server] = {}
        for name, listener in self._listeners.items():
            host, port = _split_host_port(listener.address)
            family = socket.AF_INET6 if ":" in host else socket.AF_INET
            handler = _make_handler_class(self, listener.timeout)
            try:
                server = _Server(
                    (host, int(port)), handler, family, listener.timeout, listener.ssl_context
                )
            except OSError as exc:
                self.log.error("failed to listen on %s: %s", listener.address, exc)
                for other in bound.values():
                    try:
                        other.server_close()
                    except OSError as close_exc:
                        self.log.error("could not close listener: %s", close_exc)
                raise
            self.log.info("started listener %s", server.server_address)
            bound[name] = server

        for name, server in bound.items():
            thread = threading.Thread(
                target=server.serve_forever, name=f"httpserver-{name}", daemon=True
            )
            thread.start()
            self._servers[name] = (server, thread)

    def stop(self) -> None:
        """Close every running listener; raise RuntimeError if any failed to close."""
        self.log.info("shutdown")
        errors: list[Exception] = []
        for server, thread in self._servers.values():
            try:
                server.shutdown()
                server.server_close()
                thread.join()
            except Exception as exc:
                errors.append(exc)
        self._servers = {}
        if errors:
            self.log.error("errors shutting down: %s", errors)
            raise RuntimeError("error shutting down HTTP servers")

    def dispatch(self, request: Request) -> Response:
        """Route a request to its handler and return the response."""
        split = urlsplit(request.path)
        path = unquote(split.path) or "/"
        method = request.method.upper()
        parts = path.split("/")

        for route in self._routes:
            if route.method != method:
                continue
            params = route.match(parts)
            if params is not None:
                return route.handler(request, params)

        if method != "CONNECT" and path != "/":
            alternative = path[:-1] if path.endswith("/") else path + "/"
            alt_parts = alternative.split("/")
            if any(r.method == method and r.match(alt_parts) is not None for r in self._routes):
                location = alternative + (f"?{split.query}" if split.query else "")
                return Response(301 if method == "GET" else 307, b"", {"Location": location})

        allowed = sorted(
            {r.method for r in self._routes if r.method != method and r.match(parts) is not None}
        )
        if allowed:
            allow = ", ".join(allowed + ["OPTIONS"])
            if method == "OPTIONS":
                return Response(200, b"", {"Allow": allow})
            return Response(
                405,
                b"Method Not Allowed\n",
                {"Allow": allow, "Content-Type": TEXT_PLAIN, "X-Content-Type-Options": "nosniff"},
            )

        return Response(
            404,
            NOT_FOUND_BODY,
            {"Content-Type": TEXT_PLAIN, "X-Content-Type-Options": "nosniff"},
        )

    def _cors(self) -> dict[str, str]:
        origin = self.settings.get_string("general.access-control-allow-origin")
        return {"Access-Control-Allow-Origin": origin} if origin else {}

    def handle_admin(self, request: Request, params: Params) -> Response:
        """Health check: always GOOD."""
        headers = self._cors()
        headers["Content-Type"] = TEXT_PLAIN
        return Response(200, b"GOOD", headers)

    def handle_ready(self, request: Request, params: Params) -> Response:
        """Readiness check: READY once the application is ready, STARTING before."""
        headers = self._cors()
        headers["Content-Type"] = TEXT_PLAIN
        if self.app.app_ready:
            return Response(200, b"READY", headers)
        return Response(503, b"STARTING", headers)

    def get_log_level(self, request: Request, params: Params) -> Response:
        """Report the current log level."""
        return json_response(
            self.settings,
            200,
            {
                "error": False,
                "message": "log level returned",
                "level": _level_name(self.app.log_level),
                "request": make_request_info(request).to_dict(),
            },
        )

    def set_log_level(self, request: Request, params: Params) -> Response:
        """Change the log level from a JSON body of the form {"level": "..."}."""
        try:
            text = request.body.decode("utf-8", errors="replace").lstrip()
            document, _ = json.JSONDecoder().raw_decode(text)
        except ValueError:
            return self._bad_body(request)

        level_text: Any = ""
        if document is not None:
            if not isinstance(document, dict):
                return self._bad_body(request)
            if "level" in document:
                level_text = document["level"]
            else:
                level_text = next(
                    (v for k, v in document.items() if k.lower() == "level"), ""
                )
            if level_text is None:
                level_text = ""
            if not isinstance(level_text, str):
                return self._bad_body(request)

        level = _LEVELS_BY_NAME.get(level_text.lower())
        if level is None:
            return error_response(self.settings, request, 404, "unknown log level")
        self.app.log_level = level
        self.app.logger.setLevel(level)
        return json_response(
            self.settings,
            200,
            {
                "error": False,
                "message": "set log level",
                "request": make_request_info(request).to_dict(),
            },
        )

    def _bad_body(self, request: Request) -> Response:
        return error_response(self.settings, request, 400, "could not decode message body")