"""A small token protected HTTP API that triggers update scans."""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional, Union
from urllib.parse import parse_qs, urlsplit

log = logging.getLogger(__name__)

TOKEN_MISSING_MESSAGE = "api token is empty or has not been set. exiting"
DEFAULT_PORT = 8080
UPDATE_PATH = "/v1/update"


class ApiError(Exception):
    """The HTTP API cannot be started."""


@dataclass
class Request:
    """An incoming API request."""

    path: str = "/"
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    query: dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> str:
        """The value of a header, matched case-insensitively, or an empty string."""
        wanted = name.lower()
        return next((value for key, value in self.headers.items() if key.lower() == wanted), "")


@dataclass
class Response:
    """The answer to an API request."""

    status: int = HTTPStatus.OK
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)


Handler = Callable[[Request], Optional[Response]]


class API:
    """The HTTP server that serves the registered endpoints behind a bearer token."""

    def __init__(self, token: str, host: str = "", port: int = DEFAULT_PORT) -> None:
        self.token = token
        self.host = host
        self.port = port
        self._routes: dict[str, Handler] = {}
        self._server: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def has_handlers(self) -> bool:
        """Whether any endpoint has been registered."""
        return bool(self._routes)

    @property
    def address(self) -> tuple[str, int] | None:
        """The address the running server listens on, if it is running."""
        if self._server is None:
            return None
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    def require_token(self, handler: Handler) -> Handler:
        """Wrap a handler so that it only runs for requests with the right token."""

        def guarded(request: Request) -> Response | None:
            if request.header("Authorization") != f"Bearer {self.token}":
                return Response(HTTPStatus.UNAUTHORIZED)
            log.debug("Valid token found.")
            return handler(request)

        return guarded

    def register_func(self, path: str, handler: Handler) -> None:
        """Serve ``handler`` at ``path``, behind the token check."""
        self._routes[path] = self.require_token(handler)

    def _route(self, path: str) -> Handler | None:
        handler = self._routes.get(path)
        if handler is not None:
            return handler
        subtrees = [pattern for pattern in self._routes if pattern.endswith("/") and path.startswith(pattern)]
        if subtrees:
            return self._routes[max(subtrees, key=len)]
        return None

    def dispatch(self, request: Request) -> Response:
        """Route a request to its handler and return the response."""
        handler = self._route(request.path)
        if handler is None:
            return Response(HTTPStatus.NOT_FOUND, b"404 page not found\n")
        return handler(request) or Response()

    def start(self, block: bool) -> ThreadingHTTPServer | None:
        """Start serving; returns None when nothing is registered.

        With ``block`` the call serves until the server is stopped from
        another thread; otherwise it serves in a background thread.
        """
        if not self._routes:
            log.debug("Watchtower HTTP API skipped.")
            return None
        if not self.token:
            raise ApiError(TOKEN_MISSING_MESSAGE)
        try:
            server = ThreadingHTTPServer((self.host, self.port), _request_handler(self))
        except OSError as error:
            raise ApiError(f"failed to start API: {error}") from error
        self._server = server

        if block:
            try:
                server.serve_forever()
            finally:
                server.server_close()
            return server

        self._thread = threading.Thread(target=server.serve_forever, name="http-api", daemon=True)
        self._thread.start()
        return server

    def stop(self) -> None:
        """Stop a running server."""
        server, self._server = self._server, None
        if server is None:
            return
        server.shutdown()
        server.server_close()
        if self._thread is not None:
            self._thread.join()
            self._thread = None


def _request_handler(api: API) -> type[BaseHTTPRequestHandler]:
    class _Handler(BaseHTTPRequestHandler):
        def _serve(self) -> None:
            parts = urlsplit(self.path)
            try:
                length = int(self.headers.get("Content-Length") or 0)
            except ValueError:
                length = 0
            body = self.rfile.read(length) if length > 0 else b""
            request = Request(
                path=parts.path or "/",
                method=self.command,
                headers=dict(self.headers.items()),
                query=parse_qs(parts.query, keep_blank_values=True),
                body=body,
            )
            try:
                response = api.dispatch(request)
            except Exception:
                log.exception("API handler failed")
                response = Response(HTTPStatus.INTERNAL_SERVER_ERROR)

            self.send_response(int(response.status))
            for key, value in response.headers.items():
                self.send_header(key, value)
            self.send_header("Content-Length", str(len(response.body)))
            self.end_headers()
            if response.body and self.command != "HEAD":
                self.wfile.write(response.body)

        do_GET = do_POST = do_PUT = do_PATCH = do_DELETE = do_HEAD = _serve

        def log_message(self, format: str, *args: object) -> None:
            log.debug("%s - %s", self.address_string(), format % args)

    return _Handler


UpdateFunction = Callable[[Union[list[str], None]], None]


class UpdateHandler:
    """Triggers an update scan, optionally limited to some images.

    Requests naming images wait for a running update to finish; others
    are skipped while an update is running.
    """

    def __init__(self, update_fn: UpdateFunction, update_lock: threading.Lock | None = None) -> None:
        self.path = UPDATE_PATH
        self._update = update_fn
        self.lock = update_lock if update_lock is not None else threading.Lock()

    @staticmethod
    def _images(query: Mapping[str, list[str]]) -> list[str] | None:
        queries = query.get("image")
        if queries is None:
            return None
        return [image for entry in queries for image in entry.split(",")]

    def handle(self, request: Request) -> Response:
        """Run the update function for the request."""
        log.info("Updates triggered by HTTP API request.")

        if request.body:
            try:
                sys.stdout.write(request.body.decode("utf-8", errors="replace"))
                sys.stdout.flush()
            except OSError as error:
                log.error("%s", error)
                return Response()

        images = self._images(request.query)
        if images:
            with self.lock:
                self._update(images)
        elif self.lock.acquire(blocking=False):
            try:
                self._update(images)
            finally:
                self.lock.release()
        else:
            log.debug("Skipped. Another update already running.")
        return Response()