# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/reddit_oauth/callback_server.py
"""
Local redirect listener for the authorization-code flow.

A CallbackListener (HTTP server thread) and a TimeoutGuard (timer thread) both
feed one queue; CallbackRace hands the first result to the caller and shuts
the loser down.
"""

import html
import logging
import queue
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Dict, Optional
from urllib.parse import parse_qs

from .config import DEFAULT_AUTH_TIME_SECONDS
from .errors import CallbackProtocolError
from .models import (
    CallbackProtocolFailure,
    CallbackResult,
    CallbackSuccess,
    CallbackTimeout,
)

lib_logger = logging.getLogger("reddit_oauth")

TIMEOUT_MESSAGE = "Reached timeout; user did not authorize in time."
CLOSED_MESSAGE = "Callback listener was closed before a result arrived."

# Seconds a single browser connection may stay idle before it is dropped
REQUEST_SOCKET_TIMEOUT = 5


def parse_callback_query(
    request_path: str, expected_path: str = "/"
) -> Optional[CallbackResult]:
    """
    Interpret one redirect request.

    The query string is read as a key/value map, so parameter order and extra
    parameters do not matter.

    Returns:
        CallbackProtocolFailure if the provider sent an ``error`` parameter,
        CallbackSuccess if both ``code`` and ``state`` are present,
        None if the request should be ignored (no query string, another path,
        or neither shape matches).
    """
    path, separator, query = request_path.partition("?")
    if not separator or not query:
        return None
    if path.rstrip("/") != expected_path.rstrip("/"):
        return None

    params: Dict[str, str] = {
        key: values[0]
        for key, values in parse_qs(query, keep_blank_values=True).items()
    }

    if "error" in params:
        error = params["error"] or "unknown_error"
        message = f"Provider returned error: {error}"
        description = params.get("error_description")
        if description:
            message += f" ({description})"
        return CallbackProtocolFailure(message=message, error_code=error)

    code = params.get("code")
    if code and "state" in params:
        return CallbackSuccess(code=code, state=params["state"])

    return None


def _render_page(title: str, body: str, color: str) -> bytes:
    return (
        "<html><head><title>{title}</title></head>"
        "<body style='font-family: Arial, sans-serif; text-align: center; padding: 50px;'>"
        "<h1 style='color: {color};'>{title}</h1>"
        "<p>{body}</p>"
        "</body></html>"
    ).format(title=html.escape(title), body=html.escape(body), color=color).encode("utf-8")


class _CallbackHTTPServer(HTTPServer):
    """HTTPServer that forwards at most one decisive result."""

    def __init__(self, address, expected_path: str, results: "queue.Queue[CallbackResult]"):
        super().__init__(address, CallbackHandler)
        self.expected_path = expected_path
        self.results = results
        self._decided = False
        self._decided_lock = threading.Lock()

    def offer(self, result: CallbackResult) -> bool:
        """Forward ``result`` unless one was already forwarded for this attempt."""
        with self._decided_lock:
            if self._decided:
                return False
            self._decided = True
        self.results.put(result)
        return True


class CallbackHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the OAuth redirect."""

    server: _CallbackHTTPServer
    timeout = REQUEST_SOCKET_TIMEOUT

    def log_message(self, format, *args):
        """Route default HTTP logging to the library logger."""
        lib_logger.debug("Callback listener: " + format % args)

    def do_GET(self):
        result = parse_callback_query(self.path, self.server.expected_path)

        if result is None:
            lib_logger.debug("Ignoring callback request without code/state")
            self._send_page(
                400,
                "Waiting for Authorization",
                "This request did not carry an authorization response and was ignored.",
                "#ff4500",
            )
            return

        if not self.server.offer(result):
            self._send_page(
                409,
                "Already Handled",
                "This authorization attempt has already been completed.",
                "#888888",
            )
            return

        if isinstance(result, CallbackSuccess):
            self._send_page(
                200,
                "Authentication Successful!",
                "You can close this window and return to the application.",
                "#10a37f",
            )
        else:
            self._send_page(400, "Authentication Failed", result.message, "#d93025")

    def _send_page(self, status: int, title: str, body: str, color: str):
        payload = _render_page(title, body, color)
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)


class CallbackListener:
    """
    Ephemeral HTTP responder bound to the redirect URI's host:port.

    The socket is bound in ``start()`` so a busy port fails the attempt
    before the browser is opened.
    """

    def __init__(
        self,
        host: str,
        port: int,
        path: str,
        results: "queue.Queue[CallbackResult]",
    ):
        self.host = host
        self.port = port
        self.path = path
        self._results = results
        self._server: Optional[_CallbackHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def bound_port(self) -> int:
        """Actual port, useful when listening on port 0."""
        if self._server is None:
            return self.port
        return self._server.server_address[1]

    def start(self) -> None:
        try:
            self._server = _CallbackHTTPServer(
                (self.host, self.port), self.path, self._results
            )
        except OSError as e:
            lib_logger.error(f"OAuth callback listener could not bind {self.host}:{self.port}: {e}")
            raise CallbackProtocolError(
                f"Could not listen on {self.host}:{self.port} for the OAuth callback: {e}"
            )

        self._thread = threading.Thread(
            target=self._server.serve_forever,
            kwargs={"poll_interval": 0.2},
            name="oauth-callback-listener",
            daemon=True,
        )
        self._thread.start()
        lib_logger.debug(
            f"OAuth callback listener started on {self.host}:{self.bound_port}{self.path}"
        )

    def close(self) -> None:
        """Stop serving and release the socket. Safe to call more than once."""
        server, self._server = self._server, None
        if server is None:
            return
        server.shutdown()
        server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=REQUEST_SOCKET_TIMEOUT)
            self._thread = None
        lib_logger.debug("OAuth callback listener stopped")


class TimeoutGuard:
    """Delivers a CallbackTimeout after ``auth_time`` seconds unless cancelled."""

    def __init__(self, auth_time: float, results: "queue.Queue[CallbackResult]"):
        self.auth_time = auth_time
        self._results = results
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._run, name="oauth-timeout-guard", daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        if self._cancelled.wait(self.auth_time):
            return
        lib_logger.debug("Timeout during authentication")
        self._results.put(CallbackTimeout(message=TIMEOUT_MESSAGE))

    def cancel(self) -> None:
        self._cancelled.set()


class CallbackRace:
    """
    Races a CallbackListener against a TimeoutGuard.

    Usage:
        with CallbackRace("localhost", 8080, "/", auth_time=120) as race:
            open_browser(url)
            result = race.wait()
    """

    def __init__(
        self,
        host: str,
        port: int,
        path: str = "/",
        auth_time: float = DEFAULT_AUTH_TIME_SECONDS,
    ):
        self._results: "queue.Queue[CallbackResult]" = queue.Queue()
        self.listener = CallbackListener(host, port, path, self._results)
        self.guard = TimeoutGuard(auth_time, self._results)

    def start(self) -> None:
        self.listener.start()
        self.guard.start()

    def wait(self) -> CallbackResult:
        """Blocks until the listener or the guard produces a result."""
        return self._results.get()

    def close(self) -> None:
        self.guard.cancel()
        self.listener.close()
        # Release a waiter left behind by a cancelled caller
        self._results.put(CallbackProtocolFailure(message=CLOSED_MESSAGE))

    def __enter__(self) -> "CallbackRace":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def wait_for_callback(
    host: str,
    port: int,
    path: str = "/",
    auth_time: float = DEFAULT_AUTH_TIME_SECONDS,
) -> CallbackResult:
    """Listen for one redirect on host:port and return the first result."""
    with CallbackRace(host, port, path, auth_time) as race:
        return race.wait()
