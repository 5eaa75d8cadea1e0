import socket
import sys
from pathlib import Path
from typing import Callable, List

import httpx
import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from reddit_oauth.config import ClientCredentials, OAuthSettings


def get_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def free_port() -> int:
    return get_free_port()


@pytest.fixture
def credentials() -> ClientCredentials:
    return ClientCredentials(client_id="test-client", client_secret="test-secret")


@pytest.fixture
def settings(credentials: ClientCredentials, free_port: int) -> OAuthSettings:
    return OAuthSettings(
        credentials=credentials,
        redirect_uri=f"http://127.0.0.1:{free_port}",
        auth_time=5,
    )


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


@pytest.fixture
def make_transport() -> Callable[..., RecordingTransport]:
    return RecordingTransport


def send_redirect(port: int, target: str) -> httpx.Response:
    """Plays the browser's part: GET the redirect target on the local listener."""
    with httpx.Client(trust_env=False, timeout=5.0) as client:
        return client.get(f"http://127.0.0.1:{port}{target}")


@pytest.fixture
def browser_redirect() -> Callable[[int, str], httpx.Response]:
    return send_redirect
