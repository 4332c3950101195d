"""Shared test fixtures for the RampForge test suite."""

from __future__ import annotations

import asyncio
import json
import logging
import socket
import threading
from typing import TYPE_CHECKING

import pytest
from aiohttp import web

from rampforge._internal.config import RunConfig, Thresholds
from rampforge.dsl.endpoints import AuthFlow, EndpointSpec

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator
    from pathlib import Path

TEST_TOKEN = "test-token-12345"


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests unit, integration or e2e from the directory they live in."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


@pytest.fixture(autouse=True)
def _reset_rampforge_logger() -> Iterator[None]:
    """Drop handlers installed by setup_logging so each test starts clean."""
    yield
    logger = logging.getLogger("rampforge")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Return a TCP port that is free right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# =============================================================================
# Target service handlers
# =============================================================================


async def _echo_handler(request: web.Request) -> web.Response:
    """Return the method, path, query, headers and body it received."""
    body = await request.read()
    return web.json_response(
        {
            "method": request.method,
            "path": str(request.path),
            "query": dict(request.query),
            "headers": dict(request.headers),
            "body": body.decode("utf-8", errors="replace"),
        },
        status=200,
    )


async def _delay_handler(request: web.Request) -> web.Response:
    """Sleep for ``?delay=`` seconds before answering; used to force timeouts."""
    delay = float(request.query.get("delay", "0.1"))
    await asyncio.sleep(delay)
    return web.json_response({"delayed_by": delay})


async def _error_handler(request: web.Request) -> web.Response:
    """Answer with the status given in ``?status=``."""
    status = int(request.query.get("status", "500"))
    return web.json_response({"error": True}, status=status)


async def _health_handler(request: web.Request) -> web.Response:
    """Cheap liveness route, the heaviest-weighted default endpoint."""
    return web.json_response({"status": "ok"})


async def _docs_handler(request: web.Request) -> web.Response:
    """Stand-in for an API documentation page."""
    return web.Response(text="<html><body>API docs</body></html>", content_type="text/html")


async def _register_handler(request: web.Request) -> web.Response:
    """Accept any JSON registration payload."""
    payload = await request.json()
    return web.json_response({"id": 1, "email": payload.get("email")}, status=201)


async def _login_handler(request: web.Request) -> web.Response:
    """Login that returns the test token under ``token``."""
    return web.json_response({"token": TEST_TOKEN})


async def _login_access_token_handler(request: web.Request) -> web.Response:
    """Login variant that names the token ``accessToken``."""
    return web.json_response({"accessToken": TEST_TOKEN})


async def _login_no_token_handler(request: web.Request) -> web.Response:
    """Login variant whose response carries no token."""
    return web.json_response({"ok": True})


async def _me_handler(request: web.Request) -> web.Response:
    """Protected endpoint: 401 unless the test bearer token is sent."""
    if request.headers.get("Authorization") != f"Bearer {TEST_TOKEN}":
        return web.json_response({"error": "unauthorized"}, status=401)
    return web.json_response({"user": "test"})


def _create_target_app() -> web.Application:
    """Build the target app with all test routes."""
    app = web.Application()
    app.router.add_route("*", "/echo{path:.*}", _echo_handler)
    app.router.add_get("/delay", _delay_handler)
    app.router.add_route("*", "/error", _error_handler)
    app.router.add_get("/health", _health_handler)
    app.router.add_get("/api/docs", _docs_handler)
    app.router.add_post("/api/auth/register", _register_handler)
    app.router.add_post("/api/auth/login", _login_handler)
    app.router.add_post("/api/auth/login-access-token", _login_access_token_handler)
    app.router.add_post("/api/auth/login-no-token", _login_no_token_handler)
    app.router.add_get("/api/me", _me_handler)
    return app


# =============================================================================
# Fixtures
# =============================================================================


async def _start_target(port: int) -> web.AppRunner:
    """Serve the target app on 127.0.0.1:*port* in the running loop."""
    runner = web.AppRunner(_create_target_app())
    await runner.setup()
    await web.TCPSite(runner, "127.0.0.1", port).start()
    return runner


@pytest.fixture
async def target_server() -> AsyncIterator[str]:
    """In-loop target server; yields its base URL, e.g. 'http://127.0.0.1:54321'."""
    port = _get_free_port()
    runner = await _start_target(port)
    yield f"http://127.0.0.1:{port}"
    await runner.cleanup()


@pytest.fixture
def closed_port_url() -> str:
    """Base URL of a port nothing is listening on."""
    return f"http://127.0.0.1:{_get_free_port()}"


@pytest.fixture
def threaded_target() -> Iterator[str]:
    """Target server running in a background thread for sync tests.

    Used by tests that call the blocking runner or the CLI, which own the
    main thread's event loop.
    """
    port = _get_free_port()
    loop = asyncio.new_event_loop()
    ready = threading.Event()

    def _serve() -> None:
        asyncio.set_event_loop(loop)
        runner = loop.run_until_complete(_start_target(port))
        ready.set()
        try:
            loop.run_forever()
        finally:
            loop.run_until_complete(runner.cleanup())
            loop.close()

    server_thread = threading.Thread(target=_serve, name="target-server", daemon=True)
    server_thread.start()
    if not ready.wait(timeout=5.0):
        pytest.fail("target server did not start")

    yield f"http://127.0.0.1:{port}"

    loop.call_soon_threadsafe(loop.stop)
    server_thread.join(timeout=5.0)


# =============================================================================
# Configuration helpers
# =============================================================================


@pytest.fixture
def fast_config() -> Callable[..., RunConfig]:
    """Factory for short, lenient RunConfigs pointed at a test server."""

    def _make(base_url: str, **kwargs: object) -> RunConfig:
        values: dict[str, object] = {
            "base_url": base_url,
            "concurrency": 2,
            "duration_seconds": 0.5,
            "ramp_up_seconds": 0.0,
            "request_timeout_ms": 2000,
            "endpoints": (EndpointSpec(path="/health"),),
            "think_time_ms": (0.0, 10.0),
            "thresholds": Thresholds(max_error_rate_percent=1.0, max_p95_ms=1000.0, min_rps=1.0),
            "seed": 7,
        }
        values.update(kwargs)
        return RunConfig(**values)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def login_flow() -> AuthFlow:
    """Auth flow using the test server's register and login routes."""
    return AuthFlow(
        register=EndpointSpec(
            path="/api/auth/register",
            method="POST",
            name="register",
            body={"email": "user$user_tag@loadtest.com", "password": "pw"},
        ),
        login=EndpointSpec(
            path="/api/auth/login",
            method="POST",
            name="login",
            body={"email": "user$user_tag@loadtest.com", "password": "pw"},
        ),
    )


@pytest.fixture
def endpoints_file(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing an endpoint table JSON file and returning its path."""

    def _write(document: object, name: str = "endpoints.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(document))
        return path

    return _write
