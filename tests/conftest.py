"""Shared test fixtures for the stageload test suite."""

from __future__ import annotations

import asyncio
import logging
import socket
import threading
from typing import TYPE_CHECKING

import pytest
from aiohttp import web

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


@pytest.fixture(autouse=True)
def _reset_stageload_logger() -> Iterator[None]:
    """Undo ``setup_logging`` so caplog sees records in every test."""
    yield
    logger = logging.getLogger("stageload")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# =============================================================================
# Target server handlers
# =============================================================================


async def _search_handler(request: web.Request) -> web.Response:
    """Echo the query back, optionally after ``?delay=<seconds>``."""
    delay = float(request.query.get("delay", "0"))
    if delay:
        await asyncio.sleep(delay)
    return web.json_response({"q": request.query.get("q", ""), "results": ["tech news"]})


async def _error_handler(request: web.Request) -> web.Response:
    """Return a configurable error status (``?status=500``)."""
    status = int(request.query.get("status", "500"))
    return web.json_response({"error": True}, status=status)


async def _hang_handler(request: web.Request) -> web.Response:
    """Respond only after 2 seconds, to exercise timeouts and cancellation."""
    await asyncio.sleep(2.0)
    return web.json_response({"status": "late"})


async def _headers_handler(request: web.Request) -> web.Response:
    return web.json_response(dict(request.headers))


def _create_target_app() -> web.Application:
    app = web.Application()
    app.router.add_get("/search", _search_handler)
    app.router.add_route("*", "/error", _error_handler)
    app.router.add_get("/hang", _hang_handler)
    app.router.add_get("/headers", _headers_handler)
    return app


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def target_server() -> AsyncIterator[str]:
    """Aiohttp target server on the test's event loop.

    Returns the base URL (e.g., 'http://127.0.0.1:54321').
    """
    runner = web.AppRunner(_create_target_app())
    await runner.setup()
    port = _get_free_port()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    yield f"http://127.0.0.1:{port}"
    await runner.cleanup()


@pytest.fixture
def sync_target_server() -> Iterator[str]:
    """Target server running in a background thread.

    For tests that call blocking entry points (``run_load_test``, the CLI)
    which start their own event loop on the main thread.
    """
    port = _get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(_create_target_app())
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield f"http://127.0.0.1:{port}"

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)


@pytest.fixture
def unreachable_url() -> str:
    """URL on a local port with nothing listening."""
    return f"http://127.0.0.1:{_get_free_port()}/search"
