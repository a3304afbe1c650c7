"""Integration tests for the request executor against a local server."""

from __future__ import annotations

import pytest

from stageload._internal.errors import SetupError
from stageload.engine.executor import RequestExecutor, RequestResult, RequestSpec


class TestRequestResult:
    def test_ok_reflects_error(self):
        assert RequestResult(status=500, duration_ms=1.0).ok is True
        assert RequestResult(status=None, duration_ms=1.0, error="boom").ok is False

    def test_from_exception(self):
        result = RequestResult.from_exception(ConnectionRefusedError("refused"), 2.0)
        assert result.status is None
        assert result.error == "ConnectionRefusedError: refused"
        assert result.duration_ms == 2.0

    def test_from_exception_without_message(self):
        assert RequestResult.from_exception(TimeoutError(), 1.0).error == "TimeoutError"


class TestRequestExecutor:
    async def test_captures_status_body_and_duration(self, target_server: str):
        async with RequestExecutor() as executor:
            result = await executor.execute(
                RequestSpec(url=f"{target_server}/search", query={"q": "tech"})
            )
        assert result.ok
        assert result.status == 200
        assert b'"q": "tech"' in result.body
        assert result.duration_ms > 0

    async def test_string_query(self, target_server: str):
        async with RequestExecutor() as executor:
            result = await executor.execute(
                RequestSpec(url=f"{target_server}/search", query="q=tech")
            )
        assert b'"q": "tech"' in result.body

    async def test_measures_server_delay(self, target_server: str):
        async with RequestExecutor() as executor:
            result = await executor.execute(
                RequestSpec(url=f"{target_server}/search", query={"delay": "0.1"})
            )
        assert result.duration_ms >= 95.0

    async def test_http_error_is_a_normal_result(self, target_server: str):
        async with RequestExecutor() as executor:
            result = await executor.execute(RequestSpec(url=f"{target_server}/error"))
        assert result.ok
        assert result.status == 500
        assert result.error is None

    async def test_method_and_headers(self, target_server: str):
        async with RequestExecutor(headers={"X-Run": "abc"}) as executor:
            result = await executor.execute(
                RequestSpec(url=f"{target_server}/error", method="POST", query={"status": "418"})
            )
            echoed = await executor.execute(
                RequestSpec(url=f"{target_server}/headers", headers={"X-Extra": "1"})
            )
        assert result.status == 418
        assert b'"X-Run": "abc"' in echoed.body
        assert b'"X-Extra": "1"' in echoed.body

    async def test_connection_refused_is_network_error(self, unreachable_url: str):
        async with RequestExecutor() as executor:
            result = await executor.execute(RequestSpec(url=unreachable_url))
        assert not result.ok
        assert result.status is None
        assert result.error is not None

    async def test_timeout_is_network_error(self, target_server: str):
        async with RequestExecutor(timeout=0.2) as executor:
            result = await executor.execute(RequestSpec(url=f"{target_server}/hang"))
        assert result.status is None
        assert result.error is not None
        assert "Timeout" in result.error
        assert result.duration_ms < 1500

    async def test_requires_context_manager(self):
        executor = RequestExecutor()
        with pytest.raises(RuntimeError, match="async context manager"):
            await executor.execute(RequestSpec(url="http://127.0.0.1/"))


class TestProbe:
    async def test_reachable_target(self, target_server: str):
        async with RequestExecutor() as executor:
            result = await executor.probe(RequestSpec(url=f"{target_server}/search"))
        assert result.status == 200

    async def test_error_status_still_counts_as_reachable(self, target_server: str):
        async with RequestExecutor() as executor:
            result = await executor.probe(RequestSpec(url=f"{target_server}/error"))
        assert result.status == 500

    async def test_unreachable_target_raises(self, unreachable_url: str):
        async with RequestExecutor() as executor:
            with pytest.raises(SetupError, match="unreachable"):
                await executor.probe(RequestSpec(url=unreachable_url))
