"""Tests for the deploy hook trigger."""

import httpx
import pytest

from lure_catalog.ingestion.deploy import trigger_deploy

HOOK_URL = "https://api.example.com/deploy/hook"


def responder(*statuses: int):
    calls: list[str] = []
    remaining = list(statuses)

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.method)
        return httpx.Response(remaining.pop(0))

    return handler, calls


class TestTriggerDeploy:
    """Tests for trigger_deploy."""

    @pytest.mark.asyncio
    async def test_success_first_try(self) -> None:
        handler, calls = responder(200)

        assert await trigger_deploy(HOOK_URL, transport=httpx.MockTransport(handler))
        assert calls == ["POST"]

    @pytest.mark.asyncio
    async def test_rate_limited_then_success(self) -> None:
        handler, calls = responder(429, 201)

        ok = await trigger_deploy(
            HOOK_URL, rate_limit_wait=0, retry_wait=0, transport=httpx.MockTransport(handler)
        )

        assert ok
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_attempts(self) -> None:
        handler, calls = responder(500, 500, 500)

        ok = await trigger_deploy(HOOK_URL, attempts=3, retry_wait=0, transport=httpx.MockTransport(handler))

        assert not ok
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_transport_error_is_not_raised(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        ok = await trigger_deploy(HOOK_URL, attempts=2, retry_wait=0, transport=httpx.MockTransport(handler))

        assert not ok
