"""Tests for the upstream provider adapter."""

import httpx
import pytest

from slidegate.models import ChatMessage
from slidegate.provider import ProviderError, ProviderQuotaExhausted, call_provider

MESSAGES = [ChatMessage(role="user", content="hi")]


async def _call(handler) -> object:
    return await call_provider(
        base_url="https://api.example.com/v1",
        api_key="sk-test",
        model="gpt-4o-mini",
        messages=MESSAGES,
        max_completion_tokens=100,
        temperature=0.5,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_success_parses_content_and_usage() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "id": "chatcmpl-1",
                "choices": [{"message": {"role": "assistant", "content": "Slides"}}],
                "usage": {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4},
            },
        )

    result = await _call(handler)

    assert result.content == "Slides"
    assert result.usage.total_tokens == 4
    assert result.provider_request_id == "chatcmpl-1"


@pytest.mark.asyncio
async def test_empty_choices_yield_empty_content() -> None:
    result = await _call(lambda request: httpx.Response(200, json={"choices": []}))
    assert result.content == ""


@pytest.mark.asyncio
async def test_null_content_yields_empty_string() -> None:
    result = await _call(
        lambda request: httpx.Response(
            200, json={"choices": [{"message": {"content": None}}]}
        )
    )
    assert result.content == ""


@pytest.mark.asyncio
async def test_insufficient_quota_is_distinct() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            429,
            json={"error": {"code": "insufficient_quota", "message": "You exceeded"}},
        )

    with pytest.raises(ProviderQuotaExhausted) as excinfo:
        await _call(handler)

    assert excinfo.value.status_code == 429


@pytest.mark.asyncio
async def test_plain_rate_limit_is_generic_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"code": "rate_limit_exceeded"}})

    with pytest.raises(ProviderError) as excinfo:
        await _call(handler)

    assert not isinstance(excinfo.value, ProviderQuotaExhausted)
    assert "rate_limit_exceeded" in excinfo.value.detail


@pytest.mark.asyncio
async def test_server_error_raises_provider_error() -> None:
    with pytest.raises(ProviderError) as excinfo:
        await _call(lambda request: httpx.Response(500, text="boom"))

    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_transport_failure_has_no_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderError) as excinfo:
        await _call(handler)

    assert excinfo.value.status_code is None
    assert "Failed to reach provider" in excinfo.value.detail
