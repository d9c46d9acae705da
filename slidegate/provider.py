"""Provider adapter for OpenAI-compatible chat completion APIs.

Upstream failures are surfaced, never retried. A provider-side quota
exhaustion is reported separately so callers can be told to wait or bring
their own key.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from slidegate.models import ChatMessage, UsageInfo

INSUFFICIENT_QUOTA = "insufficient_quota"


class ProviderError(Exception):
    """Raised when the provider call fails.

    status_code is None for transport-level failures (DNS, timeout, ...).
    """

    def __init__(self, status_code: Optional[int], detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(detail)


class ProviderQuotaExhausted(ProviderError):
    """Raised when the provider reports that the account's quota is used up."""


@dataclass
class ProviderResult:
    """Result returned by the provider adapter."""

    content: str
    usage: UsageInfo
    provider_request_id: Optional[str] = None


def _error_code(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return ""
    if not isinstance(data, dict):
        return ""
    error = data.get("error")
    if isinstance(error, dict):
        return str(error.get("code") or error.get("type") or "")
    return ""


def _raise_for_provider_status(resp: httpx.Response) -> None:
    if resp.is_success:
        return

    code = _error_code(resp)
    if code == INSUFFICIENT_QUOTA or INSUFFICIENT_QUOTA in resp.text:
        raise ProviderQuotaExhausted(
            resp.status_code, "Provider quota exhausted ({})".format(INSUFFICIENT_QUOTA)
        )

    raise ProviderError(
        resp.status_code,
        "Provider returned HTTP {}{}".format(
            resp.status_code, " ({})".format(code) if code else ""
        ),
    )


async def call_provider(
    *,
    base_url: str,
    api_key: str,
    model: str,
    messages: List[ChatMessage],
    max_completion_tokens: int,
    temperature: float,
    timeout: float = 60.0,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> ProviderResult:
    """Forward a chat completion request to an OpenAI-compatible endpoint.

    Args:
        base_url: API root, e.g. "https://api.openai.com/v1".
        api_key: Bearer credential for the call.
        model: The concrete model identifier to request.
        messages: The conversation messages to send.
        max_completion_tokens: Upper bound on generated tokens.
        temperature: Sampling temperature.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (used by tests).

    Returns:
        A ProviderResult with the assistant content and usage info.

    Raises:
        ProviderQuotaExhausted: If the provider reports insufficient quota.
        ProviderError: For any other non-2xx response or transport failure.
    """
    url = "{}/chat/completions".format(base_url.rstrip("/"))
    headers = {
        "Authorization": "Bearer {}".format(api_key),
        "Content-Type": "application/json",
    }
    payload: Dict[str, Any] = {
        "model": model,
        "messages": [{"role": m.role, "content": m.content} for m in messages],
        "temperature": temperature,
        "max_completion_tokens": max_completion_tokens,
    }

    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            resp = await client.post(url, json=payload, headers=headers)
    except httpx.HTTPError as exc:
        raise ProviderError(None, "Failed to reach provider: {}".format(exc)) from exc

    _raise_for_provider_status(resp)

    try:
        data = resp.json()
    except ValueError as exc:
        raise ProviderError(resp.status_code, "Provider returned invalid JSON") from exc

    choices = data.get("choices") or [{}]
    msg = choices[0].get("message") or {}
    usage_raw = data.get("usage") or {}

    return ProviderResult(
        content=(msg.get("content") or "").strip(),
        usage=UsageInfo(
            prompt_tokens=usage_raw.get("prompt_tokens", 0),
            completion_tokens=usage_raw.get("completion_tokens", 0),
            total_tokens=usage_raw.get("total_tokens", 0),
        ),
        provider_request_id=data.get("id"),
    )
