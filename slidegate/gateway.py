"""Completion gateway: payload validation and the upstream generate call.

Validation is cheap and runs before admission, so a malformed or oversized
request never costs the caller any quota.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from slidegate.config import GatewayConfig
from slidegate.credentials import Credential
from slidegate.models import StoryRequest
from slidegate.prompts import build_messages
from slidegate.provider import ProviderResult, call_provider


class InputError(Exception):
    """Raised for caller-caused payload problems."""

    status_code = 400
    outcome = "invalid_input"

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class MissingContentError(InputError):
    """The raw text is missing or blank."""


class PayloadTooLargeError(InputError):
    """The raw text exceeds the configured byte limit."""

    status_code = 413
    outcome = "payload_too_large"


class InvalidEncodingError(InputError):
    """The raw text cannot be encoded as UTF-8 (e.g. lone surrogates)."""

    outcome = "invalid_encoding"


class ModelNotAllowedError(InputError):
    """The requested model is not on the allowlist."""

    outcome = "model_not_allowed"


@dataclass(frozen=True)
class StoryInput:
    """A validated story request."""

    raw: str
    tone: str
    length: str
    model: str


def validate_story_request(body: StoryRequest, config: GatewayConfig) -> StoryInput:
    """Validate an incoming story request.

    Raises:
        MissingContentError: If ``raw`` is missing or blank.
        InvalidEncodingError: If ``raw`` contains unpaired surrogates.
        PayloadTooLargeError: If ``raw`` is larger than max_raw_bytes (UTF-8).
        ModelNotAllowedError: If the model is not in allowed_models.
    """
    raw = body.raw
    if not isinstance(raw, str) or not raw.strip():
        raise MissingContentError("Missing raw content")

    try:
        size = len(raw.encode("utf-8"))
    except UnicodeEncodeError:
        raise InvalidEncodingError("Raw content is not valid UTF-8 text") from None

    if size > config.max_raw_bytes:
        raise PayloadTooLargeError(
            "Input too large ({} bytes, max {} bytes)".format(size, config.max_raw_bytes)
        )

    model = body.model or config.default_model
    if model not in config.allowed_models:
        raise ModelNotAllowedError("Model '{}' is not allowed.".format(model))

    return StoryInput(raw=raw, tone=body.tone, length=body.length, model=model)


async def generate(
    story: StoryInput,
    credential: Credential,
    config: GatewayConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProviderResult:
    """Call the upstream provider for a validated, admitted story request."""
    provider = config.provider
    return await call_provider(
        base_url=provider.base_url,
        api_key=credential.api_key,
        model=story.model,
        messages=build_messages(story.raw, story.tone, story.length),
        max_completion_tokens=provider.max_completion_tokens,
        temperature=provider.temperature,
        timeout=provider.timeout_seconds,
        transport=transport,
    )
