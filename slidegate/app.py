"""FastAPI application for the slide-deck completion gateway.

Provides a single POST /api/story endpoint that turns raw text into
plain-text slides via an upstream completion API.

Request flow:
1. Validate payload (content present, byte size, model allowlist)
2. Resolve credential (caller BYOK key, else server key)
3. Admission: quota tiers global -> minute -> daily (counters incremented here)
4. Call upstream provider (failures are not refunded)
5. Return slide text with remaining-quota headers
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, Optional

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from slidegate.admission import AdmissionController, QuotaExceeded, rate_limit_headers
from slidegate.config import GatewayConfig, load_config_from_env
from slidegate.credentials import ConfigurationError, USER_KEY_HEADER, resolve_credential
from slidegate.gateway import InputError, generate, validate_story_request
from slidegate.identity import resolve_identity
from slidegate.models import ErrorResponse, StoryRequest, StoryResponse
from slidegate.provider import ProviderError, ProviderQuotaExhausted
from slidegate.quota import QuotaPolicy
from slidegate.store import GlobalDailyCounter, InMemoryCounterStore
from slidegate.telemetry import log_request, setup_logging

GENERIC_FAILURE = "Failed to generate story"
UPSTREAM_EXHAUSTED = "Free tier exhausted. Try later or use your own API key."
CALLER_KEY_REJECTED = "The supplied API key was rejected by the provider."

CORS_ALLOW_HEADERS = [
    "Accept",
    "Accept-Version",
    "Authorization",
    "Content-Length",
    "Content-MD5",
    "Content-Type",
    "Date",
    "X-Api-Version",
    "X-CSRF-Token",
    "X-Requested-With",
    USER_KEY_HEADER,
]

CORS_EXPOSE_HEADERS = [
    "Retry-After",
    "X-RateLimit-Limit-Minute",
    "X-RateLimit-Remaining-Minute",
    "X-RateLimit-Limit-Daily",
    "X-RateLimit-Remaining-Daily",
    "X-RateLimit-Limit-Global",
    "X-RateLimit-Remaining-Global",
]


def _error_response(
    status: int,
    message: str,
    tier: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body = ErrorResponse(error=message, tier=tier)
    return JSONResponse(
        status_code=status,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


def build_admission(
    config: GatewayConfig, clock: Optional[Callable[[], float]] = None
) -> AdmissionController:
    """Construct the quota stores, policy and admission controller."""
    policy = QuotaPolicy(
        config.quota,
        minute_store=InMemoryCounterStore(),
        daily_store=InMemoryCounterStore(),
        global_counter=GlobalDailyCounter(),
        clock=clock or time.time,
    )
    return AdmissionController(policy, byok_bypasses_quota=config.byok_bypasses_quota)


def create_app(
    config: Optional[GatewayConfig] = None,
    clock: Optional[Callable[[], float]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Create the gateway application.

    Args:
        config: Gateway configuration; loaded from the environment if omitted.
        clock: Time source for quota windows (epoch seconds).
        transport: Optional httpx transport for upstream calls (used by tests).
    """
    if config is None:
        config = load_config_from_env()

    @asynccontextmanager
    async def lifespan(application: FastAPI) -> AsyncIterator[None]:
        setup_logging(config.log_file)
        yield

    application = FastAPI(title="SlideGate", version="0.1.0", lifespan=lifespan)
    application.state.config = config
    application.state.admission = build_admission(config, clock)
    application.state.transport = transport

    # Registered before CORS so error responses still carry CORS headers.
    application.middleware("http")(_unhandled_errors)

    origins = config.cors_origins or ["*"]
    application.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["POST", "OPTIONS"],
        allow_headers=CORS_ALLOW_HEADERS,
        expose_headers=CORS_EXPOSE_HEADERS,
    )

    application.add_exception_handler(RequestValidationError, _validation_exception_handler)
    application.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    application.add_api_route("/api/story", story, methods=["POST"], response_model=None)
    application.add_api_route("/api/story", preflight, methods=["OPTIONS"])
    return application


async def preflight() -> Response:
    """Answer bare OPTIONS requests (CORS preflights are handled by the middleware)."""
    return Response(status_code=200)


async def story(
    request: Request, body: Optional[StoryRequest] = None
) -> JSONResponse:
    """Turn raw text into slide text, subject to admission control."""
    config: GatewayConfig = request.app.state.config
    admission_controller: AdmissionController = request.app.state.admission
    request_id = "sg-{}".format(uuid.uuid4().hex[:12])
    identity = _request_identity(request)
    body = body or StoryRequest()

    # --- Payload validation ---
    try:
        story_input = validate_story_request(body, config)
    except InputError as exc:
        log_request(
            identity=identity,
            model=body.model,
            outcome=exc.outcome,
            request_id=request_id,
            error=exc.detail,
        )
        return _error_response(exc.status_code, exc.detail)

    # --- Credential resolution ---
    try:
        credential = resolve_credential(
            request.headers, config.provider.api_key, config.provider.key_prefix
        )
    except ConfigurationError as exc:
        log_request(
            identity=identity,
            model=story_input.model,
            outcome="config_error",
            request_id=request_id,
            error=exc.detail,
        )
        return _error_response(500, exc.detail)

    # --- Admission ---
    try:
        admission = admission_controller.admit(identity, credential)
    except QuotaExceeded as exc:
        log_request(
            identity=identity,
            model=story_input.model,
            outcome="quota_denied",
            request_id=request_id,
            tier=exc.tier.value,
            credential_source=credential.source,
            error="{} limit reached ({}/{})".format(
                exc.tier.value, exc.decision.current_count, exc.decision.limit_value
            ),
        )
        return _error_response(
            429,
            exc.detail,
            tier=exc.tier.value,
            headers={"Retry-After": str(exc.retry_after)},
        )

    # --- Provider call ---
    try:
        result = await generate(
            story_input, credential, config, transport=request.app.state.transport
        )
    except ProviderQuotaExhausted as exc:
        log_request(
            identity=identity,
            model=story_input.model,
            outcome="upstream_exhausted",
            request_id=request_id,
            credential_source=credential.source,
            key_fingerprint=credential.fingerprint,
            error=exc.detail,
        )
        return _error_response(429, UPSTREAM_EXHAUSTED)
    except ProviderError as exc:
        if exc.status_code == 401 and credential.is_caller_supplied:
            log_request(
                identity=identity,
                model=story_input.model,
                outcome="upstream_rejected_key",
                request_id=request_id,
                credential_source=credential.source,
                key_fingerprint=credential.fingerprint,
                error=exc.detail,
            )
            return _error_response(401, CALLER_KEY_REJECTED)
        log_request(
            identity=identity,
            model=story_input.model,
            outcome="upstream_error",
            request_id=request_id,
            credential_source=credential.source,
            key_fingerprint=credential.fingerprint,
            error=exc.detail,
        )
        return _error_response(500, GENERIC_FAILURE)
    except Exception as exc:
        log_request(
            identity=identity,
            model=story_input.model,
            outcome="upstream_error",
            request_id=request_id,
            credential_source=credential.source,
            key_fingerprint=credential.fingerprint,
            error="{}: {}".format(type(exc).__name__, exc),
        )
        return _error_response(500, GENERIC_FAILURE)

    log_request(
        identity=identity,
        model=story_input.model,
        outcome="success",
        request_id=request_id,
        credential_source=credential.source,
        key_fingerprint=credential.fingerprint,
        usage=result.usage.model_dump(),
    )

    response = StoryResponse(content=result.content)
    return JSONResponse(
        status_code=200,
        content=response.model_dump(),
        headers=rate_limit_headers(admission.decision),
    )


def _request_identity(request: Request) -> str:
    return resolve_identity(
        request.headers, request.client.host if request.client else None
    )


def _describe_validation_errors(exc: RequestValidationError) -> str:
    """Summarize validation errors by location and message, never echoing input."""
    parts = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        msg = error.get("msg", "invalid value")
        parts.append("{}: {}".format(loc, msg) if loc else msg)
    return "; ".join(parts) or "invalid value"


async def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed JSON or mistyped fields as a 400."""
    message = "Invalid request body: {}".format(_describe_validation_errors(exc))
    log_request(
        identity=_request_identity(request),
        model=None,
        outcome="invalid_input",
        request_id="sg-{}".format(uuid.uuid4().hex[:12]),
        error=message,
    )
    return _error_response(400, message)


async def _http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Render framework HTTP errors (404, 405, ...) in the gateway's envelope."""
    message = "Method not allowed" if exc.status_code == 405 else str(exc.detail)
    log_request(
        identity=_request_identity(request),
        model=None,
        outcome="method_not_allowed" if exc.status_code == 405 else "http_error",
        request_id="sg-{}".format(uuid.uuid4().hex[:12]),
        error="{} {} -> {}".format(request.method, request.url.path, exc.status_code),
    )
    return _error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


async def _unhandled_errors(request: Request, call_next) -> Response:
    """Turn any uncaught exception into the JSON 500 envelope."""
    try:
        return await call_next(request)
    except Exception as exc:
        log_request(
            identity=_request_identity(request),
            model=None,
            outcome="internal_error",
            request_id="sg-{}".format(uuid.uuid4().hex[:12]),
            error="{}: {}".format(type(exc).__name__, exc),
        )
        return _error_response(500, GENERIC_FAILURE)


app = create_app()
