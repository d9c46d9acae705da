"""Logging and telemetry for the slide-deck gateway.

Emits one structured JSON line per request outcome to stdout and to an
append-only log file. Raw API keys and raw user text are never logged.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger("slidegate")


def _has_console_handler() -> bool:
    # FileHandler subclasses StreamHandler, so match the exact type.
    return any(type(h) is logging.StreamHandler for h in logger.handlers)


def _has_file_handler(path: str) -> bool:
    return any(
        isinstance(h, logging.FileHandler) and h.baseFilename == path
        for h in logger.handlers
    )


def setup_logging(log_file: Optional[str], level: int = logging.INFO) -> logging.Logger:
    """Attach the console handler and, if configured, the JSON-lines log file.

    Records are already JSON, so the file gets the bare message per line
    while the console prefixes the level. Calling this again (one call per
    app lifespan) never duplicates a handler for the same destination.

    Args:
        log_file: Path to the append-only log file (None for console only).
        level: Minimum level emitted by the gateway logger.
    """
    logger.setLevel(level)

    if not _has_console_handler():
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        logger.addHandler(console)

    if log_file:
        path = os.path.abspath(log_file)
        if not _has_file_handler(path):
            os.makedirs(os.path.dirname(path), exist_ok=True)
            file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
            file_handler.setFormatter(logging.Formatter("%(message)s"))
            logger.addHandler(file_handler)

    return logger


def log_request(
    *,
    identity: str,
    model: Optional[str],
    outcome: str,
    request_id: str,
    tier: Optional[str] = None,
    credential_source: Optional[str] = None,
    key_fingerprint: Optional[str] = None,
    usage: Optional[Dict[str, Any]] = None,
    error: Optional[str] = None
) -> None:
    """Log a single request outcome as a JSON line.

    Args:
        identity: Caller identity used for quota accounting.
        model: Requested model (None if validation failed before it was known).
        outcome: Short outcome label (e.g. "success", "quota_denied").
        request_id: Gateway-assigned request ID.
        tier: Quota tier that denied the request, if any.
        credential_source: "caller" or "server".
        key_fingerprint: Short hash of the credential used.
        usage: Token usage dict if available.
        error: Error message if the request failed.
    """
    record: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id,
        "identity": identity,
        "model": model,
        "outcome": outcome,
    }

    if tier:
        record["tier"] = tier
    if credential_source:
        record["credential_source"] = credential_source
    if key_fingerprint:
        record["key_fingerprint"] = key_fingerprint
    if usage:
        record["usage"] = usage

    if error:
        record["error"] = error
        logger.warning(json.dumps(record))
    else:
        logger.info(json.dumps(record))
