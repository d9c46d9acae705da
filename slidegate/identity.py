"""Caller identity for quota keys.

The identity is derived from network addresses only. It is not
authenticated (forwarding headers are trivially spoofed) and is used for
nothing but counter keys.
"""

from typing import Mapping, Optional

UNKNOWN_IDENTITY = "unknown"


def resolve_identity(headers: Mapping[str, str], client_host: Optional[str]) -> str:
    """Return the caller identity for a request.

    Order: first X-Forwarded-For entry, X-Real-IP, direct peer address,
    then the "unknown" sentinel.

    Args:
        headers: Request headers (case-insensitive mapping, e.g. Starlette's).
        client_host: The direct connection address, if known.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = (headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip

    if client_host:
        return client_host

    return UNKNOWN_IDENTITY
