"""Upstream credential resolution, including bring-your-own-key (BYOK).

A caller may supply their own provider key through the X-User-OpenAI-Key
header or an ``Authorization: Bearer`` header. Syntactically valid caller
keys take precedence over the server-held key. Keys are never logged in
plaintext; use key_fingerprint() instead.
"""

import hashlib
from dataclasses import dataclass
from typing import Mapping, Optional

USER_KEY_HEADER = "x-user-openai-key"

SOURCE_CALLER = "caller"
SOURCE_SERVER = "server"


class ConfigurationError(Exception):
    """Raised when no usable credential is available for the upstream call."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


@dataclass(frozen=True)
class Credential:
    """An API key and where it came from."""

    api_key: str
    source: str

    @property
    def is_caller_supplied(self) -> bool:
        return self.source == SOURCE_CALLER

    @property
    def fingerprint(self) -> str:
        return key_fingerprint(self.api_key)

    def __repr__(self) -> str:
        return "Credential(source={!r}, fingerprint={!r})".format(
            self.source, self.fingerprint
        )


def key_fingerprint(raw_key: str) -> str:
    """Return a short SHA-256 fingerprint of a key, safe for logs."""
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()[:12]


def is_valid_key(key: Optional[str], prefix: str = "sk-") -> bool:
    """Check that a key is non-empty, has no whitespace and carries the provider prefix."""
    if not key:
        return False
    if any(ch.isspace() for ch in key):
        return False
    return key.startswith(prefix) and len(key) > len(prefix)


def extract_caller_key(
    headers: Mapping[str, str], prefix: str = "sk-"
) -> Optional[str]:
    """Return a syntactically valid caller-supplied key, if any.

    The dedicated header is checked before the Authorization header.
    """
    direct = (headers.get(USER_KEY_HEADER) or "").strip()
    if is_valid_key(direct, prefix):
        return direct

    auth = (headers.get("authorization") or "").strip()
    scheme, _, token = auth.partition(" ")
    if scheme.lower() == "bearer":
        token = token.strip()
        if is_valid_key(token, prefix):
            return token

    return None


def resolve_credential(
    headers: Mapping[str, str],
    server_key: Optional[str],
    prefix: str = "sk-",
) -> Credential:
    """Pick the credential for the upstream call.

    Args:
        headers: Incoming request headers.
        server_key: The server-held key (None if not configured).
        prefix: Expected key prefix for caller-supplied keys.

    Returns:
        The caller's key if valid, otherwise the server key.

    Raises:
        ConfigurationError: If neither key is available.
    """
    caller_key = extract_caller_key(headers, prefix)
    if caller_key:
        return Credential(api_key=caller_key, source=SOURCE_CALLER)

    if server_key:
        return Credential(api_key=server_key, source=SOURCE_SERVER)

    raise ConfigurationError("Server not configured: missing OPENAI_API_KEY")
