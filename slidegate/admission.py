"""Admission control in front of the upstream completion call.

Every story request passes through AdmissionController.admit() before the
provider is contacted. Admitted requests have already been counted; an
upstream failure afterwards does not refund them.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from slidegate.credentials import Credential
from slidegate.quota import QuotaDecision, QuotaPolicy, QuotaTier
from slidegate.windows import seconds_until_next_day, seconds_until_next_minute

_TIER_HEADER_NAMES = {
    QuotaTier.MINUTE: "Minute",
    QuotaTier.DAILY: "Daily",
    QuotaTier.GLOBAL: "Global",
}

_REJECTION_MESSAGES = {
    QuotaTier.MINUTE: "Rate limit exceeded. Please try again in a minute.",
    QuotaTier.DAILY: (
        "Daily free tier limit reached. Please try again tomorrow "
        "or use your own API key."
    ),
    QuotaTier.GLOBAL: (
        "Service temporarily unavailable. Daily global limit reached. "
        "Please try again tomorrow."
    ),
}


class QuotaExceeded(Exception):
    """Raised when an identity is denied by one of the quota tiers."""

    status_code = 429

    def __init__(
        self, identity: str, decision: QuotaDecision, detail: str, retry_after: int
    ) -> None:
        self.identity = identity
        self.decision = decision
        self.detail = detail
        self.retry_after = retry_after
        super().__init__(detail)

    @property
    def tier(self) -> QuotaTier:
        return self.decision.tier


@dataclass
class Admission:
    """A granted admission. decision is None when the caller was exempt."""

    identity: str
    decision: Optional[QuotaDecision] = None

    @property
    def exempt(self) -> bool:
        return self.decision is None


def rejection_message(tier: QuotaTier) -> str:
    return _REJECTION_MESSAGES[tier]


def rate_limit_headers(decision: Optional[QuotaDecision]) -> Dict[str, str]:
    """Build X-RateLimit-Limit-*/X-RateLimit-Remaining-* headers for configured tiers."""
    if decision is None:
        return {}
    headers: Dict[str, str] = {}
    for usage in decision.usage:
        name = _TIER_HEADER_NAMES[usage.tier]
        headers["X-RateLimit-Limit-{}".format(name)] = str(usage.limit)
        headers["X-RateLimit-Remaining-{}".format(name)] = str(usage.remaining)
    return headers


class AdmissionController:
    """Gates upstream calls on the quota policy.

    When byok_bypasses_quota is set, callers paying with their own key are
    admitted without touching the shared quota counters.
    """

    def __init__(self, policy: QuotaPolicy, byok_bypasses_quota: bool = True) -> None:
        self.policy = policy
        self.byok_bypasses_quota = byok_bypasses_quota

    def admit(self, identity: str, credential: Credential) -> Admission:
        """Admit or reject a request.

        Args:
            identity: Caller identity (counter key).
            credential: The credential the upstream call will use.

        Returns:
            An Admission; counters have been incremented unless exempt.

        Raises:
            QuotaExceeded: If any configured tier denies the request.
        """
        if self.byok_bypasses_quota and credential.is_caller_supplied:
            return Admission(identity=identity)

        decision = self.policy.evaluate(identity)
        if not decision.allowed:
            raise QuotaExceeded(
                identity,
                decision,
                rejection_message(decision.tier),
                self.retry_after(decision),
            )
        return Admission(identity=identity, decision=decision)

    def retry_after(self, decision: QuotaDecision) -> int:
        """Seconds until the denying window rolls over (advisory only)."""
        now = decision.evaluated_at
        if decision.tier == QuotaTier.MINUTE:
            return seconds_until_next_minute(now)
        cfg = self.policy.config
        return seconds_until_next_day(now, cfg.daily_window, cfg.timezone)
