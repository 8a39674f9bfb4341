"""Spending policy read from ENS text records: parsing, validation, fingerprint."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Mapping

# ENS text record keys that define the agent policy.
MAX_SPEND_KEY = "agent.maxSpendUSDC"
ALLOWED_ACTIONS_KEY = "agent.allowedActions"
POLICY_VERSION_KEY = "agent.policyVersion"
POLICY_KEYS: tuple[str, ...] = (MAX_SPEND_KEY, ALLOWED_ACTIONS_KEY, POLICY_VERSION_KEY)

DEFAULT_POLICY_VERSION = "1.0"


class PolicyErrorCode(Enum):
    MISSING_MAX_SPEND = "MISSING_MAX_SPEND"
    INVALID_MAX_SPEND = "INVALID_MAX_SPEND"
    MISSING_ALLOWED_ACTIONS = "MISSING_ALLOWED_ACTIONS"
    EMPTY_ALLOWED_ACTIONS = "EMPTY_ALLOWED_ACTIONS"


class PolicyError(Exception):
    """Raised when the text records do not describe a valid policy."""

    def __init__(self, message: str, code: PolicyErrorCode):
        super().__init__(message)
        self.code = code


class ViolationCode(Enum):
    INVALID_AMOUNT = "INVALID_AMOUNT"
    ACTION_NOT_ALLOWED = "ACTION_NOT_ALLOWED"
    AMOUNT_EXCEEDS_LIMIT = "AMOUNT_EXCEEDS_LIMIT"


class ComplianceViolation(Exception):
    """Raised when a payment is rejected by a (valid) policy."""

    def __init__(self, message: str, code: ViolationCode):
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class Policy:
    source_name: str
    max_spend: Decimal
    allowed_actions: tuple[str, ...]
    version: str
    fetched_at: datetime
    fingerprint: str


# ── parsing ───────────────────────────────────────────────────────────────────


def parse_max_spend(raw: str | None) -> Decimal:
    if not raw:
        raise PolicyError(
            f"Missing required text record: {MAX_SPEND_KEY}",
            PolicyErrorCode.MISSING_MAX_SPEND,
        )
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        raise PolicyError(
            f"Invalid {MAX_SPEND_KEY} value: {raw!r}",
            PolicyErrorCode.INVALID_MAX_SPEND,
        ) from None
    if not value.is_finite() or value < 0:
        raise PolicyError(
            f"Invalid {MAX_SPEND_KEY} value: {raw!r}",
            PolicyErrorCode.INVALID_MAX_SPEND,
        )
    return value


def parse_allowed_actions(raw: str | None) -> tuple[str, ...]:
    if not raw:
        raise PolicyError(
            f"Missing required text record: {ALLOWED_ACTIONS_KEY}",
            PolicyErrorCode.MISSING_ALLOWED_ACTIONS,
        )
    actions = tuple(a.strip().lower() for a in raw.split(",") if a.strip())
    if not actions:
        raise PolicyError(
            f"No valid actions in {ALLOWED_ACTIONS_KEY}: {raw!r}",
            PolicyErrorCode.EMPTY_ALLOWED_ACTIONS,
        )
    return actions


def parse_policy(
    source_name: str,
    records: Mapping[str, str | None],
    fetched_at: datetime | None = None,
) -> Policy:
    """Turn raw text records into a validated Policy.  Raises PolicyError."""
    max_spend = parse_max_spend(records.get(MAX_SPEND_KEY))
    allowed_actions = parse_allowed_actions(records.get(ALLOWED_ACTIONS_KEY))
    version = records.get(POLICY_VERSION_KEY) or DEFAULT_POLICY_VERSION

    return Policy(
        source_name=source_name,
        max_spend=max_spend,
        allowed_actions=allowed_actions,
        version=version,
        fetched_at=fetched_at or datetime.now(timezone.utc),
        fingerprint=compute_policy_fingerprint(max_spend, allowed_actions, version),
    )


# ── fingerprint ───────────────────────────────────────────────────────────────


def canonical_number(value: Decimal) -> str:
    """Shortest plain decimal form: 100 → '100', 100.50 → '100.5'."""
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


def canonical_policy_string(
    max_spend: Decimal,
    allowed_actions: tuple[str, ...] | list[str],
    version: str,
) -> str:
    # Number is spliced in raw so 100 serializes as 100, not "100" or 100.0.
    actions = json.dumps(sorted(allowed_actions), ensure_ascii=False, separators=(",", ":"))
    version_json = json.dumps(version, ensure_ascii=False)
    return (
        f'{{"maxSpendUSDC":{canonical_number(max_spend)},'
        f'"allowedActions":{actions},'
        f'"policyVersion":{version_json}}}'
    )


def _string_hash32(text: str) -> int:
    """31-multiplier string hash over UTF-16 code units with signed 32-bit wraparound."""
    data = text.encode("utf-16-be")
    h = 0
    for i in range(0, len(data), 2):
        h = (h * 31 + int.from_bytes(data[i:i + 2], "big")) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def compute_policy_fingerprint(
    max_spend: Decimal,
    allowed_actions: tuple[str, ...] | list[str],
    version: str,
) -> str:
    """Deterministic non-negative integer string binding the policy attributes.

    Order-independent over actions.  This is not the circuit's algebraic hash and
    is never constrained inside the circuit.
    """
    return str(abs(_string_hash32(canonical_policy_string(max_spend, allowed_actions, version))))


# ── checks ────────────────────────────────────────────────────────────────────


def is_action_allowed(policy: Policy, action: str) -> bool:
    return action.strip().lower() in policy.allowed_actions


def is_amount_within_limit(policy: Policy, amount: Decimal | int | float | str) -> bool:
    value = Decimal(str(amount))
    if not value.is_finite():
        return False
    return Decimal(0) <= value <= policy.max_spend
