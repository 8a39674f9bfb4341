"""Payment compliance gate: resolve policy → check → prove.

Every payment request passes through ComplianceService.  Sending the payment
itself is the caller's job; this only hands back the validated proof.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from core.policy import (
    ComplianceViolation,
    Policy,
    ViolationCode,
    canonical_number,
    is_action_allowed,
    is_amount_within_limit,
)
from core.policy_resolver import PolicyResolver
from core.proof import ProofInputs, ZKProof
from core.prover import ProofGenerator

logger = logging.getLogger(__name__)

DEFAULT_ACTION = "payment"


@dataclass(frozen=True)
class ProofResponse:
    proof: ZKProof
    policy: Policy

    def to_dict(self) -> dict[str, Any]:
        # Only the public policy subset travels with the proof.
        return {
            "proof": self.proof.to_dict(),
            "policy": {
                "sourceName": self.policy.source_name,
                "maxSpend": canonical_number(self.policy.max_spend),
                "fingerprint": self.policy.fingerprint,
            },
        }


def _to_amount(amount: Decimal | int | float | str) -> Decimal:
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise ComplianceViolation(f"Invalid amount: {amount!r}", ViolationCode.INVALID_AMOUNT) from None
    if not value.is_finite():
        raise ComplianceViolation(f"Invalid amount: {amount!r}", ViolationCode.INVALID_AMOUNT)
    return value


class ComplianceService:
    def __init__(self, resolver: PolicyResolver, generator: ProofGenerator):
        self.resolver = resolver
        self.generator = generator

    # ── checks ────────────────────────────────────────────────────

    def check_payment(
        self,
        policy: Policy,
        amount: Decimal | int | float | str,
        action: str = DEFAULT_ACTION,
    ) -> Decimal:
        """Raise ComplianceViolation if the payment is not permitted; return the amount."""
        value = _to_amount(amount)
        if value < 0:
            raise ComplianceViolation("Amount must be non-negative", ViolationCode.INVALID_AMOUNT)
        if not is_action_allowed(policy, action):
            raise ComplianceViolation(
                f"Action '{action}' is not allowed by {policy.source_name} "
                f"(allowed: {', '.join(policy.allowed_actions)})",
                ViolationCode.ACTION_NOT_ALLOWED,
            )
        if not is_amount_within_limit(policy, value):
            raise ComplianceViolation(
                f"Amount {value} exceeds policy limit of {policy.max_spend} USDC",
                ViolationCode.AMOUNT_EXCEEDS_LIMIT,
            )
        return value

    # ── proofs ────────────────────────────────────────────────────

    async def prove_payment(
        self,
        name: str,
        amount: Decimal | int | float | str,
        action: str = DEFAULT_ACTION,
    ) -> ProofResponse:
        """Resolve the policy for ``name`` and prove ``amount`` complies with it.

        Raises ResolutionError, PolicyError or ComplianceViolation before any
        proving work is done.
        """
        policy = await self.resolver.resolve(name)
        value = self.check_payment(policy, amount, action)
        logger.info(
            "payment of %s USDC (%s) complies with %s, max=%s",
            value,
            action,
            policy.source_name,
            policy.max_spend,
        )

        proof = await self.generator.generate_proof(
            ProofInputs(amount=value, max_spend=policy.max_spend, fingerprint=policy.fingerprint)
        )
        if proof.is_mock:
            logger.warning("proof for %s is a MOCK proof: %s", policy.source_name, proof.mock_reason)
        return ProofResponse(proof=proof, policy=policy)
