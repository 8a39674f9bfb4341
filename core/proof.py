"""Proof inputs, proofs and verification results, plus their JSON shapes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from core.circuit import (
    CIRCUIT_BITS,
    NUM_PUBLIC_SIGNALS,
    SIGNAL_COMMITMENT,
    SIGNAL_IS_VALID,
    CircuitInputs,
    parse_field_element,
    to_fixed_point,
)


class ProofKind(Enum):
    REAL = "real"
    MOCK = "mock"


class MalformedProofError(ValueError):
    """The object is not shaped like a proof (missing or mistyped fields)."""


@dataclass(frozen=True)
class ProofInputs:
    amount: Decimal
    max_spend: Decimal
    fingerprint: str

    def validate(self) -> CircuitInputs:
        """Scale to circuit inputs.  Raises ValueError when a precondition fails."""
        amount = to_fixed_point(self.amount)
        max_spend = to_fixed_point(self.max_spend)
        if amount < 0:
            raise ValueError(f"amount must be non-negative, got {self.amount}")
        if max_spend < 0:
            raise ValueError(f"max_spend must be non-negative, got {self.max_spend}")
        limit = 1 << CIRCUIT_BITS
        if amount >= limit:
            raise ValueError(f"amount {self.amount} does not fit in {CIRCUIT_BITS} bits once scaled")
        if max_spend >= limit:
            raise ValueError(f"max_spend {self.max_spend} does not fit in {CIRCUIT_BITS} bits once scaled")
        policy_hash = parse_field_element(self.fingerprint, "fingerprint")
        return CircuitInputs(amount=amount, max_spend=max_spend, policy_hash=policy_hash)


@dataclass(frozen=True)
class ZKProof:
    proof_data: dict[str, Any]
    public_signals: list[str]
    commitment: str
    verified: bool
    generated_at: datetime
    kind: ProofKind = ProofKind.REAL
    mock_reason: str | None = None

    @property
    def is_mock(self) -> bool:
        return self.kind is ProofKind.MOCK

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "proof": self.proof_data,
            "publicSignals": list(self.public_signals),
            "commitment": self.commitment,
            "verified": self.verified,
            "generatedAt": int(self.generated_at.timestamp() * 1000),
            "kind": self.kind.value,
        }
        if self.mock_reason is not None:
            data["mockReason"] = self.mock_reason
        return data

    @classmethod
    def from_dict(cls, data: Any) -> ZKProof:
        """Parse the JSON shape produced by to_dict().  Raises MalformedProofError."""
        if not isinstance(data, dict):
            raise MalformedProofError("proof must be a JSON object")
        proof_data = data.get("proof")
        signals = data.get("publicSignals")
        if not isinstance(proof_data, dict):
            raise MalformedProofError("missing required field: proof")
        if not isinstance(signals, list):
            raise MalformedProofError("missing required field: publicSignals")
        if len(signals) != NUM_PUBLIC_SIGNALS:
            raise MalformedProofError(
                f"publicSignals must have {NUM_PUBLIC_SIGNALS} entries, got {len(signals)}"
            )
        if not all(isinstance(s, (str, int)) and not isinstance(s, bool) for s in signals):
            raise MalformedProofError("publicSignals must be decimal strings")
        for key in ("pi_a", "pi_b", "pi_c"):
            if not isinstance(proof_data.get(key), list):
                raise MalformedProofError(f"proof is missing {key}")

        try:
            kind = ProofKind(data.get("kind", ProofKind.REAL.value))
        except ValueError:
            raise MalformedProofError(f"unknown proof kind {data.get('kind')!r}") from None

        public_signals = [str(s) for s in signals]
        generated_ms = data.get("generatedAt")
        generated_at = (
            datetime.fromtimestamp(generated_ms / 1000, tz=timezone.utc)
            if isinstance(generated_ms, (int, float)) and not isinstance(generated_ms, bool)
            else datetime.now(timezone.utc)
        )
        return cls(
            proof_data=proof_data,
            public_signals=public_signals,
            commitment=str(data.get("commitment") or public_signals[SIGNAL_COMMITMENT]),
            verified=bool(data.get("verified", False)),
            generated_at=generated_at,
            kind=kind,
            mock_reason=data.get("mockReason"),
        )


@dataclass(frozen=True)
class VerifyResult:
    valid: bool
    kind: ProofKind = ProofKind.REAL
    error: str | None = None
    # Populated by verify_with_signals()
    commitment: str | None = None
    is_valid_signal: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"valid": self.valid, "kind": self.kind.value}
        if self.error is not None:
            data["error"] = self.error
        if self.commitment is not None:
            data["commitment"] = self.commitment
        if self.is_valid_signal is not None:
            data["isValid"] = self.is_valid_signal
        return data


def decode_signals(public_signals: list[str]) -> tuple[str, bool]:
    """Return (commitment, isValid flag) from the public signal vector.  Raises MalformedProofError."""
    if len(public_signals) != NUM_PUBLIC_SIGNALS:
        raise MalformedProofError(
            f"publicSignals must have {NUM_PUBLIC_SIGNALS} entries, got {len(public_signals)}"
        )
    return public_signals[SIGNAL_COMMITMENT], public_signals[SIGNAL_IS_VALID] == "1"
