"""Groth16 proof generation for the policy-compliance circuit.

Real proofs come from snarkjs with the compiled circuit and proving key.  When
those artifacts are absent, or proving fails, a mock proof is returned instead
(tagged ProofKind.MOCK with the reason) unless strict mode is on, in which case
ProofGenerationError is raised.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from datetime import datetime, timezone
from decimal import Decimal

from core.artifacts import CircuitArtifacts
from core.circuit import NUM_PUBLIC_SIGNALS, SIGNAL_COMMITMENT, CircuitInputs, parse_field_element, to_fixed_point
from core.config import ZKConfig
from core.policy import ComplianceViolation, ViolationCode
from core.poseidon import poseidon2
from core.proof import ProofInputs, ProofKind, ZKProof
from tools.snarkjs_tool import SnarkjsTool

logger = logging.getLogger(__name__)

PROOF_PROTOCOL = "groth16"
PROOF_CURVE = "bn128"


class ProofGenerationError(Exception):
    """A real proof could not be produced and mock fallback is disabled."""


class ProofGenerator:
    def __init__(
        self,
        artifacts: CircuitArtifacts,
        snarkjs: SnarkjsTool | None = None,
        *,
        strict: bool = False,
    ):
        self.artifacts = artifacts
        self.snarkjs = snarkjs or SnarkjsTool()
        self.strict = strict

    @classmethod
    def from_config(cls, config: ZKConfig) -> ProofGenerator:
        return cls(
            CircuitArtifacts.from_config(config),
            SnarkjsTool(config.snarkjs_bin, config.snarkjs_timeout_seconds),
            strict=config.strict,
        )

    # ── public API ────────────────────────────────────────────────

    async def generate_proof(self, inputs: ProofInputs) -> ZKProof:
        """Prove amount <= max_spend for the given fingerprint.

        Raises ValueError on out-of-range inputs and ComplianceViolation when the
        mock path finds amount > max_spend.
        """
        circuit_inputs = inputs.validate()
        logger.info(
            "generating proof: amount=%s maxSpend=%s fingerprint=%s…",
            inputs.amount,
            inputs.max_spend,
            inputs.fingerprint[:10],
        )

        if not self.artifacts.proving_available():
            reason = "circuit artifacts not found"
            if self.strict:
                raise ProofGenerationError(
                    f"{reason}: expected {self.artifacts.wasm_path} and {self.artifacts.zkey_path}"
                )
            logger.warning("%s, generating MOCK proof", reason)
            logger.warning("  expected wasm: %s", self.artifacts.wasm_path)
            logger.warning("  expected zkey: %s", self.artifacts.zkey_path)
            logger.warning("  run scripts/compile_circuit.py to build them")
            return self._mock_proof(inputs, circuit_inputs, reason)

        try:
            return await self._real_proof(circuit_inputs)
        except Exception as exc:
            if self.strict:
                raise ProofGenerationError(f"proof generation failed: {exc}") from exc
            logger.error("proof generation failed: %s", exc)
            logger.warning("falling back to MOCK proof")
            return self._mock_proof(inputs, circuit_inputs, f"proof generation failed: {exc}")

    def compute_commitment(self, amount: Decimal | int | float | str, fingerprint: str) -> str:
        """Poseidon(floor(amount * 10^6), fingerprint), as computed inside the circuit."""
        scaled = to_fixed_point(amount)
        if scaled < 0:
            raise ValueError(f"amount must be non-negative, got {amount}")
        return str(poseidon2(scaled, parse_field_element(fingerprint, "fingerprint")))

    # ── real proofs ───────────────────────────────────────────────

    async def _real_proof(self, circuit_inputs: CircuitInputs) -> ZKProof:
        logger.info("running Groth16 prover …")
        started = time.monotonic()
        proof, public_signals = await asyncio.to_thread(
            self.snarkjs.fullprove,
            circuit_inputs.to_json(),
            self.artifacts.wasm_path,
            self.artifacts.zkey_path,
        )
        logger.info("  proof generated in %.0fms", (time.monotonic() - started) * 1000)

        if len(public_signals) != NUM_PUBLIC_SIGNALS:
            raise ProofGenerationError(
                f"expected {NUM_PUBLIC_SIGNALS} public signals, got {len(public_signals)}"
            )
        commitment = public_signals[SIGNAL_COMMITMENT]
        expected = str(poseidon2(circuit_inputs.amount, circuit_inputs.policy_hash))
        if commitment != expected:
            logger.warning("circuit commitment %s differs from local Poseidon %s", commitment, expected)

        verified = False
        if self.artifacts.verification_available():
            vkey = self.artifacts.verification_key()
            verified = await asyncio.to_thread(self.snarkjs.verify, vkey, public_signals, proof)
            logger.info("  proof verified: %s", verified)
        else:
            logger.warning("verification key not found, skipping immediate verification")

        return ZKProof(
            proof_data={
                "pi_a": proof.get("pi_a"),
                "pi_b": proof.get("pi_b"),
                "pi_c": proof.get("pi_c"),
                "protocol": PROOF_PROTOCOL,
                "curve": PROOF_CURVE,
            },
            public_signals=public_signals,
            commitment=commitment,
            verified=verified,
            generated_at=datetime.now(timezone.utc),
            kind=ProofKind.REAL,
        )

    # ── mock proofs ───────────────────────────────────────────────

    def _mock_proof(self, inputs: ProofInputs, circuit_inputs: CircuitInputs, reason: str) -> ZKProof:
        """Structurally valid, cryptographically meaningless proof.  Never for production."""
        logger.info("generating MOCK proof (not cryptographically valid)")
        if Decimal(inputs.amount) > Decimal(inputs.max_spend):
            raise ComplianceViolation(
                f"Amount {inputs.amount} exceeds max spend {inputs.max_spend}",
                ViolationCode.AMOUNT_EXCEEDS_LIMIT,
            )

        try:
            commitment = str(poseidon2(circuit_inputs.amount, circuit_inputs.policy_hash))
        except ValueError as exc:
            logger.warning("Poseidon unavailable for mock commitment: %s", exc)
            commitment = f"mock_commitment_{inputs.amount}_{inputs.fingerprint[:8]}"

        return ZKProof(
            proof_data={
                "pi_a": [_hex(), _hex(), "1"],
                "pi_b": [[_hex(), _hex()], [_hex(), _hex()], ["1", "0"]],
                "pi_c": [_hex(), _hex(), "1"],
                "protocol": PROOF_PROTOCOL,
                "curve": PROOF_CURVE,
            },
            public_signals=[
                commitment,
                "1",
                str(circuit_inputs.max_spend),
                str(circuit_inputs.policy_hash),
            ],
            commitment=commitment,
            verified=True,
            generated_at=datetime.now(timezone.utc),
            kind=ProofKind.MOCK,
            mock_reason=reason,
        )


def _hex() -> str:
    return "0x" + secrets.token_hex(32)
