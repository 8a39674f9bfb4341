"""Groth16 proof verification against the circuit's verification key."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from core.artifacts import CircuitArtifacts
from core.config import ZKConfig
from core.proof import ProofKind, VerifyResult, ZKProof, decode_signals
from tools.snarkjs_tool import SnarkjsError, SnarkjsTool

logger = logging.getLogger(__name__)


class ProofVerifier:
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
    def from_config(cls, config: ZKConfig) -> ProofVerifier:
        return cls(
            CircuitArtifacts.from_config(config),
            SnarkjsTool(config.snarkjs_bin, config.snarkjs_timeout_seconds),
            strict=config.strict,
        )

    async def verify(self, proof: ZKProof | dict[str, Any]) -> VerifyResult:
        """Check a proof.

        Mock proofs carry no cryptography: they report their own ``verified``
        flag, or are rejected outright in strict mode.  For real proofs a
        missing or corrupt verification key raises VerificationKeyError; any
        snarkjs failure yields ``valid=False`` with the error attached.
        Raises MalformedProofError when ``proof`` is a dict of the wrong shape.
        """
        if not isinstance(proof, ZKProof):
            proof = ZKProof.from_dict(proof)

        if proof.is_mock:
            if self.strict:
                logger.warning("rejecting mock proof in strict mode")
                return VerifyResult(
                    valid=False,
                    kind=ProofKind.MOCK,
                    error="mock proofs are not accepted in strict mode",
                )
            logger.warning("verifying MOCK proof (%s), result is not cryptographic", proof.mock_reason)
            return VerifyResult(valid=proof.verified, kind=ProofKind.MOCK)

        vkey = self.artifacts.verification_key()
        try:
            valid = await asyncio.to_thread(
                self.snarkjs.verify, vkey, proof.public_signals, proof.proof_data
            )
        except SnarkjsError as exc:
            logger.error("verification failed: %s", exc)
            return VerifyResult(valid=False, kind=ProofKind.REAL, error=str(exc))

        logger.info("proof verification: %s", "VALID" if valid else "INVALID")
        return VerifyResult(valid=valid, kind=ProofKind.REAL)

    async def verify_with_signals(self, proof: ZKProof | dict[str, Any]) -> VerifyResult:
        """verify() plus the decoded commitment and isValid public signals."""
        if not isinstance(proof, ZKProof):
            proof = ZKProof.from_dict(proof)
        result = await self.verify(proof)
        commitment, is_valid = decode_signals(proof.public_signals)
        return VerifyResult(
            valid=result.valid,
            kind=result.kind,
            error=result.error,
            commitment=commitment,
            is_valid_signal=is_valid,
        )
