"""Tests for core/compliance.py — payment checks and the end-to-end proof flow."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from tenacity import wait_none

from core.artifacts import CircuitArtifacts
from core.compliance import ComplianceService, ProofResponse
from core.policy import (
    ALLOWED_ACTIONS_KEY,
    MAX_SPEND_KEY,
    POLICY_VERSION_KEY,
    ComplianceViolation,
    Policy,
    PolicyError,
    ViolationCode,
    parse_policy,
)
from core.policy_cache import PolicyCache
from core.policy_resolver import PolicyResolver, ResolutionError
from core.prover import ProofGenerator
from core.verifier import ProofVerifier
from tools.ens_tool import StaticTextRecordSource

# ── fixtures ──────────────────────────────────────────────────────────────────

_RECORDS = {
    "agent.eth": {MAX_SPEND_KEY: "100", ALLOWED_ACTIONS_KEY: "payment,swap", POLICY_VERSION_KEY: "1.0"},
    "broken.eth": {ALLOWED_ACTIONS_KEY: "payment"},
}


@pytest.fixture
def resolver() -> PolicyResolver:
    return PolicyResolver(StaticTextRecordSource(_RECORDS), PolicyCache(), retry_wait=wait_none())


@pytest.fixture
def service(resolver: PolicyResolver, missing_artifacts: CircuitArtifacts) -> ComplianceService:
    return ComplianceService(resolver, ProofGenerator(missing_artifacts))


@pytest.fixture
def policy() -> Policy:
    return parse_policy("agent.eth", _RECORDS["agent.eth"])


# ── check_payment ─────────────────────────────────────────────────────────────


class TestCheckPayment:
    def test_valid_payment_passes(self, service: ComplianceService, policy: Policy) -> None:
        assert service.check_payment(policy, "50") == Decimal("50")

    def test_boundary_passes(self, service: ComplianceService, policy: Policy) -> None:
        assert service.check_payment(policy, 100) == Decimal("100")

    def test_zero_passes(self, service: ComplianceService, policy: Policy) -> None:
        assert service.check_payment(policy, 0) == Decimal("0")

    def test_negative_amount(self, service: ComplianceService, policy: Policy) -> None:
        with pytest.raises(ComplianceViolation, match="non-negative") as exc_info:
            service.check_payment(policy, -1)
        assert exc_info.value.code is ViolationCode.INVALID_AMOUNT

    @pytest.mark.parametrize("amount", ["abc", "NaN", "Infinity"])
    def test_non_numeric_amount(self, service: ComplianceService, policy: Policy, amount: str) -> None:
        with pytest.raises(ComplianceViolation) as exc_info:
            service.check_payment(policy, amount)
        assert exc_info.value.code is ViolationCode.INVALID_AMOUNT

    def test_disallowed_action(self, service: ComplianceService, policy: Policy) -> None:
        with pytest.raises(ComplianceViolation, match="withdraw") as exc_info:
            service.check_payment(policy, 10, action="withdraw")
        assert exc_info.value.code is ViolationCode.ACTION_NOT_ALLOWED

    def test_action_match_is_case_insensitive(self, service: ComplianceService, policy: Policy) -> None:
        service.check_payment(policy, 10, action="Swap")

    def test_over_limit_names_amount_and_limit(self, service: ComplianceService, policy: Policy) -> None:
        with pytest.raises(ComplianceViolation, match="150 exceeds policy limit of 100") as exc_info:
            service.check_payment(policy, 150)
        assert exc_info.value.code is ViolationCode.AMOUNT_EXCEEDS_LIMIT


# ── prove_payment ─────────────────────────────────────────────────────────────


class TestProvePayment:
    @pytest.mark.asyncio
    async def test_returns_proof_and_policy_subset(self, service: ComplianceService) -> None:
        response = await service.prove_payment("agent.eth", "50")
        assert isinstance(response, ProofResponse)
        assert response.policy.source_name == "agent.eth"
        assert response.proof.public_signals[2] == "100000000"
        assert response.proof.public_signals[3] == response.policy.fingerprint

        data = response.to_dict()
        assert data["policy"] == {
            "sourceName": "agent.eth",
            "maxSpend": "100",
            "fingerprint": response.policy.fingerprint,
        }
        assert data["proof"]["kind"] == "mock"

    @pytest.mark.asyncio
    async def test_over_limit_rejected_before_proving(self, resolver: PolicyResolver) -> None:
        generator = MagicMock(spec=ProofGenerator)
        generator.generate_proof = AsyncMock()
        service = ComplianceService(resolver, generator)
        with pytest.raises(ComplianceViolation) as exc_info:
            await service.prove_payment("agent.eth", "150")
        assert exc_info.value.code is ViolationCode.AMOUNT_EXCEEDS_LIMIT
        generator.generate_proof.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_disallowed_action_rejected(self, service: ComplianceService) -> None:
        with pytest.raises(ComplianceViolation) as exc_info:
            await service.prove_payment("agent.eth", "10", action="withdraw")
        assert exc_info.value.code is ViolationCode.ACTION_NOT_ALLOWED

    @pytest.mark.asyncio
    async def test_policy_error_propagates(self, service: ComplianceService) -> None:
        with pytest.raises(PolicyError):
            await service.prove_payment("broken.eth", "10")

    @pytest.mark.asyncio
    async def test_unresolvable_name_propagates(self, service: ComplianceService) -> None:
        with pytest.raises(ResolutionError):
            await service.prove_payment("ghost.eth", "10")


# ── end to end ────────────────────────────────────────────────────────────────


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_prove_then_verify(self, service: ComplianceService, missing_artifacts: CircuitArtifacts) -> None:
        response = await service.prove_payment("agent.eth", "50")
        verifier = ProofVerifier(missing_artifacts)

        result = await verifier.verify_with_signals(response.to_dict()["proof"])

        assert result.valid is True
        assert result.is_valid_signal is True
        assert result.commitment == service.generator.compute_commitment("50", response.policy.fingerprint)

    @pytest.mark.asyncio
    async def test_strict_verifier_rejects_mock(
        self, service: ComplianceService, missing_artifacts: CircuitArtifacts
    ) -> None:
        response = await service.prove_payment("agent.eth", "50")
        result = await ProofVerifier(missing_artifacts, strict=True).verify(response.proof)
        assert result.valid is False
