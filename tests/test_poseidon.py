"""Tests for core/poseidon.py — parameter derivation and hash properties."""

from __future__ import annotations

import pytest

from core.poseidon import (
    FIELD_MODULUS,
    FULL_ROUNDS,
    MAX_INPUTS,
    poseidon2,
    poseidon_hash,
    poseidon_params,
)


class TestParams:
    def test_width_three_shape(self) -> None:
        params = poseidon_params(3)
        assert params.full_rounds == FULL_ROUNDS == 8
        assert params.partial_rounds == 57
        assert len(params.round_constants) == (8 + 57) * 3
        assert len(params.mds) == 3
        assert all(len(row) == 3 for row in params.mds)

    def test_constants_are_field_elements(self) -> None:
        params = poseidon_params(3)
        assert all(0 <= c < FIELD_MODULUS for c in params.round_constants)
        assert all(0 < m < FIELD_MODULUS for row in params.mds for m in row)

    def test_memoised(self) -> None:
        assert poseidon_params(3) is poseidon_params(3)

    def test_widths_differ(self) -> None:
        assert poseidon_params(2).round_constants[:3] != poseidon_params(3).round_constants[:3]

    @pytest.mark.parametrize("width", [0, 1, MAX_INPUTS + 2])
    def test_unsupported_width(self, width: int) -> None:
        with pytest.raises(ValueError, match="width"):
            poseidon_params(width)


class TestHash:
    def test_deterministic(self) -> None:
        assert poseidon2(50_000_000, 123456) == poseidon2(50_000_000, 123456)

    def test_output_in_field(self) -> None:
        for left, right in ((0, 0), (1, 2), (FIELD_MODULUS - 1, FIELD_MODULUS - 1)):
            assert 0 <= poseidon2(left, right) < FIELD_MODULUS

    def test_order_matters(self) -> None:
        assert poseidon2(1, 2) != poseidon2(2, 1)

    def test_distinct_amounts_give_distinct_commitments(self) -> None:
        digests = {poseidon2(amount, 987654321) for amount in range(0, 20)}
        assert len(digests) == 20

    def test_poseidon2_is_two_input_hash(self) -> None:
        assert poseidon2(7, 11) == poseidon_hash([7, 11])

    def test_arity_changes_digest(self) -> None:
        assert poseidon_hash([7]) != poseidon_hash([7, 0])

    def test_rejects_no_inputs(self) -> None:
        with pytest.raises(ValueError, match="inputs"):
            poseidon_hash([])

    def test_rejects_too_many_inputs(self) -> None:
        with pytest.raises(ValueError, match="inputs"):
            poseidon_hash([1] * (MAX_INPUTS + 1))

    @pytest.mark.parametrize("value", [-1, FIELD_MODULUS])
    def test_rejects_non_field_elements(self, value: int) -> None:
        with pytest.raises(ValueError, match="field element"):
            poseidon2(value, 0)


class TestKnownVectors:
    def test_matches_circomlib_two_inputs(self) -> None:
        assert poseidon2(1, 2) == 7853200120776062878684798364095072458815029376092732009249414926327459813530
