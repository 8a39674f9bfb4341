"""Poseidon sponge hash over the BN254 scalar field, circomlib parameterisation.

x^5 S-box, 8 full rounds and a width-dependent number of partial rounds.
Round constants and the Cauchy MDS matrix are drawn from the Grain LFSR seeded
with the permutation parameters, as in the Poseidon reference generator.  The
state starts as [0, *inputs] and the digest is state[0].
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from functools import lru_cache
from typing import Sequence

logger = logging.getLogger(__name__)

# BN254 (alt_bn128) scalar field, the native field of circom / snarkjs.
FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617
FIELD_BITS = 254
ALPHA = 5
FULL_ROUNDS = 8
# Partial rounds indexed by width - 2 (width 2 … 17).
PARTIAL_ROUNDS = (56, 57, 56, 60, 60, 63, 64, 63, 60, 66, 60, 65, 70, 60, 64, 68)
MAX_INPUTS = len(PARTIAL_ROUNDS)


class _GrainLFSR:
    """80-bit self-shrinking Grain LFSR used to derive the constants."""

    def __init__(self, width: int, full_rounds: int, partial_rounds: int) -> None:
        seed = (
            _bits(1, 2)  # prime field
            + _bits(0, 4)  # x^alpha s-box
            + _bits(FIELD_BITS, 12)
            + _bits(width, 12)
            + _bits(full_rounds, 10)
            + _bits(partial_rounds, 10)
            + [1] * 30
        )
        self._state = deque(seed)
        for _ in range(160):
            self._step()

    def _step(self) -> int:
        s = self._state
        bit = s[62] ^ s[51] ^ s[38] ^ s[23] ^ s[13] ^ s[0]
        s.popleft()
        s.append(bit)
        return bit

    def random_int(self, num_bits: int) -> int:
        value = 0
        for _ in range(num_bits):
            # Keep the second bit of each pair whose first bit is 1.
            while True:
                keep = self._step()
                bit = self._step()
                if keep:
                    break
            value = (value << 1) | bit
        return value

    def field_element(self) -> int:
        """Uniform element by rejection sampling."""
        while True:
            value = self.random_int(FIELD_BITS)
            if value < FIELD_MODULUS:
                return value


def _bits(value: int, width: int) -> list[int]:
    return [int(b) for b in format(value, f"0{width}b")]


@dataclass(frozen=True)
class PoseidonParams:
    width: int
    full_rounds: int
    partial_rounds: int
    round_constants: tuple[int, ...]
    mds: tuple[tuple[int, ...], ...]


@lru_cache(maxsize=None)
def poseidon_params(width: int) -> PoseidonParams:
    """Derive (and memoise) the permutation parameters for a state of *width* cells."""
    if not 2 <= width <= MAX_INPUTS + 1:
        raise ValueError(f"unsupported Poseidon width {width}")
    partial_rounds = PARTIAL_ROUNDS[width - 2]
    logger.debug("deriving Poseidon constants for width=%d", width)
    grain = _GrainLFSR(width, FULL_ROUNDS, partial_rounds)

    round_constants = tuple(
        grain.field_element() for _ in range((FULL_ROUNDS + partial_rounds) * width)
    )

    # Cauchy matrix 1 / (x_i + y_j) over 2*width distinct samples.
    while True:
        samples = [grain.random_int(FIELD_BITS) % FIELD_MODULUS for _ in range(2 * width)]
        if len(set(samples)) != len(samples):
            continue
        xs, ys = samples[:width], samples[width:]
        if any((x + y) % FIELD_MODULUS == 0 for x in xs for y in ys):
            continue
        break
    mds = tuple(
        tuple(pow((x + y) % FIELD_MODULUS, -1, FIELD_MODULUS) for y in ys) for x in xs
    )
    return PoseidonParams(width, FULL_ROUNDS, partial_rounds, round_constants, mds)


def _permute(state: list[int], params: PoseidonParams) -> list[int]:
    p = FIELD_MODULUS
    t = params.width
    half_full = params.full_rounds // 2
    total = params.full_rounds + params.partial_rounds
    rc = params.round_constants
    mds = params.mds

    for r in range(total):
        state = [(x + rc[r * t + i]) % p for i, x in enumerate(state)]
        if r < half_full or r >= half_full + params.partial_rounds:
            state = [pow(x, ALPHA, p) for x in state]
        else:
            state[0] = pow(state[0], ALPHA, p)
        state = [sum(row[j] * state[j] for j in range(t)) % p for row in mds]
    return state


def poseidon_hash(inputs: Sequence[int]) -> int:
    """Hash 1 … 16 field elements into one field element."""
    if not 1 <= len(inputs) <= MAX_INPUTS:
        raise ValueError(f"Poseidon takes 1 to {MAX_INPUTS} inputs, got {len(inputs)}")
    values = [int(x) for x in inputs]
    for x in values:
        if not 0 <= x < FIELD_MODULUS:
            raise ValueError(f"input {x} is not a BN254 field element")
    params = poseidon_params(len(values) + 1)
    return _permute([0, *values], params)[0]


def poseidon2(left: int, right: int) -> int:
    """2-to-1 compression used for the payment commitment."""
    return poseidon_hash([left, right])
