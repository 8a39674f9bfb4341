"""Python model of circuits/policy_compliance.circom.

Computes the witness the circuit would compute and enforces the same
constraints, so satisfiability can be checked without the compiled artifacts:

  Num2Bits(64)(amount), Num2Bits(64)(maxSpend)
  isValid <== LessEqThan(64)(amount, maxSpend);  isValid === 1
  commitment <== Poseidon(amount, policyHash)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal, InvalidOperation

from core.poseidon import FIELD_MODULUS, poseidon2

logger = logging.getLogger(__name__)

CIRCUIT_BITS = 64
# USDC has 6 decimals; amounts enter the circuit as integer micro-units.
AMOUNT_DECIMALS = 6
AMOUNT_SCALE = 10**AMOUNT_DECIMALS

# Index of each public signal as emitted by snarkjs (outputs first, then public inputs).
SIGNAL_COMMITMENT = 0
SIGNAL_IS_VALID = 1
SIGNAL_MAX_SPEND = 2
SIGNAL_POLICY_HASH = 3
NUM_PUBLIC_SIGNALS = 4


class CircuitUnsatisfiable(Exception):
    """No witness satisfies the constraints for the given inputs."""

    def __init__(self, message: str, constraint: str):
        super().__init__(message)
        self.constraint = constraint


def to_fixed_point(value: Decimal | int | float | str) -> int:
    """Scale a decimal amount to integer micro-units, rounding toward zero for >= 0."""
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"not a decimal amount: {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"not a finite amount: {value!r}")
    return int((amount * AMOUNT_SCALE).to_integral_value(rounding=ROUND_FLOOR))


def parse_field_element(value: str | int, label: str = "value") -> int:
    """Parse a decimal field element string.  Raises ValueError."""
    try:
        number = int(str(value).strip(), 10)
    except ValueError:
        raise ValueError(f"{label} must be a decimal integer, got {value!r}") from None
    if not 0 <= number < FIELD_MODULUS:
        raise ValueError(f"{label} {number} is not a BN254 field element")
    return number


@dataclass(frozen=True)
class CircuitInputs:
    """Scaled circuit inputs.  ``amount`` is the only private signal."""

    amount: int
    max_spend: int
    policy_hash: int

    def to_json(self) -> dict[str, str]:
        # snarkjs input.json: big integers as decimal strings
        return {
            "amount": str(self.amount),
            "maxSpend": str(self.max_spend),
            "policyHash": str(self.policy_hash),
        }


@dataclass(frozen=True)
class Witness:
    inputs: CircuitInputs
    amount_bits: tuple[int, ...]
    max_spend_bits: tuple[int, ...]
    comparator_bits: tuple[int, ...]
    is_valid: int
    commitment: int

    @property
    def public_signals(self) -> list[str]:
        return [
            str(self.commitment),
            str(self.is_valid),
            str(self.inputs.max_spend),
            str(self.inputs.policy_hash),
        ]


class ComplianceCircuit:
    def __init__(self, bits: int = CIRCUIT_BITS):
        if not 1 <= bits <= 252:
            raise ValueError("comparator width must leave headroom in the field")
        self.bits = bits

    # ── gadgets ───────────────────────────────────────────────────

    @staticmethod
    def num2bits(value: int, n: int, label: str) -> tuple[int, ...]:
        """Little-endian decomposition; fails when *value* does not fit in *n* bits."""
        if not 0 <= value < (1 << n):
            raise CircuitUnsatisfiable(
                f"{label}={value} does not fit in {n} bits",
                f"Num2Bits({n}).{label}",
            )
        return tuple((value >> i) & 1 for i in range(n))

    def less_eq_than(self, a: int, b: int) -> tuple[int, tuple[int, ...]]:
        # LessThan(n)(a, b + 1): bit n of a + 2^n - (b + 1) is 1 iff a > b.
        n = self.bits
        x = (a + (1 << n) - (b + 1)) % FIELD_MODULUS
        bits = self.num2bits(x, n + 1, "comparator")
        return 1 - bits[n], bits

    # ── witness ───────────────────────────────────────────────────

    def calculate_witness(self, inputs: CircuitInputs) -> Witness:
        """Compute every intermediate signal.  Raises CircuitUnsatisfiable."""
        if not 0 <= inputs.policy_hash < FIELD_MODULUS:
            raise CircuitUnsatisfiable(
                f"policyHash={inputs.policy_hash} is not a field element", "policyHash"
            )
        amount_bits = self.num2bits(inputs.amount, self.bits, "amount")
        max_spend_bits = self.num2bits(inputs.max_spend, self.bits, "maxSpend")
        is_valid, comparator_bits = self.less_eq_than(inputs.amount, inputs.max_spend)
        if is_valid != 1:
            raise CircuitUnsatisfiable(
                f"amount {inputs.amount} exceeds maxSpend {inputs.max_spend}",
                "isValid === 1",
            )
        commitment = poseidon2(inputs.amount, inputs.policy_hash)
        witness = Witness(
            inputs=inputs,
            amount_bits=amount_bits,
            max_spend_bits=max_spend_bits,
            comparator_bits=comparator_bits,
            is_valid=is_valid,
            commitment=commitment,
        )
        logger.debug("witness computed: commitment=%s", commitment)
        return witness

    def check_constraints(self, witness: Witness) -> None:
        """Re-check a witness against every constraint.  Raises CircuitUnsatisfiable."""
        inputs = witness.inputs
        for label, bits, value in (
            ("amount", witness.amount_bits, inputs.amount),
            ("maxSpend", witness.max_spend_bits, inputs.max_spend),
        ):
            if len(bits) != self.bits or any(b not in (0, 1) for b in bits):
                raise CircuitUnsatisfiable(f"{label} bits are not boolean", f"Num2Bits.{label}")
            if sum(b << i for i, b in enumerate(bits)) != value:
                raise CircuitUnsatisfiable(f"{label} bits do not recompose", f"Num2Bits.{label}")

        expected_valid, expected_bits = self.less_eq_than(inputs.amount, inputs.max_spend)
        if witness.comparator_bits != expected_bits or witness.is_valid != expected_valid:
            raise CircuitUnsatisfiable("comparator output is inconsistent", "LessEqThan")
        if witness.is_valid != 1:
            raise CircuitUnsatisfiable("isValid must equal 1", "isValid === 1")
        if witness.commitment != poseidon2(inputs.amount, inputs.policy_hash):
            raise CircuitUnsatisfiable("commitment is not Poseidon(amount, policyHash)", "commitment")

    def is_satisfiable(self, inputs: CircuitInputs) -> bool:
        try:
            self.calculate_witness(inputs)
        except CircuitUnsatisfiable:
            return False
        return True
