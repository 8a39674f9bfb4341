"""Trusted-setup artifacts: compiled circuit, proving key, verification key.

Produced offline by scripts/compile_circuit.py and treated as immutable.
The verification key is parsed once and kept in memory for the process lifetime.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from core.circuit import NUM_PUBLIC_SIGNALS
from core.config import ZKConfig

logger = logging.getLogger(__name__)

_VKEY_FIELDS = ("vk_alpha_1", "vk_beta_2", "vk_gamma_2", "vk_delta_2", "IC")


class VerificationKeyError(Exception):
    """The verification key is missing or does not belong to this circuit."""


@dataclass
class CircuitArtifacts:
    wasm_path: Path
    zkey_path: Path
    vkey_path: Path
    _vkey: dict[str, Any] | None = field(default=None, init=False, repr=False)

    @classmethod
    def from_config(cls, config: ZKConfig) -> CircuitArtifacts:
        return cls(config.wasm_path, config.zkey_path, config.vkey_path)

    def proving_available(self) -> bool:
        return self.wasm_path.is_file() and self.zkey_path.is_file()

    def verification_available(self) -> bool:
        return self._vkey is not None or self.vkey_path.is_file()

    def missing(self) -> list[Path]:
        return [p for p in (self.wasm_path, self.zkey_path, self.vkey_path) if not p.is_file()]

    def verification_key(self) -> dict[str, Any]:
        """Load, validate and cache the verification key.  Raises VerificationKeyError."""
        if self._vkey is not None:
            return self._vkey

        if not self.vkey_path.is_file():
            raise VerificationKeyError(f"verification key not found at {self.vkey_path}")
        try:
            vkey = json.loads(self.vkey_path.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            raise VerificationKeyError(f"cannot read verification key {self.vkey_path}: {exc}") from exc

        if not isinstance(vkey, dict):
            raise VerificationKeyError("verification key must be a JSON object")
        if vkey.get("protocol") != "groth16":
            raise VerificationKeyError(f"unsupported protocol {vkey.get('protocol')!r}, expected groth16")
        missing = [k for k in _VKEY_FIELDS if k not in vkey]
        if missing:
            raise VerificationKeyError(f"verification key is missing {', '.join(missing)}")
        if vkey.get("nPublic") != NUM_PUBLIC_SIGNALS:
            raise VerificationKeyError(
                f"verification key expects {vkey.get('nPublic')} public signals, circuit has {NUM_PUBLIC_SIGNALS}"
            )

        logger.info("loaded verification key from %s (curve=%s)", self.vkey_path, vkey.get("curve"))
        self._vkey = vkey
        return vkey
