"""Shared fixtures: circuit artifacts laid out in a temporary build directory."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from core.artifacts import CircuitArtifacts

VKEY: dict[str, Any] = {
    "protocol": "groth16",
    "curve": "bn128",
    "nPublic": 4,
    "vk_alpha_1": ["1", "2", "1"],
    "vk_beta_2": [["1", "2"], ["3", "4"], ["1", "0"]],
    "vk_gamma_2": [["1", "2"], ["3", "4"], ["1", "0"]],
    "vk_delta_2": [["1", "2"], ["3", "4"], ["1", "0"]],
    "IC": [["1", "2", "1"]] * 5,
}


@pytest.fixture
def vkey_data() -> dict[str, Any]:
    return dict(VKEY)


@pytest.fixture
def missing_artifacts(tmp_path: Path) -> CircuitArtifacts:
    return CircuitArtifacts(
        wasm_path=tmp_path / "missing.wasm",
        zkey_path=tmp_path / "missing.zkey",
        vkey_path=tmp_path / "missing_vkey.json",
    )


@pytest.fixture
def artifacts(tmp_path: Path) -> CircuitArtifacts:
    wasm = tmp_path / "policy_compliance.wasm"
    zkey = tmp_path / "policy_compliance_final.zkey"
    vkey = tmp_path / "verification_key.json"
    wasm.write_bytes(b"\0asm")
    zkey.write_bytes(b"zkey")
    vkey.write_text(json.dumps(VKEY))
    return CircuitArtifacts(wasm_path=wasm, zkey_path=zkey, vkey_path=vkey)
