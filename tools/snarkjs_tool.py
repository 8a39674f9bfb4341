"""snarkjs CLI wrapper: Groth16 fullprove / verify via subprocess.

Blocking; callers on the event loop run these through asyncio.to_thread.
Inputs and outputs go through a private temporary directory per call.
"""

from __future__ import annotations

import json
import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class SnarkjsError(Exception):
    """snarkjs is missing, timed out, or exited with an error."""


class SnarkjsTool:
    def __init__(self, binary: str = "snarkjs", timeout: float = 120.0) -> None:
        self.binary = binary
        self.timeout = timeout

    def _run(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        cmd = [self.binary, *args]
        logger.debug("running %s", " ".join(cmd))
        try:
            return subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError as exc:
            raise SnarkjsError(f"snarkjs binary not found: {self.binary}") from exc
        except subprocess.TimeoutExpired as exc:
            raise SnarkjsError(f"snarkjs {args[0]} {args[1]} timed out after {self.timeout}s") from exc

    def fullprove(
        self,
        inputs: dict[str, str],
        wasm_path: Path,
        zkey_path: Path,
    ) -> tuple[dict[str, Any], list[str]]:
        """Compute the witness and a Groth16 proof.  Returns (proof, public_signals)."""
        with tempfile.TemporaryDirectory(prefix="snarkjs-") as tmp:
            tmp_path = Path(tmp)
            input_file = tmp_path / "input.json"
            proof_file = tmp_path / "proof.json"
            public_file = tmp_path / "public.json"
            input_file.write_text(json.dumps(inputs))

            result = self._run([
                "groth16", "fullprove",
                str(input_file), str(wasm_path), str(zkey_path),
                str(proof_file), str(public_file),
            ])
            if result.returncode != 0:
                raise SnarkjsError(
                    f"groth16 fullprove failed ({result.returncode}):\n{result.stdout}\n{result.stderr}"
                )
            try:
                proof = json.loads(proof_file.read_text())
                public_signals = json.loads(public_file.read_text())
            except (OSError, json.JSONDecodeError) as exc:
                raise SnarkjsError(f"groth16 fullprove produced unreadable output: {exc}") from exc

        return proof, [str(s) for s in public_signals]

    def verify(
        self,
        verification_key: dict[str, Any],
        public_signals: list[str],
        proof: dict[str, Any],
    ) -> bool:
        """Return True iff snarkjs accepts the proof.  Raises SnarkjsError if it cannot run."""
        with tempfile.TemporaryDirectory(prefix="snarkjs-") as tmp:
            tmp_path = Path(tmp)
            vkey_file = tmp_path / "verification_key.json"
            public_file = tmp_path / "public.json"
            proof_file = tmp_path / "proof.json"
            vkey_file.write_text(json.dumps(verification_key))
            public_file.write_text(json.dumps(public_signals))
            proof_file.write_text(json.dumps(proof))

            result = self._run([
                "groth16", "verify",
                str(vkey_file), str(public_file), str(proof_file),
            ])

        ok = result.returncode == 0 and "OK!" in result.stdout
        if not ok:
            logger.info("snarkjs rejected proof: %s", (result.stdout or result.stderr).strip()[-200:])
        return ok
