"""Compile the policy-compliance circuit and run a development trusted setup.

Run as ``python -m scripts.compile_circuit`` from the repository root.
Requires circom 2.x and snarkjs on PATH, and circomlib under --node-modules
(``npm install circomlib``).  Produces, in circuits/build/:

  policy_compliance_js/policy_compliance.wasm   witness generator
  policy_compliance_final.zkey                  proving key
  verification_key.json                         verification key

Single-party setup with one random contribution: fine for development, never
for production, where a multi-party ceremony is required.
"""

from __future__ import annotations

import argparse
import logging
import secrets
import shutil
import subprocess
import sys
from pathlib import Path

import httpx

from core.config import CIRCUIT_BUILD_DIR

logger = logging.getLogger(__name__)

CIRCUIT_NAME = "policy_compliance"
CIRCUIT_FILE = Path("circuits") / f"{CIRCUIT_NAME}.circom"
# pot14 covers circuits up to 2^14 constraints.
PTAU_FILE = "powersOfTau28_hez_final_14.ptau"
PTAU_URL = f"https://hermez.s3-eu-west-1.amazonaws.com/{PTAU_FILE}"


class BuildError(Exception):
    """A build step failed or a prerequisite is missing."""


def check_tool(binary: str) -> str:
    """Return the tool's path, or raise BuildError if it is not on PATH."""
    path = shutil.which(binary)
    if path is None:
        raise BuildError(f"{binary} not found on PATH")
    return path


def run_step(cmd: list[str], description: str, timeout: float = 600.0) -> str:
    logger.info("%s …", description)
    logger.debug("running %s", " ".join(cmd))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        raise BuildError(f"{description} timed out after {timeout}s") from exc
    if result.returncode != 0:
        raise BuildError(f"{description} failed ({result.returncode}):\n{result.stdout}\n{result.stderr}")
    return result.stdout


def ensure_ptau(directory: Path) -> Path:
    """Download the powers-of-tau file into *directory* unless already present."""
    ptau_path = directory / PTAU_FILE
    if ptau_path.is_file():
        logger.info("powers of tau already present: %s", ptau_path)
        return ptau_path

    logger.info("downloading powers of tau from %s", PTAU_URL)
    partial = ptau_path.with_suffix(".part")
    try:
        with httpx.stream("GET", PTAU_URL, follow_redirects=True, timeout=60.0) as resp:
            resp.raise_for_status()
            with partial.open("wb") as fh:
                for chunk in resp.iter_bytes():
                    fh.write(chunk)
    except httpx.HTTPError as exc:
        partial.unlink(missing_ok=True)
        raise BuildError(f"powers of tau download failed: {exc}") from exc
    partial.rename(ptau_path)
    return ptau_path


def build(
    build_dir: Path = CIRCUIT_BUILD_DIR,
    node_modules: Path = Path("node_modules"),
    snarkjs: str = "snarkjs",
    circom: str = "circom",
) -> Path:
    """Run the whole pipeline.  Returns the verification key path."""
    circom_path = check_tool(circom)
    check_tool(snarkjs)
    logger.info("circom: %s", run_step([circom_path, "--version"], "checking circom").strip())

    if not CIRCUIT_FILE.is_file():
        raise BuildError(f"circuit file not found: {CIRCUIT_FILE}")
    if not (node_modules / "circomlib").is_dir():
        raise BuildError(f"circomlib not found under {node_modules}; run: npm install circomlib")

    build_dir.mkdir(parents=True, exist_ok=True)
    run_step(
        [circom, str(CIRCUIT_FILE), "--r1cs", "--wasm", "--sym", "-o", str(build_dir), "-l", str(node_modules)],
        "compiling circuit",
    )

    ptau_path = ensure_ptau(build_dir)
    r1cs = build_dir / f"{CIRCUIT_NAME}.r1cs"
    zkey_0 = build_dir / f"{CIRCUIT_NAME}_0000.zkey"
    zkey_final = build_dir / f"{CIRCUIT_NAME}_final.zkey"
    vkey = build_dir / "verification_key.json"

    run_step([snarkjs, "groth16", "setup", str(r1cs), str(ptau_path), str(zkey_0)], "groth16 setup")
    run_step(
        [
            snarkjs, "zkey", "contribute", str(zkey_0), str(zkey_final),
            "--name=Development Contribution", f"-e={secrets.token_hex(32)}",
        ],
        "contributing to ceremony (development mode)",
    )
    run_step([snarkjs, "zkey", "export", "verificationkey", str(zkey_final), str(vkey)], "exporting verification key")
    zkey_0.unlink(missing_ok=True)
    return vkey


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    parser = argparse.ArgumentParser(description="Compile the policy-compliance circuit (dev setup)")
    parser.add_argument("--build-dir", type=Path, default=CIRCUIT_BUILD_DIR)
    parser.add_argument("--node-modules", type=Path, default=Path("node_modules"))
    parser.add_argument("--snarkjs", default="snarkjs")
    parser.add_argument("--circom", default="circom")
    args = parser.parse_args(argv)

    try:
        vkey = build(args.build_dir, args.node_modules, args.snarkjs, args.circom)
    except BuildError as exc:
        logger.error("%s", exc)
        sys.exit(1)

    logger.info("─── done ───")
    logger.info("verification key: %s", vkey)
    logger.warning("DEVELOPMENT setup only; production needs a multi-party ceremony")


if __name__ == "__main__":
    main()
