"""Load and validate application configuration from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


# Output directory of scripts/compile_circuit.py.
CIRCUIT_BUILD_DIR = Path("circuits/build")


@dataclass(frozen=True)
class EnsConfig:
    rpc_url: str = "https://eth.llamarpc.com"
    cache_ttl_seconds: float = 300.0
    fetch_timeout_seconds: float = 10.0
    fetch_attempts: int = 3  # per text record, transport errors only


@dataclass(frozen=True)
class ZKConfig:
    wasm_path: Path = CIRCUIT_BUILD_DIR / "policy_compliance_js" / "policy_compliance.wasm"
    zkey_path: Path = CIRCUIT_BUILD_DIR / "policy_compliance_final.zkey"
    vkey_path: Path = CIRCUIT_BUILD_DIR / "verification_key.json"
    snarkjs_bin: str = "snarkjs"
    snarkjs_timeout_seconds: float = 120.0
    # Strict mode never substitutes a mock proof for a real one.
    strict: bool = False


@dataclass(frozen=True)
class AppConfig:
    ens: EnsConfig
    zk: ZKConfig


def _getenv(name: str, default: str | None = None) -> str | None:
    """os.getenv wrapper that strips inline comments (e.g. '300  # note' → '300')."""
    raw = os.getenv(name, default)
    if raw is None:
        return None
    # Split on first ' #' (space-hash) to drop inline comments, then strip
    return raw.split(" #")[0].strip()


def _getenv_float(name: str, default: float) -> float:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise EnvironmentError(f"Environment variable {name} must be a number, got {raw!r}") from None


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise EnvironmentError(f"Environment variable {name} must be an integer, got {raw!r}") from None


def _getenv_bool(name: str, default: bool = False) -> bool:
    raw = _getenv(name)
    if not raw:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _getenv_path(name: str, default: Path) -> Path:
    raw = _getenv(name)
    return Path(raw) if raw else default


def load_config() -> AppConfig:
    """Build AppConfig from environment. Raises EnvironmentError on malformed values."""
    defaults = ZKConfig()
    return AppConfig(
        ens=EnsConfig(
            rpc_url=_getenv("ETH_RPC_URL", "https://eth.llamarpc.com"),  # type: ignore[arg-type]
            cache_ttl_seconds=_getenv_float("POLICY_CACHE_TTL_SECONDS", 300.0),
            fetch_timeout_seconds=_getenv_float("ENS_FETCH_TIMEOUT_SECONDS", 10.0),
            fetch_attempts=_getenv_int("ENS_FETCH_ATTEMPTS", 3),
        ),
        zk=ZKConfig(
            wasm_path=_getenv_path("ZK_CIRCUIT_WASM", defaults.wasm_path),
            zkey_path=_getenv_path("ZK_CIRCUIT_ZKEY", defaults.zkey_path),
            vkey_path=_getenv_path("ZK_VERIFICATION_KEY", defaults.vkey_path),
            snarkjs_bin=_getenv("SNARKJS_BIN", "snarkjs"),  # type: ignore[arg-type]
            snarkjs_timeout_seconds=_getenv_float("SNARKJS_TIMEOUT_SECONDS", 120.0),
            strict=_getenv_bool("ZK_STRICT"),
        ),
    )
