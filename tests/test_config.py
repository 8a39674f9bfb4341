"""Tests for core/config.py — load_config, env parsing, defaults."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from core.config import (
    CIRCUIT_BUILD_DIR,
    AppConfig,
    load_config,
)
from core.config import _getenv  # noqa: PLC2701
from core.config import _getenv_bool  # noqa: PLC2701


class TestGetenv:
    def test_returns_default_when_unset(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            assert _getenv("MISSING_VAR_XYZ", "default") == "default"

    def test_strips_inline_comment(self) -> None:
        with patch.dict(os.environ, {"TEST_KEY": "300  # five minutes"}, clear=False):
            assert _getenv("TEST_KEY", "fallback") == "300"


class TestGetenvBool:
    @pytest.mark.parametrize("raw", ["1", "true", "TRUE", "yes", "on"])
    def test_truthy_values(self, raw: str) -> None:
        with patch.dict(os.environ, {"FLAG_XYZ": raw}, clear=True):
            assert _getenv_bool("FLAG_XYZ") is True

    @pytest.mark.parametrize("raw", ["0", "false", "no", "off", "maybe"])
    def test_falsy_values(self, raw: str) -> None:
        with patch.dict(os.environ, {"FLAG_XYZ": raw}, clear=True):
            assert _getenv_bool("FLAG_XYZ") is False

    def test_default_when_unset(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            assert _getenv_bool("FLAG_XYZ", default=True) is True


class TestLoadConfig:
    def test_defaults_when_nothing_set(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            config = load_config()
        assert isinstance(config, AppConfig)
        assert config.ens.rpc_url == "https://eth.llamarpc.com"
        assert config.ens.cache_ttl_seconds == 300.0
        assert config.ens.fetch_timeout_seconds == 10.0
        assert config.ens.fetch_attempts == 3
        assert config.zk.vkey_path == CIRCUIT_BUILD_DIR / "verification_key.json"
        assert config.zk.snarkjs_bin == "snarkjs"
        assert config.zk.strict is False

    def test_uses_env_overrides_when_provided(self) -> None:
        env = {
            "ETH_RPC_URL": "https://custom.rpc.example",
            "POLICY_CACHE_TTL_SECONDS": "60",
            "ENS_FETCH_ATTEMPTS": "5",
            "ZK_CIRCUIT_WASM": "/opt/zk/c.wasm",
            "ZK_CIRCUIT_ZKEY": "/opt/zk/c.zkey",
            "ZK_VERIFICATION_KEY": "/opt/zk/vk.json",
            "SNARKJS_BIN": "/usr/local/bin/snarkjs",
            "ZK_STRICT": "true",
        }
        with patch.dict(os.environ, env, clear=True):
            config = load_config()
        assert config.ens.rpc_url == "https://custom.rpc.example"
        assert config.ens.cache_ttl_seconds == 60.0
        assert config.ens.fetch_attempts == 5
        assert config.zk.wasm_path == Path("/opt/zk/c.wasm")
        assert config.zk.zkey_path == Path("/opt/zk/c.zkey")
        assert config.zk.vkey_path == Path("/opt/zk/vk.json")
        assert config.zk.snarkjs_bin == "/usr/local/bin/snarkjs"
        assert config.zk.strict is True

    def test_malformed_float_raises(self) -> None:
        with patch.dict(os.environ, {"POLICY_CACHE_TTL_SECONDS": "five"}, clear=True):
            with pytest.raises(EnvironmentError, match="POLICY_CACHE_TTL_SECONDS"):
                load_config()

    def test_malformed_int_raises(self) -> None:
        with patch.dict(os.environ, {"ENS_FETCH_ATTEMPTS": "2.5"}, clear=True):
            with pytest.raises(EnvironmentError, match="ENS_FETCH_ATTEMPTS"):
                load_config()
