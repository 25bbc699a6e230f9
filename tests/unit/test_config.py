"""Tests for network and session configuration."""

import dataclasses

import pytest

from cpmm.config import DEFAULT_SESSION_CONFIG, MAINNET, TESTNET, NetworkConfig, SessionConfig
from cpmm.constants import TOKEN_PRIORITY


class TestSessionConfig:
    """Tests for SessionConfig."""

    def test_hashable(self):
        assert hash(DEFAULT_SESSION_CONFIG) == hash(SessionConfig())
        assert SessionConfig(token_priority={"0xAB": 1}) in {SessionConfig(token_priority={"0xab": 1})}

    def test_priority_mapping_is_normalized(self):
        config = SessionConfig(token_priority={"0xBB": 2, "0xAA": 1})
        assert config.token_priority == (("0xaa", 1), ("0xbb", 2))
        assert config.priority == {"0xaa": 1, "0xbb": 2}

    def test_default_priority_matches_table(self):
        assert SessionConfig().priority == TOKEN_PRIORITY

    def test_priority_copies_are_independent(self):
        """Mutating one session's table cannot leak into another's."""
        table = DEFAULT_SESSION_CONFIG.priority
        table["0x" + "11" * 20] = 99
        assert "0x" + "11" * 20 not in DEFAULT_SESSION_CONFIG.priority

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            DEFAULT_SESSION_CONFIG.max_candles = 1  # type: ignore[misc]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"default_slippage_bps": -1},
            {"default_slippage_bps": 10_001},
            {"quote_debounce_seconds": -0.1},
            {"max_candles": 0},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            SessionConfig(**kwargs)


class TestNetworkConfig:
    """Tests for NetworkConfig."""

    def test_from_env_defaults_to_mainnet(self, monkeypatch):
        monkeypatch.delenv("CPMM_NETWORK", raising=False)
        monkeypatch.delenv("CPMM_RPC_URL", raising=False)
        assert NetworkConfig.from_env() == MAINNET

    def test_from_env_rpc_override(self, monkeypatch):
        monkeypatch.setenv("CPMM_NETWORK", "testnet")
        monkeypatch.setenv("CPMM_RPC_URL", "http://localhost:8545")
        config = NetworkConfig.from_env()
        assert config.rpc_url == "http://localhost:8545"
        assert config.pool_manager == TESTNET.pool_manager

    def test_unknown_network(self, monkeypatch):
        monkeypatch.setenv("CPMM_NETWORK", "nowhere")
        with pytest.raises(ValueError, match="Unknown network"):
            NetworkConfig.from_env()

    def test_fee_out_of_range(self):
        with pytest.raises(ValueError, match="pool_fee_bps"):
            dataclasses.replace(MAINNET, pool_fee_bps=10_000)
