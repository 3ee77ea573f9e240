"""
Configuration Tests.

============================================================
PURPOSE
============================================================
Tests for DeepbookConfig loading and validation.

============================================================
"""

import pytest

from deepbook_client import (
    BalanceManagerConfig,
    DeepbookConfig,
    InvalidConfig,
    RetryConfig,
    TimeoutConfig,
)


ADDRESS = "0x" + "a" * 64
MANAGER = "0x" + "1" * 64


# ============================================================
# FROM DICT TESTS
# ============================================================

class TestFromDict:
    """Tests for DeepbookConfig.from_dict."""

    def test_minimal(self):
        """Test that env defaults fill coins and pools."""
        config = DeepbookConfig.from_dict({"env": "testnet", "address": ADDRESS})

        assert "SUI" in config.resolved_coins()
        assert "SUI_DBUSDC" in config.resolved_pools()
        assert config.resolved_rpc_url == "https://fullnode.testnet.sui.io:443"

    def test_overrides(self):
        """Test coin, pool and balance manager entries."""
        config = DeepbookConfig.from_dict({
            "env": "testnet",
            "address": ADDRESS,
            "coins": {"TEST": {"type": "0x7::test::TEST", "decimals": 4}},
            "pools": {
                "TEST_SUI": {
                    "address": "0x77",
                    "base_coin": "TEST",
                    "quote_coin": "SUI",
                    "tick_size": 10,
                    "lot_size": 100,
                    "min_size": 1000,
                },
            },
            "balance_managers": {"main": {"address": MANAGER}},
            "retry": {"max_retries": 5},
        })

        assert config.resolved_coins()["TEST"].decimals == 4
        assert config.resolved_coins()["TEST"].address == "0x7"
        assert config.resolved_pools()["TEST_SUI"].lot_size == 100
        assert config.balance_managers["main"].address == MANAGER
        assert config.retry.max_retries == 5

    def test_unknown_key(self):
        """Test that unknown top-level keys are rejected."""
        with pytest.raises(InvalidConfig) as exc_info:
            DeepbookConfig.from_dict({"address": ADDRESS, "gas": 1})

        assert exc_info.value.key == "gas"

    def test_admin_cap_not_accepted(self):
        """Test that admin capabilities are not part of the configuration."""
        with pytest.raises(InvalidConfig) as exc_info:
            DeepbookConfig.from_dict({"address": ADDRESS, "admin_cap": MANAGER})

        assert exc_info.value.key == "admin_cap"

    def test_unknown_nested_key(self):
        """Test that unknown retry keys are rejected."""
        with pytest.raises(InvalidConfig):
            DeepbookConfig.from_dict({"address": ADDRESS, "retry": {"attempts": 3}})

    def test_missing_entry(self):
        """Test that incomplete pool entries are rejected."""
        with pytest.raises(InvalidConfig):
            DeepbookConfig.from_dict({
                "address": ADDRESS,
                "pools": {"DEEP_SUI": {"address": "0x1"}},
            })

    def test_not_a_mapping(self):
        """Test that the root must be a mapping."""
        with pytest.raises(InvalidConfig):
            DeepbookConfig.from_dict(["testnet"])


# ============================================================
# VALIDATION TESTS
# ============================================================

class TestValidation:
    """Tests for DeepbookConfig.validate."""

    def test_unknown_env(self):
        """Test that only mainnet and testnet are accepted."""
        with pytest.raises(InvalidConfig) as exc_info:
            DeepbookConfig(env="devnet", address=ADDRESS).validate()

        assert exc_info.value.key == "env"

    def test_bad_address(self):
        """Test that the sender must be an address."""
        with pytest.raises(InvalidConfig):
            DeepbookConfig(address="alice").validate()

    def test_timeouts_must_be_positive(self):
        """Test that round-trip timeouts and the poll interval must be positive."""
        with pytest.raises(InvalidConfig) as exc_info:
            DeepbookConfig(address=ADDRESS, timeout=TimeoutConfig(poll_interval_seconds=0)).validate()

        assert exc_info.value.key == "timeout.poll_interval_seconds"

    def test_unknown_outcome_lookup_can_be_disabled(self):
        """Test that a zero lookup wait is accepted."""
        DeepbookConfig(address=ADDRESS, timeout=TimeoutConfig(unknown_outcome_wait_seconds=0)).validate()

    def test_pool_with_unknown_coin(self):
        """Test that pools must reference known coins."""
        config = DeepbookConfig.from_dict({"address": ADDRESS})
        pool = config.resolved_pools()["DEEP_SUI"]
        config.pools["FOO_SUI"] = type(pool)(
            pool_key="FOO_SUI",
            pool_id="0x99",
            base_coin="FOO",
            quote_coin="SUI",
            tick_size=1,
            lot_size=1,
            min_size=1,
        )

        with pytest.raises(InvalidConfig):
            config.validate()

    def test_min_size_must_be_lot_multiple(self):
        """Test the lot and minimum size relation."""
        with pytest.raises(InvalidConfig):
            DeepbookConfig.from_dict({
                "address": ADDRESS,
                "pools": {
                    "DEEP_SUI": {
                        "address": "0x1",
                        "base_coin": "DEEP",
                        "quote_coin": "SUI",
                        "tick_size": 1,
                        "lot_size": 3,
                        "min_size": 10,
                    },
                },
            })

    def test_bad_manager_address(self):
        """Test that balance manager ids are validated."""
        config = DeepbookConfig(
            address=ADDRESS,
            balance_managers={"main": BalanceManagerConfig(address="nope")},
        )

        with pytest.raises(InvalidConfig):
            config.validate()

    def test_conflict_attempts_at_least_one(self):
        """Test the version conflict bound."""
        config = DeepbookConfig(address=ADDRESS, retry=RetryConfig(max_version_conflict_attempts=0))

        with pytest.raises(InvalidConfig):
            config.validate()

    def test_for_testing(self):
        """Test the testing preset."""
        config = DeepbookConfig.for_testing()

        assert config.retry.initial_delay_seconds == 0.0
        assert config.env == "testnet"


# ============================================================
# FILE AND ENVIRONMENT TESTS
# ============================================================

class TestLoaders:
    """Tests for YAML and environment loading."""

    def test_from_yaml(self, tmp_path):
        """Test loading a YAML file."""
        path = tmp_path / "deepbook.yaml"
        path.write_text(
            "env: mainnet\n"
            f"address: '{ADDRESS}'\n"
            "balance_managers:\n"
            f"  main:\n    address: '{MANAGER}'\n"
        )

        config = DeepbookConfig.from_yaml(path)

        assert config.env == "mainnet"
        assert "SUI_USDC" in config.resolved_pools()
        assert config.balance_managers["main"].address == MANAGER

    def test_from_yaml_missing_file(self, tmp_path):
        """Test that unreadable files raise InvalidConfig."""
        with pytest.raises(InvalidConfig):
            DeepbookConfig.from_yaml(tmp_path / "missing.yaml")

    def test_from_env(self, tmp_path, monkeypatch):
        """Test that environment variables override the config file."""
        path = tmp_path / "deepbook.yaml"
        path.write_text("env: mainnet\naddress: '0x1'\n")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("DEEPBOOK_CONFIG_FILE", str(path))
        monkeypatch.setenv("DEEPBOOK_ENV", "testnet")
        monkeypatch.setenv("DEEPBOOK_ADDRESS", ADDRESS)
        monkeypatch.delenv("DEEPBOOK_RPC_URL", raising=False)
        monkeypatch.delenv("DEEPBOOK_ADMIN_CAP", raising=False)

        config = DeepbookConfig.from_env()

        assert config.env == "testnet"
        assert config.address == ADDRESS
