"""
DeepBook Client - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the DeepBook client.

CRITICAL CONSTRAINTS:
- No blind retries
- No infinite loops
- Fail fast at construction on anything unknown or malformed

============================================================
"""

import logging
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

from .constants import GAS_BUDGET, NETWORK_PRESETS, SUPPORTED_ENVS, PackageIds
from .errors import InvalidConfig
from .types import CoinMetadata, PoolMetadata


logger = logging.getLogger(__name__)


_OBJECT_ID_RE = re.compile(r"^0x[0-9a-fA-F]{1,64}$")


def is_object_id(value: Any) -> bool:
    """Check if value looks like a Sui address / object id."""
    return isinstance(value, str) and bool(_OBJECT_ID_RE.match(value))


# ============================================================
# RETRY CONFIGURATION
# ============================================================

@dataclass
class RetryConfig:
    """
    Retry policy for transient failures.

    SAFETY: Bounded retries with exponential backoff. Only failures
    known not to have reached the chain are retried.
    """

    max_retries: int = 3
    """Maximum NetworkTransient retries per round-trip."""

    initial_delay_seconds: float = 0.5
    """Initial delay before first retry."""

    max_delay_seconds: float = 10.0
    """Maximum delay between retries."""

    backoff_multiplier: float = 2.0
    """Exponential backoff multiplier."""

    max_version_conflict_attempts: int = 3
    """Total submissions per plan when the chain reports a version conflict."""


# ============================================================
# TIMEOUT CONFIGURATION
# ============================================================

@dataclass
class TimeoutConfig:
    """Per round-trip timeouts."""

    connect_timeout_seconds: float = 5.0
    """Connection timeout."""

    submit_timeout_seconds: float = 30.0
    """Timeout for transaction execution."""

    query_timeout_seconds: float = 10.0
    """Timeout for read queries."""

    unknown_outcome_wait_seconds: float = 30.0
    """How long a timed-out transaction is looked up by digest. 0 disables the lookup."""

    poll_interval_seconds: float = 1.0
    """Delay between transaction lookups."""


# ============================================================
# CACHE CONFIGURATION
# ============================================================

@dataclass
class CacheConfig:
    """Balance cache configuration."""

    balance_ttl_seconds: float = 30.0
    """Cached balances older than this are stale. 0 disables the TTL."""


# ============================================================
# BALANCE MANAGER CONFIGURATION
# ============================================================

@dataclass
class BalanceManagerConfig:
    """Registration of a named balance manager."""

    address: str
    """On-chain object id of the balance manager."""

    trade_cap: Optional[str] = None
    """TradeCap object id, when the sender is not the owner."""

    owner: Optional[str] = None
    """Owner address, when known."""


# ============================================================
# MASTER CONFIGURATION
# ============================================================

@dataclass
class DeepbookConfig:
    """
    Master configuration for the DeepBook client.
    """

    env: str = "testnet"
    """Network environment (mainnet or testnet)."""

    address: str = ""
    """Sender address."""

    rpc_url: Optional[str] = None
    """Fullnode JSON-RPC endpoint. Defaults to the env preset."""

    coins: Dict[str, CoinMetadata] = field(default_factory=dict)
    """Coin overrides, merged over the env defaults."""

    pools: Dict[str, PoolMetadata] = field(default_factory=dict)
    """Pool overrides, merged over the env defaults."""

    balance_managers: Dict[str, BalanceManagerConfig] = field(default_factory=dict)
    """Named balance manager registrations."""

    gas_budget: int = GAS_BUDGET
    """Gas budget per transaction in MIST."""

    # Sub-configs
    retry: RetryConfig = field(default_factory=RetryConfig)
    """Retry configuration."""

    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    """Timeout configuration."""

    cache: CacheConfig = field(default_factory=CacheConfig)
    """Cache configuration."""

    # --------------------------------------------------------
    # RESOLVED VIEWS
    # --------------------------------------------------------

    @property
    def package_ids(self) -> PackageIds:
        return NETWORK_PRESETS[self.env].package_ids

    @property
    def resolved_rpc_url(self) -> str:
        return self.rpc_url or NETWORK_PRESETS[self.env].rpc_url

    def resolved_coins(self) -> Dict[str, CoinMetadata]:
        """Env default coins with overrides applied."""
        coins = dict(NETWORK_PRESETS[self.env].coins)
        coins.update(self.coins)
        return coins

    def resolved_pools(self) -> Dict[str, PoolMetadata]:
        """Env default pools with overrides applied."""
        pools = dict(NETWORK_PRESETS[self.env].pools)
        pools.update(self.pools)
        return pools

    # --------------------------------------------------------
    # VALIDATION
    # --------------------------------------------------------

    def validate(self) -> None:
        """
        Validate the configuration.

        Raises:
            InvalidConfig: On the first problem found
        """
        if self.env not in SUPPORTED_ENVS:
            raise InvalidConfig("env", f"must be one of {SUPPORTED_ENVS}", self.env)

        if not is_object_id(self.address):
            raise InvalidConfig("address", "must be a 0x-prefixed hex address", self.address)

        if self.gas_budget <= 0:
            raise InvalidConfig("gas_budget", "must be positive", self.gas_budget)

        coins = self.resolved_coins()
        for symbol, coin in coins.items():
            if symbol != coin.symbol:
                raise InvalidConfig(f"coins.{symbol}", "key does not match coin symbol", coin.symbol)
            if coin.decimals < 0:
                raise InvalidConfig(f"coins.{symbol}.decimals", "must be >= 0", coin.decimals)
            if "::" not in coin.coin_type:
                raise InvalidConfig(f"coins.{symbol}.coin_type", "must be a Move type", coin.coin_type)

        for key, pool in self.resolved_pools().items():
            if key != pool.pool_key:
                raise InvalidConfig(f"pools.{key}", "key does not match pool key", pool.pool_key)
            if not is_object_id(pool.pool_id):
                raise InvalidConfig(f"pools.{key}.pool_id", "must be an object id", pool.pool_id)
            for side in (pool.base_coin, pool.quote_coin):
                if side not in coins:
                    raise InvalidConfig(f"pools.{key}", f"references unknown coin {side}")
            for name in ("tick_size", "lot_size", "min_size"):
                if getattr(pool, name) <= 0:
                    raise InvalidConfig(f"pools.{key}.{name}", "must be positive", getattr(pool, name))
            if pool.min_size % pool.lot_size != 0:
                raise InvalidConfig(f"pools.{key}.min_size", "must be a multiple of lot_size", pool.min_size)

        for name, manager in self.balance_managers.items():
            if not is_object_id(manager.address):
                raise InvalidConfig(f"balance_managers.{name}.address", "must be an object id", manager.address)
            if manager.trade_cap is not None and not is_object_id(manager.trade_cap):
                raise InvalidConfig(f"balance_managers.{name}.trade_cap", "must be an object id", manager.trade_cap)

        if self.retry.max_retries < 0:
            raise InvalidConfig("retry.max_retries", "must be >= 0", self.retry.max_retries)
        if self.retry.max_version_conflict_attempts < 1:
            raise InvalidConfig(
                "retry.max_version_conflict_attempts",
                "must be >= 1",
                self.retry.max_version_conflict_attempts,
            )

        for name in ("connect_timeout_seconds", "submit_timeout_seconds", "query_timeout_seconds", "poll_interval_seconds"):
            if getattr(self.timeout, name) <= 0:
                raise InvalidConfig(f"timeout.{name}", "must be positive", getattr(self.timeout, name))
        if self.timeout.unknown_outcome_wait_seconds < 0:
            raise InvalidConfig(
                "timeout.unknown_outcome_wait_seconds",
                "must be >= 0",
                self.timeout.unknown_outcome_wait_seconds,
            )

    # --------------------------------------------------------
    # LOADERS
    # --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeepbookConfig":
        """
        Build configuration from a plain mapping.

        Coin overrides take {type, decimals}; pool overrides take
        {address, base_coin, quote_coin, tick_size, lot_size, min_size};
        balance managers take {address, trade_cap}.

        Raises:
            InvalidConfig: On unknown keys or malformed entries
        """
        if not isinstance(data, dict):
            raise InvalidConfig("<root>", "must be a mapping", type(data).__name__)

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise InvalidConfig(", ".join(sorted(unknown)), "unknown configuration keys")

        try:
            config = cls(
                env=data.get("env", "testnet"),
                address=data.get("address", ""),
                rpc_url=data.get("rpc_url"),
                gas_budget=int(data.get("gas_budget", GAS_BUDGET)),
                coins={
                    symbol: CoinMetadata(
                        symbol=symbol,
                        coin_type=entry["type"],
                        decimals=int(entry["decimals"]),
                        address=entry.get("address", entry["type"].split("::", 1)[0]),
                    )
                    for symbol, entry in (data.get("coins") or {}).items()
                },
                pools={
                    key: PoolMetadata(
                        pool_key=key,
                        pool_id=entry["address"],
                        base_coin=entry["base_coin"],
                        quote_coin=entry["quote_coin"],
                        tick_size=int(entry["tick_size"]),
                        lot_size=int(entry["lot_size"]),
                        min_size=int(entry["min_size"]),
                    )
                    for key, entry in (data.get("pools") or {}).items()
                },
                balance_managers={
                    name: BalanceManagerConfig(
                        address=entry["address"],
                        trade_cap=entry.get("trade_cap"),
                        owner=entry.get("owner"),
                    )
                    for name, entry in (data.get("balance_managers") or {}).items()
                },
                retry=RetryConfig(**(data.get("retry") or {})),
                timeout=TimeoutConfig(**(data.get("timeout") or {})),
                cache=CacheConfig(**(data.get("cache") or {})),
            )
        except KeyError as e:
            raise InvalidConfig(str(e.args[0]), "required entry is missing") from e
        except (TypeError, ValueError, AttributeError) as e:
            raise InvalidConfig("<root>", f"malformed entry: {e}") from e

        config.validate()
        return config

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "DeepbookConfig":
        """Load configuration from YAML file."""
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise InvalidConfig(str(path), f"cannot read configuration: {e}") from e

        logger.info(f"Loaded DeepBook configuration from {path}")
        return cls.from_dict(data)

    @classmethod
    def from_env(cls) -> "DeepbookConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - DEEPBOOK_ENV
        - DEEPBOOK_ADDRESS
        - DEEPBOOK_RPC_URL
        - DEEPBOOK_CONFIG_FILE (YAML, loaded first; variables override it)
        """
        load_dotenv()

        data: Dict[str, Any] = {}
        config_file = os.environ.get("DEEPBOOK_CONFIG_FILE")
        if config_file:
            try:
                with open(config_file, "r") as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise InvalidConfig("DEEPBOOK_CONFIG_FILE", f"cannot read configuration: {e}") from e

        overrides = {
            "env": os.environ.get("DEEPBOOK_ENV"),
            "address": os.environ.get("DEEPBOOK_ADDRESS"),
            "rpc_url": os.environ.get("DEEPBOOK_RPC_URL"),
        }
        data.update({k: v for k, v in overrides.items() if v})

        return cls.from_dict(data)

    @classmethod
    def for_testing(cls, **overrides: Any) -> "DeepbookConfig":
        """Get configuration for testing: fast retries, testnet presets."""
        params: Dict[str, Any] = dict(
            env="testnet",
            address="0x" + "a" * 64,
            retry=RetryConfig(
                max_retries=2,
                initial_delay_seconds=0.0,
                max_delay_seconds=0.0,
                max_version_conflict_attempts=3,
            ),
            timeout=TimeoutConfig(
                connect_timeout_seconds=1.0,
                submit_timeout_seconds=1.0,
                query_timeout_seconds=1.0,
                unknown_outcome_wait_seconds=1.0,
                poll_interval_seconds=0.01,
            ),
        )
        params.update(overrides)
        config = cls(**params)
        config.validate()
        return config
