"""
DeepBook Client - Amount Scaling.

============================================================
PURPOSE
============================================================
Exact conversion between human decimal amounts and the chain's
fixed-point integers.

CRITICAL PRINCIPLE:
    "Never round."
    An amount that cannot be represented exactly is rejected
    before any chain interaction.

CHAIN UNITS:
- Coin amount:  human * 10^decimals
- Quantity:     human * 10^base_decimals, multiple of lot_size,
                at least min_size
- Price:        human * FLOAT_SCALAR * 10^quote_decimals / 10^base_decimals,
                multiple of tick_size
- Fee rate:     fraction * FLOAT_SCALAR

============================================================
"""

import logging
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, Union

from .constants import FLOAT_SCALAR
from .errors import (
    BelowMinimumSize,
    InvalidAmount,
    InvalidLotAlignment,
    InvalidTickAlignment,
    PrecisionLoss,
)
from .registry import CoinRegistry, PoolRegistry
from .types import CoinMetadata, PoolMetadata


logger = logging.getLogger(__name__)


HumanAmount = Union[Decimal, int, float, str]

# u64 amounts never need more than 20 significant digits plus the scalars.
_PRECISION = 78


def to_decimal(value: Any, allow_zero: bool = False) -> Decimal:
    """
    Parse a human amount.

    Floats go through their repr so that 1.5 stays 1.5 instead of the
    nearest binary fraction.

    Raises:
        InvalidAmount: Not a finite number, negative, or zero when not allowed
    """
    if isinstance(value, bool):
        raise InvalidAmount(f"Amount must be numeric, got {value!r}", value)
    try:
        if isinstance(value, float):
            amount = Decimal(repr(value))
        else:
            amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvalidAmount(f"Amount must be numeric, got {value!r}", value) from e

    if not amount.is_finite():
        raise InvalidAmount(f"Amount must be finite, got {value!r}", value)
    if amount < 0 or (amount == 0 and not allow_zero):
        raise InvalidAmount(f"Amount must be positive, got {value!r}", value)
    return amount


def _exact_integer(value: Decimal, amount: Any, unit: str) -> int:
    if value != value.to_integral_value():
        raise PrecisionLoss(
            f"{amount} cannot be represented exactly in {unit}",
            amount,
            unit=unit,
        )
    return int(value)


class AmountScaler:
    """
    Pure conversions against a coin and pool registry.

    Coins and pools may be passed by key or as metadata. Metadata wins,
    so a plan can be scaled against the snapshot it was built from.
    """

    def __init__(self, coins: CoinRegistry, pools: PoolRegistry):
        self._coins = coins
        self._pools = pools

    def _coin(self, coin: Union[str, CoinMetadata]) -> CoinMetadata:
        if isinstance(coin, CoinMetadata):
            return coin
        return self._coins.resolve(coin)

    def _pool(self, pool: Union[str, PoolMetadata]) -> PoolMetadata:
        if isinstance(pool, PoolMetadata):
            return pool
        return self._pools.resolve_pool(pool)

    # --------------------------------------------------------
    # COIN AMOUNTS
    # --------------------------------------------------------

    def to_chain_amount(self, amount: HumanAmount, coin: Union[str, CoinMetadata]) -> int:
        """
        Convert a human coin amount to integer units.

        Raises:
            UnknownCoin: Coin not registered
            InvalidAmount: Not a positive number
            PrecisionLoss: More decimals than the coin supports
        """
        metadata = self._coin(coin)
        value = to_decimal(amount)
        with localcontext() as ctx:
            ctx.prec = _PRECISION
            scaled = value.scaleb(metadata.decimals)
        return _exact_integer(scaled, amount, metadata.symbol)

    def from_chain_amount(self, raw: int, coin: Union[str, CoinMetadata]) -> Decimal:
        """Exact inverse of to_chain_amount."""
        metadata = self._coin(coin)
        with localcontext() as ctx:
            ctx.prec = _PRECISION
            return Decimal(int(raw)).scaleb(-metadata.decimals)

    # --------------------------------------------------------
    # PRICES
    # --------------------------------------------------------

    def to_chain_price(self, price: HumanAmount, pool: Union[str, PoolMetadata]) -> int:
        """
        Convert a human price (quote per base) to chain price units.

        Raises:
            UnknownPool: Pool not registered
            InvalidAmount: Not a positive number
            PrecisionLoss: Not representable in chain price units
            InvalidTickAlignment: Not a multiple of the pool tick size
        """
        metadata = self._pool(pool)
        base = self._coins.resolve(metadata.base_coin)
        quote = self._coins.resolve(metadata.quote_coin)

        value = to_decimal(price)
        with localcontext() as ctx:
            ctx.prec = _PRECISION
            scaled = (value * FLOAT_SCALAR).scaleb(quote.decimals - base.decimals)
        chain_price = _exact_integer(scaled, price, f"{metadata.pool_key} price units")

        if chain_price % metadata.tick_size != 0:
            raise InvalidTickAlignment(
                f"Price {price} ({chain_price}) is not a multiple of tick size "
                f"{metadata.tick_size} on {metadata.pool_key}",
                price,
                pool=metadata.pool_key,
                chain_price=chain_price,
                tick_size=metadata.tick_size,
            )
        return chain_price

    def from_chain_price(self, raw: int, pool: Union[str, PoolMetadata]) -> Decimal:
        metadata = self._pool(pool)
        base = self._coins.resolve(metadata.base_coin)
        quote = self._coins.resolve(metadata.quote_coin)
        with localcontext() as ctx:
            ctx.prec = _PRECISION
            return (Decimal(int(raw)) / FLOAT_SCALAR).scaleb(base.decimals - quote.decimals)

    # --------------------------------------------------------
    # QUANTITIES
    # --------------------------------------------------------

    def to_chain_quantity(self, quantity: HumanAmount, pool: Union[str, PoolMetadata]) -> int:
        """
        Convert a human base quantity to integer base units.

        Checks run in order: precision, lot alignment, minimum size.

        Raises:
            UnknownPool: Pool not registered
            InvalidAmount: Not a positive number
            PrecisionLoss: More decimals than the base coin supports
            InvalidLotAlignment: Not a multiple of the pool lot size
            BelowMinimumSize: Below the pool minimum order size
        """
        metadata = self._pool(pool)
        base = self._coins.resolve(metadata.base_coin)
        chain_quantity = self.to_chain_amount(quantity, base)

        if chain_quantity % metadata.lot_size != 0:
            raise InvalidLotAlignment(
                f"Quantity {quantity} ({chain_quantity}) is not a multiple of lot size "
                f"{metadata.lot_size} on {metadata.pool_key}",
                quantity,
                pool=metadata.pool_key,
                chain_quantity=chain_quantity,
                lot_size=metadata.lot_size,
            )
        if chain_quantity < metadata.min_size:
            raise BelowMinimumSize(
                f"Quantity {quantity} ({chain_quantity}) is below minimum size "
                f"{metadata.min_size} on {metadata.pool_key}",
                quantity,
                pool=metadata.pool_key,
                chain_quantity=chain_quantity,
                min_size=metadata.min_size,
            )
        return chain_quantity

    def from_chain_quantity(self, raw: int, pool: Union[str, PoolMetadata]) -> Decimal:
        metadata = self._pool(pool)
        return self.from_chain_amount(raw, metadata.base_coin)

    # --------------------------------------------------------
    # FEE RATES
    # --------------------------------------------------------

    def to_chain_rate(self, rate: HumanAmount) -> int:
        """
        Convert a fee fraction in [0, 1) to FLOAT_SCALAR units.

        Raises:
            InvalidAmount: Outside [0, 1)
            PrecisionLoss: Finer than 1 / FLOAT_SCALAR
        """
        value = to_decimal(rate, allow_zero=True)
        if value >= 1:
            raise InvalidAmount(f"Rate must be below 1, got {rate!r}", rate)
        with localcontext() as ctx:
            ctx.prec = _PRECISION
            scaled = value * FLOAT_SCALAR
        return _exact_integer(scaled, rate, "rate units")
