"""
config.py - Lending parameters as frozen dataclasses.

LendingConfig holds the global parameters of one credit facility and
AssetListing one row of its asset registry. Both coerce numeric inputs to
Decimal and validate on construction; they round-trip through the plain
dictionaries stored in the facility unit's state.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from .core import TOKEN_DECIMAL_PLACES


DEFAULT_YEARLY_INTEREST_RATE_PERCENT = Decimal("20")
DEFAULT_DEFAULT_THRESHOLD_PERCENT = Decimal("110")


def _to_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"{name} must be numeric, got {value!r}")


def _require_wallet(name: str, value: Optional[str]) -> None:
    if not value or not value.strip():
        raise ValueError(f"{name} cannot be empty")


@dataclass(frozen=True, slots=True)
class AssetListing:
    """
    One asset registry entry.

    collaterability is the number of credit-asset units one unit of the asset
    is worth. A listing with rate zero is present but refuses deposits and
    repayments.
    """
    collaterability: Decimal
    accepted: bool = True

    def __post_init__(self):
        rate = _to_decimal("collaterability", self.collaterability)
        if not rate.is_finite():
            raise ValueError(f"collaterability must be finite, got {rate}")
        if rate < 0:
            raise ValueError(f"collaterability cannot be negative, got {rate}")
        object.__setattr__(self, 'collaterability', rate)

    @property
    def usable(self) -> bool:
        """True if the asset may be deposited and used for repayment."""
        return self.accepted and self.collaterability > 0

    def to_state_dict(self) -> Dict[str, Any]:
        return {'collaterability': self.collaterability, 'accepted': self.accepted}

    @classmethod
    def from_state(cls, raw: Dict[str, Any]) -> AssetListing:
        return cls(
            collaterability=raw.get('collaterability', Decimal("0")),
            accepted=bool(raw.get('accepted', False)),
        )


@dataclass(frozen=True, slots=True)
class LendingConfig:
    """
    Global parameters of a credit facility.

    Attributes:
        credit_asset: Unit symbol lent out and owed (e.g. "DAI").
        reserve_wallet: Holds deposited collateral and the credit-asset pool.
        treasury_wallet: Receives every interest payment.
        admin_wallet: The privileged caller for liquidation and configuration.
        yearly_interest_rate_percent: Simple yearly rate, 20 means 20%.
        default_threshold_percent: Debt-to-collateral percent above which an
            account is in default (110 means debt may reach 110% of value).
        liquidation_wallet: Receives seized collateral. None means the
            current treasury wallet.
        credit_decimal_places: Precision that valuations and interest are
            rounded down to.
    """
    credit_asset: str
    reserve_wallet: str
    treasury_wallet: str
    admin_wallet: str
    yearly_interest_rate_percent: Decimal = DEFAULT_YEARLY_INTEREST_RATE_PERCENT
    default_threshold_percent: Decimal = DEFAULT_DEFAULT_THRESHOLD_PERCENT
    liquidation_wallet: Optional[str] = None
    credit_decimal_places: int = TOKEN_DECIMAL_PLACES

    def __post_init__(self):
        """Convert numeric fields to Decimal and validate."""
        rate = _to_decimal("yearly_interest_rate_percent", self.yearly_interest_rate_percent)
        threshold = _to_decimal("default_threshold_percent", self.default_threshold_percent)
        object.__setattr__(self, 'yearly_interest_rate_percent', rate)
        object.__setattr__(self, 'default_threshold_percent', threshold)

        if not self.credit_asset or not self.credit_asset.strip():
            raise ValueError("credit_asset cannot be empty")
        _require_wallet("reserve_wallet", self.reserve_wallet)
        _require_wallet("treasury_wallet", self.treasury_wallet)
        _require_wallet("admin_wallet", self.admin_wallet)
        if self.liquidation_wallet is not None:
            _require_wallet("liquidation_wallet", self.liquidation_wallet)
        if self.reserve_wallet == self.treasury_wallet:
            raise ValueError("reserve_wallet and treasury_wallet must be different")
        if self.liquidation_wallet == self.reserve_wallet:
            raise ValueError("liquidation_wallet and reserve_wallet must be different")

        if not rate.is_finite() or rate < 0:
            raise ValueError(f"yearly_interest_rate_percent must be a non-negative number, got {rate}")
        if not threshold.is_finite() or threshold <= 0:
            raise ValueError(f"default_threshold_percent must be positive, got {threshold}")
        if self.credit_decimal_places < 0:
            raise ValueError(f"credit_decimal_places cannot be negative, got {self.credit_decimal_places}")

    @property
    def seizure_wallet(self) -> str:
        """Wallet that receives collateral seized in a liquidation."""
        return self.liquidation_wallet or self.treasury_wallet

    @property
    def credit_quantizer(self) -> Decimal:
        return Decimal(10) ** -self.credit_decimal_places

    def to_state_dict(self) -> Dict[str, Any]:
        """Flatten into the keys stored in the facility unit's state."""
        return {
            'credit_asset': self.credit_asset,
            'reserve_wallet': self.reserve_wallet,
            'treasury_wallet': self.treasury_wallet,
            'admin_wallet': self.admin_wallet,
            'yearly_interest_rate_percent': self.yearly_interest_rate_percent,
            'default_threshold_percent': self.default_threshold_percent,
            'liquidation_wallet': self.liquidation_wallet,
            'credit_decimal_places': self.credit_decimal_places,
        }

    @classmethod
    def from_state(cls, raw: Dict[str, Any]) -> LendingConfig:
        """Inverse of to_state_dict. Extra keys in raw are ignored."""
        return cls(
            credit_asset=raw['credit_asset'],
            reserve_wallet=raw['reserve_wallet'],
            treasury_wallet=raw['treasury_wallet'],
            admin_wallet=raw['admin_wallet'],
            yearly_interest_rate_percent=raw.get(
                'yearly_interest_rate_percent', DEFAULT_YEARLY_INTEREST_RATE_PERCENT),
            default_threshold_percent=raw.get(
                'default_threshold_percent', DEFAULT_DEFAULT_THRESHOLD_PERCENT),
            liquidation_wallet=raw.get('liquidation_wallet'),
            credit_decimal_places=raw.get('credit_decimal_places', TOKEN_DECIMAL_PLACES),
        )
