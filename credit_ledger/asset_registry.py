"""
asset_registry.py - Asset -> collaterability lookups.

Pure functions over a mapping of asset symbol to AssetListing. The registry
itself lives in the credit facility's unit state; these functions never
touch a ledger.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Dict, Mapping

from .config import AssetListing
from .core import AssetNotAccepted, InvalidAmount


AssetRegistry = Mapping[str, AssetListing]


def is_accepted(assets: AssetRegistry, asset: str) -> bool:
    """True if the asset is listed, accepted and has a non-zero rate."""
    listing = assets.get(asset)
    return listing is not None and listing.usable


def collaterability_of(assets: AssetRegistry, asset: str) -> Decimal:
    """
    Rate at which one unit of asset converts into credit-asset value.

    Raises:
        AssetNotAccepted: If the asset is unknown, not accepted, or rated zero.
    """
    listing = assets.get(asset)
    if listing is None:
        raise AssetNotAccepted(f"Asset {asset} is not listed")
    if not listing.usable:
        raise AssetNotAccepted(f"Asset {asset} is not accepted as collateral")
    return listing.collaterability


def effective_rate(assets: AssetRegistry, asset: str) -> Decimal:
    """
    Rate used when valuing collateral that is already deposited.

    Delisted and zero-rate assets are worth nothing but never raise, so a
    delisting can push an account towards default without breaking reads.
    """
    if not is_accepted(assets, asset):
        return Decimal("0")
    return assets[asset].collaterability


def list_asset(
    assets: AssetRegistry,
    asset: str,
    rate: Decimal,
    accepted: bool = True,
) -> Dict[str, AssetListing]:
    """
    Return a new registry with asset listed at rate.

    Raises:
        InvalidAmount: If rate is negative or not a finite number.
    """
    if not asset or not asset.strip():
        raise InvalidAmount("asset cannot be empty")
    try:
        listing = AssetListing(collaterability=rate, accepted=accepted)
    except ValueError as e:
        raise InvalidAmount(str(e)) from e
    updated = dict(assets)
    updated[asset] = listing
    return updated
