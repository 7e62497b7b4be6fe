"""
bullionpos/services/normalizer.py

Converts counter input (weight, unit, purity, face value) into the canonical
fine troy ounce quantity, and validates product identity.

- bars/rounds/coins: grams / 31.1035, troy oz pass through
- junk: dollars of face value * junk multiplier
- scrap: weight in troy oz * purity fraction (14k = 14/24, sterling = 925/1000)

Scrap purity tables are per metal; switching metal drops a purity that
doesn't belong to the new metal (reconcile_purity).
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

from bullionpos.constants import (
    COIN_TYPES,
    DEFAULT_JUNK_MULTIPLIER,
    DEFAULT_PURITY,
    FORMS,
    GRAMS_PER_TROY_OZ,
    METALS,
    PRE33_COIN_TYPES,
    PURITY_TABLES,
    WEIGHT_UNITS,
)
from bullionpos.errors import InvalidProductError, InvalidQuantityError

logger = logging.getLogger(__name__)

ProductKey = Tuple[str, str, Optional[str]]


def to_decimal(value, label: str = "Quantity") -> Decimal:
    """Parse a user-supplied number; anything non-numeric is InvalidQuantityError."""
    if isinstance(value, bool) or value is None:
        raise InvalidQuantityError(f"{label} must be a number")
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidQuantityError(f"{label} must be a number, got {value!r}")
    if not dec.is_finite():
        raise InvalidQuantityError(f"{label} must be a finite number")
    return dec


def require_positive(value, label: str = "Quantity") -> Decimal:
    dec = to_decimal(value, label)
    if dec <= 0:
        raise InvalidQuantityError(f"{label} must be greater than zero")
    return dec

# ---------------------------------------------------------------------
# Product identity
# ---------------------------------------------------------------------

def validate_product(metal: str, form: str, coin_type: Optional[str] = None) -> ProductKey:
    """
    Checks the (metal, form, coin_type) combination and returns its product
    key. coin_type only survives for coins; junk is silver only; pre-1933
    coin types are gold only.
    """
    if metal not in METALS:
        raise InvalidProductError(f"Unknown metal: {metal!r}")
    if form not in FORMS:
        raise InvalidProductError(f"Unknown form: {form!r}")
    if form == "junk" and metal != "silver":
        raise InvalidProductError("Junk is 90% silver coinage; metal must be silver")

    if form != "coins" or not coin_type:
        return (metal, form, None)

    if coin_type not in COIN_TYPES:
        raise InvalidProductError(f"Unknown coin type: {coin_type!r}")
    if coin_type in PRE33_COIN_TYPES and metal != "gold":
        raise InvalidProductError(f"{coin_type} is a pre-1933 gold coin")
    return (metal, form, coin_type)


def product_key(metal: str, form: str, coin_type: Optional[str] = None) -> ProductKey:
    """Bucket key without validation; coin_type is ignored unless form is coins."""
    return (metal, form, coin_type if form == "coins" and coin_type else None)

# ---------------------------------------------------------------------
# Scrap purity
# ---------------------------------------------------------------------

def purity_options(metal: str) -> List[str]:
    if metal not in PURITY_TABLES:
        raise InvalidProductError(f"Unknown metal: {metal!r}")
    return list(PURITY_TABLES[metal])


def reconcile_purity(metal: str, purity: Optional[str]) -> str:
    """The purity if it belongs to the metal's table, else the metal's default."""
    options = purity_options(metal)
    if purity in options:
        return purity
    if purity:
        logger.debug(f"Purity {purity!r} is not a {metal} purity, using {DEFAULT_PURITY[metal]}")
    return DEFAULT_PURITY[metal]


def purity_ratio(metal: str, purity: Optional[str]) -> Tuple[int, int]:
    """(numerator, denominator). None selects the metal's default purity."""
    table = PURITY_TABLES.get(metal)
    if table is None:
        raise InvalidProductError(f"Unknown metal: {metal!r}")
    key = purity if purity else DEFAULT_PURITY[metal]
    if key not in table:
        raise InvalidProductError(f"Unknown {metal} purity: {purity!r}")
    return table[key]

# ---------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------

def _weight_to_toz(raw: Decimal, weight_unit: Optional[str]) -> Decimal:
    unit = weight_unit or "toz"
    if unit not in WEIGHT_UNITS:
        raise InvalidProductError(f"Unknown weight unit: {weight_unit!r}")
    if unit == "g":
        return raw / GRAMS_PER_TROY_OZ
    return raw


def normalize(
    form: str,
    metal: str,
    raw_qty,
    weight_unit: Optional[str] = "toz",
    scrap_purity: Optional[str] = None,
    junk_multiplier: Decimal = DEFAULT_JUNK_MULTIPLIER,
) -> Decimal:
    """Counter input -> fine troy ounces."""
    validate_product(metal, form)
    raw = require_positive(raw_qty)

    if form == "junk":
        return raw * junk_multiplier
    if form == "scrap":
        numerator, denominator = purity_ratio(metal, scrap_purity)
        return _weight_to_toz(raw, weight_unit) * numerator / denominator
    return _weight_to_toz(raw, weight_unit)


def denormalize(
    form: str,
    metal: str,
    fine_oz,
    weight_unit: Optional[str] = "toz",
    scrap_purity: Optional[str] = None,
    junk_multiplier: Decimal = DEFAULT_JUNK_MULTIPLIER,
) -> Decimal:
    """Fine troy ounces -> the form's input unit (inverse of normalize)."""
    validate_product(metal, form)
    oz = require_positive(fine_oz)

    if form == "junk":
        return oz / junk_multiplier
    if form == "scrap":
        numerator, denominator = purity_ratio(metal, scrap_purity)
        oz = oz * denominator / numerator
    unit = weight_unit or "toz"
    if unit not in WEIGHT_UNITS:
        raise InvalidProductError(f"Unknown weight unit: {weight_unit!r}")
    if unit == "g":
        return oz * GRAMS_PER_TROY_OZ
    return oz
