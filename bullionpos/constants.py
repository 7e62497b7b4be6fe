"""
Product catalog constants for the bullion desk: metals, product forms, coin
types, scrap purity tables, 1099-B threshold table and the sales-tax table.
These are fixed reference data; dealer-tunable values live in Settings.
"""

from decimal import Decimal

# Canonical unit is the fine troy ounce
GRAMS_PER_TROY_OZ = Decimal("31.1035")

DEFAULT_JUNK_MULTIPLIER = Decimal("0.715")

METALS = ("gold", "silver")
FORMS = ("coins", "bars", "rounds", "scrap", "junk")

# Margin column per form; rounds share the bars column
MARGIN_FORM_FOR = {
    "coins": "coins",
    "bars": "bars",
    "rounds": "bars",
    "scrap": "scrap",
    "junk": "junk",
}

WEIGHT_UNITS = ("toz", "g")

# Coin types (only meaningful when form == "coins")
PRE33_COIN_TYPES = ("pre33_20", "pre33_10", "pre33_5", "pre33_250")
BULLION_COIN_TYPES = ("eagles", "maples", "krugerrands", "britannias", "philharmonics")
COIN_TYPES = BULLION_COIN_TYPES + PRE33_COIN_TYPES

# All pre-1933 denominations share a single adjustment bucket
PRE33_ADJUSTMENT_KEY = "pre33"
COIN_ADJUSTMENT_KEYS = BULLION_COIN_TYPES + (PRE33_ADJUSTMENT_KEY,)

COIN_TYPE_LABELS = {
    "eagles": "American Eagle",
    "maples": "Maple Leaf",
    "krugerrands": "Krugerrand",
    "britannias": "Britannia",
    "philharmonics": "Philharmonic",
    "pre33_20": "$20 Double Eagle",
    "pre33_10": "$10 Eagle",
    "pre33_5": "$5 Half Eagle",
    "pre33_250": "$2.50 Quarter Eagle",
}

# Scrap purity: key -> (numerator, denominator)
GOLD_PURITIES = {
    "24k": (24, 24),
    "22k": (22, 24),
    "18k": (18, 24),
    "14k": (14, 24),
    "10k": (10, 24),
    "9k": (9, 24),
}
SILVER_PURITIES = {
    "999": (999, 1000),
    "958": (958, 1000),
    "925": (925, 1000),
    "900": (900, 1000),
    "800": (800, 1000),
}
PURITY_TABLES = {
    "gold": GOLD_PURITIES,
    "silver": SILVER_PURITIES,
}
DEFAULT_PURITY = {
    "gold": "14k",
    "silver": "925",
}

# ---------------------------------------------------------------------
# 1099-B
# ---------------------------------------------------------------------
# Gold coins that are exempt from broker reporting
EXEMPT_1099B_COIN_TYPES = frozenset({"eagles", "britannias", "philharmonics"})

# Reportable-quantity thresholds per product key (metal, form, coin_type).
# Gold in troy ounces, silver in troy ounces, junk in dollars of face value.
THRESHOLDS_1099B = {
    ("gold", "bars", None): Decimal("32.15"),
    ("gold", "rounds", None): Decimal("32.15"),
    ("gold", "scrap", None): Decimal("32.15"),
    ("gold", "coins", "maples"): Decimal("25"),
    ("gold", "coins", "krugerrands"): Decimal("25"),
    ("gold", "coins", None): Decimal("25"),
    ("silver", "bars", None): Decimal("1000"),
    ("silver", "rounds", None): Decimal("1000"),
    ("silver", "scrap", None): Decimal("1000"),
    ("silver", "junk", None): Decimal("1000"),
}

AGGREGATION_WINDOW_HOURS = 24

# Form 8300: cash received in one or related transactions
FORM_8300_THRESHOLD = Decimal("10000")

# ---------------------------------------------------------------------
# Sales tax: state -> (rate percent, exemption subtotal threshold or None)
# A subtotal strictly above the threshold is exempt from tax.
# ---------------------------------------------------------------------
STATE_TAX_RATES = {
    "CA": (Decimal("7.25"), Decimal("2000")),
    "CT": (Decimal("6.35"), Decimal("1000")),
    "HI": (Decimal("4.0"), None),
    "IL": (Decimal("6.25"), None),
    "KY": (Decimal("6.0"), None),
    "MD": (Decimal("6.0"), Decimal("1000")),
    "ME": (Decimal("5.5"), None),
    "NJ": (Decimal("6.625"), None),
    "NM": (Decimal("5.125"), None),
    "NY": (Decimal("4.0"), Decimal("1000")),
    "VT": (Decimal("6.0"), None),
    "VA": (Decimal("5.3"), Decimal("1000")),
    "WI": (Decimal("5.0"), None),
}

# Reorder-point buckets: "<metal>_<form>"
REORDER_BUCKETS = (
    "gold_coins", "gold_bars", "gold_rounds", "gold_scrap",
    "silver_coins", "silver_bars", "silver_rounds", "silver_junk", "silver_scrap",
)

# Transaction types that bring metal into the shop vs. send it out
INBOUND_TYPES = ("buy",)
OUTBOUND_TYPES = ("sell", "wholesale")
