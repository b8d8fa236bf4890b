"""Integer arithmetic utilities for paise-based money.

All rates, amounts, and balances use int (paise, 1 INR = 100 paise).
Multipliers and percentages use int basis points (10000 bps = 1x).
No float anywhere on the money path.
"""

BPS_ONE = 10_000


def paise_to_display(paise: int) -> str:
    """Convert paise to display string: 26400 -> '₹264.00', -1250 -> '-₹12.50'."""
    if paise < 0:
        abs_paise = -paise
        return f"-₹{abs_paise // 100:,}.{abs_paise % 100:02d}"
    return f"₹{paise // 100:,}.{paise % 100:02d}"


def ceil_div(numerator: int, denominator: int) -> int:
    """Integer ceiling division for non-negative numerators: (a + b - 1) // b."""
    if numerator <= 0:
        return 0
    return (numerator + denominator - 1) // denominator


def apply_bps(amount: int, bps: int) -> int:
    """Return ceil(amount * bps / 10000); the platform never under-charges."""
    if amount == 0 or bps == 0:
        return 0
    return ceil_div(amount * bps, BPS_ONE)
