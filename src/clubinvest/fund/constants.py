"""
Fund-wide constants.

Single source of truth for tax rates and valuation baselines used by the
engines. Imports nothing from the rest of the package.
"""

from decimal import Decimal

# =============================================================================
# VALUATION
# =============================================================================

# NAV per share before any share exists
GENESIS_NAV = Decimal("100")

MONEY_PLACES = Decimal("0.01")
NAV_PLACES = Decimal("0.0001")

# =============================================================================
# TAX REGIMES
# =============================================================================
# Two distinct flat taxes are modeled. Neither is audit grade.

# Accrued on the realized gain of a sell order (PFU incl. social charges)
SELL_GAIN_TAX_RATE = Decimal("0.314")

# Estimated on the gain portion of a member withdrawal
WITHDRAWAL_TAX_RATE = Decimal("0.30")

# =============================================================================
# INVITE CODES
# =============================================================================

# No I, O, 0 or 1
INVITE_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
INVITE_CODE_LENGTH = 6
