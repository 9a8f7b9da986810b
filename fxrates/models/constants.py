"""Domain constants shared by the store, the engine and the API."""

from decimal import Decimal

CURRENCY_CODE_PATTERN = r"^[A-Za-z]{3}$"

# Fractional digits kept for rates and for monetary amounts
RATE_PLACES = 6
AMOUNT_PLACES = 2

RATE_QUANTUM = Decimal(1).scaleb(-RATE_PLACES)  # 0.000001
AMOUNT_QUANTUM = Decimal(1).scaleb(-AMOUNT_PLACES)  # 0.01

# Upper bound on a convertible amount; keeps Decimal arithmetic far from Emax
MAX_AMOUNT = Decimal("1e50")

SIDE_SOURCE = "source"
SIDE_TARGET = "target"
