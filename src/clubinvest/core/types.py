"""Shared type aliases used across clubinvest."""

from collections.abc import Mapping
from decimal import Decimal
from pathlib import Path

# Anything the models accept for a monetary or quantity field
Numeric = Decimal | int | float | str

PathLike = str | Path

# ticker -> latest quote in the asset's own currency; None or <= 0 means no quote
PriceMap = Mapping[str, Decimal | float | None]
