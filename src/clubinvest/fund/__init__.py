"""Fund accounting engine: models, valuation, orders, capital flows and snapshots."""

from .capital import (
    CapitalFlowResult,
    WithdrawalTaxBreakdown,
    estimate_withdrawal_tax,
    execute_collective_deposit,
    execute_deposit,
    execute_withdrawal,
)
from .currency import Currency, CurrencyConverter, convert
from .invite import generate_invite_code
from .models import Asset, Club, Member, NavEntry, PortfolioSummary, Role, Transaction, TransactionType
from .orders import OrderResult, execute_buy, execute_sell
from .snapshot import ChartRange, NavPoint, build_nav_history, create_nav_snapshot
from .valuation import calculate_portfolio_summary

__all__ = [
    "Asset",
    "CapitalFlowResult",
    "ChartRange",
    "Club",
    "Currency",
    "CurrencyConverter",
    "Member",
    "NavEntry",
    "NavPoint",
    "OrderResult",
    "PortfolioSummary",
    "Role",
    "Transaction",
    "TransactionType",
    "WithdrawalTaxBreakdown",
    "build_nav_history",
    "calculate_portfolio_summary",
    "convert",
    "create_nav_snapshot",
    "estimate_withdrawal_tax",
    "execute_buy",
    "execute_collective_deposit",
    "execute_deposit",
    "execute_sell",
    "execute_withdrawal",
    "generate_invite_code",
]
