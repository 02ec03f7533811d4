"""Display helpers. Nothing in the engine depends on these."""

from decimal import Decimal
from typing import Optional

from cardwise.config import settings
from cardwise.logic.rewards import round_for_display, to_decimal
from cardwise.models import RewardRule, RewardType, TransactionType


def _plain(value: Decimal) -> str:
    # 5.0000 -> "5", 1.5000 -> "1.5", 100 -> "100"
    return f"{value.normalize():f}"


def format_money(value, symbol: Optional[str] = None) -> str:
    symbol = settings.currency_symbol if symbol is None else symbol
    amount = round_for_display(to_decimal(value, "value"), RewardType.CASHBACK)
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def format_units(value) -> str:
    amount = round_for_display(to_decimal(value, "value"), RewardType.POINTS)
    return f"{amount:,.0f}"


def format_reward(
    value, reward_type: Optional[RewardType], symbol: Optional[str] = None
) -> str:
    """Money for cashback (and for 'no reward'), grouped integers otherwise."""
    if reward_type == RewardType.POINTS:
        return f"{format_units(value)} points"
    if reward_type == RewardType.MILES:
        return f"{format_units(value)} miles"
    return format_money(value, symbol)


def describe_rule(rule: RewardRule, symbol: Optional[str] = None) -> str:
    symbol = settings.currency_symbol if symbol is None else symbol
    value = _plain(to_decimal(rule.reward_value, "reward_value"))

    if rule.reward_type == RewardType.CASHBACK:
        text = f"{value}% cashback"
    elif rule.reward_type == RewardType.POINTS:
        text = f"{value} points per {symbol}1"
    elif rule.reward_type == RewardType.MILES:
        text = f"{value} miles per {symbol}1"
    else:
        raise ValueError(f"Unhandled reward type: {rule.reward_type!r}")

    if rule.transaction_type != TransactionType.BOTH:
        text += f" ({rule.transaction_type.value.lower()} only)"
    if rule.minimum_spend is not None:
        text += f", min spend {format_money(rule.minimum_spend, symbol)}"
    if rule.monthly_cap is not None:
        cap = rule.monthly_cap
        cap_text = (
            format_money(cap, symbol)
            if rule.reward_type == RewardType.CASHBACK
            else format_units(cap)
        )
        text += f", capped at {cap_text}/month"
    return text
