from decimal import Decimal

from conftest import make_rule

from cardwise.logic.formatting import describe_rule, format_money, format_reward, format_units
from cardwise.models import RewardType, TransactionType


def test_money_and_units():
    assert format_money(Decimal("1234.5")) == "$1,234.50"
    assert format_money(Decimal("0.005"), symbol="₹") == "₹0.01"
    assert format_units(Decimal("1234567.5")) == "1,234,568"


def test_format_reward_by_type():
    assert format_reward(Decimal("50"), RewardType.CASHBACK) == "$50.00"
    assert format_reward(Decimal("500"), RewardType.POINTS) == "500 points"
    assert format_reward(Decimal("2499.5"), RewardType.MILES) == "2,500 miles"
    assert format_reward(Decimal("0"), None) == "$0.00"


def test_describe_rule():
    assert describe_rule(make_rule(reward_value="5.0000")) == "5% cashback"
    assert (
        describe_rule(make_rule(reward_type=RewardType.MILES, reward_value="1.5"), symbol="₹")
        == "1.5 miles per ₹1"
    )
    assert describe_rule(
        make_rule(
            reward_value=2,
            transaction_type=TransactionType.OFFLINE,
            monthly_cap=100,
        )
    ) == "2% cashback (offline only), capped at $100.00/month"
