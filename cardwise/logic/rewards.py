from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from cardwise.errors import ValidationError
from cardwise.models import RewardFlag, RewardRule, RewardType

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")
WHOLE = Decimal("1")


def to_decimal(value, field: str = "amount") -> Decimal:
    """Decimal from int/str/float/Decimal. Floats go through str() to avoid binary noise."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} must be a number, got {value!r}") from None
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return result


def validate_amount(amount) -> Decimal:
    value = to_decimal(amount, "amount")
    if value <= ZERO:
        raise ValidationError(f"amount must be greater than 0, got {value}")
    return value


def round_for_display(value: Decimal, reward_type: Optional[RewardType]) -> Decimal:
    """Cashback to cents, points/miles to whole units (half-up)."""
    if reward_type in (RewardType.POINTS, RewardType.MILES):
        return value.quantize(WHOLE, rounding=ROUND_HALF_UP)
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RewardResult:
    """
    Output of a single calculation.

    `reward` keeps full precision (cap tracking and ranking compare on it);
    `display_reward` is what gets shown.
    """

    flag: RewardFlag
    rule: Optional[RewardRule] = None
    reward: Decimal = ZERO
    raw_reward: Decimal = ZERO
    remaining_cap: Optional[Decimal] = None

    @property
    def reward_type(self) -> Optional[RewardType]:
        return self.rule.reward_type if self.rule else None

    @property
    def display_reward(self) -> Decimal:
        return round_for_display(self.reward, self.reward_type)


class RewardCalculator:
    """
    Turns a matched rule + amount into a reward.

    Flow: amount check -> no rule -> minimum spend -> raw reward -> monthly cap.
    """

    def raw_reward(self, rule: RewardRule, amount: Decimal) -> Decimal:
        value = to_decimal(rule.reward_value, "reward_value")
        if rule.reward_type == RewardType.CASHBACK:
            return amount * value / HUNDRED
        if rule.reward_type in (RewardType.POINTS, RewardType.MILES):
            return amount * value
        raise ValueError(f"Unhandled reward type: {rule.reward_type!r}")

    def calculate(
        self,
        rule: Optional[RewardRule],
        amount,
        cumulative_this_month=ZERO,
    ) -> RewardResult:
        amount = validate_amount(amount)
        cumulative = to_decimal(cumulative_this_month, "cumulative_this_month")
        if cumulative < ZERO:
            raise ValidationError("cumulative_this_month cannot be negative")

        if rule is None:
            return RewardResult(flag=RewardFlag.NO_RULE)

        # The whole purchase must clear the threshold; no partial credit
        if rule.minimum_spend is not None and amount < to_decimal(
            rule.minimum_spend, "minimum_spend"
        ):
            return RewardResult(flag=RewardFlag.BELOW_MINIMUM, rule=rule)

        raw = self.raw_reward(rule, amount)

        if rule.monthly_cap is None:
            return RewardResult(flag=RewardFlag.OK, rule=rule, reward=raw, raw_reward=raw)

        remaining = max(ZERO, to_decimal(rule.monthly_cap, "monthly_cap") - cumulative)
        if raw > remaining:
            return RewardResult(
                flag=RewardFlag.CAPPED,
                rule=rule,
                reward=remaining,
                raw_reward=raw,
                remaining_cap=remaining,
            )
        return RewardResult(
            flag=RewardFlag.OK,
            rule=rule,
            reward=raw,
            raw_reward=raw,
            remaining_cap=remaining,
        )


def calculate_reward(
    rule: Optional[RewardRule], amount, cumulative_this_month=ZERO
) -> RewardResult:
    return RewardCalculator().calculate(rule, amount, cumulative_this_month)
