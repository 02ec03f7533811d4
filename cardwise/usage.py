"""
Monthly cap bookkeeping.

This is the transaction-recording side: whoever logs a purchase calls
record_reward() so the next ranking sees the reduced cap headroom. The
ranking path only ever reads these rows.
"""

from datetime import date
from decimal import Decimal
from logging import getLogger

from sqlmodel import Session, select

from cardwise.errors import NotFoundError, ValidationError
from cardwise.models import RewardRule, RuleUsage, User

logger = getLogger(__name__)


def month_key(on: date) -> str:
    return f"{on.year:04d}-{on.month:02d}"


def record_reward(
    session: Session, user_id: int, rule_id: int, reward: Decimal, on: date
) -> RuleUsage:
    """Add `reward` to the user's running total for this rule and month."""
    reward = Decimal(str(reward))
    if reward < 0:
        raise ValidationError("Recorded reward cannot be negative")
    if session.get(User, user_id) is None:
        raise NotFoundError("User", user_id)
    if session.get(RewardRule, rule_id) is None:
        raise NotFoundError("RewardRule", rule_id)

    period = month_key(on)
    usage = session.exec(
        select(RuleUsage).where(
            RuleUsage.user_id == user_id,
            RuleUsage.rule_id == rule_id,
            RuleUsage.period == period,
        )
    ).first()

    if usage is None:
        usage = RuleUsage(user_id=user_id, rule_id=rule_id, period=period)
    usage.reward_earned = (usage.reward_earned or Decimal("0")) + reward

    session.add(usage)
    session.commit()
    session.refresh(usage)
    logger.info(
        f"Recorded {reward} against rule {rule_id} for user {user_id} ({period})"
    )
    return usage
