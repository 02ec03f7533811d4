"""
Card Ranker - finds the best card in a user's wallet for one purchase.

For every card: fetch its rules once, pick the governing rule (RuleMatcher),
read month-to-date usage for capped rules, compute the reward
(RewardCalculator). Cards are then ordered by:

1. effective reward, highest first
2. annual fee, lowest first
3. card name, A-Z (then card id, so output is fully deterministic)

Rank 1 is the recommendation. Cards that earn nothing stay in the list;
"nothing in your wallet earns here" is a useful answer too.

Nothing on this path writes to the database.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from logging import getLogger
from typing import Any, Dict, List, Optional

from sqlmodel import Session

from cardwise.context import RequestContext
from cardwise.errors import ValidationError
from cardwise.logic.formatting import describe_rule, format_money, format_reward
from cardwise.logic.matcher import RuleMatcher, parse_transaction_type
from cardwise.logic.rewards import RewardCalculator, RewardResult, validate_amount
from cardwise.models import CreditCard, RewardFlag, RewardType, TransactionType
from cardwise.repository import CatalogRepository, RuleRepository, UsageRepository

logger = getLogger(__name__)


@dataclass(frozen=True)
class Transaction:
    """A single purchase being evaluated. `on` picks the month for cap usage."""

    amount: Decimal
    category_id: int
    transaction_type: TransactionType
    sub_category_id: Optional[int] = None
    on: date = field(default_factory=date.today)


@dataclass
class RankedResult:
    """Result of evaluating one card for a transaction."""

    card_id: int
    card_name: str
    bank_name: str
    annual_fee: Decimal
    result: RewardResult
    rank: int = 0

    @property
    def reward(self) -> Decimal:
        return self.result.reward

    @property
    def flag(self) -> RewardFlag:
        return self.result.flag

    @property
    def reward_type(self) -> Optional[RewardType]:
        return self.result.reward_type

    def sort_key(self):
        return (-self.reward, self.annual_fee, self.card_name, self.card_id)

    def to_dict(self) -> Dict[str, Any]:
        rule = self.result.rule
        return {
            "rank": self.rank,
            "card_id": self.card_id,
            "card_name": self.card_name,
            "bank": self.bank_name,
            "annual_fee": format_money(self.annual_fee),
            "reward": str(self.result.display_reward),
            "reward_exact": str(self.result.reward),
            "reward_display": format_reward(self.result.reward, self.reward_type),
            "reward_type": self.reward_type.value if self.reward_type else None,
            "flag": self.flag.value,
            "rule": (
                {
                    "id": rule.id,
                    "category_id": rule.category_id,
                    "sub_category_id": rule.sub_category_id,
                    "transaction_type": rule.transaction_type.value,
                    "description": describe_rule(rule),
                }
                if rule
                else None
            ),
        }


class CardRanker:
    """
    Compares a set of cards for one transaction.

    Usage:
        ranker = CardRanker(session)
        results = ranker.rank(transaction, cards, user_id=7)
        best = results[0]
    """

    def __init__(
        self,
        session: Session,
        matcher: Optional[RuleMatcher] = None,
        calculator: Optional[RewardCalculator] = None,
    ):
        self.rules = RuleRepository(session)
        self.usage = UsageRepository(session)
        self.matcher = matcher or RuleMatcher()
        self.calculator = calculator or RewardCalculator()

    def rank(
        self,
        transaction: Transaction,
        cards: List[CreditCard],
        user_id: Optional[int] = None,
    ) -> List[RankedResult]:
        amount = validate_amount(transaction.amount)
        tx_type = parse_transaction_type(transaction.transaction_type)

        results = [
            self._evaluate_card(card, transaction, amount, tx_type, user_id)
            for card in cards
        ]
        results.sort(key=RankedResult.sort_key)

        for i, res in enumerate(results):
            res.rank = i + 1

        return results

    def _evaluate_card(
        self,
        card: CreditCard,
        transaction: Transaction,
        amount: Decimal,
        tx_type: TransactionType,
        user_id: Optional[int],
    ) -> RankedResult:
        rules = self.rules.get_rules_for_card(card.id)
        rule = self.matcher.match(
            rules, transaction.category_id, transaction.sub_category_id, tx_type
        )

        cumulative = Decimal("0")
        if rule is not None and rule.monthly_cap is not None:
            cumulative = self.usage.get_month_to_date(user_id, rule.id, transaction.on)

        result = self.calculator.calculate(rule, amount, cumulative)
        logger.debug(
            f"Card {card.id} ({card.name}): rule={rule.id if rule else None} "
            f"reward={result.reward} flag={result.flag.value}"
        )

        return RankedResult(
            card_id=card.id,
            card_name=card.name,
            bank_name=card.bank.name if card.bank else "",
            annual_fee=Decimal(str(card.annual_fee or 0)),
            result=result,
        )


def rank(
    session: Session,
    ctx: RequestContext,
    user_id: int,
    amount,
    category_id: Optional[int],
    transaction_type,
    sub_category_id: Optional[int] = None,
    on: Optional[date] = None,
) -> List[RankedResult]:
    """
    Ranking API: rank every card the user holds for one purchase.

    Validation happens before anything is fetched for ranking: the amount
    must be positive, the transaction type ONLINE/OFFLINE, the category must
    exist and the sub-category (if any) must belong to it.
    """
    ctx.require_self_or_admin(user_id)

    amount = validate_amount(amount)
    tx_type = parse_transaction_type(transaction_type)
    if category_id is None:
        raise ValidationError("category_id is required")

    catalog = CatalogRepository(session)
    catalog.get_category(category_id)
    if sub_category_id is not None:
        sub = catalog.get_sub_category(sub_category_id)
        if sub.category_id != category_id:
            raise ValidationError(
                f"Sub-category {sub_category_id} does not belong to category {category_id}"
            )

    cards = catalog.get_user_cards(user_id)
    transaction = Transaction(
        amount=amount,
        category_id=category_id,
        transaction_type=tx_type,
        sub_category_id=sub_category_id,
        on=on or date.today(),
    )
    logger.info(
        f"Ranking {len(cards)} cards for user {user_id}: {amount} in category "
        f"{category_id}/{sub_category_id} ({tx_type.value})"
    )
    return CardRanker(session).rank(transaction, cards, user_id=user_id)


def recommend_card(
    session: Session,
    ctx: RequestContext,
    user_id: int,
    amount,
    category_id: int,
    transaction_type,
    sub_category_id: Optional[int] = None,
) -> Optional[RankedResult]:
    """Convenience: just the top entry, or None if the user holds no cards."""
    results = rank(
        session, ctx, user_id, amount, category_id, transaction_type, sub_category_id
    )
    return results[0] if results else None
