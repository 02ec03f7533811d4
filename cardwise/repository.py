"""
Read paths into storage used by the engine.

Each repository wraps one Session, so a request sees one consistent
snapshot: a rule edited mid-request only shows up on the next request.
"""

from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from logging import getLogger
from typing import Optional

from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from cardwise.errors import NotFoundError, TransientFetchError
from cardwise.models import (
    Category,
    CreditCard,
    RewardRule,
    RuleUsage,
    SubCategory,
    User,
    UserCreditCard,
)
from cardwise.usage import month_key

logger = getLogger(__name__)


@contextmanager
def storage_errors(what: str):
    """Turn driver-level outages into TransientFetchError."""
    try:
        yield
    except OperationalError as e:
        logger.error(f"Storage unavailable while fetching {what}: {e}")
        raise TransientFetchError(f"Storage unavailable while fetching {what}") from e


class RuleRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_rules_for_card(self, card_id: int) -> list[RewardRule]:
        with storage_errors(f"rules for card {card_id}"):
            if self.session.get(CreditCard, card_id) is None:
                raise NotFoundError("CreditCard", card_id)
            statement = (
                select(RewardRule)
                .where(RewardRule.card_id == card_id)
                .order_by(RewardRule.id)
            )
            return list(self.session.exec(statement).all())


class CatalogRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_card(self, card_id: int) -> CreditCard:
        with storage_errors(f"card {card_id}"):
            card = self.session.get(CreditCard, card_id)
        if card is None:
            raise NotFoundError("CreditCard", card_id)
        return card

    def get_category(self, category_id: int) -> Category:
        with storage_errors(f"category {category_id}"):
            category = self.session.get(Category, category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    def get_sub_category(self, sub_category_id: int) -> SubCategory:
        with storage_errors(f"sub-category {sub_category_id}"):
            sub = self.session.get(SubCategory, sub_category_id)
        if sub is None:
            raise NotFoundError("SubCategory", sub_category_id)
        return sub

    def get_user(self, user_id: int) -> User:
        with storage_errors(f"user {user_id}"):
            user = self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def get_user_cards(self, user_id: int) -> list[CreditCard]:
        """Distinct card products held by the user, in the order they were added."""
        self.get_user(user_id)
        with storage_errors(f"cards of user {user_id}"):
            links = self.session.exec(
                select(UserCreditCard)
                .where(UserCreditCard.user_id == user_id)
                .order_by(UserCreditCard.id)
            ).all()

            cards: list[CreditCard] = []
            seen: set[int] = set()
            for link in links:
                if link.credit_card_id in seen:
                    continue
                seen.add(link.credit_card_id)
                cards.append(link.card)
            return cards


class UsageRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_month_to_date(
        self, user_id: Optional[int], rule_id: int, on: date
    ) -> Decimal:
        """Reward already earned this calendar month under a rule (0 if untracked)."""
        if user_id is None:
            return Decimal("0")
        # Summed here, not in SQL: the column is text and SUM() would go through float
        with storage_errors(f"usage of rule {rule_id}"):
            rows = self.session.exec(
                select(RuleUsage.reward_earned).where(
                    RuleUsage.user_id == user_id,
                    RuleUsage.rule_id == rule_id,
                    RuleUsage.period == month_key(on),
                )
            ).all()
        return sum(rows, Decimal("0"))
