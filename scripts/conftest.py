from dataclasses import dataclass
from decimal import Decimal

import pytest
from sqlmodel import Session

from cardwise import RewardRule, RewardType, TransactionType, create_db_and_tables, make_engine
from cardwise.catalog import (
    add_sub_category,
    create_bank,
    create_card,
    create_category,
    create_reward_rule,
)
from cardwise.context import SYSTEM
from cardwise.wallet import add_user_card, create_user


def make_rule(
    id=1,
    card_id=1,
    category_id=10,
    sub_category_id=None,
    transaction_type=TransactionType.BOTH,
    reward_type=RewardType.CASHBACK,
    reward_value="1",
    monthly_cap=None,
    minimum_spend=None,
) -> RewardRule:
    """An unsaved rule for pure matcher/calculator tests."""
    return RewardRule(
        id=id,
        card_id=card_id,
        category_id=category_id,
        sub_category_id=sub_category_id,
        transaction_type=transaction_type,
        reward_type=reward_type,
        reward_value=Decimal(str(reward_value)),
        monthly_cap=None if monthly_cap is None else Decimal(str(monthly_cap)),
        minimum_spend=None if minimum_spend is None else Decimal(str(minimum_spend)),
    )


@pytest.fixture
def db_engine():
    engine = make_engine("sqlite://")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(db_engine):
    with Session(db_engine) as session:
        yield session


@dataclass
class World:
    """A small catalog: two banks, Dining (with Food Delivery) and Shopping, one user."""

    bank: object
    other_bank: object
    dining: object
    food_delivery: object
    shopping: object
    user: object


@pytest.fixture
def world(session) -> World:
    bank = create_bank(session, SYSTEM, "Test Bank")
    other_bank = create_bank(session, SYSTEM, "Other Bank")
    dining = create_category(session, SYSTEM, "Dining")
    food_delivery = add_sub_category(session, SYSTEM, dining.id, "Food Delivery")
    shopping = create_category(session, SYSTEM, "Shopping")
    user = create_user(session, "alice@example.com", "Alice", "Doe")
    return World(bank, other_bank, dining, food_delivery, shopping, user)


@pytest.fixture
def new_card(session, world):
    """Factory: create a card product and put it in the test user's wallet."""

    def _make(name, annual_fee=0, bank=None, rules=(), in_wallet=True):
        card = create_card(
            session,
            SYSTEM,
            name=name,
            bank_id=(bank or world.bank).id,
            annual_fee=annual_fee,
        )
        for rule in rules:
            create_reward_rule(session, SYSTEM, card_id=card.id, **rule)
        if in_wallet:
            add_user_card(session, SYSTEM, world.user.id, card.id)
        return card

    return _make
