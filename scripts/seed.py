import logging
import sys
from pathlib import Path

# --- PATH FIXER ---
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.append(str(PROJECT_ROOT))

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from cardwise import Bank, RewardType, TransactionType, create_db_and_tables, engine
from cardwise.catalog import (
    add_sub_category,
    create_bank,
    create_card,
    create_category,
    create_reward_rule,
)
from cardwise.config import settings
from cardwise.context import SYSTEM
from cardwise.models import UserRole
from cardwise.wallet import add_user_card, create_user

logger = logging.getLogger(__name__)

# --- DATASETS ---

BANKS = ["HDFC Bank", "Axis Bank", "ICICI Bank", "SBI Card"]

CATEGORIES = {
    "Dining": ["Restaurants", "Food Delivery", "Cafes"],
    "Shopping": ["Electronics", "Apparel", "Marketplaces"],
    "Travel": ["Flights", "Hotels", "Trains"],
    "Groceries": ["Supermarkets", "Quick Commerce"],
    "Fuel": [],
    "Utilities": ["Electricity", "Mobile & Broadband"],
}

# name, bank, annual fee, headline reward type
CARDS = [
    ("Millennia", "HDFC Bank", 1000, RewardType.CASHBACK),
    ("Regalia Gold", "HDFC Bank", 2500, RewardType.POINTS),
    ("Ace", "Axis Bank", 499, RewardType.CASHBACK),
    ("Atlas", "Axis Bank", 5000, RewardType.MILES),
    ("Amazon Pay", "ICICI Bank", 0, RewardType.CASHBACK),
    ("SimplyCLICK", "SBI Card", 499, RewardType.POINTS),
]

# card, category, sub-category, transaction type, reward type, value, cap, minimum
RULES = [
    ("Millennia", "Shopping", None, TransactionType.ONLINE, RewardType.CASHBACK, 5, 1000, None),
    ("Millennia", "Shopping", None, TransactionType.OFFLINE, RewardType.CASHBACK, 1, None, None),
    ("Millennia", "Dining", "Food Delivery", TransactionType.ONLINE, RewardType.CASHBACK, 5, 1000, None),
    ("Millennia", "Dining", None, TransactionType.BOTH, RewardType.CASHBACK, 1, None, None),
    ("Regalia Gold", "Travel", None, TransactionType.BOTH, RewardType.POINTS, 4, None, None),
    ("Regalia Gold", "Shopping", None, TransactionType.BOTH, RewardType.POINTS, 2, None, None),
    ("Regalia Gold", "Dining", None, TransactionType.BOTH, RewardType.POINTS, 2, None, None),
    ("Ace", "Utilities", None, TransactionType.ONLINE, RewardType.CASHBACK, 5, 500, None),
    ("Ace", "Dining", "Food Delivery", TransactionType.ONLINE, RewardType.CASHBACK, 4, 500, None),
    ("Ace", "Dining", None, TransactionType.BOTH, RewardType.CASHBACK, 1.5, None, None),
    ("Ace", "Groceries", None, TransactionType.BOTH, RewardType.CASHBACK, 1.5, None, None),
    ("Atlas", "Travel", "Flights", TransactionType.ONLINE, RewardType.MILES, 5, 10000, None),
    ("Atlas", "Travel", None, TransactionType.BOTH, RewardType.MILES, 2, None, None),
    ("Amazon Pay", "Shopping", "Marketplaces", TransactionType.ONLINE, RewardType.CASHBACK, 5, None, None),
    ("Amazon Pay", "Shopping", None, TransactionType.BOTH, RewardType.CASHBACK, 1, None, None),
    ("Amazon Pay", "Fuel", None, TransactionType.OFFLINE, RewardType.CASHBACK, 1, 100, 400),
    ("SimplyCLICK", "Shopping", None, TransactionType.ONLINE, RewardType.POINTS, 10, 10000, 100),
    ("SimplyCLICK", "Groceries", None, TransactionType.BOTH, RewardType.POINTS, 1, None, None),
]


def seed(bind: Engine = engine) -> None:
    create_db_and_tables(bind)

    with Session(bind) as session:
        if session.exec(select(Bank)).first():
            logger.info("Database already seeded; nothing to do.")
            return

        banks = {name: create_bank(session, SYSTEM, name) for name in BANKS}

        categories = {}
        sub_categories = {}
        for cat_name, subs in CATEGORIES.items():
            category = create_category(session, SYSTEM, cat_name)
            categories[cat_name] = category
            for sub_name in subs:
                sub = add_sub_category(session, SYSTEM, category.id, sub_name)
                sub_categories[(cat_name, sub_name)] = sub

        cards = {}
        for name, bank_name, fee, reward_type in CARDS:
            cards[name] = create_card(
                session,
                SYSTEM,
                name=name,
                bank_id=banks[bank_name].id,
                annual_fee=fee,
                reward_type=reward_type,
            )

        for card_name, cat_name, sub_name, tx_type, reward_type, value, cap, minimum in RULES:
            create_reward_rule(
                session,
                SYSTEM,
                card_id=cards[card_name].id,
                category_id=categories[cat_name].id,
                sub_category_id=sub_categories[(cat_name, sub_name)].id if sub_name else None,
                transaction_type=tx_type,
                reward_type=reward_type,
                reward_value=value,
                monthly_cap=cap,
                minimum_spend=minimum,
            )

        demo = create_user(session, "demo@cardwise.local", "Demo", "User")
        create_user(session, "admin@cardwise.local", "Admin", "User", role=UserRole.ADMIN)
        for card_name in ("Millennia", "Ace", "Amazon Pay", "Atlas"):
            add_user_card(session, SYSTEM, demo.id, cards[card_name].id)

        logger.info(
            f"Seeded {len(banks)} banks, {len(categories)} categories, "
            f"{len(cards)} cards and {len(RULES)} rules."
        )


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level)
    seed()
