from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Column, String
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, Relationship, SQLModel

# --- 0. Enums ---


class TransactionType(str, Enum):
    """Where a purchase happens. BOTH only ever appears on rules."""

    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"
    BOTH = "BOTH"


class RewardType(str, Enum):
    """What a rule pays out in."""

    CASHBACK = "CASHBACK"  # reward_value is a percentage
    POINTS = "POINTS"  # reward_value is points per currency unit
    MILES = "MILES"  # reward_value is miles per currency unit


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class RewardFlag(str, Enum):
    """Outcome of a single reward calculation."""

    OK = "OK"
    NO_RULE = "NO_RULE"
    BELOW_MINIMUM = "BELOW_MINIMUM"
    CAPPED = "CAPPED"


class ExactDecimal(TypeDecorator):
    """Decimal stored as its string form, so no digits are lost on a round trip."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(Decimal(value))

    def process_result_value(self, value, dialect):
        return None if value is None else Decimal(value)


# --- 1. Banks ---
class Bank(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    logo: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)

    cards: list["CreditCard"] = Relationship(back_populates="bank")


# --- 2. Categories ---
class Category(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)

    sub_categories: list["SubCategory"] = Relationship(
        back_populates="category",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class SubCategory(SQLModel, table=True):
    """A narrower slice of a category, e.g. 'Food Delivery' under 'Dining'.

    Names are unique within their parent category only.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    category_id: int = Field(foreign_key="category.id", index=True)

    category: Category = Relationship(back_populates="sub_categories")


# --- 3. The Credit Card Model ---
class CreditCard(SQLModel, table=True):
    """
    A card product maintained by an admin (not a card a user holds).

    reward_type is the headline label shown on the card; the rules carry
    their own reward type and that is what the engine uses.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    bank_id: int = Field(foreign_key="bank.id", index=True)

    annual_fee: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    reward_type: RewardType = Field(default=RewardType.CASHBACK)
    image: Optional[str] = None

    bank: Bank = Relationship(back_populates="cards")
    reward_rules: list["RewardRule"] = Relationship(
        back_populates="card", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    holders: list["UserCreditCard"] = Relationship(
        back_populates="card", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


# --- 4. Reward Rules (The "Logic") ---
class RewardRule(SQLModel, table=True):
    """
    Maps a (card, category, sub-category?, transaction type) scope to a formula.

    At most one rule exists per scope tuple. sub_category_id=None means the
    rule covers the whole category; transaction_type=BOTH covers online and
    offline purchases alike.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    card_id: int = Field(foreign_key="creditcard.id", index=True)
    category_id: int = Field(foreign_key="category.id")
    sub_category_id: Optional[int] = Field(default=None, foreign_key="subcategory.id")

    transaction_type: TransactionType = Field(default=TransactionType.BOTH)

    # The Math
    reward_type: RewardType = Field(default=RewardType.CASHBACK)
    reward_value: Decimal = Field(max_digits=12, decimal_places=4)

    # Constraints (None = unlimited / no threshold)
    monthly_cap: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    minimum_spend: Optional[Decimal] = Field(
        default=None, max_digits=12, decimal_places=2
    )

    card: CreditCard = Relationship(back_populates="reward_rules")
    category: Category = Relationship()
    sub_category: Optional[SubCategory] = Relationship()
    usage: list["RuleUsage"] = Relationship(
        back_populates="rule", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


# --- 5. Users and the cards they hold ---
class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    first_name: str = ""
    last_name: str = ""
    role: UserRole = Field(default=UserRole.USER)

    cards: list["UserCreditCard"] = Relationship(
        back_populates="user", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )


class UserCreditCard(SQLModel, table=True):
    """A card in a user's wallet. Only the last 4 digits are ever kept."""

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    credit_card_id: int = Field(foreign_key="creditcard.id", index=True)

    card_number: Optional[str] = Field(default=None, max_length=4)
    expiry_date: Optional[date] = None
    added_at: datetime = Field(default_factory=datetime.now)

    user: User = Relationship(back_populates="cards")
    card: CreditCard = Relationship(back_populates="holders")


# --- 6. Monthly cap usage ---
class RuleUsage(SQLModel, table=True):
    """Reward already earned against a capped rule in one calendar month."""

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    rule_id: int = Field(foreign_key="rewardrule.id", index=True)
    period: str = Field(index=True)  # "YYYY-MM"
    # Exact running total; a Numeric column would round it on every write
    reward_earned: Decimal = Field(
        default=Decimal("0"), sa_column=Column(ExactDecimal, nullable=False)
    )

    rule: RewardRule = Relationship(back_populates="usage")
