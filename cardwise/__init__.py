from .context import RequestContext
from .db import create_db_and_tables, engine, make_engine
from .logic.recommender import CardRanker, RankedResult, Transaction, rank
from .models import (
    Bank,
    Category,
    CreditCard,
    RewardFlag,
    RewardRule,
    RewardType,
    RuleUsage,
    SubCategory,
    TransactionType,
    User,
    UserCreditCard,
    UserRole,
)

__all__ = [
    "create_db_and_tables",
    "engine",
    "make_engine",
    "Bank",
    "CardRanker",
    "Category",
    "CreditCard",
    "RankedResult",
    "RequestContext",
    "RewardFlag",
    "RewardRule",
    "RewardType",
    "RuleUsage",
    "SubCategory",
    "Transaction",
    "TransactionType",
    "User",
    "UserCreditCard",
    "UserRole",
    "rank",
]
