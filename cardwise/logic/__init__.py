from .matcher import RuleMatcher, match_rule, parse_transaction_type
from .recommender import CardRanker, RankedResult, Transaction, rank, recommend_card
from .rewards import RewardCalculator, RewardResult, calculate_reward

__all__ = [
    "CardRanker",
    "RankedResult",
    "RewardCalculator",
    "RewardResult",
    "RuleMatcher",
    "Transaction",
    "calculate_reward",
    "match_rule",
    "parse_transaction_type",
    "rank",
    "recommend_card",
]
