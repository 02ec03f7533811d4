"""
Rule Matcher - picks the one reward rule that governs a purchase on a card.

Specificity, most specific wins:
1. A rule for the purchase's sub-category beats a category-wide rule.
2. At equal sub-category specificity, a rule for the exact transaction
   type (ONLINE/OFFLINE) beats a BOTH rule.

Two rules still tied after that is corrupt data, reported as
DataIntegrityError instead of picking whichever came back first.
"""

from logging import getLogger
from typing import Iterable, Optional, Tuple

from cardwise.errors import DataIntegrityError, ValidationError
from cardwise.models import RewardRule, TransactionType

logger = getLogger(__name__)


def parse_transaction_type(value) -> TransactionType:
    """Coerce a query's transaction type. Queries are ONLINE or OFFLINE, never BOTH."""
    if isinstance(value, TransactionType):
        tx_type = value
    else:
        try:
            tx_type = TransactionType(str(value).upper())
        except ValueError:
            raise ValidationError(
                f"transaction_type must be ONLINE or OFFLINE, got {value!r}"
            ) from None

    if tx_type == TransactionType.BOTH:
        raise ValidationError("transaction_type must be ONLINE or OFFLINE, got 'BOTH'")
    return tx_type


def rule_applies(
    rule: RewardRule,
    category_id: int,
    sub_category_id: Optional[int],
    transaction_type: TransactionType,
) -> bool:
    if rule.category_id != category_id:
        return False
    if rule.transaction_type not in (transaction_type, TransactionType.BOTH):
        return False
    # Category-wide rules always qualify; specific ones need the same sub-category
    return rule.sub_category_id is None or rule.sub_category_id == sub_category_id


def specificity(rule: RewardRule) -> Tuple[int, int]:
    return (
        1 if rule.sub_category_id is not None else 0,
        1 if rule.transaction_type != TransactionType.BOTH else 0,
    )


class RuleMatcher:
    """Stateless; one instance can serve any number of requests."""

    def match(
        self,
        rules: Iterable[RewardRule],
        category_id: int,
        sub_category_id: Optional[int],
        transaction_type,
    ) -> Optional[RewardRule]:
        tx_type = parse_transaction_type(transaction_type)

        candidates = [
            r for r in rules if rule_applies(r, category_id, sub_category_id, tx_type)
        ]
        if not candidates:
            return None

        best = max(specificity(r) for r in candidates)
        winners = [r for r in candidates if specificity(r) == best]

        if len(winners) > 1:
            ids = sorted(r.id for r in winners if r.id is not None)
            card_id = winners[0].card_id
            message = (
                f"Ambiguous reward rules {ids} on card {card_id} for category "
                f"{category_id}, sub-category {sub_category_id}, {tx_type.value}"
            )
            logger.error(message)
            raise DataIntegrityError(message)

        return winners[0]


def match_rule(
    rules: Iterable[RewardRule],
    category_id: int,
    sub_category_id: Optional[int],
    transaction_type,
) -> Optional[RewardRule]:
    return RuleMatcher().match(rules, category_id, sub_category_id, transaction_type)
