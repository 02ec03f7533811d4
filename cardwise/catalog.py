"""
Admin-maintained metadata: banks, categories, card products and reward rules.

Writes need an ADMIN RequestContext. Reads are open to everyone since the
wallet and ranking screens need them.
"""

from decimal import Decimal
from logging import getLogger
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from cardwise.context import RequestContext
from cardwise.errors import DuplicateRuleError, NotFoundError, ValidationError
from cardwise.logic.formatting import describe_rule
from cardwise.logic.rewards import to_decimal
from cardwise.models import (
    Bank,
    Category,
    CreditCard,
    RewardRule,
    RewardType,
    SubCategory,
    TransactionType,
)
from cardwise.repository import CatalogRepository, RuleRepository

logger = getLogger(__name__)

# Scales of the Numeric columns in cardwise.models
MONEY_PLACES = 2
RATE_PLACES = 4


def _clean_name(name: str, what: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError(f"{what} name is required")
    return name


def _enum(enum_cls, value, field: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field} must be one of {allowed}, got {value!r}") from None


def _check_places(value: Decimal, places: int, field: str) -> Decimal:
    # The column would round anything finer without complaint
    if value.as_tuple().exponent < -places:
        raise ValidationError(f"{field} allows at most {places} decimal places, got {value}")
    return value


def _optional_amount(value, field: str) -> Optional[Decimal]:
    if value is None:
        return None
    amount = to_decimal(value, field)
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative")
    return _check_places(amount, MONEY_PLACES, field)


# --- Serializers ---


def bank_to_dict(bank: Bank) -> Dict[str, Any]:
    return {
        "id": bank.id,
        "name": bank.name,
        "logo": bank.logo,
        "created_at": bank.created_at.isoformat(),
    }


def category_to_dict(category: Category) -> Dict[str, Any]:
    return {
        "id": category.id,
        "name": category.name,
        "sub_categories": [
            {"id": s.id, "name": s.name, "category_id": s.category_id}
            for s in sorted(category.sub_categories, key=lambda s: s.name)
        ],
    }


def rule_to_dict(rule: RewardRule) -> Dict[str, Any]:
    return {
        "id": rule.id,
        "credit_card_id": rule.card_id,
        "category_id": rule.category_id,
        "category": rule.category.name if rule.category else None,
        "sub_category_id": rule.sub_category_id,
        "sub_category": rule.sub_category.name if rule.sub_category else None,
        "transaction_type": rule.transaction_type.value,
        "reward_type": rule.reward_type.value,
        "reward_value": str(rule.reward_value),
        "monthly_cap": None if rule.monthly_cap is None else str(rule.monthly_cap),
        "minimum_spend": None if rule.minimum_spend is None else str(rule.minimum_spend),
        "description": describe_rule(rule),
    }


def card_to_dict(card: CreditCard, include_rules: bool = False) -> Dict[str, Any]:
    data = {
        "id": card.id,
        "name": card.name,
        "bank": {"id": card.bank.id, "name": card.bank.name} if card.bank else None,
        "annual_fee": str(card.annual_fee),
        "reward_type": card.reward_type.value,
        "image": card.image,
    }
    if include_rules:
        data["reward_rules"] = [
            rule_to_dict(r) for r in sorted(card.reward_rules, key=lambda r: r.id)
        ]
    return data


# --- Banks ---


def create_bank(
    session: Session, ctx: RequestContext, name: str, logo: Optional[str] = None
) -> Bank:
    ctx.require_admin()
    name = _clean_name(name, "Bank")
    if session.exec(select(Bank).where(Bank.name == name)).first():
        raise ValidationError(f"Bank '{name}' already exists")

    bank = Bank(name=name, logo=logo)
    session.add(bank)
    session.commit()
    session.refresh(bank)
    logger.info(f"Added bank: {bank.name} (ID: {bank.id})")
    return bank


def list_banks(session: Session) -> List[Bank]:
    return list(session.exec(select(Bank).order_by(Bank.name)).all())


def delete_bank(session: Session, ctx: RequestContext, bank_id: int) -> None:
    ctx.require_admin()
    bank = session.get(Bank, bank_id)
    if bank is None:
        raise NotFoundError("Bank", bank_id)
    if bank.cards:
        raise ValidationError(
            f"Bank '{bank.name}' still has {len(bank.cards)} card(s); delete them first"
        )
    session.delete(bank)
    session.commit()
    logger.info(f"Deleted bank {bank_id}")


# --- Categories ---


def create_category(session: Session, ctx: RequestContext, name: str) -> Category:
    ctx.require_admin()
    name = _clean_name(name, "Category")
    if session.exec(select(Category).where(Category.name == name)).first():
        raise ValidationError(f"Category '{name}' already exists")

    category = Category(name=name)
    session.add(category)
    session.commit()
    session.refresh(category)
    logger.info(f"Added category: {category.name} (ID: {category.id})")
    return category


def add_sub_category(
    session: Session, ctx: RequestContext, category_id: int, name: str
) -> SubCategory:
    ctx.require_admin()
    name = _clean_name(name, "Sub-category")
    category = CatalogRepository(session).get_category(category_id)
    if any(s.name == name for s in category.sub_categories):
        raise ValidationError(
            f"Sub-category '{name}' already exists under '{category.name}'"
        )

    sub = SubCategory(name=name, category_id=category.id)
    session.add(sub)
    session.commit()
    session.refresh(sub)
    logger.info(f"Added sub-category: {category.name} / {sub.name} (ID: {sub.id})")
    return sub


def list_categories(session: Session) -> List[Category]:
    return list(session.exec(select(Category).order_by(Category.name)).all())


# --- Card products ---


def create_card(
    session: Session,
    ctx: RequestContext,
    name: str,
    bank_id: int,
    annual_fee=0,
    reward_type=RewardType.CASHBACK,
    image: Optional[str] = None,
) -> CreditCard:
    ctx.require_admin()
    name = _clean_name(name, "Card")
    bank = session.get(Bank, bank_id)
    if bank is None:
        raise NotFoundError("Bank", bank_id)

    card = CreditCard(
        name=name,
        bank_id=bank.id,
        annual_fee=_optional_amount(annual_fee, "annual_fee") or Decimal("0"),
        reward_type=_enum(RewardType, reward_type, "reward_type"),
        image=image,
    )
    session.add(card)
    session.commit()
    session.refresh(card)
    logger.info(f"Added credit card: {card.name} (ID: {card.id})")
    return card


def list_cards(session: Session) -> List[CreditCard]:
    return list(session.exec(select(CreditCard).order_by(CreditCard.name)).all())


def get_card_detail(session: Session, card_id: int) -> CreditCard:
    return CatalogRepository(session).get_card(card_id)


def delete_card(session: Session, ctx: RequestContext, card_id: int) -> None:
    ctx.require_admin()
    card = CatalogRepository(session).get_card(card_id)
    session.delete(card)
    session.commit()
    logger.info(f"Deleted credit card {card_id} and its rules")


# --- Reward rules ---


def _find_same_scope(
    session: Session,
    card_id: int,
    category_id: int,
    sub_category_id: Optional[int],
    transaction_type: TransactionType,
    exclude_id: Optional[int] = None,
) -> Optional[RewardRule]:
    """
    Rule occupying the same (card, category, sub-category, type) slot.

    A NULL sub-category has to be compared with IS NULL; a plain UNIQUE
    index would let any number of category-wide duplicates in.
    """
    statement = select(RewardRule).where(
        RewardRule.card_id == card_id,
        RewardRule.category_id == category_id,
        RewardRule.transaction_type == transaction_type,
    )
    if sub_category_id is None:
        statement = statement.where(RewardRule.sub_category_id.is_(None))
    else:
        statement = statement.where(RewardRule.sub_category_id == sub_category_id)
    if exclude_id is not None:
        statement = statement.where(RewardRule.id != exclude_id)
    return session.exec(statement).first()


def _validate_rule_fields(session: Session, fields: Dict[str, Any]) -> Dict[str, Any]:
    catalog = CatalogRepository(session)
    catalog.get_card(fields["card_id"])
    catalog.get_category(fields["category_id"])

    sub_category_id = fields.get("sub_category_id")
    if sub_category_id is not None:
        sub = catalog.get_sub_category(sub_category_id)
        if sub.category_id != fields["category_id"]:
            raise ValidationError(
                f"Sub-category {sub_category_id} does not belong to category "
                f"{fields['category_id']}"
            )

    reward_value = to_decimal(fields["reward_value"], "reward_value")
    if reward_value <= 0:
        raise ValidationError("reward_value must be greater than 0")
    _check_places(reward_value, RATE_PLACES, "reward_value")

    return {
        "card_id": fields["card_id"],
        "category_id": fields["category_id"],
        "sub_category_id": sub_category_id,
        "transaction_type": _enum(
            TransactionType, fields["transaction_type"], "transaction_type"
        ),
        "reward_type": _enum(RewardType, fields["reward_type"], "reward_type"),
        "reward_value": reward_value,
        "monthly_cap": _optional_amount(fields.get("monthly_cap"), "monthly_cap"),
        "minimum_spend": _optional_amount(fields.get("minimum_spend"), "minimum_spend"),
    }


def _check_unique(session: Session, fields: Dict[str, Any], exclude_id=None) -> None:
    existing = _find_same_scope(
        session,
        fields["card_id"],
        fields["category_id"],
        fields["sub_category_id"],
        fields["transaction_type"],
        exclude_id=exclude_id,
    )
    if existing is not None:
        raise DuplicateRuleError(
            f"Card {fields['card_id']} already has rule {existing.id} for this "
            f"category, sub-category and transaction type",
            existing_rule_id=existing.id,
        )


def create_reward_rule(
    session: Session,
    ctx: RequestContext,
    card_id: int,
    category_id: int,
    reward_value,
    sub_category_id: Optional[int] = None,
    transaction_type=TransactionType.BOTH,
    reward_type=RewardType.CASHBACK,
    monthly_cap=None,
    minimum_spend=None,
) -> RewardRule:
    ctx.require_admin()
    fields = _validate_rule_fields(
        session,
        {
            "card_id": card_id,
            "category_id": category_id,
            "sub_category_id": sub_category_id,
            "transaction_type": transaction_type,
            "reward_type": reward_type,
            "reward_value": reward_value,
            "monthly_cap": monthly_cap,
            "minimum_spend": minimum_spend,
        },
    )
    _check_unique(session, fields)

    rule = RewardRule(**fields)
    session.add(rule)
    session.commit()
    session.refresh(rule)
    logger.info(f"Added reward rule {rule.id} to card {card_id}: {describe_rule(rule)}")
    return rule


UPDATABLE_RULE_FIELDS = {
    "category_id",
    "sub_category_id",
    "transaction_type",
    "reward_type",
    "reward_value",
    "monthly_cap",
    "minimum_spend",
}
REQUIRED_RULE_FIELDS = {"category_id", "transaction_type", "reward_type", "reward_value"}


def update_reward_rule(
    session: Session, ctx: RequestContext, rule_id: int, changes: Dict[str, Any]
) -> RewardRule:
    """
    Apply a partial update. Keys absent from `changes` are left alone; a key
    present with None clears an optional field (cap, minimum, sub-category).
    """
    ctx.require_admin()
    unknown = set(changes) - UPDATABLE_RULE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
    cleared = [k for k in REQUIRED_RULE_FIELDS if k in changes and changes[k] is None]
    if cleared:
        raise ValidationError(f"Field(s) cannot be null: {', '.join(sorted(cleared))}")

    rule = session.get(RewardRule, rule_id)
    if rule is None:
        raise NotFoundError("RewardRule", rule_id)

    current = {
        "card_id": rule.card_id,
        "category_id": rule.category_id,
        "sub_category_id": rule.sub_category_id,
        "transaction_type": rule.transaction_type,
        "reward_type": rule.reward_type,
        "reward_value": rule.reward_value,
        "monthly_cap": rule.monthly_cap,
        "minimum_spend": rule.minimum_spend,
    }
    # Moving to another category drops a sub-category the caller didn't restate
    if "category_id" in changes and "sub_category_id" not in changes:
        if changes["category_id"] != rule.category_id:
            current["sub_category_id"] = None
    current.update(changes)

    fields = _validate_rule_fields(session, current)
    _check_unique(session, fields, exclude_id=rule.id)

    for key, value in fields.items():
        setattr(rule, key, value)
    session.add(rule)
    session.commit()
    session.refresh(rule)
    logger.info(f"Updated reward rule {rule.id}: {describe_rule(rule)}")
    return rule


def delete_reward_rule(session: Session, ctx: RequestContext, rule_id: int) -> None:
    ctx.require_admin()
    rule = session.get(RewardRule, rule_id)
    if rule is None:
        raise NotFoundError("RewardRule", rule_id)
    session.delete(rule)
    session.commit()
    logger.info(f"Deleted reward rule {rule_id}")


def list_rules_for_card(session: Session, card_id: int) -> List[RewardRule]:
    return RuleRepository(session).get_rules_for_card(card_id)
