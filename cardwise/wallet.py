"""The cards a user holds. Users manage their own wallet; admins any wallet."""

import calendar
import re
from datetime import date, datetime
from logging import getLogger
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from cardwise.context import RequestContext
from cardwise.errors import NotFoundError, ValidationError
from cardwise.models import User, UserCreditCard, UserRole
from cardwise.repository import CatalogRepository

logger = getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def mask_card_number(card_number: Optional[str]) -> Optional[str]:
    """Keep the last 4 digits only. Spaces and dashes are ignored."""
    if card_number is None or not card_number.strip():
        return None
    digits = re.sub(r"[\s-]", "", card_number)
    if not digits.isdigit():
        raise ValidationError("Card number may only contain digits, spaces and dashes")
    if len(digits) < 4:
        raise ValidationError("Card number needs at least 4 digits")
    return digits[-4:]


def parse_expiry(expiry) -> Optional[date]:
    """
    Accepts "MM/YY", "MM/YYYY", an ISO date string or a date.
    MM/YY forms resolve to the last day of that month.
    """
    if expiry is None or expiry == "":
        return None
    if isinstance(expiry, date):
        return expiry

    text = str(expiry).strip()
    match = re.fullmatch(r"(\d{1,2})/(\d{2}|\d{4})", text)
    if match:
        month = int(match.group(1))
        year = int(match.group(2))
        if year < 100:
            year += 2000
        if not 1 <= month <= 12:
            raise ValidationError(f"Invalid expiry month in {text!r}")
        _, last_day = calendar.monthrange(year, month)
        return date(year, month, last_day)

    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Expiry must be MM/YY or YYYY-MM-DD, got {text!r}") from None


def user_card_to_dict(link: UserCreditCard) -> Dict[str, Any]:
    card = link.card
    return {
        "id": link.id,
        "credit_card_id": link.credit_card_id,
        "name": card.name,
        "bank": {"id": card.bank.id, "name": card.bank.name} if card.bank else None,
        "reward_type": card.reward_type.value,
        "card_number": f"**** {link.card_number}" if link.card_number else None,
        "expiry_date": link.expiry_date.isoformat() if link.expiry_date else None,
    }


def create_user(
    session: Session,
    email: str,
    first_name: str = "",
    last_name: str = "",
    role: UserRole = UserRole.USER,
) -> User:
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError(f"Invalid email address: {email!r}")
    if session.exec(select(User).where(User.email == email)).first():
        raise ValidationError(f"User '{email}' already exists")

    user = User(email=email, first_name=first_name, last_name=last_name, role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info(f"Added user {user.id} ({user.role.value})")
    return user


def add_user_card(
    session: Session,
    ctx: RequestContext,
    user_id: int,
    credit_card_id: int,
    card_number: Optional[str] = None,
    expiry=None,
) -> UserCreditCard:
    ctx.require_self_or_admin(user_id)
    catalog = CatalogRepository(session)
    catalog.get_user(user_id)
    catalog.get_card(credit_card_id)

    existing = session.exec(
        select(UserCreditCard).where(
            UserCreditCard.user_id == user_id,
            UserCreditCard.credit_card_id == credit_card_id,
        )
    ).first()
    if existing:
        raise ValidationError(f"Card {credit_card_id} is already in this wallet")

    link = UserCreditCard(
        user_id=user_id,
        credit_card_id=credit_card_id,
        card_number=mask_card_number(card_number),
        expiry_date=parse_expiry(expiry),
    )
    session.add(link)
    session.commit()
    session.refresh(link)
    logger.info(f"User {user_id} added card {credit_card_id} (link {link.id})")
    return link


def remove_user_card(
    session: Session, ctx: RequestContext, user_id: int, user_card_id: int
) -> None:
    ctx.require_self_or_admin(user_id)
    link = session.get(UserCreditCard, user_card_id)
    if link is None or link.user_id != user_id:
        raise NotFoundError("UserCreditCard", user_card_id)
    session.delete(link)
    session.commit()
    logger.info(f"User {user_id} removed card link {user_card_id}")


def list_user_cards(
    session: Session, ctx: RequestContext, user_id: int
) -> List[UserCreditCard]:
    ctx.require_self_or_admin(user_id)
    CatalogRepository(session).get_user(user_id)
    return list(
        session.exec(
            select(UserCreditCard)
            .where(UserCreditCard.user_id == user_id)
            .order_by(UserCreditCard.id)
        ).all()
    )
