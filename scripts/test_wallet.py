from datetime import date
from decimal import Decimal

import pytest

from cardwise import wallet
from cardwise.context import SYSTEM, RequestContext
from cardwise.errors import NotFoundError, PermissionDeniedError, ValidationError
from cardwise.models import UserCreditCard
from cardwise.repository import UsageRepository
from cardwise.usage import month_key, record_reward


@pytest.mark.parametrize(
    "raw, masked",
    [
        ("4111 1111 1111 1234", "1234"),
        ("4111-1111-1111-9876", "9876"),
        ("5678", "5678"),
        (None, None),
        ("  ", None),
    ],
)
def test_mask_card_number(raw, masked):
    assert wallet.mask_card_number(raw) == masked


@pytest.mark.parametrize("raw", ["123", "4111-abcd-1111"])
def test_mask_card_number_rejects_garbage(raw):
    with pytest.raises(ValidationError):
        wallet.mask_card_number(raw)


def test_parse_expiry():
    assert wallet.parse_expiry("02/28") == date(2028, 2, 29)
    assert wallet.parse_expiry("11/2027") == date(2027, 11, 30)
    assert wallet.parse_expiry("2029-01-31") == date(2029, 1, 31)
    assert wallet.parse_expiry(None) is None
    with pytest.raises(ValidationError):
        wallet.parse_expiry("13/27")
    with pytest.raises(ValidationError):
        wallet.parse_expiry("next year")


def test_add_card_stores_only_last_four(session, world, new_card):
    card = new_card("Card", in_wallet=False)
    me = RequestContext(user_id=world.user.id)

    link = wallet.add_user_card(session, me, world.user.id, card.id, "4111 1111 1111 4242", "09/27")

    stored = session.get(UserCreditCard, link.id)
    assert stored.card_number == "4242"
    assert stored.expiry_date == date(2027, 9, 30)
    data = wallet.user_card_to_dict(stored)
    assert data["card_number"] == "**** 4242"
    assert data["bank"]["name"] == "Test Bank"


def test_same_card_twice_rejected(session, world, new_card):
    card = new_card("Card")

    with pytest.raises(ValidationError):
        wallet.add_user_card(session, SYSTEM, world.user.id, card.id)


def test_wallet_is_private(session, world, new_card):
    card = new_card("Card", in_wallet=False)
    other = RequestContext(user_id=world.user.id + 100)

    with pytest.raises(PermissionDeniedError):
        wallet.add_user_card(session, other, world.user.id, card.id)
    with pytest.raises(PermissionDeniedError):
        wallet.list_user_cards(session, other, world.user.id)
    with pytest.raises(PermissionDeniedError):
        wallet.list_user_cards(session, RequestContext(), world.user.id)


def test_remove_card(session, world, new_card):
    new_card("Keep")
    new_card("Drop")
    me = RequestContext(user_id=world.user.id)
    links = wallet.list_user_cards(session, me, world.user.id)
    drop = next(link for link in links if link.card.name == "Drop")

    wallet.remove_user_card(session, me, world.user.id, drop.id)

    assert [link.card.name for link in wallet.list_user_cards(session, me, world.user.id)] == ["Keep"]
    with pytest.raises(NotFoundError):
        wallet.remove_user_card(session, me, world.user.id, drop.id)


def test_unknown_card_or_user(session, world):
    with pytest.raises(NotFoundError):
        wallet.add_user_card(session, SYSTEM, world.user.id, 999)
    with pytest.raises(NotFoundError):
        wallet.list_user_cards(session, SYSTEM, 999)


def test_create_user_validates_email(session, world):
    with pytest.raises(ValidationError):
        wallet.create_user(session, "not-an-email")
    with pytest.raises(ValidationError):
        wallet.create_user(session, "ALICE@example.com")


def test_record_reward_accumulates_per_month(session, world, new_card):
    card = new_card("Card", rules=[{"category_id": world.dining.id, "reward_value": 1, "monthly_cap": 100}])
    rule_id = card.reward_rules[0].id

    record_reward(session, world.user.id, rule_id, Decimal("30"), date(2026, 10, 1))
    usage = record_reward(session, world.user.id, rule_id, Decimal("12.5"), date(2026, 10, 31))
    november = record_reward(session, world.user.id, rule_id, Decimal("1"), date(2026, 11, 1))

    assert usage.period == month_key(date(2026, 10, 9)) == "2026-10"
    assert usage.reward_earned == Decimal("42.5")
    assert november.id != usage.id

    with pytest.raises(ValidationError):
        record_reward(session, world.user.id, rule_id, Decimal("-1"), date(2026, 10, 1))


def test_recorded_reward_keeps_every_digit(session, world, new_card):
    card = new_card("Card", rules=[{"category_id": world.dining.id, "reward_value": "1.23", "monthly_cap": 10}])
    rule_id = card.reward_rules[0].id
    on = date(2026, 10, 18)

    # 1.23% of 33.33 is 0.409959, finer than any money column
    record_reward(session, world.user.id, rule_id, Decimal("0.409959"), on)
    record_reward(session, world.user.id, rule_id, Decimal("0.409959"), on)

    assert UsageRepository(session).get_month_to_date(world.user.id, rule_id, on) == Decimal("0.819918")
    assert UsageRepository(session).get_month_to_date(None, rule_id, on) == 0
