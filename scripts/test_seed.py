"""The demo dataset loads cleanly and ranks sensibly."""

from sqlmodel import Session, func, select

import seed
from cardwise import Category, RewardFlag, RewardRule, SubCategory, User
from cardwise.context import SYSTEM
from cardwise.logic.recommender import rank


def _demo(session):
    return session.exec(select(User).where(User.email == "demo@cardwise.local")).one()


def _category(session, name):
    return session.exec(select(Category).where(Category.name == name)).one()


def _sub(session, name):
    return session.exec(select(SubCategory).where(SubCategory.name == name)).one()


def test_seed_is_idempotent(db_engine):
    seed.seed(bind=db_engine)
    seed.seed(bind=db_engine)

    with Session(db_engine) as session:
        assert session.exec(select(func.count()).select_from(RewardRule)).one() == len(seed.RULES)


def test_marketplace_tie_goes_to_free_card(db_engine):
    seed.seed(bind=db_engine)

    with Session(db_engine) as session:
        results = rank(
            session,
            SYSTEM,
            _demo(session).id,
            1000,
            _category(session, "Shopping").id,
            "ONLINE",
            sub_category_id=_sub(session, "Marketplaces").id,
        )

    # Amazon Pay and Millennia both earn 5%; the fee-free card wins
    assert [r.card_name for r in results] == ["Amazon Pay", "Millennia", "Ace", "Atlas"]
    assert results[0].reward == results[1].reward == 50
    assert [r.flag for r in results[2:]] == [RewardFlag.NO_RULE, RewardFlag.NO_RULE]


def test_flight_miles_hit_cap(db_engine):
    seed.seed(bind=db_engine)

    with Session(db_engine) as session:
        top = rank(
            session,
            SYSTEM,
            _demo(session).id,
            5000,
            _category(session, "Travel").id,
            "ONLINE",
            sub_category_id=_sub(session, "Flights").id,
        )[0]

    assert top.card_name == "Atlas"
    assert top.flag == RewardFlag.CAPPED
    assert top.reward == 10000
    assert top.to_dict()["reward_display"] == "10,000 miles"
