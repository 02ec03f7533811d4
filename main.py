from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field
from sqlmodel import Session

from cardwise import catalog, wallet
from cardwise.config import settings
from cardwise.context import RequestContext
from cardwise.db import create_db_and_tables, get_session
from cardwise.errors import CardwiseError, DataIntegrityError, DuplicateRuleError
from cardwise.logic.recommender import rank
from cardwise.models import RewardType, TransactionType

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Cardwise", version="0.1.0")

STATUS_BY_CODE = {
    "VALIDATION_ERROR": 422,
    "NOT_FOUND": 404,
    "FORBIDDEN": 403,
    "DATA_INTEGRITY_ERROR": 500,
    "TRANSIENT_FETCH_ERROR": 503,
}


@app.on_event("startup")
def _startup() -> None:
    create_db_and_tables()


@app.exception_handler(CardwiseError)
async def _cardwise_error(request: Request, exc: CardwiseError) -> JSONResponse:
    status = STATUS_BY_CODE.get(exc.code, 400)
    if isinstance(exc, DuplicateRuleError):
        status = 409
    elif isinstance(exc, DataIntegrityError):
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status, content={"code": exc.code, "message": exc.message})


def get_context(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> RequestContext:
    # Invalid headers raise ValidationError, not a FastAPI {"detail"} body
    return RequestContext.from_headers(x_user_id, x_user_role)


# --- Ranking ---


class RecommendationRequest(BaseModel):
    amount: Decimal
    category_id: int | None = None
    sub_category_id: int | None = None
    transaction_type: str


@app.post("/api/users/{user_id}/recommendations")
def http_recommend(
    user_id: int,
    payload: RecommendationRequest,
    ctx: RequestContext = Depends(get_context),
    session: Session = Depends(get_session),
) -> dict[str, Any]:
    results = rank(
        session,
        ctx,
        user_id,
        amount=payload.amount,
        category_id=payload.category_id,
        transaction_type=payload.transaction_type,
        sub_category_id=payload.sub_category_id,
    )
    ranked = [r.to_dict() for r in results]
    return {"recommended": ranked[0] if ranked else None, "results": ranked}


# --- Banks ---


class BankCreate(BaseModel):
    name: str
    logo: str | None = None


@app.get("/api/banks")
def http_list_banks(session: Session = Depends(get_session)):
    return [catalog.bank_to_dict(b) for b in catalog.list_banks(session)]


@app.post("/api/banks", status_code=201)
def http_create_bank(
    payload: BankCreate,
    ctx: RequestContext = Depends(get_context),
    session: Session = Depends(get_session),
):
    return catalog.bank_to_dict(catalog.create_bank(session, ctx, payload.name, payload.logo))


@app.delete("/api/banks/{bank_id}", status_code=204)
def http_delete_bank(
    bank_id: int,
    ctx: RequestContext = Depends(get_context),
    session: Session = Depends(get_session),
):
    catalog.delete_bank(session, ctx, bank_id)
    return Response(status_code=204)


# --- Categories ---


class CategoryCreate(BaseModel):
    name: str


@app.get("/api/transaction-categories")
def http_list_categories(session: Session = Depends(get_session)):
    return [catalog.category_to_dict(c) for c in catalog.list_categories(session)]


@app.post("/api/transaction-categories", status_code=201)
def http_create_category(
    payload: CategoryCreate,
    ctx: RequestContext = Depends(get_context),
    session: Session = Depends(get_session),
):
    category = catalog.create_category(session, ctx, payload.name)
    return catalog.category_to_dict(category)


@app.post("/api/transaction-categories/{category_id}/sub-categories", status_code=201)
def http_add_sub_category(
    category_id: int,
    payload: CategoryCreate,
    ctx: RequestContext = Depends(get_context),
    session: Session = Depends(get_session),
):
    sub = catalog.add_sub_category(session, ctx, category_id, payload.name)
    return {"id": sub.id, "name": sub.name, "category_id": sub.category_id}


# --- Credit cards ---


class CardCreate(BaseModel):
    name: str
    bank_id: int
    annual_fee: Decimal = Decimal("0")
    reward_type: RewardType = RewardType.CASHBACK
    image: str | None = None


@app.get("/api/credit-cards")
def http_list_cards(session: Session = Depends(get_session)):
    return [catalog.card_to_dict(c, include_rules=True) for c in catalog.list_cards(session)]


@app.get("/api/credit-cards/{card_id}")
def http_get_card(card_id: int, session: Session = Depends(get_session)):
    return catalog.card_to_dict(catalog.get_card_detail(session, card_id), include_rules=True)


@app.post("/api/credit-cards", status_code=201)
def http_create_card(
    payload: CardCreate,
    ctx: RequestContext = Depends(get_context),
    session: Session = Depends(get_session),
):
    card = catalog.create_card(
        session,
        ctx,
        name=payload.name,
        bank_id=payload.bank_id,
        annual_fee=payload.annual_fee,
        reward_type=payload.reward_type,
        image=payload.image,
    )
    return catalog.card_to_dict(card)


@app.delete("/api/credit-cards/{card_id}", status_code=204)
def http_delete_card(
    card_id: int,
    ctx: RequestContext = Depends(get_context),
    session: Session = Depends(get_session),
):
    catalog.delete_card(session, ctx, card_id)
    return Response(status_code=204)


# --- Reward rules ---


class RewardRuleCreate(BaseModel):
    credit_card_id: int
    category_id: int
    sub_category_id: int | None = None
    transaction_type: TransactionType = TransactionType.BOTH
    reward_type: RewardType = RewardType.CASHBACK
    reward_value: Decimal
    monthly_cap: Decimal | None = None
    minimum_spend: Decimal | None = None


class RewardRuleUpdate(BaseModel):
    category_id: int | None = None
    sub_category_id: int | None = None
    transaction_type: TransactionType | None = None
    reward_type: RewardType | None = None
    reward_value: Decimal | None = None
    monthly_cap: Decimal | None = None
    minimum_spend: Decimal | None = None


@app.get("/api/reward-rules/credit-card/{card_id}")
def http_list_rules(card_id: int, session: Session = Depends(get_session)):
    return [catalog.rule_to_dict(r) for r in catalog.list_rules_for_card(session, card_id)]


@app.post("/api/reward-rules", status_code=201)
def http_create_rule(
    payload: RewardRuleCreate,
    ctx: RequestContext = Depends(get_context),
    session: Session = Depends(get_session),
):
    rule = catalog.create_reward_rule(
        session,
        ctx,
        card_id=payload.credit_card_id,
        category_id=payload.category_id,
        sub_category_id=payload.sub_category_id,
        transaction_type=payload.transaction_type,
        reward_type=payload.reward_type,
        reward_value=payload.reward_value,
        monthly_cap=payload.monthly_cap,
        minimum_spend=payload.minimum_spend,
    )
    return catalog.rule_to_dict(rule)


@app.patch("/api/reward-rules/{rule_id}")
def http_update_rule(
    rule_id: int,
    payload: RewardRuleUpdate,
    ctx: RequestContext = Depends(get_context),
    session: Session = Depends(get_session),
):
    # Only fields the client actually sent; an explicit null clears a cap/minimum
    changes = payload.model_dump(exclude_unset=True)
    rule = catalog.update_reward_rule(session, ctx, rule_id, changes)
    return catalog.rule_to_dict(rule)


@app.delete("/api/reward-rules/{rule_id}", status_code=204)
def http_delete_rule(
    rule_id: int,
    ctx: RequestContext = Depends(get_context),
    session: Session = Depends(get_session),
):
    catalog.delete_reward_rule(session, ctx, rule_id)
    return Response(status_code=204)


# --- Wallet ---


class UserCardCreate(BaseModel):
    credit_card_id: int
    card_number: str | None = Field(default=None, description="Only the last 4 digits are stored")
    expiry_date: str | None = Field(default=None, description="MM/YY or YYYY-MM-DD")


@app.get("/api/users/{user_id}/credit-cards")
def http_list_user_cards(
    user_id: int,
    ctx: RequestContext = Depends(get_context),
    session: Session = Depends(get_session),
):
    return [wallet.user_card_to_dict(link) for link in wallet.list_user_cards(session, ctx, user_id)]


@app.post("/api/users/{user_id}/credit-cards", status_code=201)
def http_add_user_card(
    user_id: int,
    payload: UserCardCreate,
    ctx: RequestContext = Depends(get_context),
    session: Session = Depends(get_session),
):
    link = wallet.add_user_card(
        session,
        ctx,
        user_id,
        credit_card_id=payload.credit_card_id,
        card_number=payload.card_number,
        expiry=payload.expiry_date,
    )
    return wallet.user_card_to_dict(link)


@app.delete("/api/users/{user_id}/credit-cards/{user_card_id}", status_code=204)
def http_remove_user_card(
    user_id: int,
    user_card_id: int,
    ctx: RequestContext = Depends(get_context),
    session: Session = Depends(get_session),
):
    wallet.remove_user_card(session, ctx, user_id, user_card_id)
    return Response(status_code=204)
