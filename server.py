import logging
import traceback
from logging import getLogger
from typing import Optional

from mcp.server.fastmcp import FastMCP
from sqlmodel import Session

from cardwise import catalog, wallet
from cardwise.config import settings
from cardwise.context import RequestContext
from cardwise.db import create_db_and_tables, engine
from cardwise.errors import CardwiseError
from cardwise.logic.recommender import rank

logger = getLogger(__name__)

mcp = FastMCP("cardwise")


def _error(e: CardwiseError) -> dict:
    return {"status": "error", "code": e.code, "message": e.message}


# ======================= RESOURCES =======================


@mcp.resource("cardwise://categories")
def categories_resource() -> dict:
    """All purchase categories with their sub-categories and IDs."""
    with Session(engine) as session:
        return {"categories": [catalog.category_to_dict(c) for c in catalog.list_categories(session)]}


# ========================= TOOLS =========================


@mcp.tool()
def list_categories() -> dict:
    """
    Lists every purchase category and its sub-categories.

    Use this to translate a purchase ("Swiggy order", "flight on Indigo") into
    the category_id / sub_category_id that get_best_card_for_purchase needs.
    """
    try:
        with Session(engine) as session:
            categories = catalog.list_categories(session)
            return {
                "status": "success",
                "count": len(categories),
                "categories": [catalog.category_to_dict(c) for c in categories],
            }
    except CardwiseError as e:
        logger.warning(f"list_categories failed: {e.message}")
        return _error(e)
    except Exception as e:
        logger.error(f"Error listing categories: {e}")
        logger.error(traceback.format_exc())
        return {"status": "error", "message": f"System error: {e}"}


@mcp.tool()
def get_best_card_for_purchase(
    user_id: int,
    amount: float,
    category_id: int,
    transaction_type: str,
    sub_category_id: Optional[int] = None,
) -> dict:
    """
    Ranks every card in the user's wallet for one purchase.

    Args:
        user_id: Whose wallet to rank.
        amount: Purchase amount (must be > 0).
        category_id: From list_categories.
        transaction_type: "ONLINE" or "OFFLINE".
        sub_category_id: Optional, from list_categories. Must belong to category_id.

    Returns:
        dict with 'recommended' (rank 1, or None for an empty wallet) and
        'results' (all cards, best first).
        Each result has a 'flag': OK, CAPPED (monthly cap clipped the reward),
        BELOW_MINIMUM (purchase under the rule's minimum spend) or NO_RULE.
    """
    try:
        with Session(engine) as session:
            ctx = RequestContext(user_id=user_id)
            results = rank(
                session,
                ctx,
                user_id,
                amount=amount,
                category_id=category_id,
                transaction_type=transaction_type,
                sub_category_id=sub_category_id,
            )
            ranked = [r.to_dict() for r in results]
            if not ranked:
                return {
                    "status": "success",
                    "recommended": None,
                    "results": [],
                    "note": "No cards in this wallet. Add one with add_user_card.",
                }

            return {
                "status": "success",
                "recommended": ranked[0],
                "results": ranked,
                "quick_comparison": [
                    f"{r['rank']}. {r['card_name']} ({r['bank']}) -> {r['reward_display']} [{r['flag']}]"
                    for r in ranked
                ],
            }
    except CardwiseError as e:
        logger.warning(f"Ranking failed for user {user_id}: {e.message}")
        return _error(e)
    except Exception as e:
        logger.error(f"Error in card recommendation: {e}")
        logger.error(traceback.format_exc())
        return {"status": "error", "message": f"System error: {e}"}


@mcp.tool()
def get_card_rules(card_id: int) -> dict:
    """
    Retrieves a card product with its reward rules (rate, scope, caps, minimums).

    Args:
        card_id: Numeric card product ID.
    """
    try:
        with Session(engine) as session:
            card = catalog.get_card_detail(session, card_id)
            return {"status": "success", "card": catalog.card_to_dict(card, include_rules=True)}
    except CardwiseError as e:
        logger.warning(f"get_card_rules({card_id}) failed: {e.message}")
        return _error(e)
    except Exception as e:
        logger.error(f"Error fetching card rules: {e}")
        logger.error(traceback.format_exc())
        return {"status": "error", "message": f"System error: {e}"}


@mcp.tool()
def add_user_card(
    user_id: int,
    credit_card_id: int,
    card_number: Optional[str] = None,
    expiry_date: Optional[str] = None,
) -> dict:
    """
    Adds a card product to a user's wallet.

    Args:
        user_id: Wallet owner.
        credit_card_id: Card product ID.
        card_number: Optional. Only the last 4 digits are stored.
        expiry_date: Optional, "MM/YY".
    """
    try:
        with Session(engine) as session:
            ctx = RequestContext(user_id=user_id)
            link = wallet.add_user_card(
                session, ctx, user_id, credit_card_id, card_number, expiry_date
            )
            return {"status": "success", "card": wallet.user_card_to_dict(link)}
    except CardwiseError as e:
        logger.warning(f"add_user_card failed: {e.message}")
        return _error(e)
    except Exception as e:
        logger.error(f"Error adding card to wallet: {e}")
        logger.error(traceback.format_exc())
        return {"status": "error", "message": f"System error: {e}"}


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level)
    create_db_and_tables()
    mcp.run()
