"""
Buying-desk cart API endpoints.

Endpoints for viewing and editing a session's cart before checkout.
"""

from fastapi import APIRouter, Depends, Response

from api.dependencies import get_current_user_id
from api.models import (
    AddCartLineRequest,
    CartLineResponse,
    CartResponse,
    RecalculateProfitsResponse,
)
from domain.buy_session import CartLine
from domain.errors import DeskError, TransactionFailureError
from services.cart_service import add_to_cart, get_cart, recalculate_cart_profits, remove_from_cart

router = APIRouter()


def _line_response(line: CartLine) -> CartLineResponse:
    return CartLineResponse(
        line_id=line.line_id,
        asset_id=line.asset_id,
        offer_price=line.offer_price,
        notes=line.notes,
        added_at=line.added_at,
        market_value_at_offer=line.market_value_at_offer,
        expected_profit=line.expected_profit,
    )


@router.get(
    "/buying-desk/sessions/{session_id}/cart",
    response_model=CartResponse,
    summary="View Cart",
)
def view_cart(session_id: str, user_id: str = Depends(get_current_user_id)):
    """Return the session's cart lines in the order they were added, with the total."""
    try:
        cart = get_cart(session_id, user_id)
        return CartResponse(
            session_id=cart.session.session_id,
            session_number=cart.session.offer_number,
            status=cart.session.status.value,
            items=[_line_response(line) for line in cart.lines],
            item_count=cart.item_count,
            total=cart.total,
        )
    except DeskError:
        raise
    except Exception as e:
        raise TransactionFailureError("Failed to fetch cart", details={"reason": str(e)}) from e


@router.post(
    "/buying-desk/sessions/{session_id}/cart",
    response_model=CartLineResponse,
    status_code=201,
    summary="Add Cart Item",
)
def add_cart_item(
    session_id: str,
    request: AddCartLineRequest,
    user_id: str = Depends(get_current_user_id),
):
    """
    Add an asset at an agreed offer price.

    The session must be open; a checked-out session returns 409.
    """
    try:
        line = add_to_cart(session_id, user_id, request.asset_id, request.offer_price, request.notes)
        return _line_response(line)
    except DeskError:
        raise
    except Exception as e:
        raise TransactionFailureError("Failed to add cart item", details={"reason": str(e)}) from e


@router.delete(
    "/buying-desk/sessions/{session_id}/cart/{line_id}",
    status_code=204,
    response_class=Response,
    summary="Remove Cart Item",
)
def remove_cart_item(session_id: str, line_id: str, user_id: str = Depends(get_current_user_id)):
    try:
        remove_from_cart(session_id, user_id, line_id)
        return Response(status_code=204)
    except DeskError:
        raise
    except Exception as e:
        raise TransactionFailureError("Failed to remove cart item", details={"reason": str(e)}) from e


@router.patch(
    "/buying-desk/recalculate-profits",
    response_model=RecalculateProfitsResponse,
    summary="Recalculate Expected Profits",
)
def recalculate_profits(user_id: str = Depends(get_current_user_id)):
    """Fill in market value and expected profit for cart lines that have none."""
    try:
        updated = recalculate_cart_profits(user_id)
        return RecalculateProfitsResponse(success=True, updated=updated)
    except DeskError:
        raise
    except Exception as e:
        raise TransactionFailureError("Failed to recalculate profits", details={"reason": str(e)}) from e
