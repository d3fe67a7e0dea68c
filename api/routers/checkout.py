"""
Buying-desk checkout API endpoints.

Endpoints for finalizing a session and undoing a purchase.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from api.dependencies import get_current_user_id, get_task_queue
from api.models import ErrorResponse, FinalizeCheckoutRequest, ReceiptResponse, UndoPurchaseResponse
from domain.asset import CanonicalAsset
from domain.errors import DeskError, TransactionFailureError
from services.checkout_service import CheckoutRequest, finalize_checkout
from services.post_commit import TaskQueue
from services.undo_service import undo_purchase

router = APIRouter()


def _asset_metadata(asset: Optional[CanonicalAsset]) -> Optional[Dict[str, Any]]:
    if asset is None:
        return None
    return {
        "id": asset.asset_id,
        "title": asset.display_title(),
        "playerName": asset.player_name,
        "setName": asset.set_name,
        "year": asset.year,
        "grade": asset.grade,
        "grader": asset.grader,
        "certNumber": asset.cert_number,
        "imageUrl": asset.image_url,
    }


@router.post(
    "/buying-desk/sessions/{session_id}/checkout/finalize",
    response_model=ReceiptResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Finalize Checkout",
    description="Turn a session's cart into ownership and purchase records in one transaction.",
)
def finalize_session_checkout(
    session_id: str,
    request: FinalizeCheckoutRequest,
    user_id: str = Depends(get_current_user_id),
    task_queue: TaskQueue = Depends(get_task_queue),
):
    """
    Finalize a buying-desk session.

    **Process:**
    1. Validates the session is open and owned by the caller
    2. Validates the cart is not empty and the payment covers the total
    3. Creates one ownership and one purchase record per cart line, clears the
       cart and closes the session, all in a single transaction
    4. Queues the sales-history append and market refresh after the response

    **Errors:**
    - 400: empty cart, insufficient payment (`details.required`, `details.provided`)
    - 404: session not found
    - 409: session already processed
    - 500: integrity or storage fault; nothing was written

    Every error body carries a `correlationId`.
    """
    try:
        receipt = finalize_checkout(
            CheckoutRequest(
                session_id=session_id,
                user_id=user_id,
                payment_method=request.payment_method,
                amount_paid=request.amount_paid,
                buyer_name=request.buyer_name,
                notes=request.notes,
            ),
            task_queue=task_queue,
        )
    except DeskError:
        raise
    except Exception as e:
        raise TransactionFailureError("Failed to finalize checkout", details={"reason": str(e)}) from e

    return ReceiptResponse(
        receipt_id=receipt.receipt_id,
        session_id=receipt.session_id,
        session_number=receipt.session_number,
        transaction_id=receipt.transaction_id,
        total=receipt.total,
        payment_method=receipt.payment_method,
        amount_paid=receipt.amount_paid,
        change_due=receipt.change_due,
        paid_at=receipt.paid_at,
        items_processed=receipt.items_processed,
        event_id=receipt.event_id,
        ownership_records_created=receipt.ownership_records_created,
        purchase_records_created=receipt.purchase_records_created,
        processed_assets=receipt.processed_assets,
    )


@router.delete(
    "/buying-desk/purchased/{asset_id}",
    response_model=UndoPurchaseResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Undo Purchase",
)
def undo_asset_purchase(asset_id: str, user_id: str = Depends(get_current_user_id)):
    """
    Reverse the caller's most recent buying-desk purchase of an asset.

    Removes that one ownership record and its purchase records; other
    acquisitions of the same asset are untouched.
    """
    try:
        result = undo_purchase(user_id, asset_id)
    except DeskError:
        raise
    except Exception as e:
        raise TransactionFailureError("Failed to undo purchase", details={"reason": str(e)}) from e

    return UndoPurchaseResponse(
        asset_id=result.asset_id,
        asset=_asset_metadata(result.asset),
        purchase_price=result.purchase_price,
        ownership_records_removed=result.ownership_records_removed,
        transaction_records_removed=result.transaction_records_removed,
        timestamp=result.undone_at,
    )
