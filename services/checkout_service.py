"""
Checkout service for finalizing buying-desk sessions.

Turns a session's negotiated cart into permanent ownership and purchase records,
exactly once.

Process:
1. Validate, before any write:
   - session exists and belongs to the buyer          (else SessionNotFoundError)
   - session is not closed                            (else AlreadyProcessedError)
   - cart is not empty                                (else EmptyCartError)
   - amount paid covers the cart total                (else InsufficientPaymentError)
2. Capture each asset's market value (best-effort, $0 on failure)
3. Run the atomic checkout function (repositories.checkout_repository), which
   re-checks step 1 under a row lock and then, in one transaction, creates one
   ownership record and one purchase record per cart line, clears the cart and
   closes the session. Any fault rolls back every write.
4. After commit, enqueue the advisory side effects (sales-history append and
   delayed market refresh). These never block or fail the checkout.

A retried finalize on a closed session is rejected with AlreadyProcessedError,
never turned into a second purchase.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import uuid4

from domain.buy_session import BuySession, cart_total
from domain.errors import (
    AlreadyProcessedError,
    AssetNotFoundError,
    DeskError,
    EmptyCartError,
    InsufficientPaymentError,
    SessionNotFoundError,
    TransactionFailureError,
    ValidationFault,
)
from domain.money import CENTS, to_money
from domain.ownership import UNKNOWN_SELLER, PaymentMethod
from domain.time import utc_now
from repositories.checkout_repository import (
    AtomicCallResult,
    AtomicCheckoutResult,
    ProcessedLine,
    finalize_session_atomic,
    parse_checkout_result,
)
from repositories.session_repository import (
    get_seller_contact,
    get_session_for_user,
    list_cart_lines,
)
from services.post_commit import RefreshScheduler, TaskQueue
from services.pricing_oracle import lookup_market_values
from services.sales_history_writer import SaleFacts, append_sale

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    """
    Request to finalize one session.

    buyer_name is the counterparty name entered at the desk; it is recorded on
    the purchase records when the session is not linked to a seller contact.
    """
    session_id: str
    user_id: str
    payment_method: PaymentMethod
    amount_paid: Decimal
    buyer_name: str
    notes: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CheckoutReceipt:
    """
    Result of a successful checkout.

    transaction_id: correlation id of this checkout (also in every log line)
    total: sum of the cart-line prices that were checked out
    ownership_records_created / purchase_records_created: one each per cart line
    processed_assets: display strings of the acquired assets, in cart order
    """
    receipt_id: str
    session_id: str
    session_number: str
    transaction_id: str
    total: Decimal
    amount_paid: Decimal
    payment_method: PaymentMethod
    paid_at: datetime
    items_processed: int
    event_id: Optional[str]
    ownership_records_created: int
    purchase_records_created: int
    processed_assets: List[str]

    @property
    def change_due(self) -> Decimal:
        return self.amount_paid - self.total


def _validate_request(request: CheckoutRequest, correlation_id: str) -> None:
    if request.amount_paid < 0:
        raise ValidationFault(
            "amountPaid must be >= 0",
            details={"field": "amountPaid"},
            correlation_id=correlation_id,
        )
    if request.amount_paid != request.amount_paid.quantize(CENTS):
        raise ValidationFault(
            "amountPaid must have at most 2 decimal places",
            details={"field": "amountPaid"},
            correlation_id=correlation_id,
        )
    if not request.buyer_name or not request.buyer_name.strip():
        raise ValidationFault(
            "Buyer name is required",
            details={"field": "buyerName"},
            correlation_id=correlation_id,
        )


def _resolve_counterparty(session: BuySession, request: CheckoutRequest, correlation_id: str) -> Tuple[str, Optional[str]]:
    """Seller contact linked to the session wins over the name typed at checkout."""

    if session.seller_id:
        contact = get_seller_contact(session.seller_id)
        if contact is not None:
            contact_id, contact_name = contact
            logger.info("[Transaction %s] Seller: %s (contact %s)", correlation_id, contact_name, contact_id)
            return contact_name or UNKNOWN_SELLER, contact_id

    return request.buyer_name.strip() or UNKNOWN_SELLER, None


def _raise_for_failure(result: AtomicCallResult, correlation_id: str) -> None:
    """Translate a failed atomic checkout into the domain error taxonomy."""

    code = result.error_code
    data = result.data

    if code == "SESSION_NOT_FOUND":
        raise SessionNotFoundError(correlation_id=correlation_id)

    if code == "ALREADY_PROCESSED":
        raise AlreadyProcessedError(
            details={"status": "closed", "sessionNumber": data.get("session_number")},
            correlation_id=correlation_id,
        )

    if code == "EMPTY_CART":
        raise EmptyCartError(
            details={"hint": "Cart may have been already processed or cleared"},
            correlation_id=correlation_id,
        )

    if code == "INSUFFICIENT_PAYMENT":
        raise InsufficientPaymentError(
            required=to_money(data.get("required")),
            provided=to_money(data.get("provided")),
            correlation_id=correlation_id,
        )

    if code == "ASSET_NOT_FOUND":
        asset_id = data.get("details")
        raise AssetNotFoundError(
            f"Global asset not found for cart item {data.get('hint')}: asset {asset_id}. "
            "All changes have been rolled back",
            details={"assetId": asset_id, "cartLineId": data.get("hint")},
            correlation_id=correlation_id,
        )

    raise TransactionFailureError(
        "All changes have been rolled back",
        details={"reason": result.error_message or code},
        correlation_id=correlation_id,
    )


def _enqueue_post_commit(
    request: CheckoutRequest,
    result: AtomicCheckoutResult,
    task_queue: TaskQueue,
    refresh_scheduler: RefreshScheduler,
    correlation_id: str,
    sold_at: datetime,
) -> None:
    """Queue advisory side effects; nothing here may raise into the caller."""

    scheduled: set[str] = set()

    for line in result.processed:
        facts = _sale_facts(request, result, line, sold_at)
        try:
            task_queue.enqueue(append_sale, facts)
        except Exception as e:
            logger.warning("[Transaction %s] Could not queue sales history for %s: %s", correlation_id, line.asset_id, e)

        if line.asset_id in scheduled:
            continue
        scheduled.add(line.asset_id)
        try:
            refresh_scheduler.schedule(line.asset_id)
        except Exception as e:
            logger.warning("[Transaction %s] Sales refresh scheduling failed for %s: %s", correlation_id, line.asset_id, e)


def _sale_facts(
    request: CheckoutRequest,
    result: AtomicCheckoutResult,
    line: ProcessedLine,
    sold_at: datetime,
) -> SaleFacts:
    return SaleFacts(
        asset_id=line.asset_id,
        title=line.display,
        final_price=line.purchase_price,
        sold_at=sold_at,
        payment_method=request.payment_method.value,
        user_id=request.user_id,
        card_id=line.card_id,
        ownership_id=line.ownership_id,
        event_id=result.event_id,
        image_url=line.image_url,
        notes=f"Buying Desk - Session {result.session_number}",
    )


def finalize_checkout(
    request: CheckoutRequest,
    task_queue: TaskQueue,
    refresh_scheduler: Optional[RefreshScheduler] = None,
) -> CheckoutReceipt:
    """
    Finalize a buying-desk session and return its receipt.

    Args:
        request: CheckoutRequest for one session
        task_queue: Where post-commit side effects are enqueued
        refresh_scheduler: Market refresh scheduler (defaults to one on task_queue)

    Returns:
        CheckoutReceipt

    Raises:
        ValidationFault, SessionNotFoundError, AlreadyProcessedError, EmptyCartError,
        InsufficientPaymentError, AssetNotFoundError, TransactionFailureError.
        Every raised DeskError carries this checkout's correlation id.

    Example:
        receipt = finalize_checkout(
            CheckoutRequest(
                session_id=session.session_id,
                user_id=user_id,
                payment_method=PaymentMethod.CASH,
                amount_paid=Decimal("100.00"),
                buyer_name="Walk-in seller",
            ),
            task_queue=ThreadPoolTaskQueue(),
        )
        print(f"{receipt.session_number}: {receipt.items_processed} assets, ${receipt.total}")
    """
    correlation_id = str(uuid4())
    refresh_scheduler = refresh_scheduler or RefreshScheduler(task_queue)

    logger.info(
        "[Transaction %s] Starting checkout finalization for session %s, user %s",
        correlation_id, request.session_id, request.user_id,
    )

    try:
        _validate_request(request, correlation_id)

        # 1. Validate session state and payment before any write
        session = get_session_for_user(request.session_id, request.user_id)
        if session is None:
            logger.info("[Transaction %s] Session not found: %s", correlation_id, request.session_id)
            raise SessionNotFoundError(correlation_id=correlation_id)

        if session.is_closed:
            logger.info("[Transaction %s] Session %s already processed", correlation_id, session.offer_number)
            raise AlreadyProcessedError(
                details={"status": session.status.value, "sessionNumber": session.offer_number},
                correlation_id=correlation_id,
            )

        lines = list_cart_lines(session.session_id)
        if not lines:
            logger.info("[Transaction %s] Cart is empty for session %s", correlation_id, session.session_id)
            raise EmptyCartError(
                details={"hint": "Cart may have been already processed or cleared"},
                correlation_id=correlation_id,
            )

        total = cart_total(lines)
        amount_paid = to_money(request.amount_paid)
        if request.amount_paid < total:
            logger.info(
                "[Transaction %s] Payment insufficient: paid $%s, required $%s",
                correlation_id, amount_paid, total,
            )
            raise InsufficientPaymentError(required=total, provided=amount_paid, correlation_id=correlation_id)

        logger.info("[Transaction %s] Processing %d items, total: $%s", correlation_id, len(lines), total)

        counterparty_name, seller_contact_id = _resolve_counterparty(session, request, correlation_id)

        # 2. Market values are advisory: failures become $0
        market_values = lookup_market_values((line.asset_id for line in lines), correlation_id)

        # 3. Atomic checkout
        atomic = finalize_session_atomic(
            session_id=session.session_id,
            user_id=request.user_id,
            payment_method=request.payment_method,
            amount_paid=amount_paid,
            counterparty_name=counterparty_name,
            seller_contact_id=seller_contact_id,
            notes=request.notes,
            market_values=market_values,
            correlation_id=correlation_id,
        )

    except DeskError:
        raise
    except Exception as e:
        logger.exception("[Transaction %s] Unexpected error before commit", correlation_id)
        raise TransactionFailureError(
            "All changes have been rolled back",
            details={"reason": str(e)},
            correlation_id=correlation_id,
        ) from e

    if not atomic.success:
        if atomic.rolled_back:
            logger.error(
                "[Transaction %s] Checkout rolled back (%s): %s",
                correlation_id, atomic.error_code, atomic.error_message,
            )
        else:
            logger.info("[Transaction %s] Checkout rejected: %s", correlation_id, atomic.error_code)
        _raise_for_failure(atomic, correlation_id)

    result = parse_checkout_result(atomic.data)
    paid_at = utc_now()

    logger.info(
        "[Transaction %s] Checkout committed: %d assets, $%s total, %d cart lines cleared",
        correlation_id, len(result.processed), result.total, result.cart_lines_cleared,
    )

    # 4. Post-commit, advisory only
    _enqueue_post_commit(request, result, task_queue, refresh_scheduler, correlation_id, paid_at)

    return CheckoutReceipt(
        receipt_id=str(uuid4()),
        session_id=session.session_id,
        session_number=result.session_number or session.offer_number,
        transaction_id=correlation_id,
        total=result.total,
        amount_paid=amount_paid,
        payment_method=request.payment_method,
        paid_at=paid_at,
        items_processed=len(result.processed),
        event_id=result.event_id,
        ownership_records_created=len({line.ownership_id for line in result.processed}),
        purchase_records_created=len({line.transaction_id for line in result.processed}),
        processed_assets=[line.display for line in result.processed],
    )


__all__ = [
    "CheckoutRequest",
    "CheckoutReceipt",
    "finalize_checkout",
]
