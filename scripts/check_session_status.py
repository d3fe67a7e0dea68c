"""
Check a buying-desk session - status, cart and the purchase records its checkout created.

Usage:
    python scripts/check_session_status.py <session_id> <user_id>
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.buy_session import cart_total
from domain.money import sum_money
from repositories.ownership_repository import list_purchases_by_session
from repositories.session_repository import get_session_for_user, list_cart_lines


def check_session_status(session_id: str, user_id: str) -> int:
    """Print a session's state; returns a process exit code."""

    session = get_session_for_user(session_id, user_id)
    if session is None:
        print(f"Session {session_id} not found for user {user_id}")
        return 1

    lines = list_cart_lines(session.session_id)
    purchases = list_purchases_by_session(session.session_id)

    print("=" * 50)
    print(f"SESSION {session.offer_number}")
    print("=" * 50)
    print(f"Status:                    {session.status.value}")
    print(f"Event:                     {session.event_id or '-'}")
    print(f"Cart lines:                {len(lines)}")
    print(f"Cart total:                ${cart_total(lines)}")
    print(f"Purchase records:          {len(purchases)}")
    print(f"Purchased total:           ${sum_money(p.purchase_price for p in purchases)}")
    print("=" * 50)

    # A closed session must have an empty cart, an open one no purchases
    if session.is_closed and lines:
        print("WARNING: closed session still has cart lines")
    if not session.is_closed and purchases:
        print("WARNING: open session already has purchase records")

    for purchase in purchases:
        print(
            f"{purchase.asset_id}: ${purchase.purchase_price} via {purchase.payment_method.value} "
            f"from {purchase.seller_name or '-'} (ownership {purchase.ownership_id})"
        )

    return 0


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(2)
    sys.exit(check_session_status(sys.argv[1], sys.argv[2]))
