"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
JSON field names are camelCase; Python attributes stay snake_case.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from domain.ownership import PaymentMethod


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


# ============================================================================
# Cart Models
# ============================================================================

class CartLineResponse(CamelModel):
    """Single cart line in API response."""
    line_id: str
    asset_id: str
    offer_price: Decimal
    notes: Optional[str] = None
    added_at: Optional[datetime] = None
    market_value_at_offer: Optional[Decimal] = None
    expected_profit: Optional[Decimal] = None


class CartResponse(CamelModel):
    """A session's cart with its total."""
    session_id: str
    session_number: str
    status: str
    items: List[CartLineResponse]
    item_count: int
    total: Decimal

    class Config:
        json_schema_extra = {
            "example": {
                "sessionId": "7f1c2a9e-0d7b-4c4e-9a55-1b0f3c2d4e5f",
                "sessionNumber": "BUY-2025-014",
                "status": "open",
                "items": [],
                "itemCount": 2,
                "total": "100.00"
            }
        }


class AddCartLineRequest(CamelModel):
    """Request to add an asset to a session's cart."""
    asset_id: str = Field(..., min_length=1)
    offer_price: Decimal = Field(..., ge=0)
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "assetId": "c1e7b5d2-3f4a-4b6c-8d9e-0a1b2c3d4e5f",
                "offerPrice": "40.00",
                "notes": "Slight corner wear on slab"
            }
        }


class RecalculateProfitsResponse(CamelModel):
    success: bool
    updated: int


# ============================================================================
# Checkout Models
# ============================================================================

class FinalizeCheckoutRequest(CamelModel):
    """Request to finalize a session's checkout."""
    payment_method: PaymentMethod
    amount_paid: Decimal = Field(..., ge=0, decimal_places=2)
    buyer_name: str = Field(..., min_length=1)
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "paymentMethod": "cash",
                "amountPaid": 100.00,
                "buyerName": "Jordan Ellis",
                "notes": "Paid in full at table 12"
            }
        }


class ReceiptResponse(CamelModel):
    """Receipt for a completed checkout."""
    receipt_id: str
    session_id: str
    session_number: str
    transaction_id: str
    total: Decimal
    payment_method: PaymentMethod
    amount_paid: Decimal
    change_due: Decimal
    paid_at: datetime
    items_processed: int
    event_id: Optional[str] = None
    ownership_records_created: int
    purchase_records_created: int
    processed_assets: List[str]

    class Config:
        json_schema_extra = {
            "example": {
                "receiptId": "2b0f6e1a-9c3d-4e5f-a6b7-c8d9e0f1a2b3",
                "sessionId": "7f1c2a9e-0d7b-4c4e-9a55-1b0f3c2d4e5f",
                "sessionNumber": "BUY-2025-014",
                "transactionId": "5d4c3b2a-1f0e-4d9c-8b7a-6f5e4d3c2b1a",
                "total": "100.00",
                "paymentMethod": "cash",
                "amountPaid": "100.00",
                "changeDue": "0.00",
                "paidAt": "2025-01-01T12:00:00Z",
                "itemsProcessed": 2,
                "eventId": "0a9b8c7d-6e5f-4a3b-2c1d-0e9f8a7b6c5d",
                "ownershipRecordsCreated": 2,
                "purchaseRecordsCreated": 2,
                "processedAssets": ["2018 Prizm Luka Doncic PSA 10", "1986 Fleer Michael Jordan BGS 8"]
            }
        }


class UndoPurchaseResponse(CamelModel):
    """Confirmation of an undone purchase."""
    asset_id: str
    asset: Optional[Dict[str, Any]] = None
    purchase_price: Decimal
    ownership_records_removed: int
    transaction_records_removed: int
    timestamp: datetime


# ============================================================================
# Consignment Models
# ============================================================================

class BulkUpdateRequest(CamelModel):
    """Request to apply the same changes to several consignment assets."""
    asset_ids: List[str]
    price: Optional[Decimal] = None
    reserve: Optional[Decimal] = None
    split_percent: Optional[Decimal] = None
    status: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "assetIds": ["a1", "b2", "c3"],
                "status": "active"
            }
        }


class BulkDeleteRequest(CamelModel):
    asset_ids: List[str]


class BulkUpdateResponse(CamelModel):
    success: bool
    updated: int
    total: int
    errors: Optional[List[str]] = None


class BulkDeleteResponse(CamelModel):
    success: bool
    deleted: int
    total: int
    errors: Optional[List[str]] = None


class AddConsignmentAssetRequest(CamelModel):
    """Request to add a canonical asset to a consignment."""
    asset_id: str = Field(..., min_length=1)
    asking_price: Optional[Decimal] = None
    reserve_price: Optional[Decimal] = None
    split_percentage: Optional[Decimal] = None


class ConsignmentAssetResponse(CamelModel):
    id: str
    consignment_id: str
    asset_id: str
    status: str
    asking_price: Optional[Decimal] = None
    reserve_price: Optional[Decimal] = None
    split_percentage: Optional[Decimal] = None


class MarketPricingRequest(CamelModel):
    asset_ids: List[str]


class MarketPricingResponse(CamelModel):
    success: bool
    priced: int
    total: int
    writes: int
    errors: Optional[List[str]] = None


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(CamelModel):
    """Standard error response."""
    error: str
    message: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    correlation_id: str
