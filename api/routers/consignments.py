"""
Consignment asset API endpoints.

Bulk update/delete apply each asset independently: a missing asset is reported
in `errors` and never blocks the others.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_current_user_id
from api.models import (
    AddConsignmentAssetRequest,
    BulkDeleteRequest,
    BulkDeleteResponse,
    BulkUpdateRequest,
    BulkUpdateResponse,
    ConsignmentAssetResponse,
    MarketPricingRequest,
    MarketPricingResponse,
)
from domain.consignment import AssetFieldChanges
from domain.errors import DeskError, TransactionFailureError
from services.bulk_asset_service import bulk_delete_assets, bulk_update_assets
from services.pricing_service import add_asset_to_consignment, apply_market_pricing

router = APIRouter()


@router.put(
    "/consignments/{consignment_id}/assets/bulk",
    response_model=BulkUpdateResponse,
    response_model_exclude_none=True,
    summary="Bulk Update Consignment Assets",
)
def bulk_update(
    consignment_id: str,
    request: BulkUpdateRequest,
    user_id: str = Depends(get_current_user_id),
):
    """
    Set price, reserve, split and/or status on several assets.

    Status is normalized ("On Hold" -> "on_hold"); moving to `active` stamps
    the listing time. Invalid input rejects the whole request with 400 before
    any asset is touched.

    **Example request:**
    ```json
    {"assetIds": ["A", "B", "C"], "status": "active"}
    ```

    **Response when B does not exist:**
    ```json
    {"success": true, "updated": 2, "total": 3, "errors": ["Asset B not found"]}
    ```
    """
    changes = AssetFieldChanges(
        price=request.price,
        reserve=request.reserve,
        split_percent=request.split_percent,
        status=request.status,
    )
    try:
        result = bulk_update_assets(user_id, consignment_id, request.asset_ids, changes)
    except DeskError:
        raise
    except Exception as e:
        raise TransactionFailureError("Failed to update assets", details={"reason": str(e)}) from e

    return BulkUpdateResponse(
        success=True,
        updated=result.succeeded,
        total=result.total,
        errors=result.errors or None,
    )


@router.delete(
    "/consignments/{consignment_id}/assets/bulk",
    response_model=BulkDeleteResponse,
    response_model_exclude_none=True,
    summary="Bulk Delete Consignment Assets",
)
def bulk_delete(
    consignment_id: str,
    request: BulkDeleteRequest,
    user_id: str = Depends(get_current_user_id),
):
    try:
        result = bulk_delete_assets(user_id, consignment_id, request.asset_ids)
    except DeskError:
        raise
    except Exception as e:
        raise TransactionFailureError("Failed to delete assets", details={"reason": str(e)}) from e

    return BulkDeleteResponse(
        success=True,
        deleted=result.succeeded,
        total=result.total,
        errors=result.errors or None,
    )


@router.post(
    "/consignments/{consignment_id}/assets",
    response_model=ConsignmentAssetResponse,
    status_code=201,
    summary="Add Asset To Consignment",
)
def add_consignment_asset(
    consignment_id: str,
    request: AddConsignmentAssetRequest,
    user_id: str = Depends(get_current_user_id),
):
    """
    Add a canonical asset as a draft.

    Without an explicit asking price, a market-priced consignment derives list
    and reserve prices from the asset's market value.
    """
    try:
        record = add_asset_to_consignment(
            user_id,
            consignment_id,
            request.asset_id,
            asking_price=request.asking_price,
            reserve_price=request.reserve_price,
            split_percentage=request.split_percentage,
        )
    except DeskError:
        raise
    except Exception as e:
        raise TransactionFailureError("Failed to add asset", details={"reason": str(e)}) from e

    return ConsignmentAssetResponse(
        id=record.consignment_asset_id,
        consignment_id=record.consignment_id,
        asset_id=record.asset_id,
        status=record.status,
        asking_price=record.asking_price,
        reserve_price=record.reserve_price,
        split_percentage=record.split_percentage,
    )


@router.post(
    "/consignments/{consignment_id}/assets/market-pricing",
    response_model=MarketPricingResponse,
    response_model_exclude_none=True,
    summary="Apply Market Pricing",
)
def apply_consignment_market_pricing(
    consignment_id: str,
    request: MarketPricingRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Re-derive list and reserve prices from market values for several assets."""
    try:
        result = apply_market_pricing(user_id, consignment_id, request.asset_ids)
    except DeskError:
        raise
    except Exception as e:
        raise TransactionFailureError("Failed to apply market pricing", details={"reason": str(e)}) from e

    return MarketPricingResponse(
        success=True,
        priced=result.priced,
        total=result.total,
        writes=result.writes,
        errors=result.errors or None,
    )
