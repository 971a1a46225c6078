import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from ..dependencies import get_current_customer, get_session_context, require_session_context
from ..directory import DirectoryError
from ..schemas.loyalty import CustomerDashboard, CustomerProfile, RestaurantChoices
from ..sessions import SessionContext
from ..utils.codes import stamp_qr_payload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["customer"])


@router.get("/restaurants", response_model=RestaurantChoices)
async def list_restaurants(
    restaurant: str | None = Query(None, description="Slug of the restaurant whose QR code was scanned"),
    context: SessionContext = Depends(get_session_context),
):
    """Active restaurants for the signup form, with the preselected one."""
    try:
        restaurants = await context.directory.list_active_restaurants()
    except DirectoryError as exc:
        logger.error("Error fetching restaurants: %s", exc)
        raise HTTPException(status_code=502, detail="Restaurants could not be loaded") from exc

    selected_id = None
    if restaurants:
        selected = next((r for r in restaurants if restaurant and r.get("slug") == restaurant), restaurants[0])
        selected_id = selected["id"]
    return {"restaurants": restaurants, "selected_id": selected_id}


@router.get("/customer/dashboard", response_model=CustomerDashboard)
async def customer_dashboard(
    customer: dict = Depends(get_current_customer),
    context: SessionContext = Depends(require_session_context),
):
    directory = context.directory
    try:
        coupons = await directory.list_coupons(customer["id"])
        stamp_cards = await directory.list_active_stamp_cards(customer["id"])
        stamp_history = await directory.list_recent_stamps(customer["id"], limit=20)
    except DirectoryError as exc:
        logger.error("Error fetching customer data: %s", exc)
        raise HTTPException(status_code=502, detail="Customer data could not be loaded") from exc

    profile = CustomerProfile(
        id=customer["id"],
        name=customer.get("name") or "",
        redemption_code=customer.get("redemption_code") or "",
        stamp_qr_payload=stamp_qr_payload(customer["id"]),
    )
    return {
        "customer": profile,
        "coupons": coupons,
        "stamp_cards": stamp_cards,
        "stamp_history": stamp_history,
    }
