import asyncio
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Response

from ..dependencies import get_current_restaurant, get_current_session, require_session_context
from ..directory import DirectoryError, SupabaseAccountDirectory
from ..schemas.auth import AuthSession
from ..schemas.loyalty import (
    CouponCodePayload,
    CouponDetails,
    CustomerLookupPayload,
    CustomerSummary,
    RedeemResult,
    RestaurantDashboard,
    StampPayload,
    StampResult,
)
from ..sessions import SessionContext
from ..utils.codes import CustomerCode
from ..utils.qr import QRCodeError, download_qr_code, generate_qr_code_url, get_restaurant_signup_url, qr_code_filename

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/restaurant", tags=["restaurant"])


async def _with_stamp_count(directory: SupabaseAccountDirectory, customer: dict, restaurant_id: str) -> dict:
    try:
        count = await directory.count_stamps(restaurant_id, customer_id=customer["id"])
    except DirectoryError as exc:
        logger.error("Error counting stamps for customer %s: %s", customer["id"], exc)
        count = 0
    return {**customer, "stamp_count": count}


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def _load_redeemable_coupon(directory: SupabaseAccountDirectory, code: str, restaurant_id: str) -> CouponDetails:
    try:
        coupon = await directory.find_coupon(code.strip().upper(), restaurant_id)
    except DirectoryError as exc:
        logger.error("Coupon lookup error: %s", exc)
        coupon = None

    if coupon is None:
        raise HTTPException(status_code=404, detail="Coupon not found or does not belong to your restaurant")

    details = CouponDetails.model_validate(coupon)
    if _as_utc(details.expires_at) < datetime.now(timezone.utc):
        raise HTTPException(status_code=410, detail="This coupon has expired")
    if details.is_redeemed:
        redeemed_on = details.redeemed_at.strftime("%d.%m.%Y") if details.redeemed_at else "an earlier date"
        raise HTTPException(status_code=409, detail=f"This coupon was already redeemed on {redeemed_on}")
    return details


@router.get("/dashboard", response_model=RestaurantDashboard)
async def restaurant_dashboard(
    restaurant: dict = Depends(get_current_restaurant),
    context: SessionContext = Depends(require_session_context),
):
    directory = context.directory
    restaurant_id = restaurant["id"]
    try:
        customers = await directory.list_customers(restaurant_id)
        customers = await asyncio.gather(
            *(_with_stamp_count(directory, customer, restaurant_id) for customer in customers)
        )
        total_stamps = await directory.count_stamps(restaurant_id)
        total_coupons = await directory.count_coupons(restaurant_id)
        redeemed_coupons = await directory.count_coupons(restaurant_id, redeemed_only=True)
    except DirectoryError as exc:
        logger.error("Error loading restaurant data: %s", exc)
        raise HTTPException(status_code=502, detail="Restaurant data could not be loaded") from exc

    return {
        "restaurant": restaurant,
        "customers": customers,
        "stats": {
            "total_customers": len(customers),
            "total_stamps": total_stamps,
            "total_coupons": total_coupons,
            "redeemed_coupons": redeemed_coupons,
        },
        "signup_url": get_restaurant_signup_url(restaurant["slug"]),
        "qr_code_url": generate_qr_code_url(restaurant["slug"]),
    }


@router.post("/customers/lookup", response_model=CustomerSummary)
async def lookup_customer(
    payload: CustomerLookupPayload,
    restaurant: dict = Depends(get_current_restaurant),
    context: SessionContext = Depends(require_session_context),
):
    """
    Finds a customer by the 6-digit redemption code they read out, or by the
    data of the QR code they show.
    """
    try:
        parsed = CustomerCode.parse(payload.code)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    directory = context.directory
    try:
        if parsed.redemption_code:
            customer = await directory.find_customer_by_redemption_code(parsed.redemption_code, restaurant["id"])
        else:
            customer = await directory.find_customer_by_id(parsed.customer_id)
    except DirectoryError as exc:
        logger.error("Customer lookup error: %s", exc)
        raise HTTPException(status_code=502, detail="Customer lookup failed") from exc

    if customer is None:
        raise HTTPException(status_code=404, detail="Customer not found or does not belong to your restaurant")
    return await _with_stamp_count(directory, customer, restaurant["id"])


@router.post("/stamps", response_model=StampResult)
async def add_stamp(
    payload: StampPayload,
    restaurant: dict = Depends(get_current_restaurant),
    session: AuthSession = Depends(get_current_session),
    context: SessionContext = Depends(require_session_context),
):
    try:
        result = await context.directory.add_stamp(payload.customer_id, session.user_id, payload.notes)
    except DirectoryError as exc:
        logger.error("Error calling add_stamp_to_customer: %s", exc)
        raise HTTPException(status_code=502, detail="Stamp could not be added") from exc

    if not result.get("success"):
        raise HTTPException(status_code=400, detail=result.get("error") or "Stamp could not be added")

    if result.get("reward_issued"):
        logger.info("Reward %s issued to customer %s", result.get("coupon_code"), payload.customer_id)
    return result


@router.post("/coupons/validate", response_model=CouponDetails)
async def validate_coupon(
    payload: CouponCodePayload,
    restaurant: dict = Depends(get_current_restaurant),
    context: SessionContext = Depends(require_session_context),
):
    return await _load_redeemable_coupon(context.directory, payload.code, restaurant["id"])


@router.post("/coupons/redeem", response_model=RedeemResult)
async def redeem_coupon(
    payload: CouponCodePayload,
    restaurant: dict = Depends(get_current_restaurant),
    context: SessionContext = Depends(require_session_context),
):
    details = await _load_redeemable_coupon(context.directory, payload.code, restaurant["id"])
    redeemed_at = datetime.now(timezone.utc)
    try:
        redeemed = await context.directory.redeem_coupon(details.code, restaurant["id"], redeemed_at)
    except DirectoryError as exc:
        logger.error("Coupon redemption error: %s", exc)
        raise HTTPException(status_code=502, detail="Coupon could not be redeemed") from exc

    if not redeemed:
        # another terminal redeemed it after validation
        raise HTTPException(status_code=409, detail="This coupon was already redeemed")

    logger.info("Coupon %s redeemed at restaurant %s", details.code, restaurant["id"])
    return {"code": details.code, "redeemed_at": redeemed_at}


@router.get("/qr.png")
async def download_qr(restaurant: dict = Depends(get_current_restaurant)):
    try:
        content = await download_qr_code(restaurant["slug"])
    except QRCodeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    filename = qr_code_filename(restaurant["name"])
    return Response(
        content=content,
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
