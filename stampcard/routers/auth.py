import logging

from fastapi import APIRouter, Depends, HTTPException

from ..auth_provider import AuthProviderError, EmailAlreadyRegisteredError, InvalidCredentialsError
from ..config import get_settings
from ..dependencies import get_session_context, require_session_context
from ..directory import DirectoryError
from ..schemas.auth import LoginPayload, RestaurantSignupPayload, SignupPayload
from ..schemas.view import ViewOut, ViewState
from ..sessions import SessionContext
from ..utils.codes import generate_coupon_code, generate_redemption_code, get_expiry_date, slugify

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


async def _sign_out(context: SessionContext) -> None:
    try:
        await context.auth.sign_out()
    except AuthProviderError as exc:
        logger.error("Sign-out failed: %s", exc)


@router.post("/signup", response_model=ViewOut)
async def signup(payload: SignupPayload, context: SessionContext = Depends(get_session_context)):
    """
    Customer signup: auth user, customer row, welcome coupon and a stamp
    card on the restaurant's active program.
    """
    settings = get_settings()
    directory = context.directory

    with context.router.pending_action():
        try:
            session = await context.auth.sign_up(
                payload.email, payload.password, {"name": payload.name, "phone": payload.phone}
            )
        except EmailAlreadyRegisteredError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except AuthProviderError as exc:
            raise HTTPException(status_code=400, detail=f"Signup failed: {exc}") from exc

        logger.info("Auth user created: %s", session.user_id)

        try:
            customer = await directory.create_customer(
                {
                    "name": payload.name,
                    "email": payload.email,
                    "phone": payload.phone,
                    "restaurant_id": payload.restaurant_id,
                    "user_id": session.user_id,
                    "redemption_code": generate_redemption_code(),
                }
            )
        except DirectoryError as exc:
            logger.error("Customer insert error: %s", exc)
            await _sign_out(context)
            raise HTTPException(status_code=400, detail="Customer account could not be created") from exc

        coupon_code = generate_coupon_code()
        try:
            await directory.create_coupon(
                {
                    "code": coupon_code,
                    "discount_type": "percentage",
                    "discount_value": settings.WELCOME_DISCOUNT_PERCENT,
                    "expires_at": get_expiry_date(settings.WELCOME_COUPON_VALID_DAYS).isoformat(),
                    "customer_id": customer["id"],
                    "restaurant_id": payload.restaurant_id,
                }
            )
        except DirectoryError as exc:
            logger.error("Coupon creation error: %s", exc)

        try:
            program = await directory.find_active_stamp_program(payload.restaurant_id)
            if program:
                await directory.create_stamp_card(customer["id"], program["id"])
        except DirectoryError as exc:
            logger.error("Stamp card creation error: %s", exc)

        context.router.on_signup_success(coupon_code, payload.name)
    return context.router.snapshot()


@router.post("/login", response_model=ViewOut)
async def login(payload: LoginPayload, context: SessionContext = Depends(get_session_context)):
    with context.router.pending_action():
        try:
            await context.auth.sign_in_with_password(payload.email, payload.password)
        except InvalidCredentialsError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc
        except AuthProviderError as exc:
            raise HTTPException(status_code=400, detail=str(exc) or "Login failed") from exc

        await context.router.on_login_success()
    return context.router.snapshot()


@router.post("/logout", response_model=ViewOut)
async def logout(context: SessionContext = Depends(require_session_context)):
    with context.router.pending_action():
        await _sign_out(context)
        context.router.on_logout()
    return context.router.snapshot()


@router.post("/restaurant/signup", response_model=ViewOut)
async def restaurant_signup(
    payload: RestaurantSignupPayload,
    context: SessionContext = Depends(get_session_context),
):
    """
    Restaurant signup: auth user, restaurant row and its default stamp program.
    """
    settings = get_settings()
    directory = context.directory

    with context.router.pending_action():
        try:
            session = await context.auth.sign_up(
                payload.email, payload.password, {"name": payload.owner_name, "role": "restaurant"}
            )
        except EmailAlreadyRegisteredError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except AuthProviderError as exc:
            raise HTTPException(status_code=400, detail=f"Signup failed: {exc}") from exc

        try:
            restaurant = await directory.create_restaurant(
                {
                    "name": payload.restaurant_name,
                    "slug": slugify(payload.restaurant_name),
                    "location": payload.location,
                    "owner_name": payload.owner_name,
                    "email": payload.email,
                    "phone": payload.phone,
                    "auth_id": session.user_id,
                    "is_active": True,
                }
            )
        except DirectoryError as exc:
            logger.error("Restaurant insert error: %s", exc)
        else:
            try:
                await directory.create_stamp_program(
                    {
                        "restaurant_id": restaurant["id"],
                        "name": f"{payload.restaurant_name} stamp card",
                        "stamps_required": settings.DEFAULT_STAMPS_REQUIRED,
                        "reward_value": settings.DEFAULT_REWARD_VALUE,
                        "is_active": True,
                    }
                )
            except DirectoryError as exc:
                logger.error("Stamp program creation error: %s", exc)

        view = await context.router.on_restaurant_signup_success()
    if view != ViewState.RESTAURANT_DASHBOARD:
        raise HTTPException(status_code=400, detail="Restaurant account could not be created")
    return context.router.snapshot()


@router.post("/restaurant/login", response_model=ViewOut)
async def restaurant_login(payload: LoginPayload, context: SessionContext = Depends(get_session_context)):
    """
    Restaurant login. A user without a restaurant row is signed out again by
    the router and refused.
    """
    with context.router.pending_action():
        try:
            await context.auth.sign_in_with_password(payload.email, payload.password)
        except InvalidCredentialsError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc
        except AuthProviderError as exc:
            raise HTTPException(status_code=400, detail=str(exc) or "Login failed") from exc

        view = await context.router.on_restaurant_login_success()
    if view != ViewState.RESTAURANT_DASHBOARD:
        raise HTTPException(status_code=403, detail="No restaurant account found. Please sign up first.")
    return context.router.snapshot()


@router.post("/restaurant/logout", response_model=ViewOut)
async def restaurant_logout(context: SessionContext = Depends(require_session_context)):
    with context.router.pending_action():
        await _sign_out(context)
        context.router.on_restaurant_logout()
    return context.router.snapshot()
