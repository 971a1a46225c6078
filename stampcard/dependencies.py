import logging

from fastapi import Depends, HTTPException, Request

from .auth_provider import AuthProviderError
from .config import get_settings
from .directory import DirectoryError
from .schemas.auth import AuthSession
from .schemas.view import NavigationHint
from .sessions import SessionContext, SessionRegistry

logger = logging.getLogger(__name__)


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


async def get_session_context(
    request: Request,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionContext:
    """
    Returns the browser session of the caller, opening (and mounting the
    router of) a new one when the cookie is missing or unknown. The cookie for
    a new session is attached by the session cookie middleware, so it also
    reaches the client on error responses.
    """
    cookie_name = get_settings().SESSION_COOKIE_NAME
    context = registry.get(request.cookies.get(cookie_name))
    if context is None:
        hint = NavigationHint.parse(request.query_params.get("view"))
        context = await registry.open(hint)
        request.state.opened_session = True
        request.state.new_session_id = context.id
    return context


async def require_session_context(
    request: Request,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionContext:
    """
    Returns the caller's existing browser session without ever opening one.
    """
    context = registry.get(request.cookies.get(get_settings().SESSION_COOKIE_NAME))
    if context is None:
        raise HTTPException(status_code=401, detail="No browser session. Please reload the page.")
    return context


async def get_current_session(context: SessionContext = Depends(require_session_context)) -> AuthSession:
    """
    Returns the auth session of the caller's browser session.
    """
    try:
        session = await context.auth.get_current_session()
    except AuthProviderError as exc:
        raise HTTPException(status_code=401, detail="Session expired. Please sign in again.") from exc

    if session is None:
        raise HTTPException(status_code=401, detail="Not signed in")
    return session


async def get_current_restaurant(
    session: AuthSession = Depends(get_current_session),
    context: SessionContext = Depends(require_session_context),
) -> dict:
    """
    Returns the restaurant row owned by the signed-in user. A session without
    one is signed out and sent back to the restaurant login.
    """
    try:
        restaurant = await context.directory.find_restaurant_by_principal(session.user_id, columns="*")
    except DirectoryError as exc:
        logger.error("Error loading restaurant for %s: %s", session.user_id, exc)
        restaurant = None

    if restaurant is None:
        with context.router.pending_action():
            try:
                await context.auth.sign_out()
            except AuthProviderError as exc:
                logger.error("Sign-out failed: %s", exc)
            context.router.on_restaurant_logout()
        raise HTTPException(status_code=401, detail="No restaurant account found for this user")
    return restaurant


async def get_current_customer(
    session: AuthSession = Depends(get_current_session),
    context: SessionContext = Depends(require_session_context),
) -> dict:
    try:
        customer = await context.directory.find_customer_by_principal(
            session.user_id, columns="id, name, redemption_code"
        )
    except DirectoryError as exc:
        raise HTTPException(status_code=502, detail="Customer account could not be loaded") from exc

    if customer is None:
        raise HTTPException(
            status_code=404,
            detail="Customer account not found. Please log out and sign up again.",
        )
    return customer
