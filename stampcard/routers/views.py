from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from ..config import get_settings
from ..dependencies import get_registry, get_session_context, require_session_context
from ..schemas.view import NavigationHint, ViewOut
from ..sessions import SessionContext, SessionRegistry

router = APIRouter(prefix="/view", tags=["view"])

SWITCHES = {
    "login": "switch_to_login",
    "signup": "switch_to_signup",
    "restaurant-login": "switch_to_restaurant_login",
    "restaurant-signup": "switch_to_restaurant_signup",
}


@router.get("", response_model=ViewOut)
async def load_view(
    request: Request,
    view: str | None = Query(None, description="Navigation hint: login, restaurant-login or restaurant-signup"),
    context: SessionContext = Depends(get_session_context),
):
    """
    Page load. A new browser session is resolved while being opened; a known
    one takes the new navigation hint and is resolved again.
    """
    if not getattr(request.state, "opened_session", False):
        context.router.hint = NavigationHint.parse(view)
        await context.router.resolve()
    return context.router.snapshot()


@router.get("/current", response_model=ViewOut)
def current_view(context: SessionContext = Depends(require_session_context)):
    return context.router.snapshot()


@router.post("/switch/{target}", response_model=ViewOut)
def switch_view(target: str, context: SessionContext = Depends(require_session_context)):
    method = SWITCHES.get(target)
    if method is None:
        raise HTTPException(status_code=404, detail="Unknown view")
    getattr(context.router, method)()
    return context.router.snapshot()


@router.delete("", status_code=204)
async def close_view(
    request: Request,
    registry: SessionRegistry = Depends(get_registry),
):
    """Unmounts the router and forgets the browser session."""
    cookie_name = get_settings().SESSION_COOKIE_NAME
    session_id = request.cookies.get(cookie_name)
    if session_id:
        await registry.close(session_id)
    response = Response(status_code=204)
    response.delete_cookie(cookie_name)
    return response
