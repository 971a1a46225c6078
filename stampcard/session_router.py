"""
Session router: decides which screen a visitor sees.

The router owns the view state and the loading flag of one mounted client.
It resolves the initial view once per mount, follows auth-state
notifications while mounted, and exposes the success/navigation callbacks
the forms and dashboards report back through.

Restaurant profiles always take precedence over customer profiles, and an
authenticated principal with neither profile is signed out.
"""

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Optional

from .auth_provider import SIGNED_IN, SIGNED_OUT, AuthProvider, AuthProviderError, Unsubscribe
from .directory import AccountDirectory, DirectoryError
from .schemas.auth import AuthSession
from .schemas.view import NavigationHint, PendingCoupon, PendingCouponOut, ViewOut, ViewState

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0


def default_view_for(hint: Optional[NavigationHint]) -> ViewState:
    """Where a visitor without a session lands for a given navigation hint."""
    if hint is None:
        return ViewState.SIGNUP
    if hint == NavigationHint.LOGIN:
        return ViewState.LOGIN
    return ViewState(hint.value)


class SessionRouter:
    def __init__(
        self,
        auth: AuthProvider,
        directory: AccountDirectory,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._auth = auth
        self._directory = directory
        self._timeout = timeout
        self._view = ViewState.SIGNUP
        self._mounted = False
        self._unsubscribe: Optional[Unsubscribe] = None
        self._tasks: set[asyncio.Task] = set()
        self._in_flight_count = 0
        self._resolution: Optional[asyncio.Future] = None
        self.loading = True
        self.hint: Optional[NavigationHint] = None
        self.pending_coupon: Optional[PendingCoupon] = None

    @property
    def view(self) -> ViewState:
        return self._view

    @property
    def mounted(self) -> bool:
        return self._mounted

    def snapshot(self) -> ViewOut:
        coupon = None
        if self._view == ViewState.SUCCESS and self.pending_coupon is not None:
            coupon = PendingCouponOut(code=self.pending_coupon.code, first_name=self.pending_coupon.first_name)
        return ViewOut(view=self._view, loading=self.loading, coupon=coupon)

    # Lifecycle

    async def mount(self, hint: Optional[NavigationHint] = None) -> ViewState:
        """Subscribes to auth changes and runs the initial resolution."""
        self.hint = hint
        self._mounted = True
        self._unsubscribe = self._auth.on_auth_state_change(self._on_auth_state_change)
        return await self.resolve()

    async def unmount(self) -> None:
        self._mounted = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    # Initial resolution

    async def resolve(self) -> ViewState:
        """
        Races the lookup chain against the watchdog timer. Whichever commits
        first decides the view; the other commit is discarded. Callers that
        arrive while a resolution is pending share its result.
        """
        if self._resolution is not None and not self._resolution.done():
            return await asyncio.shield(self._resolution)

        loop = asyncio.get_running_loop()
        slot: asyncio.Future = loop.create_future()
        self._resolution = slot
        self.loading = True

        watchdog = loop.call_later(self._timeout, self._commit, slot, ViewState.SIGNUP, "watchdog")
        self._spawn(self._run_resolution(slot, watchdog))
        return await asyncio.shield(slot)

    async def _run_resolution(self, slot: asyncio.Future, watchdog: asyncio.TimerHandle) -> None:
        view = ViewState.SIGNUP
        with self._in_flight():
            try:
                view = await self._resolve_initial_view()
            except Exception:
                logger.exception("Unexpected error while resolving the initial view")
                view = ViewState.SIGNUP
            finally:
                watchdog.cancel()
                self._commit(slot, view, "lookup")

    def _commit(self, slot: asyncio.Future, view: ViewState, source: str) -> None:
        if slot.done():
            logger.info("Discarding late %s result %s", source, view.value)
            return
        if source == "watchdog":
            logger.warning("Auth check took longer than %.1fs, forcing completion", self._timeout)
        slot.set_result(view)
        if self._mounted:
            self._set_view(view)
        self.loading = False

    async def _resolve_initial_view(self) -> ViewState:
        hint = self.hint
        logger.info("Resolving initial view (hint=%s)", hint.value if hint else None)

        if hint is not None and hint.is_restaurant:
            return await self._resolve_restaurant_hint(hint)

        try:
            session = await self._auth.get_current_session()
        except AuthProviderError as exc:
            logger.error("Session error: %s", exc)
            return default_view_for(hint)

        if session is None:
            return default_view_for(hint)
        return await self._route_principal(session)

    async def _resolve_restaurant_hint(self, hint: NavigationHint) -> ViewState:
        session = await self._current_session()
        if session is None:
            return ViewState(hint.value)

        restaurant = await self._lookup("restaurant", self._directory.find_restaurant_by_principal, session)
        if restaurant is not None:
            if hint == NavigationHint.RESTAURANT_LOGIN:
                return ViewState.RESTAURANT_DASHBOARD
            return ViewState.RESTAURANT_SIGNUP

        await self._force_sign_out(session, "no restaurant profile")
        return ViewState(hint.value)

    # Auth-state notifications

    def _on_auth_state_change(self, event: str, session: Optional[AuthSession]) -> None:
        if not self._mounted:
            return
        if self._in_flight_count:
            # the running resolution or action routes on its own
            logger.debug("Ignoring %s while a routing action is in flight", event)
            return

        logger.info("Auth state changed: %s", event)
        if event == SIGNED_IN and session is not None:
            self._spawn(self._handle_signed_in(session))
        elif event == SIGNED_OUT:
            self._set_view(default_view_for(self.hint))

    async def _handle_signed_in(self, session: AuthSession) -> None:
        view = await self._account_view(session)
        # a profile row may not exist yet while a signup is still writing it
        if view is not None and self._mounted:
            self._set_view(view)

    # Action-success callbacks

    @contextlib.contextmanager
    def pending_action(self):
        """
        Marks a form action in progress. Auth notifications raised by the
        action itself are ignored; its success callback does the routing.
        """
        with self._in_flight():
            yield self

    def on_signup_success(self, coupon_code: str, customer_name: str) -> ViewState:
        self.pending_coupon = PendingCoupon(code=coupon_code, customer_name=customer_name)
        self._set_view(ViewState.SUCCESS)
        return self._view

    async def on_login_success(self) -> ViewState:
        with self._in_flight():
            session = await self._current_session()
            if session is None:
                return self._view
            view = await self._route_principal(session)
            if self._mounted:
                self._set_view(view)
        return self._view

    async def on_restaurant_signup_success(self) -> ViewState:
        return await self._confirm_restaurant(ViewState.RESTAURANT_SIGNUP)

    async def on_restaurant_login_success(self) -> ViewState:
        return await self._confirm_restaurant(ViewState.RESTAURANT_LOGIN)

    async def _confirm_restaurant(self, fallback: ViewState) -> ViewState:
        with self._in_flight():
            session = await self._current_session()
            if session is None:
                return self._view

            restaurant = await self._lookup("restaurant", self._directory.find_restaurant_by_principal, session)
            if restaurant is not None:
                view = ViewState.RESTAURANT_DASHBOARD
            else:
                await self._force_sign_out(session, "restaurant profile missing after auth")
                view = fallback
            if self._mounted:
                self._set_view(view)
        return self._view

    def on_logout(self) -> ViewState:
        self._set_view(ViewState.LOGIN)
        return self._view

    def on_restaurant_logout(self) -> ViewState:
        self._set_view(ViewState.RESTAURANT_LOGIN)
        return self._view

    def switch_to_login(self) -> ViewState:
        self._set_view(ViewState.LOGIN)
        return self._view

    def switch_to_signup(self) -> ViewState:
        self._set_view(ViewState.SIGNUP)
        return self._view

    def switch_to_restaurant_login(self) -> ViewState:
        self._set_view(ViewState.RESTAURANT_LOGIN)
        return self._view

    def switch_to_restaurant_signup(self) -> ViewState:
        self._set_view(ViewState.RESTAURANT_SIGNUP)
        return self._view

    # Helpers

    async def _route_principal(self, session: AuthSession) -> ViewState:
        view = await self._account_view(session)
        if view is None:
            logger.warning("No customer or restaurant found for authenticated user %s", session.user_id)
            await self._force_sign_out(session, "no profile")
            return ViewState.LOGIN
        return view

    async def _account_view(self, session: AuthSession) -> Optional[ViewState]:
        if await self._lookup("restaurant", self._directory.find_restaurant_by_principal, session):
            return ViewState.RESTAURANT_DASHBOARD
        if await self._lookup("customer", self._directory.find_customer_by_principal, session):
            return ViewState.CUSTOMER_DASHBOARD
        return None

    async def _lookup(
        self,
        kind: str,
        find: Callable[[str], Awaitable[Optional[dict]]],
        session: AuthSession,
    ) -> Optional[dict]:
        try:
            return await find(session.user_id)
        except DirectoryError as exc:
            logger.error("%s lookup error for %s: %s", kind.capitalize(), session.user_id, exc)
            return None

    async def _current_session(self) -> Optional[AuthSession]:
        try:
            return await self._auth.get_current_session()
        except AuthProviderError as exc:
            logger.error("Session error: %s", exc)
            return None

    async def _force_sign_out(self, session: AuthSession, reason: str) -> None:
        logger.info("Signing out %s: %s", session.user_id, reason)
        try:
            await self._auth.sign_out()
        except AuthProviderError as exc:
            logger.error("Forced sign-out failed: %s", exc)

    def _set_view(self, view: ViewState) -> None:
        if view != ViewState.SUCCESS:
            self.pending_coupon = None
        if view != self._view:
            logger.info("Routing to %s", view.value, extra={"view": view.value})
        self._view = view

    @contextlib.contextmanager
    def _in_flight(self):
        self._in_flight_count += 1
        try:
            yield
        finally:
            self._in_flight_count -= 1

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
