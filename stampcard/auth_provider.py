import logging
from typing import Any, Callable, Optional, Protocol

from supabase import AsyncClient

from .schemas.auth import AuthSession

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

AuthStateCallback = Callable[[str, Optional[AuthSession]], None]
Unsubscribe = Callable[[], None]


class AuthProviderError(Exception):
    pass


class InvalidCredentialsError(AuthProviderError):
    pass


class EmailAlreadyRegisteredError(AuthProviderError):
    pass


class AuthProvider(Protocol):
    async def get_current_session(self) -> Optional[AuthSession]: ...

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession: ...

    async def sign_up(self, email: str, password: str, attributes: dict[str, Any]) -> AuthSession: ...

    async def sign_out(self) -> None: ...

    def on_auth_state_change(self, callback: AuthStateCallback) -> Unsubscribe: ...


def _to_session(session: Any, user: Any = None) -> Optional[AuthSession]:
    user = user or getattr(session, "user", None)
    if user is None:
        return None
    return AuthSession(
        user_id=str(user.id),
        email=user.email,
        access_token=getattr(session, "access_token", None) or "",
    )


class SupabaseAuthProvider:
    """
    Auth provider backed by the Supabase auth API of one async client.
    """

    def __init__(self, client: AsyncClient):
        self._client = client

    async def get_current_session(self) -> Optional[AuthSession]:
        try:
            session = await self._client.auth.get_session()
        except Exception as exc:
            raise AuthProviderError(f"Session lookup failed: {exc}") from exc
        return _to_session(session) if session else None

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        try:
            res = await self._client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as exc:
            if "Invalid login credentials" in str(exc):
                raise InvalidCredentialsError("Invalid e-mail or password") from exc
            raise AuthProviderError(str(exc)) from exc

        session = _to_session(res.session, res.user)
        if session is None:
            raise InvalidCredentialsError("Invalid e-mail or password")
        return session

    async def sign_up(self, email: str, password: str, attributes: dict[str, Any]) -> AuthSession:
        try:
            res = await self._client.auth.sign_up(
                {"email": email, "password": password, "options": {"data": attributes}}
            )
        except Exception as exc:
            if "already registered" in str(exc):
                raise EmailAlreadyRegisteredError("This e-mail is already registered, please log in") from exc
            raise AuthProviderError(str(exc)) from exc

        # With e-mail confirmation enabled there is a user but no session yet
        session = _to_session(res.session, res.user)
        if session is None:
            raise AuthProviderError("User could not be created")
        return session

    async def sign_out(self) -> None:
        try:
            await self._client.auth.sign_out()
        except Exception as exc:
            raise AuthProviderError(f"Sign-out failed: {exc}") from exc

    def on_auth_state_change(self, callback: AuthStateCallback) -> Unsubscribe:
        def listener(event, session):
            callback(str(event), _to_session(session) if session else None)

        subscription = self._client.auth.on_auth_state_change(listener)
        return subscription.unsubscribe
