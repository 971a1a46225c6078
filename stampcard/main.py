from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .routers import auth, customer, restaurant, views
from .sessions import SessionRegistry
from .utils.logging import setup_logging


def create_app(registry: Optional[SessionRegistry] = None) -> FastAPI:
    settings = get_settings()
    logger = setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # unmount every router so no auth subscription outlives the app
        await app.state.sessions.close_all()
        logger.info("All browser sessions closed")

    app = FastAPI(title=settings.APP_NAME, redirect_slashes=False, lifespan=lifespan)
    app.state.sessions = registry if registry is not None else SessionRegistry()

    @app.middleware("http")
    async def attach_session_cookie(request: Request, call_next):
        response = await call_next(request)
        # error responses carry the cookie as well
        session_id = getattr(request.state, "new_session_id", None)
        if session_id is not None:
            response.set_cookie(settings.SESSION_COOKIE_NAME, session_id, httponly=True, samesite="lax")
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(views.router, prefix=settings.API_PREFIX)
    app.include_router(auth.router, prefix=settings.API_PREFIX)
    app.include_router(customer.router, prefix=settings.API_PREFIX)
    app.include_router(restaurant.router, prefix=settings.API_PREFIX)

    @app.get("/health")
    def health():
        return {"status": "ok", "sessions": len(app.state.sessions)}

    return app


app = create_app()
