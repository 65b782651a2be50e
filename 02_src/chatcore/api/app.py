"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..app import Application
from .errors import register_error_handlers
from .routes import auth, chats, realtime, users


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure FastAPI application around one Application."""
    application = application or Application()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan."""
        # Startup
        await application.start()
        yield
        # Shutdown
        await application.stop()

    fastapi_app = FastAPI(
        title="Chat Core API",
        description="Real-time chat backend",
        version="0.1.0",
        lifespan=lifespan,
    )
    fastapi_app.state.application = application

    # Enable CORS
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:5174"],  # Vite default
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(fastapi_app)

    @fastapi_app.get("/")
    async def root() -> dict:
        return {"status": "ok"}

    # Include routers
    fastapi_app.include_router(auth.create_auth_router(application))
    fastapi_app.include_router(users.create_users_router(application))
    fastapi_app.include_router(chats.create_chats_router(application))
    fastapi_app.include_router(realtime.create_realtime_router(application))

    return fastapi_app
