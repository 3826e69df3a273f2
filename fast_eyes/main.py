import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fast_eyes.api import routes
from fast_eyes.core.config import Settings, get_settings
from fast_eyes.core.exceptions import (
    GuardRejection,
    InvalidRequestError,
    InvalidRoomCodeError,
    ParticipantNotFoundError,
    RepositoryError,
    RoomNotFoundError,
)
from fast_eyes.db.database import init_db
from fast_eyes.realtime.feed import ChangeFeed, ChangeFeedHub

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    feed: Optional[ChangeFeed] = None,
    create_tables: bool = True,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: create the tables
        if create_tables:
            init_db()
        yield

    app = FastAPI(
        title="Fast Eyes API",
        description="Rooms, number claims and chat for the Fast Eyes number race",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.feed = feed or ChangeFeedHub()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(routes.router)
    _register_exception_handlers(app)

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    """Map the exception taxonomy onto HTTP status codes."""

    def _error(status_code: int, exc: Exception, **extra) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "error": type(exc).__name__, **extra},
        )

    @app.exception_handler(RoomNotFoundError)
    @app.exception_handler(ParticipantNotFoundError)
    async def not_found(request: Request, exc: Exception) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, exc)

    @app.exception_handler(InvalidRequestError)
    @app.exception_handler(InvalidRoomCodeError)
    async def invalid_request(request: Request, exc: Exception) -> JSONResponse:
        return _error(422, exc)

    @app.exception_handler(GuardRejection)
    async def guard_rejection(request: Request, exc: Exception) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, exc)

    @app.exception_handler(RepositoryError)
    async def repository_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, exc, retryable=True)


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
