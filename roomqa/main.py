"""
Main FastAPI application for the anonymous classroom Q&A backend
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

import roomqa.config
from roomqa.errors import QAError, RateLimited
from roomqa.notifier import build_notifier
from roomqa.routes import accounts, events, questions, rooms
from roomqa.services.fanout import FanoutGateway

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def handle_qa_error(request: Request, exc: QAError) -> JSONResponse:
    """Render a domain error as {"detail", "kind"} with its status code"""
    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after)}

    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.kind, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "kind": exc.kind},
        headers=headers,
    )


def create_app() -> FastAPI:
    settings = roomqa.config.settings
    configure_logging(settings.log_level)

    app = FastAPI(
        title="RoomQA",
        description="Anonymous classroom Q&A rooms with live moderation",
        version="0.1.0",
    )

    # One registry and one notifier per application instance
    app.state.gateway = FanoutGateway()
    app.state.notifier = build_notifier(settings)

    app.add_exception_handler(QAError, handle_qa_error)

    # Include routers
    app.include_router(accounts.router, tags=["accounts"])
    app.include_router(rooms.router, tags=["rooms"])
    app.include_router(questions.router, tags=["questions"])
    app.include_router(events.router, tags=["events"])

    @app.get("/")
    async def root() -> dict[str, str]:
        """Health check endpoint"""
        return {"status": "ok", "message": "RoomQA API"}

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint for monitoring"""
        return {"status": "healthy"}

    return app


app = create_app()
