import uvicorn
from fastapi import FastAPI, Request

from app.api.routes.conversations import router as conversations_router
from app.api.routes.health import router as health_router
from app.api.routes.internal_tokens import router as internal_tokens_router
from app.api.routes.missions import router as missions_router
from app.api.routes.presence import router as presence_router
from app.api.routes.tokens import router as tokens_router
from app.core.config import get_settings
from app.core.logging import bind_request_context, configure_logging
from app.services.presence import PresenceRegistry


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level, log_format=settings.log_format)

    app = FastAPI(
        title="Mission Marketplace API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.presence = PresenceRegistry()

    @app.middleware("http")
    async def _bind_log_context(request: Request, call_next):
        bind_request_context(method=request.method, path=request.url.path)
        return await call_next(request)

    app.include_router(health_router)
    app.include_router(missions_router)
    app.include_router(conversations_router)
    app.include_router(tokens_router)
    app.include_router(internal_tokens_router)
    app.include_router(presence_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
