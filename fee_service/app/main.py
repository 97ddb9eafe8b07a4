import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from fee_service.app.api import router as api_router
from fee_service.app.cache import build_query_cache
from fee_service.app.db import get_engine
from fee_service.app.errors import FeeServiceError
from fee_service.app.session import auth_events
from fee_service.app.settings import settings
from fee_service.db.schema import init_schema

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("fee_service")


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    err = errors[0]
    loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
    return f"{loc}: {err.get('msg')}" if loc else str(err.get("msg"))


def create_app() -> FastAPI:
    app = FastAPI(title="fee_service")

    origins_cfg = settings.CORS_ALLOW_ORIGINS
    origins = ["*"] if origins_cfg.strip() == "*" else [o.strip() for o in origins_cfg.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.query_cache = build_query_cache()
    app.state.auth_subscription = None

    def _on_auth_change(event) -> None:
        logger.info("Auth state %s for %s", event.event_type, event.user_id)
        if event.event_type == "signed_out":
            app.state.query_cache.clear()

    @app.on_event("startup")
    def _startup() -> None:
        if settings.DB_AUTO_CREATE:
            init_schema(get_engine())
        # One listener per app; dropped again on shutdown
        app.state.auth_subscription = auth_events.subscribe(_on_auth_change)

    @app.on_event("shutdown")
    def _shutdown() -> None:
        sub = app.state.auth_subscription
        if sub is not None:
            sub.unsubscribe()
            app.state.auth_subscription = None

    @app.exception_handler(FeeServiceError)
    async def _fee_error(request: Request, exc: FeeServiceError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": _first_validation_message(exc)},
        )

    @app.exception_handler(SQLAlchemyError)
    async def _db_error(request: Request, exc: SQLAlchemyError):
        logger.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
        upstream = getattr(exc, "orig", None)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": str(upstream or exc) or "Database error"},
        )

    app.include_router(api_router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "fee_service.app.main:app",
        host=settings.SERVICE_HOST,
        port=settings.SERVICE_PORT,
        reload=False,
        workers=1,
    )
