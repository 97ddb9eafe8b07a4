import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from predictor_service.app.api import CORS_HEADERS, error_response, health_router, router as api_router
from predictor_service.app.settings import settings

logging.basicConfig(level=logging.INFO)


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    err = errors[0]
    loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
    return f"{loc}: {err.get('msg')}" if loc else str(err.get("msg"))


def create_app() -> FastAPI:
    app = FastAPI(title="predictor_service")

    origins_cfg = settings.CORS_ALLOW_ORIGINS
    origins = ["*"] if origins_cfg.strip() == "*" else [o.strip() for o in origins_cfg.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["POST", "OPTIONS"],
        allow_headers=[h.strip() for h in CORS_HEADERS["Access-Control-Allow-Headers"].split(",")],
    )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        # Rejected before any outbound call
        return error_response(_first_validation_message(exc), status_code=400)

    app.include_router(health_router)
    app.include_router(api_router)
    # Path used by browser clients of the hosted functions runtime
    app.include_router(api_router, prefix="/functions/v1")
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "predictor_service.app.main:app",
        host=settings.SERVICE_HOST,
        port=settings.SERVICE_PORT,
        reload=False,
        workers=1,
    )
