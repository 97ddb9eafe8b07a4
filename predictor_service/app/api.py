import logging

from fastapi import APIRouter, Header, Response, status
from fastapi.responses import JSONResponse

from predictor_service.app.clients.ai_gateway import AIGatewayClient
from predictor_service.app.schemas import RiskAssessmentRequest, RiskAssessmentResponse


logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

router = APIRouter()
health_router = APIRouter()


def error_response(message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> JSONResponse:
    body = RiskAssessmentResponse(success=False, error=message)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=CORS_HEADERS,
    )


@router.options("/poverty-predictor")
def poverty_predictor_preflight() -> Response:
    return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)


@router.post("/poverty-predictor", response_model=RiskAssessmentResponse)
def poverty_predictor(
    req: RiskAssessmentRequest,
    x_correlation_id: str | None = Header(default=None, alias="X-Correlation-Id"),
) -> JSONResponse:
    logger.info("Poverty prediction request: %s", req.model_dump(by_alias=True))

    try:
        with AIGatewayClient() as client:
            analysis = client.analyze_poverty_risk(req, correlation_id=x_correlation_id)
    except Exception as exc:
        logger.exception("Error in poverty-predictor")
        return error_response(str(exc) or "Unknown error occurred")

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"success": True, "analysis": analysis.model_dump(by_alias=True)},
        headers=CORS_HEADERS,
    )


@health_router.get("/health")
def health() -> dict:
    return {"status": "ok"}
