from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from libs.http import HttpClient, HttpError
from predictor_service.app.prompts import build_chat_request
from predictor_service.app.schemas import RiskAnalysis, RiskAssessmentRequest
from predictor_service.app.settings import settings


logger = logging.getLogger(__name__)

COMPLETIONS_PATH = "/v1/chat/completions"


class AIGatewayError(Exception):
    """Any failure talking to the chat-completion gateway; message is shown to the caller."""


class GatewayNotConfigured(AIGatewayError):
    pass


class NoToolCall(AIGatewayError):
    pass


class InvalidAnalysis(AIGatewayError):
    pass


def extract_analysis(data: Any) -> RiskAnalysis:
    """
    Pull the structured result out of a chat-completion response.
    Expected shape: {"choices": [{"message": {"tool_calls": [{"function": {"arguments": "<json>"}}]}}]}
    """
    function = None
    choices = data.get("choices") if isinstance(data, dict) else None
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        message = choices[0].get("message")
        tool_calls = message.get("tool_calls") if isinstance(message, dict) else None
        if isinstance(tool_calls, list) and tool_calls and isinstance(tool_calls[0], dict):
            function = tool_calls[0].get("function")
    if not isinstance(function, dict):
        raise NoToolCall("No tool call in response")

    arguments = function.get("arguments")
    try:
        if isinstance(arguments, str):
            return RiskAnalysis.model_validate(json.loads(arguments))
        return RiskAnalysis.model_validate(arguments)
    except (ValueError, ValidationError) as exc:
        logger.error("Tool call arguments rejected: %s", exc)
        raise InvalidAnalysis("Invalid analysis in response") from exc


class AIGatewayClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        model: Optional[str] = None,
        tool_name: Optional[str] = None,
    ) -> None:
        key = api_key if api_key is not None else settings.AI_GATEWAY_API_KEY
        if not key:
            raise GatewayNotConfigured("AI_GATEWAY_API_KEY not configured")
        self.model = model or settings.AI_MODEL
        self.tool_name = tool_name or settings.AI_TOOL_NAME
        self._client = HttpClient(
            base_url or settings.AI_GATEWAY_URL,
            timeout_sec=settings.HTTP_TIMEOUT,
            bearer_token=key,
        )

    def __enter__(self) -> "AIGatewayClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self._client.close()

    def analyze_poverty_risk(self, case: RiskAssessmentRequest, *, correlation_id: str | None = None) -> RiskAnalysis:
        """
        One chat-completion call with the analysis tool forced.
        No retry: any non-2xx status is raised as "AI gateway error: <status>".
        """
        body: Dict[str, Any] = build_chat_request(case, model=self.model, tool_name=self.tool_name)
        try:
            data = self._client.post(COMPLETIONS_PATH, json_body=body, correlation_id=correlation_id)
        except HttpError as e:
            logger.error("AI gateway error: %s %s", e.status, e.body)
            raise AIGatewayError(f"AI gateway error: {e.status}") from e

        logger.debug("AI gateway response: %s", data)
        return extract_analysis(data)
