"""Prompt text and tool schema sent to the chat-completion gateway."""
from __future__ import annotations

from typing import Any, Dict

from predictor_service.app.schemas import RiskAssessmentRequest


SYSTEM_PROMPT = """You are an advanced AI model specialized in poverty risk assessment and socioeconomic analysis. 
Your task is to analyze individual and household factors to predict poverty risk levels and provide actionable recommendations.

You should consider multiple dimensions:
- Economic factors (income, employment stability)
- Human capital (education level)
- Social factors (household composition, location)
- Access to services (healthcare, infrastructure)

Provide a comprehensive analysis with:
1. A poverty risk score (0-100, where 100 is highest risk)
2. A risk category (Low, Medium, High, Critical)
3. Key risk factors identified
4. Specific, actionable recommendations for poverty reduction
5. Relevant SDG 1 targets that apply to this case"""


def _fmt_number(value: float) -> str:
    # 150.0 -> "150", 150.5 -> "150.5"
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def render_user_prompt(case: RiskAssessmentRequest) -> str:
    return (
        "Analyze the following case for poverty risk:\n"
        "\n"
        f"Income: ${_fmt_number(case.income)} per month\n"
        f"Education Level: {case.education}\n"
        f"Employment Status: {case.employment}\n"
        f"Household Size: {case.household_size} people\n"
        f"Location Type: {case.location}\n"
        f"Healthcare Access: {case.health_access}\n"
        "\n"
        "Provide a detailed poverty risk assessment with specific recommendations."
    )


def analysis_tool(name: str) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": "Analyze poverty risk factors and provide structured assessment",
            "parameters": {
                "type": "object",
                "properties": {
                    "riskScore": {
                        "type": "number",
                        "description": "Poverty risk score from 0-100",
                    },
                    "riskCategory": {
                        "type": "string",
                        "enum": ["Low", "Medium", "High", "Critical"],
                        "description": "Overall risk category",
                    },
                    "keyFactors": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Key risk factors identified",
                    },
                    "recommendations": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Actionable recommendations",
                    },
                    "sdgTargets": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Relevant SDG 1 targets",
                    },
                },
                "required": ["riskScore", "riskCategory", "keyFactors", "recommendations", "sdgTargets"],
            },
        },
    }


def build_chat_request(case: RiskAssessmentRequest, *, model: str, tool_name: str) -> Dict[str, Any]:
    return {
        "model": model,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": render_user_prompt(case)},
        ],
        "tools": [analysis_tool(tool_name)],
        "tool_choice": {"type": "function", "function": {"name": tool_name}},
    }
