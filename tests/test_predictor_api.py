import json
from unittest.mock import MagicMock, patch

import requests

from predictor_service.app.prompts import render_user_prompt
from predictor_service.app.schemas import RiskAssessmentRequest
from predictor_service.app.settings import settings


CASE = {
    "income": 150,
    "education": "Primary",
    "employment": "Unemployed",
    "householdSize": 6,
    "location": "Rural",
    "healthAccess": "Limited",
}

ANALYSIS = {
    "riskScore": 82,
    "riskCategory": "High",
    "keyFactors": ["Income below poverty line", "Unemployment"],
    "recommendations": ["Enroll in cash transfer programme"],
    "sdgTargets": ["1.1", "1.3"],
}


def _gateway_response(status_code=200, body=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.headers = {"Content-Type": "application/json"}
    resp.text = text
    if body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = body
    return resp


def _tool_call_body(arguments):
    return {
        "choices": [{
            "message": {
                "role": "assistant",
                "tool_calls": [{
                    "type": "function",
                    "function": {"name": "analyze_poverty_risk", "arguments": arguments},
                }],
            },
        }],
    }


def test_user_prompt_is_deterministic():
    case = RiskAssessmentRequest.model_validate(CASE)
    prompt = render_user_prompt(case)
    assert prompt == render_user_prompt(RiskAssessmentRequest.model_validate(CASE))
    assert "Income: $150 per month" in prompt
    assert "Household Size: 6 people" in prompt
    assert "Healthcare Access: Limited" in prompt


def test_successful_assessment(predictor_client):
    with patch.object(requests.Session, "request", return_value=_gateway_response(body=_tool_call_body(json.dumps(ANALYSIS)))) as req:
        resp = predictor_client.post("/poverty-predictor", json=CASE)

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert 0 <= body["analysis"]["riskScore"] <= 100
    assert body["analysis"]["riskCategory"] in {"Low", "Medium", "High", "Critical"}
    assert body["analysis"]["sdgTargets"] == ["1.1", "1.3"]
    assert resp.headers["access-control-allow-origin"] == "*"

    method, url = req.call_args.args[:2]
    assert method == "POST"
    assert url == "https://gateway.test/v1/chat/completions"
    sent = json.loads(req.call_args.kwargs["data"])
    assert sent["model"] == settings.AI_MODEL
    assert sent["tool_choice"]["function"]["name"] == "analyze_poverty_risk"
    assert sent["messages"][1]["content"].startswith("Analyze the following case for poverty risk:")


def test_functions_path_alias(predictor_client):
    with patch.object(requests.Session, "request", return_value=_gateway_response(body=_tool_call_body(ANALYSIS))):
        resp = predictor_client.post("/functions/v1/poverty-predictor", json=CASE)
    assert resp.status_code == 200
    assert resp.json()["analysis"]["riskCategory"] == "High"


def test_missing_tool_call(predictor_client):
    no_tools = {"choices": [{"message": {"role": "assistant", "content": "I think it's high."}}]}
    with patch.object(requests.Session, "request", return_value=_gateway_response(body=no_tools)):
        resp = predictor_client.post("/poverty-predictor", json=CASE)
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "No tool call in response"}


def test_out_of_range_score_rejected(predictor_client):
    bad = dict(ANALYSIS, riskScore=140)
    with patch.object(requests.Session, "request", return_value=_gateway_response(body=_tool_call_body(json.dumps(bad)))):
        resp = predictor_client.post("/poverty-predictor", json=CASE)
    assert resp.status_code == 500
    assert resp.json()["success"] is False
    assert resp.json()["error"] == "Invalid analysis in response"


def test_gateway_error_status(predictor_client):
    with patch.object(requests.Session, "request", return_value=_gateway_response(status_code=429, text="rate limited")) as req:
        resp = predictor_client.post("/poverty-predictor", json=CASE)
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "AI gateway error: 429"}
    # no retry
    assert req.call_count == 1


def test_missing_api_key(predictor_client, monkeypatch):
    monkeypatch.setattr(settings, "AI_GATEWAY_API_KEY", "")
    with patch.object(requests.Session, "request") as req:
        resp = predictor_client.post("/poverty-predictor", json=CASE)
    assert resp.status_code == 500
    assert resp.json()["success"] is False
    assert resp.json()["error"]
    req.assert_not_called()


def test_invalid_input_never_reaches_gateway(predictor_client):
    with patch.object(requests.Session, "request") as req:
        resp = predictor_client.post("/poverty-predictor", json=dict(CASE, location="Suburban"))
        neg = predictor_client.post("/poverty-predictor", json=dict(CASE, income=-1))
        zero = predictor_client.post("/poverty-predictor", json=dict(CASE, householdSize=0))
    for r in (resp, neg, zero):
        assert r.status_code == 400
        assert r.json()["success"] is False
    assert resp.json()["error"].startswith("location")
    req.assert_not_called()


def test_preflight(predictor_client):
    resp = predictor_client.options("/poverty-predictor")
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"
    assert "content-type" in resp.headers["access-control-allow-headers"]

    resp = predictor_client.options(
        "/poverty-predictor",
        headers={"Origin": "https://example.org", "Access-Control-Request-Method": "POST",
                 "Access-Control-Request-Headers": "content-type"},
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"


def test_health(predictor_client):
    assert predictor_client.get("/health").json() == {"status": "ok"}


def test_malformed_gateway_body(predictor_client):
    for body in ({"choices": {"x": 1}}, {"choices": ["oops"]}, {"choices": [{"message": {"tool_calls": "x"}}]}, []):
        with patch.object(requests.Session, "request", return_value=_gateway_response(body=body)):
            resp = predictor_client.post("/poverty-predictor", json=CASE)
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "No tool call in response"}
