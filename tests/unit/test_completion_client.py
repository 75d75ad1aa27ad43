import json

import httpx
import pytest

from app.core.config import CompletionConfigError, CompletionSettings
from app.core.conversation import ConversationTurn, Role
from app.core.outcome import UpstreamError, UpstreamErrorKind
from app.services.llm import CompletionResult, HttpCompletionClient, parse_completion_response

SETTINGS = CompletionSettings(api_key="pplx-test-1234567890", model="sonar", base_url="https://llm.test")
TURNS = [ConversationTurn(Role.user, "What is a normal fasting glucose?")]


def _client(handler) -> HttpCompletionClient:
    return HttpCompletionClient(SETTINGS, transport=httpx.MockTransport(handler))


def _ok_body(**overrides) -> dict:
    body = {
        "choices": [
            {
                "message": {
                    "role": "assistant",
                    "content": "  A fasting glucose of 70-99 mg/dL is typical.  ",
                    "context": {
                        "citations": [
                            {"title": "ADA Standards", "url": "https://ada.example", "text": "Targets", "domain": "ada.example"},
                            {"url": "https://untitled.example"},
                            "not-a-dict",
                        ]
                    },
                }
            }
        ],
        "usage": {"prompt_tokens": 210, "completion_tokens": 35, "total_tokens": 245},
    }
    body.update(overrides)
    return body


def test_request_shape_and_successful_parse() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["payload"] = json.loads(request.content)
        return httpx.Response(200, json=_ok_body())

    result = _client(handler).complete("SYSTEM", TURNS)

    assert seen["url"] == "https://llm.test/chat/completions"
    assert seen["auth"] == "Bearer pplx-test-1234567890"
    payload = seen["payload"]
    assert payload["model"] == "sonar"
    assert payload["max_tokens"] == 1000
    assert payload["temperature"] == 0.2
    assert payload["top_p"] == 0.9
    assert payload["messages"] == [
        {"role": "system", "content": "SYSTEM"},
        {"role": "user", "content": "What is a normal fasting glucose?"},
    ]

    assert isinstance(result, CompletionResult)
    assert result.message_text == "A fasting glucose of 70-99 mg/dL is typical."
    assert result.model == "sonar"
    assert result.token_usage.as_dict() == {"prompt": 210, "completion": 35, "total": 245}
    assert [c.title for c in result.citations] == ["ADA Standards", "Unknown Source"]
    assert result.citations[0].excerpt == "Targets"


def test_request_carries_connect_and_overall_timeouts() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["timeout"] = request.extensions["timeout"]
        return httpx.Response(200, json=_ok_body())

    _client(handler).complete("SYSTEM", TURNS)
    assert seen["timeout"] == {"connect": 10.0, "read": 30.0, "write": 30.0, "pool": 30.0}


def test_timeouts_follow_settings() -> None:
    settings = CompletionSettings(api_key="k", connect_timeout_seconds=2.5, timeout_seconds=12.0)
    timeout = HttpCompletionClient(settings)._timeout()
    assert timeout.connect == 2.5
    assert timeout.read == 12.0
    assert timeout.pool == 12.0


def test_missing_api_key_raises_before_dispatch() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=_ok_body())

    client = HttpCompletionClient(CompletionSettings(api_key=""), transport=httpx.MockTransport(handler))
    with pytest.raises(CompletionConfigError):
        client.complete("SYSTEM", TURNS)
    assert calls == []


@pytest.mark.parametrize(
    ("status", "body", "kind"),
    [
        (401, "Unauthorized", UpstreamErrorKind.authentication),
        (403, "Forbidden", UpstreamErrorKind.authentication),
        (400, "Invalid API key provided", UpstreamErrorKind.authentication),
        (404, "Not found", UpstreamErrorKind.model_configuration),
        (400, "Invalid model 'sonar-xl'", UpstreamErrorKind.model_configuration),
        (500, "Internal error", UpstreamErrorKind.http_status),
        (429, "Too many requests", UpstreamErrorKind.http_status),
    ],
)
def test_http_status_classification(status: int, body: str, kind: UpstreamErrorKind) -> None:
    result = _client(lambda request: httpx.Response(status, text=body)).complete("SYSTEM", TURNS)
    assert isinstance(result, UpstreamError)
    assert result.kind is kind
    assert result.status_code == status
    assert f"status={status}" in result.message


def test_timeout_becomes_timeout_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    result = _client(handler).complete("SYSTEM", TURNS)
    assert isinstance(result, UpstreamError)
    assert result.kind is UpstreamErrorKind.timeout


def test_connect_error_becomes_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Name or service not known", request=request)

    result = _client(handler).complete("SYSTEM", TURNS)
    assert isinstance(result, UpstreamError)
    assert result.kind is UpstreamErrorKind.network_connectivity


def test_non_json_body_is_invalid_response() -> None:
    result = _client(lambda request: httpx.Response(200, text="<html>oops</html>")).complete("SYSTEM", TURNS)
    assert isinstance(result, UpstreamError)
    assert result.kind is UpstreamErrorKind.invalid_response


def test_empty_content_is_empty_response() -> None:
    body = {"choices": [{"message": {"role": "assistant", "content": "   "}}]}
    result = _client(lambda request: httpx.Response(200, json=body)).complete("SYSTEM", TURNS)
    assert isinstance(result, UpstreamError)
    assert result.kind is UpstreamErrorKind.empty_response


def test_parse_tolerates_missing_usage_and_citations() -> None:
    result = parse_completion_response({"choices": [{"message": {"content": "ok"}}]}, "sonar")
    assert isinstance(result, CompletionResult)
    assert result.citations == ()
    assert result.token_usage.as_dict() == {"prompt": 0, "completion": 0, "total": 0}

    assert isinstance(parse_completion_response(["not", "a", "dict"], "sonar"), UpstreamError)
    assert isinstance(parse_completion_response({"choices": []}, "sonar"), UpstreamError)
