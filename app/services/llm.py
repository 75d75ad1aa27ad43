import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence, Union

import httpx

from app.core.config import CompletionConfigError, CompletionSettings, load_completion_settings
from app.core.conversation import ConversationTurn
from app.core.outcome import Citation, TokenUsage, UpstreamError, UpstreamErrorKind
from app.core.security import mask_api_key

logger = logging.getLogger("uvicorn.error")

DETAIL_PREVIEW_CHARS = 220


@dataclass(frozen=True)
class CompletionResult:
    message_text: str
    model: str
    citations: tuple[Citation, ...] = ()
    token_usage: TokenUsage = field(default_factory=TokenUsage)


CompletionOutcome = Union[CompletionResult, UpstreamError]


class CompletionClient(Protocol):
    def complete(self, system_prompt: str, turns: Sequence[ConversationTurn]) -> CompletionOutcome:
        ...


def _int_or_zero(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _parse_citations(message: dict[str, Any]) -> tuple[Citation, ...]:
    context = message.get("context")
    raw = context.get("citations") if isinstance(context, dict) else None
    if not isinstance(raw, list):
        return ()
    citations: list[Citation] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        citations.append(
            Citation(
                title=str(item.get("title") or "Unknown Source"),
                url=str(item.get("url") or ""),
                excerpt=str(item.get("text") or item.get("excerpt") or ""),
                domain=str(item.get("domain") or ""),
            )
        )
    return tuple(citations)


def parse_completion_response(data: Any, model: str) -> CompletionOutcome:
    if not isinstance(data, dict):
        return UpstreamError(
            kind=UpstreamErrorKind.invalid_response,
            message="Completion service returned a non-object payload",
        )
    choices = data.get("choices")
    first = choices[0] if isinstance(choices, list) and choices else None
    message = first.get("message") if isinstance(first, dict) else None
    text = str(message.get("content") or "").strip() if isinstance(message, dict) else ""
    if not text:
        return UpstreamError(
            kind=UpstreamErrorKind.empty_response,
            message="Received invalid response from completion service: empty message content",
        )

    usage = data.get("usage") if isinstance(data.get("usage"), dict) else {}
    return CompletionResult(
        message_text=text,
        model=model,
        citations=_parse_citations(message),
        token_usage=TokenUsage(
            prompt=_int_or_zero(usage.get("prompt_tokens")),
            completion=_int_or_zero(usage.get("completion_tokens")),
            total=_int_or_zero(usage.get("total_tokens")),
        ),
    )


def _status_error(exc: httpx.HTTPStatusError) -> UpstreamError:
    status = exc.response.status_code
    detail = (exc.response.text or "").strip()[:DETAIL_PREVIEW_CHARS]
    lowered = detail.lower()
    message = f"Completion request failed (status={status}): {detail or 'no response body'}"
    if status in {401, 403} or "api key" in lowered:
        kind = UpstreamErrorKind.authentication
    elif status == 404 or "model not found" in lowered or "invalid model" in lowered:
        kind = UpstreamErrorKind.model_configuration
    else:
        kind = UpstreamErrorKind.http_status
    return UpstreamError(kind=kind, message=message, status_code=status)


class HttpCompletionClient:
    """Single-attempt chat completion client for an OpenAI-style JSON endpoint."""

    def __init__(self, settings: CompletionSettings, transport: Optional[httpx.BaseTransport] = None) -> None:
        self.settings = settings
        self._transport = transport

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.settings.timeout_seconds, connect=self.settings.connect_timeout_seconds)

    def build_payload(self, system_prompt: str, turns: Sequence[ConversationTurn]) -> dict[str, Any]:
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(turn.as_message() for turn in turns)
        return {
            "model": self.settings.model,
            "messages": messages,
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
            "top_p": self.settings.top_p,
        }

    def complete(self, system_prompt: str, turns: Sequence[ConversationTurn]) -> CompletionOutcome:
        if not self.settings.api_key:
            raise CompletionConfigError("Completion API key not configured")

        payload = self.build_payload(system_prompt, turns)
        logger.debug(
            "completion_request endpoint=%s model=%s message_count=%s api_key=%s",
            self.settings.endpoint,
            self.settings.model,
            len(payload["messages"]),
            mask_api_key(self.settings.api_key),
        )
        try:
            with httpx.Client(timeout=self._timeout(), transport=self._transport) as client:
                response = client.post(
                    self.settings.endpoint,
                    headers={
                        "Authorization": f"Bearer {self.settings.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as exc:
            return UpstreamError(
                kind=UpstreamErrorKind.timeout,
                message=f"Completion request timed out: {str(exc)[:DETAIL_PREVIEW_CHARS] or type(exc).__name__}",
            )
        except httpx.ConnectError as exc:
            return UpstreamError(
                kind=UpstreamErrorKind.network_connectivity,
                message=f"Could not reach completion service: {str(exc)[:DETAIL_PREVIEW_CHARS]}",
            )
        except httpx.HTTPStatusError as exc:
            return _status_error(exc)
        except httpx.HTTPError as exc:
            return UpstreamError(
                kind=UpstreamErrorKind.transport,
                message=f"Completion request failed: {str(exc)[:DETAIL_PREVIEW_CHARS]}",
            )
        except ValueError as exc:
            return UpstreamError(
                kind=UpstreamErrorKind.invalid_response,
                message=f"Completion service returned invalid JSON: {str(exc)[:DETAIL_PREVIEW_CHARS]}",
            )
        return parse_completion_response(data, self.settings.model)


def get_completion_client() -> CompletionClient:
    return HttpCompletionClient(load_completion_settings())
