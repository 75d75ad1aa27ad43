"""Turn a failed completion attempt into a safe reply for the chat UI.

Every branch returns a non-empty message with no sources. The function is pure, so
the same error always lands in the same bucket.
"""

from typing import Union

from app.core.config import CompletionConfigError
from app.core.outcome import PipelineOutcome, UpstreamError, UpstreamErrorKind

NETWORK_MESSAGE = (
    "I apologize, but I'm having trouble connecting to the AI service. "
    "Please check your internet connection and try again."
)
AUTHENTICATION_MESSAGE = (
    "I apologize, but there seems to be an issue with my authentication. "
    "Please contact support to ensure the API key is properly configured."
)
MODEL_CONFIGURATION_MESSAGE = (
    "I apologize, but there was an issue with the AI model configuration. "
    "Please contact support to update the model settings."
)
GENERIC_UPSTREAM_MESSAGE = (
    "I apologize, but I'm having trouble connecting to my knowledge database right now. "
    "Please try again in a moment."
)
INTERNAL_MESSAGE_PREFIX = "I apologize, but I encountered an issue while processing your message. Error: "

INTERNAL_ERROR_KIND = "Internal"

_LABELLED_KINDS = {
    UpstreamErrorKind.network_connectivity: NETWORK_MESSAGE,
    UpstreamErrorKind.authentication: AUTHENTICATION_MESSAGE,
    UpstreamErrorKind.model_configuration: MODEL_CONFIGURATION_MESSAGE,
}


def classify_failure(error: Union[UpstreamError, BaseException]) -> PipelineOutcome:
    if isinstance(error, UpstreamError):
        message = _LABELLED_KINDS.get(error.kind)
        if message is not None:
            return PipelineOutcome(
                message_text=message,
                sources=[],
                diagnostics={"error": error.kind.value, "error_kind": error.kind.value},
            )
        return PipelineOutcome(
            message_text=GENERIC_UPSTREAM_MESSAGE,
            sources=[],
            diagnostics={"error": error.message, "error_kind": error.kind.value},
        )

    reason = str(error) or type(error).__name__
    # A missing credential is caught before dispatch but still reported as an auth problem.
    kind = UpstreamErrorKind.authentication.value if isinstance(error, CompletionConfigError) else INTERNAL_ERROR_KIND
    return PipelineOutcome(
        message_text=f"{INTERNAL_MESSAGE_PREFIX}{reason}",
        sources=[],
        diagnostics={"error": reason, "error_kind": kind},
    )
