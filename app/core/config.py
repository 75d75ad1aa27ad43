import os
from dataclasses import dataclass

DEFAULT_COMPLETION_MODEL = "sonar"
DEFAULT_COMPLETION_BASE_URL = "https://api.perplexity.ai"

CHAT_HISTORY_LIMIT = int(os.getenv("CHAT_HISTORY_LIMIT", "10"))


@dataclass(frozen=True)
class CompletionSettings:
    api_key: str = ""
    model: str = DEFAULT_COMPLETION_MODEL
    base_url: str = DEFAULT_COMPLETION_BASE_URL
    connect_timeout_seconds: float = 10.0
    timeout_seconds: float = 30.0
    max_tokens: int = 1000
    temperature: float = 0.2
    top_p: float = 0.9

    @property
    def endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"


def load_completion_settings() -> CompletionSettings:
    return CompletionSettings(
        api_key=os.getenv("LLM_API_KEY", "").strip(),
        model=os.getenv("LLM_MODEL", "").strip() or DEFAULT_COMPLETION_MODEL,
        base_url=os.getenv("LLM_BASE_URL", "").strip() or DEFAULT_COMPLETION_BASE_URL,
        connect_timeout_seconds=float(os.getenv("LLM_CONNECT_TIMEOUT_SECONDS", "10")),
        timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "30")),
        max_tokens=int(os.getenv("LLM_MAX_TOKENS", "1000")),
        temperature=float(os.getenv("LLM_TEMPERATURE", "0.2")),
        top_p=float(os.getenv("LLM_TOP_P", "0.9")),
    )


class CompletionConfigError(RuntimeError):
    """Raised before dispatch when the deployment is missing required settings."""
