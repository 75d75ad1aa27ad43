from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


@dataclass(frozen=True)
class ResourceRef:
    id: int
    title: str
    description: str
    category: str
    url: Optional[str] = None

    def as_source(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url or "",
            "category": self.category,
            "source_type": "database",
        }


@dataclass(frozen=True)
class Citation:
    title: str
    url: str = ""
    excerpt: str = ""
    domain: str = ""

    def as_source(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "text": self.excerpt,
            "domain": self.domain,
            "source_type": "completion",
        }


@dataclass(frozen=True)
class TokenUsage:
    prompt: int = 0
    completion: int = 0
    total: int = 0

    def as_dict(self) -> dict[str, int]:
        return {"prompt": self.prompt, "completion": self.completion, "total": self.total}


Source = Union[ResourceRef, Citation]


@dataclass
class PipelineOutcome:
    message_text: str
    sources: list[Source] = field(default_factory=list)
    diagnostics: dict[str, Any] = field(default_factory=dict)

    def sources_payload(self) -> list[dict[str, Any]]:
        return [source.as_source() for source in self.sources]


class UpstreamErrorKind(str, Enum):
    network_connectivity = "NetworkConnectivity"
    authentication = "Authentication"
    model_configuration = "ModelConfiguration"
    empty_response = "EmptyResponse"
    timeout = "Timeout"
    http_status = "HttpStatus"
    invalid_response = "InvalidResponse"
    transport = "Transport"


@dataclass(frozen=True)
class UpstreamError:
    kind: UpstreamErrorKind
    message: str
    status_code: Optional[int] = None
