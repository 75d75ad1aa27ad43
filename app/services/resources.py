import json
import re
from typing import Optional, Protocol, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.outcome import ResourceRef
from app.db.models import Resource

MAX_RELEVANT_RESOURCES = 3
MIN_KEYWORD_LENGTH = 3

STOP_WORDS = {
    "a", "an", "the", "and", "or", "but", "is", "are", "of", "to", "for", "in", "with",
    "what", "how", "why", "when", "where", "who", "which", "should", "can", "could",
    "would", "will", "does", "did", "have", "has", "had", "was", "were", "been", "this",
    "that", "these", "those", "there", "their", "they", "them", "you", "your", "about",
    "from", "not", "any", "some", "get", "its", "our", "all", "just", "than", "then",
    "into", "also",
}

_TOKEN_SPLIT = re.compile(r"\W+")


class ResourceStore(Protocol):
    def search_approved(self, keywords: Sequence[str], limit: int) -> list[ResourceRef]:
        ...


def extract_keywords(query: str) -> list[str]:
    keywords: list[str] = []
    for token in _TOKEN_SPLIT.split((query or "").lower()):
        if len(token) < MIN_KEYWORD_LENGTH or token in STOP_WORDS or token in keywords:
            continue
        keywords.append(token)
    return keywords


def parse_tags(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return []
    if not isinstance(parsed, list):
        return []
    return [str(item).strip() for item in parsed if str(item).strip()]


def resource_to_ref(row: Resource) -> ResourceRef:
    return ResourceRef(
        id=row.id,
        title=row.title,
        description=row.description,
        category=row.category,
        url=row.url or None,
    )


def _like_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqlResourceStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def search_approved(self, keywords: Sequence[str], limit: int) -> list[ResourceRef]:
        if not keywords:
            return []
        clauses = []
        for keyword in keywords:
            escaped = _like_escape(keyword)
            clauses.append(
                or_(
                    Resource.title.ilike(f"%{escaped}%", escape="\\"),
                    Resource.description.ilike(f"%{escaped}%", escape="\\"),
                    Resource.tags_json.ilike(f'%"{escaped}"%', escape="\\"),
                )
            )
        rows = (
            self.db.query(Resource)
            .filter(Resource.is_approved.is_(True), or_(*clauses))
            .order_by(Resource.id.asc())
            .limit(limit)
            .all()
        )
        return [resource_to_ref(row) for row in rows]


def find_relevant_resources(
    query: str, store: ResourceStore, limit: int = MAX_RELEVANT_RESOURCES
) -> list[ResourceRef]:
    keywords = extract_keywords(query)
    if not keywords:
        return []
    return list(store.search_approved(keywords, limit))[:limit]
