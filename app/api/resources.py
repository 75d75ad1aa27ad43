from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.auth import get_current_user
from app.db.models import Resource, User
from app.db.session import get_db
from app.services.resources import parse_tags

router = APIRouter(prefix="/resources", tags=["resources"])


class ResourceItem(BaseModel):
    id: int
    title: str
    description: str
    url: Optional[str] = None
    category: str
    type: str
    tags: list[str]


class ResourceListResponse(BaseModel):
    items: list[ResourceItem]


@router.get("", response_model=ResourceListResponse)
def list_resources(
    category: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ResourceListResponse:
    query = db.query(Resource).filter(Resource.is_approved.is_(True))
    if category:
        query = query.filter(Resource.category == category.strip().lower())
    rows = query.order_by(Resource.category.asc(), Resource.id.asc()).all()
    items = [
        ResourceItem(
            id=row.id,
            title=row.title,
            description=row.description,
            url=row.url,
            category=row.category,
            type=row.type,
            tags=parse_tags(row.tags_json),
        )
        for row in rows
    ]
    return ResourceListResponse(items=items)
