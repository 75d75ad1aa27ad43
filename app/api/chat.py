import json
import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.api.auth import get_current_user
from app.core.config import CHAT_HISTORY_LIMIT
from app.core.context_builder import load_medical_context
from app.core.conversation import BOT_SENDER, ConversationTurn, role_from_sender
from app.db.models import ChatMessage, ChatSession, User
from app.db.session import get_db
from app.services.chatbot import ChatbotService
from app.services.llm import CompletionClient, get_completion_client
from app.services.resources import SqlResourceStore

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/chat", tags=["chat"])

DEFAULT_SESSION_TITLE = "New Conversation"
TITLE_PREVIEW_CHARS = 50


class SessionCreateRequest(BaseModel):
    title: Optional[str] = Field(default=None, max_length=180)


class SessionItem(BaseModel):
    id: int
    title: str
    summary: Optional[str] = None
    message_count: int
    created_at: str
    updated_at: str


class SessionListResponse(BaseModel):
    items: list[SessionItem]


class MessageItem(BaseModel):
    id: int
    sender_type: str
    message: str
    context: Optional[dict[str, Any]] = None
    created_at: str


class SessionDetailResponse(BaseModel):
    id: int
    title: str
    summary: Optional[str] = None
    messages: list[MessageItem]


class ChatMessageRequest(BaseModel):
    message: str = Field(max_length=8000)
    session_id: Optional[int] = None


class ChatMessageResponse(BaseModel):
    session_id: int
    message: str
    sources: list[dict[str, Any]]


def title_from_message(message: str) -> str:
    first_line = " ".join((message or "").strip().split())
    if not first_line:
        return DEFAULT_SESSION_TITLE
    if len(first_line) > TITLE_PREVIEW_CHARS:
        return f"{first_line[:TITLE_PREVIEW_CHARS]}..."
    return first_line


def _owned_session(db: Session, *, user_id: int, session_id: int) -> ChatSession:
    session = (
        db.query(ChatSession)
        .filter(ChatSession.id == session_id, ChatSession.user_id == user_id)
        .first()
    )
    if not session:
        raise HTTPException(status_code=404, detail="Chat session not found")
    return session


def _new_session(db: Session, *, user_id: int, title: str = DEFAULT_SESSION_TITLE) -> ChatSession:
    now = datetime.utcnow()
    session = ChatSession(user_id=user_id, title=title, created_at=now, updated_at=now)
    db.add(session)
    db.flush()
    return session


def load_history(
    db: Session,
    *,
    session_id: int,
    limit: int = CHAT_HISTORY_LIMIT,
    exclude_message_id: Optional[int] = None,
) -> list[ConversationTurn]:
    query = db.query(ChatMessage).filter(ChatMessage.session_id == session_id)
    if exclude_message_id is not None:
        query = query.filter(ChatMessage.id != exclude_message_id)
    rows = query.order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc()).limit(limit).all()
    return [
        ConversationTurn(role=role_from_sender(row.sender_type), content=row.message)
        for row in reversed(rows)
    ]


def _decode_context(raw: Optional[str]) -> Optional[dict[str, Any]]:
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _session_item(session: ChatSession, message_count: int) -> SessionItem:
    return SessionItem(
        id=session.id,
        title=session.title,
        summary=session.summary,
        message_count=message_count,
        created_at=session.created_at.isoformat(),
        updated_at=session.updated_at.isoformat(),
    )


@router.post("/sessions", response_model=SessionItem, status_code=status.HTTP_201_CREATED)
def create_session(
    payload: SessionCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SessionItem:
    title = (payload.title or DEFAULT_SESSION_TITLE).strip()[:180] or DEFAULT_SESSION_TITLE
    session = _new_session(db, user_id=user.id, title=title)
    db.commit()
    db.refresh(session)
    return _session_item(session, 0)


@router.get("/sessions", response_model=SessionListResponse)
def list_sessions(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SessionListResponse:
    rows = (
        db.query(ChatSession, func.count(ChatMessage.id).label("message_count"))
        .outerjoin(ChatMessage, ChatMessage.session_id == ChatSession.id)
        .filter(ChatSession.user_id == user.id)
        .group_by(ChatSession.id)
        .order_by(ChatSession.updated_at.desc(), ChatSession.id.desc())
        .all()
    )
    return SessionListResponse(
        items=[_session_item(session, int(message_count or 0)) for session, message_count in rows]
    )


@router.get("/sessions/{session_id}", response_model=SessionDetailResponse)
def get_session(
    session_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SessionDetailResponse:
    session = _owned_session(db, user_id=user.id, session_id=session_id)
    messages = [
        MessageItem(
            id=row.id,
            sender_type=row.sender_type,
            message=row.message,
            context=_decode_context(row.context_json),
            created_at=row.created_at.isoformat(),
        )
        for row in session.messages
    ]
    return SessionDetailResponse(
        id=session.id, title=session.title, summary=session.summary, messages=messages
    )


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    session_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    session = _owned_session(db, user_id=user.id, session_id=session_id)
    db.delete(session)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/messages", response_model=ChatMessageResponse)
def send_message(
    payload: ChatMessageRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    completion_client: CompletionClient = Depends(get_completion_client),
) -> ChatMessageResponse:
    text = payload.message.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Message cannot be empty")

    if payload.session_id is not None:
        session = _owned_session(db, user_id=user.id, session_id=payload.session_id)
    else:
        session = _new_session(db, user_id=user.id)

    user_msg = ChatMessage(session_id=session.id, sender_type="user", message=text)
    db.add(user_msg)
    if session.title == DEFAULT_SESSION_TITLE:
        session.title = title_from_message(text)
    session.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(user_msg)

    history = load_history(db, session_id=session.id, exclude_message_id=user_msg.id)
    medical_context = load_medical_context(db, user.id)

    chatbot = ChatbotService(completion_client, SqlResourceStore(db))
    outcome = chatbot.generate_response(text, history, medical_context)
    if "error" in outcome.diagnostics:
        logger.warning(
            "chat_reply_degraded session_id=%s error_kind=%s",
            session.id,
            outcome.diagnostics.get("error_kind"),
        )

    bot_msg = ChatMessage(
        session_id=session.id,
        sender_type=BOT_SENDER,
        message=outcome.message_text,
        context_json=json.dumps(outcome.diagnostics, default=str),
    )
    db.add(bot_msg)
    session.updated_at = datetime.utcnow()
    db.commit()

    return ChatMessageResponse(
        session_id=session.id,
        message=outcome.message_text,
        sources=outcome.sources_payload(),
    )
