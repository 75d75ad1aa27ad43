from fastapi import FastAPI

from app.api.auth import router as auth_router
from app.api.chat import router as chat_router
from app.api.metrics import router as metrics_router
from app.api.profile import router as profile_router
from app.api.resources import router as resources_router
from app.db.session import create_tables

app = FastAPI(title="DiaX Diabetes Companion")


@app.on_event("startup")
def on_startup() -> None:
    create_tables()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api")
def api_root() -> dict[str, str]:
    return {"service": "DiaX Diabetes Companion API", "status": "ok"}


app.include_router(auth_router)
app.include_router(profile_router)
app.include_router(metrics_router)
app.include_router(resources_router)
app.include_router(chat_router)
