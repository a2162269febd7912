import logging
import os
import threading

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from app.routes import auth, users, machines, movements
from app.database.base import Base
from app.database.session import engine, SessionLocal
from app.core.config import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    ADMIN_NAME,
    ADMIN_ROLE,
    CORS_ORIGINS,
    CORS_ORIGIN_REGEX,
    EVENTS_SHEET,
    HISTORY_SHEET,
    ROSTER_SHEET,
    SPREADSHEET_ID,
    parse_cors_origins,
)
from app.core.auth import find_user_by_email, normalize_email
from app.core.security import get_password_hash
from app.models.user import User
from app.services.deps import get_registry
from app.services.sheet_layout import events_range
from app.services.sheets_client import RangeStoreError

logger = logging.getLogger("uvicorn.error")
app = FastAPI(title="Controle de Maquininhas")

cors_origins = parse_cors_origins(CORS_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_origin_regex=CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


@app.middleware("http")
async def ensure_utf8_json_charset(request: Request, call_next):
    response = await call_next(request)
    content_type = str(response.headers.get("content-type", ""))
    if content_type.startswith("application/json") and "charset=" not in content_type.lower():
        response.headers["content-type"] = "application/json; charset=utf-8"
    return response


def ensure_admin_user():
    if not ADMIN_EMAIL or not ADMIN_PASSWORD:
        return
    email = normalize_email(ADMIN_EMAIL)
    db = SessionLocal()
    try:
        existing = find_user_by_email(db, email)
        if existing:
            updated = False
            if ADMIN_NAME and existing.name != ADMIN_NAME:
                existing.name = ADMIN_NAME
                updated = True
            if ADMIN_ROLE and existing.role != ADMIN_ROLE:
                existing.role = ADMIN_ROLE
                updated = True
            if updated:
                db.commit()
            return
        admin = User(
            name=ADMIN_NAME,
            email=email,
            password=get_password_hash(ADMIN_PASSWORD),
            role=ADMIN_ROLE,
            permissions="[]",
        )
        db.add(admin)
        db.commit()
    finally:
        db.close()


def run_db_bootstrap() -> None:
    steps = [
        ("create_all", lambda: Base.metadata.create_all(bind=engine)),
        ("ensure_admin_user", ensure_admin_user),
    ]
    for step_name, step_fn in steps:
        try:
            step_fn()
        except Exception:  # pragma: no cover - startup hardening
            logger.exception("Falha ao executar bootstrap do banco (etapa: %s)", step_name)


_bootstrap_lock = threading.Lock()
_bootstrap_started = False


def trigger_db_bootstrap() -> None:
    global _bootstrap_started
    with _bootstrap_lock:
        if _bootstrap_started:
            return
        _bootstrap_started = True

    mode = str(os.getenv("DB_BOOTSTRAP_MODE", "sync") or "sync").strip().lower()
    if mode == "off":
        logger.info("DB bootstrap desativado (DB_BOOTSTRAP_MODE=off).")
        return
    if mode == "background":
        logger.info("Executando DB bootstrap em background.")
        threading.Thread(target=run_db_bootstrap, daemon=True, name="db-bootstrap").start()
        return

    logger.info("Executando DB bootstrap em modo sincronizado.")
    run_db_bootstrap()


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(machines.router)
app.include_router(movements.router)


@app.get("/")
def root():
    return {"message": "API de controle de maquininhas rodando!"}


@app.get("/health")
def healthcheck():
    return {"status": "ok"}


@app.get("/health/db")
def healthcheck_db():
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
    return {"status": "ok"}


@app.get("/health/sheets")
def healthcheck_sheets():
    if not SPREADSHEET_ID:
        return JSONResponse(status_code=503, content={"status": "error", "detail": "SPREADSHEET_ID nao configurado."})
    registry = get_registry()
    try:
        registry.store.get_values(events_range(registry.events_sheet))
    except RangeStoreError as exc:
        logger.warning("Planilha indisponivel no healthcheck: %s", exc)
        return JSONResponse(status_code=503, content={"status": "error", "detail": str(exc)})
    return {"status": "ok"}


@app.on_event("startup")
def startup_event():
    trigger_db_bootstrap()
    logger.info(
        "Planilha configurada: %s (abas: %s / %s / %s).",
        SPREADSHEET_ID or "-",
        ROSTER_SHEET,
        HISTORY_SHEET,
        EVENTS_SHEET,
    )
