from datetime import timedelta
from pathlib import Path
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .core.config import settings
from .core.errors import RegistrationError
from .core.logging import logger
from .core.responses import UTF8JSONResponse
from .core.status import StatusType, status_payload
from .db.base import Base
from .db.session import SessionLocal, engine
from .api import admin, dashboard, registration
from .services.local_storage import BrowserIdentity, purge_stale_sessions

STATIC_DIR = Path(__file__).resolve().parent / "static"

# Local storage tables; there are no migrations for this single table
if settings.auto_create_db:
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("AUTO_CREATE_DB enabled: tables created via metadata.")
    except Exception as e:
        logger.error(f"Error creating database tables with AUTO_CREATE_DB: {e}")
        raise

# Create FastAPI app
app = FastAPI(
    title="Ehrenamtskarte - Feuerwehr Hamberg",
    description="Anmeldung und Auswertung für die Ehrenamtskarte",
    version="2.0.0",
    default_response_class=UTF8JSONResponse,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify allowed origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def browser_identity(request: Request, call_next):
    """Give every browser its own storage: a long-lived id and a browser-session id."""
    client_id = request.cookies.get(settings.client_cookie)
    session_id = request.cookies.get(settings.session_cookie)
    request.state.browser = BrowserIdentity(
        local_id=client_id or uuid4().hex,
        session_id=session_id or uuid4().hex,
    )

    response = await call_next(request)
    if not client_id:
        response.set_cookie(
            settings.client_cookie, request.state.browser.local_id,
            max_age=settings.client_cookie_max_age, httponly=True, samesite="lax",
        )
    if not session_id:
        # No max_age: the cookie ends with the browser session
        response.set_cookie(
            settings.session_cookie, request.state.browser.session_id,
            httponly=True, samesite="lax",
        )
    return response


app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

# Include routers
app.include_router(registration.router, tags=["registration"])
app.include_router(dashboard.router, prefix="/auswertung", tags=["auswertung"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])


@app.exception_handler(RegistrationError)
async def registration_error_handler(request: Request, exc: RegistrationError) -> UTF8JSONResponse:
    """Every known failure ends up in the status overlay of the page."""
    message = exc.message if exc.message.startswith("❌") else f"❌ Fehler: {exc.message}"
    return UTF8JSONResponse(
        {"ok": False, "status": status_payload(message, StatusType.ERROR)},
        status_code=exc.status_code,
    )


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.on_event("startup")
async def startup_event():
    """Application startup event."""
    logger.info("Starting Ehrenamtskarte application...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Repository: {settings.repo_owner}/{settings.repo_name}@{settings.data_branch}")

    db = SessionLocal()
    try:
        removed = purge_stale_sessions(db, timedelta(hours=settings.session_ttl_hours))
        logger.info(f"Removed {removed} stale session storage item(s)")
    finally:
        db.close()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event."""
    logger.info("Shutting down Ehrenamtskarte application...")
