from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.logging import logger
from ..core.status import StatusType, status_payload
from ..core.templates import templates
from ..db.session import get_db
from ..services.content import MarkdownContentManager
from ..services.drafts import DraftStore
from ..services.github import TokenProvider
from ..services.local_storage import BrowserIdentity
from ..services.preferences import TabManager, ThemeManager
from ..services.records import collect_form_data, preview
from ..services.submission import SUCCESS_MESSAGE, ClientFactory, SubmissionPipeline
from ..services.validation import validate_form
from .deps import get_browser, get_client_factory, get_content, get_settings, get_supplied_token


router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def registration_page(
    request: Request,
    db: Session = Depends(get_db),
    browser: BrowserIdentity = Depends(get_browser),
    config: Settings = Depends(get_settings),
    content: MarkdownContentManager = Depends(get_content),
):
    """Registration form with the info tab."""
    theme = ThemeManager(db, browser)
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "organisation": config.organisation_name,
            "content": content.page_context(),
            "draft": DraftStore(db, browser).restore_draft(),
            "theme": theme.current_theme,
            "theme_color": theme.theme_color,
            "active_tab": TabManager(db, browser).active_tab,
            "notices": TokenProvider(db, browser, config).configuration_status(),
            "needs_token": not config.token_configured(),
        },
    )


@router.get("/content")
async def get_page_content(content: MarkdownContentManager = Depends(get_content)) -> Dict[str, Any]:
    return content.page_context()


@router.get("/draft")
async def get_draft(
    db: Session = Depends(get_db),
    browser: BrowserIdentity = Depends(get_browser),
) -> Dict[str, Any]:
    return {"draft": DraftStore(db, browser).restore_draft()}


@router.put("/draft")
async def save_draft(
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    browser: BrowserIdentity = Depends(get_browser),
) -> Dict[str, Any]:
    """Autosave, called by the page on every input event."""
    return {"draft": DraftStore(db, browser).save_draft(payload)}


@router.delete("/draft")
async def delete_draft(
    db: Session = Depends(get_db),
    browser: BrowserIdentity = Depends(get_browser),
) -> Dict[str, Any]:
    DraftStore(db, browser).clear_draft()
    return {"ok": True}


@router.post("/reset")
async def reset_form(
    db: Session = Depends(get_db),
    browser: BrowserIdentity = Depends(get_browser),
) -> Dict[str, Any]:
    DraftStore(db, browser).clear_draft()
    logger.info("Formular zurückgesetzt")
    return {"ok": True, "status": status_payload("Formular zurückgesetzt.", StatusType.INFO)}


@router.post("/preview")
async def preview_application(
    payload: Dict[str, Any] = Body(...),
    config: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    validate_form(payload, config)
    record = collect_form_data(payload)
    return {
        "ok": True,
        "preview": [{"label": label, "value": value} for label, value in preview(record)],
        "status": status_payload("Bitte prüfen Sie die Daten in der Vorschau.", StatusType.INFO),
    }


@router.post("/submit")
def submit_application(
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    browser: BrowserIdentity = Depends(get_browser),
    config: Settings = Depends(get_settings),
    client_factory: ClientFactory = Depends(get_client_factory),
    header_token: Optional[str] = Depends(get_supplied_token),
) -> Dict[str, Any]:
    supplied = header_token or payload.get("github_token")
    pipeline = SubmissionPipeline(db, config, client_factory, browser=browser)
    result = pipeline.submit(payload, supplied_token=supplied)
    return {
        "ok": True,
        "filename": result.filename,
        "path": result.path,
        "log_written": result.log_written,
        "exports": result.exports,
        "status": status_payload(SUCCESS_MESSAGE, StatusType.SUCCESS),
    }


@router.get("/theme")
async def get_theme(
    db: Session = Depends(get_db),
    browser: BrowserIdentity = Depends(get_browser),
) -> Dict[str, str]:
    theme = ThemeManager(db, browser)
    return {"theme": theme.current_theme, "theme_color": theme.theme_color}


@router.post("/theme/toggle")
async def toggle_theme(
    db: Session = Depends(get_db),
    browser: BrowserIdentity = Depends(get_browser),
) -> Dict[str, str]:
    theme = ThemeManager(db, browser)
    theme.toggle()
    return {"theme": theme.current_theme, "theme_color": theme.theme_color}


@router.post("/theme/{name}")
async def set_theme(
    name: str,
    db: Session = Depends(get_db),
    browser: BrowserIdentity = Depends(get_browser),
) -> Dict[str, str]:
    theme = ThemeManager(db, browser)
    try:
        theme.apply_theme(name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"theme": theme.current_theme, "theme_color": theme.theme_color}


@router.post("/tabs/{name}")
async def show_tab(
    name: str,
    db: Session = Depends(get_db),
    browser: BrowserIdentity = Depends(get_browser),
) -> Dict[str, str]:
    return {"active_tab": TabManager(db, browser).show_tab(name)}
