from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, Response
from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.errors import AuthenticationError, MissingTokenError
from ..core.status import StatusType, status_payload
from ..core.templates import templates
from ..db.session import get_db
from ..services import downloads
from ..services.exports import fetch_records
from ..services.github import TokenProvider
from ..services.local_storage import BrowserIdentity
from ..services.preferences import ThemeManager
from ..services.records import ApplicationRecord, generate_id, german_date
from ..services.statistics import (
    calculate_statistics,
    filter_records,
    monthly_chart,
    qualification_chart,
    sort_newest_first,
)
from ..services.submission import ClientFactory
from .deps import get_browser, get_client_factory, get_settings, get_supplied_token


router = APIRouter()


def load_applications(
    db: Session = Depends(get_db),
    browser: BrowserIdentity = Depends(get_browser),
    config: Settings = Depends(get_settings),
    client_factory: ClientFactory = Depends(get_client_factory),
    supplied_token: Optional[str] = Depends(get_supplied_token),
) -> List[ApplicationRecord]:
    """Fetch every stored application once per request, newest first."""
    tokens = TokenProvider(db, browser, config)
    token = tokens.get_token(supplied_token)
    if not token:
        raise MissingTokenError("Kein GitHub Token verfügbar. Bitte Token eingeben.")

    try:
        records = fetch_records(client_factory(token), config.members_path)
    except AuthenticationError:
        tokens.clear_token()
        raise
    return sort_newest_first(records)


def _row(index: int, app: ApplicationRecord, prefix: str) -> Dict[str, Any]:
    return {
        "nr": index,
        "id": generate_id(app, prefix),
        "date": german_date(app.created),
        "name": app.full_name,
        "birth_date": german_date(app.person.geburtsdatum),
        "ort": app.adresse.ort,
        "qualifications": app.qualifikationen.labels(),
        "email": app.person.email,
    }


@router.get("", response_class=HTMLResponse)
async def dashboard_page(request: Request, db: Session = Depends(get_db),
                         browser: BrowserIdentity = Depends(get_browser),
                         config: Settings = Depends(get_settings)):
    theme = ThemeManager(db, browser)
    return templates.TemplateResponse(
        request,
        "auswertung.html",
        {
            "organisation": config.organisation_name,
            "theme": theme.current_theme,
            "theme_color": theme.theme_color,
            "needs_token": not config.token_configured(),
        },
    )


@router.get("/applications")
def get_applications(
    name: str = Query(""),
    qualification: str = Query(""),
    applications: List[ApplicationRecord] = Depends(load_applications),
    config: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    filtered = filter_records(applications, name, qualification)
    return {
        "total": len(applications),
        "filtered": len(filtered),
        "last_update": german_date(applications[0].created) if applications else None,
        "applications": [_row(i, app, config.id_prefix) for i, app in enumerate(filtered, start=1)],
        "statistics": calculate_statistics(applications),
        "status": status_payload(f"✅ {len(applications)} Anmeldungen geladen", StatusType.SUCCESS),
    }


@router.get("/statistics")
def get_statistics(applications: List[ApplicationRecord] = Depends(load_applications)) -> Dict[str, Any]:
    return calculate_statistics(applications)


@router.get("/charts")
def get_charts(applications: List[ApplicationRecord] = Depends(load_applications)) -> Dict[str, Any]:
    stats = calculate_statistics(applications)
    return {"qualification": qualification_chart(stats), "monthly": monthly_chart(stats)}


@router.get("/export/{fmt}")
def export_applications(
    fmt: str,
    applications: List[ApplicationRecord] = Depends(load_applications),
    config: Settings = Depends(get_settings),
) -> Response:
    if fmt == "xlsx":
        download = downloads.export_to_excel(applications)
    elif fmt == "json":
        download = downloads.export_to_json(applications)
    elif fmt == "csv":
        download = downloads.export_to_csv(applications)
    elif fmt == "html":
        download = downloads.export_to_html(applications, config.organisation_name)
    else:
        raise HTTPException(status_code=404, detail=f"Unknown export format: {fmt}")

    return Response(
        content=download.content,
        media_type=download.media_type,
        headers={"Content-Disposition": f'attachment; filename="{download.filename}"'},
    )
