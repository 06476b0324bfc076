from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.config import Settings
from ..core.errors import AuthenticationError, MissingTokenError
from ..core.status import StatusType, status_payload
from ..db.session import get_db
from ..services.content import MarkdownContentManager
from ..services.exports import ExportGenerator
from ..services.github import TokenProvider
from ..services.local_storage import BrowserIdentity
from ..services.submission import ClientFactory
from .deps import get_browser, get_client_factory, get_content, get_settings, get_supplied_token


router = APIRouter()


@router.post("/exports")
def regenerate_exports(
    db: Session = Depends(get_db),
    browser: BrowserIdentity = Depends(get_browser),
    config: Settings = Depends(get_settings),
    client_factory: ClientFactory = Depends(get_client_factory),
    supplied_token: Optional[str] = Depends(get_supplied_token),
) -> Dict[str, Any]:
    """Rebuild the JSON/CSV/HTML export artifacts from the stored records."""
    tokens = TokenProvider(db, browser, config)
    token = tokens.get_token(supplied_token)
    if not token:
        raise MissingTokenError("Kein GitHub Token verfügbar.")

    try:
        report = ExportGenerator(client_factory(token), config).generate()
    except AuthenticationError:
        tokens.clear_token()
        raise

    failed = [path for path, outcome in report.items() if outcome != "ok"]
    if failed:
        status = status_payload(f"⚠️ {len(failed)} Export(e) fehlgeschlagen", StatusType.ERROR)
    else:
        status = status_payload("✅ Alle Exporte aktualisiert", StatusType.SUCCESS)
    return {"ok": not failed, "report": report, "status": status}


@router.post("/content/reload")
async def reload_content(content: MarkdownContentManager = Depends(get_content)) -> Dict[str, Any]:
    loaded = content.reload()
    return {"loaded": loaded, "cards": len(content.info_cards())}


@router.get("/config-status")
async def get_config_status(
    db: Session = Depends(get_db),
    browser: BrowserIdentity = Depends(get_browser),
    config: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """Which secrets are configured; never returns the secrets themselves."""
    return {
        "repository": f"{config.repo_owner}/{config.repo_name}",
        "branch": config.data_branch,
        "token_configured": config.token_configured(),
        "uses_master_token": config.uses_master_token,
        "password_configured": config.password_configured(),
        "environment": config.environment,
        "notices": TokenProvider(db, browser, config).configuration_status(),
    }
