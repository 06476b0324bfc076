from __future__ import annotations

from typing import Any, Dict, Mapping

from sqlalchemy.orm import Session

from ..core.logging import logger
from .local_storage import DRAFT_KEY, BrowserIdentity, get_item, remove_item, set_item
from .records import is_checked

# Never mirrored into the draft slot
SECRET_FIELDS = {"passwort", "access_password", "github_token"}
CHECKBOX_FIELDS = {"mta_absolviert", "dienstjahre_25", "dienstjahre_40", "datenschutz"}


class DraftStore:
    """Single-slot shadow copy of the form while it is being filled in."""

    def __init__(self, db: Session, browser: BrowserIdentity):
        self.db = db
        self.browser = browser

    def save_draft(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for key, value in fields.items():
            if key in SECRET_FIELDS:
                continue
            if key == "qualifikationen":
                if isinstance(value, str):
                    value = [value]
                data[key] = [str(v) for v in (value or [])]
            elif isinstance(value, bool) or value is None:
                data[key] = value
            else:
                data[key] = str(value)
        set_item(self.db, self.browser, DRAFT_KEY, data)
        return data

    def restore_draft(self) -> Dict[str, Any]:
        raw = get_item(self.db, self.browser, DRAFT_KEY)
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            logger.warning("Fehler beim Wiederherstellen des Entwurfs: unreadable draft slot")
            return {}

        restored: Dict[str, Any] = {}
        for key, value in raw.items():
            if key in CHECKBOX_FIELDS:
                restored[key] = is_checked(value)
            else:
                restored[key] = value
        logger.info("Entwurf wiederhergestellt")
        return restored

    def clear_draft(self) -> None:
        remove_item(self.db, self.browser, DRAFT_KEY)
