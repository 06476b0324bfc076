from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..db import models

DRAFT_KEY = "ff_hamberg_v2_draft"
TOKEN_KEY = "ff_hamberg_github_token"
THEME_KEY = "ff-theme"
TAB_KEY = "ff-active-tab"


@dataclass(frozen=True)
class BrowserIdentity:
    """Ids from the visitor's cookies: one per browser, one per browser session."""

    local_id: str
    session_id: str

    def owner(self, scope: models.StorageScope) -> str:
        if models.StorageScope(scope) == models.StorageScope.SESSION:
            return self.session_id
        return self.local_id


def _find(db: Session, browser: BrowserIdentity, key: str,
          scope: models.StorageScope) -> Optional[models.StorageItem]:
    return (
        db.query(models.StorageItem)
        .filter(
            models.StorageItem.client_id == browser.owner(scope),
            models.StorageItem.key == key,
        )
        .first()
    )


def get_item(
    db: Session,
    browser: BrowserIdentity,
    key: str,
    default: Any = None,
    *,
    scope: models.StorageScope = models.StorageScope.LOCAL,
) -> Any:
    row = _find(db, browser, key, scope)
    if row is None or row.value is None:
        return default
    return row.value


def set_item(
    db: Session,
    browser: BrowserIdentity,
    key: str,
    value: Any,
    *,
    scope: models.StorageScope = models.StorageScope.LOCAL,
) -> models.StorageItem:
    row = _find(db, browser, key, scope)
    if row is None:
        row = models.StorageItem(
            client_id=browser.owner(scope),
            key=key,
            scope=models.StorageScope(scope).value,
        )
        db.add(row)
    row.value = value
    db.commit()
    db.refresh(row)
    return row


def remove_item(
    db: Session,
    browser: BrowserIdentity,
    key: str,
    *,
    scope: models.StorageScope = models.StorageScope.LOCAL,
) -> bool:
    row = _find(db, browser, key, scope)
    if row is None:
        return False
    db.delete(row)
    db.commit()
    return True


def clear_scope(db: Session, browser: BrowserIdentity, scope: models.StorageScope) -> int:
    removed = (
        db.query(models.StorageItem)
        .filter(
            models.StorageItem.client_id == browser.owner(scope),
            models.StorageItem.scope == models.StorageScope(scope).value,
        )
        .delete()
    )
    db.commit()
    return removed


def purge_stale_sessions(db: Session, max_age: timedelta, now: Optional[datetime] = None) -> int:
    """Drop session-scope rows not touched within max_age; their browser session is gone."""
    cutoff = (now or datetime.utcnow()) - max_age
    removed = (
        db.query(models.StorageItem)
        .filter(
            models.StorageItem.scope == models.StorageScope.SESSION.value,
            models.StorageItem.updated_at < cutoff,
        )
        .delete()
    )
    db.commit()
    return removed
