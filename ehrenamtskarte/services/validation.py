from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Tuple

from ..core.config import Settings
from ..core.errors import AccessDeniedError, FormValidationError
from ..core.logging import logger
from .records import is_checked, parse_birth_date


REQUIRED_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("nachname", "Nachname"),
    ("vorname", "Vorname"),
    ("geburtsdatum", "Geburtsdatum"),
    ("email", "E-Mail"),
    ("strasse", "Straße"),
    ("hausnummer", "Hausnummer"),
    ("plz", "PLZ"),
    ("ort", "Ort"),
)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PLZ_RE = re.compile(r"^\d{5}$")

MISSING_PASSWORD = "Bitte geben Sie das Feuerwehr-Passwort ein."
WRONG_PASSWORD = "❌ Falsches Feuerwehr-Passwort. Bitte wenden Sie sich an die Feuerwehr-Leitung."


def _value(form: Mapping[str, Any], key: str) -> str:
    value = form.get(key)
    return "" if value is None else str(value).strip()


def is_valid_email(text: str) -> bool:
    return bool(_EMAIL_RE.match((text or "").strip()))


def is_valid_plz(text: str) -> bool:
    return bool(_PLZ_RE.match((text or "").strip()))


def field_errors(form: Mapping[str, Any]) -> Dict[str, str]:
    """Per-field problems, the counterpart of the browser's built-in form checks."""
    errors: Dict[str, str] = {}
    for key, label in REQUIRED_FIELDS:
        if not _value(form, key):
            errors[key] = f"{label} ist ein Pflichtfeld."

    if "email" not in errors and not is_valid_email(_value(form, "email")):
        errors["email"] = "Bitte geben Sie eine gültige E-Mail-Adresse ein."
    if "geburtsdatum" not in errors and parse_birth_date(_value(form, "geburtsdatum")) is None:
        errors["geburtsdatum"] = "Bitte geben Sie ein gültiges Geburtsdatum ein."
    if "plz" not in errors and not is_valid_plz(_value(form, "plz")):
        errors["plz"] = "Die PLZ muss aus fünf Ziffern bestehen."
    if not is_checked(form.get("datenschutz")):
        errors["datenschutz"] = "Bitte stimmen Sie der Datenschutzerklärung zu."
    return errors


def check_access_password(form: Mapping[str, Any], settings: Settings) -> None:
    supplied = _value(form, "passwort") or _value(form, "access_password")
    if not supplied:
        raise AccessDeniedError(MISSING_PASSWORD)

    if settings.password_configured():
        if supplied != settings.access_password:
            raise AccessDeniedError(WRONG_PASSWORD)
    elif not settings.is_development:
        # Without a configured password only presence can be checked
        logger.warning("No access password configured in secrets - basic validation only")


def validate_form(form: Mapping[str, Any], settings: Settings) -> None:
    errors = field_errors(form)
    if errors:
        message = " ".join(errors.values())
        raise FormValidationError(message)
    check_access_password(form, settings)
