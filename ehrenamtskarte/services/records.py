"""Application records: shape, collection from form fields and derived values."""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

# (flag key, short label used by the exports, label used by the dashboard)
QUALIFICATIONS: Tuple[Tuple[str, str, str], ...] = (
    ("mta_absolviert", "MTA", "Truppmann"),
    ("dienstjahre_25", "25 Jahre", "25 Jahre aktiv"),
    ("dienstjahre_40", "40 Jahre", "40 Jahre aktiv"),
)

_CHECKED_VALUES = {"on", "true", "1", "yes", "ja", "x"}
_UMLAUTS = {"ä": "ae", "ö": "oe", "ü": "ue", "ß": "ss"}


class Person(BaseModel):
    nachname: str = ""
    vorname: str = ""
    geburtsdatum: str = ""
    email: str = ""
    telefon: str = ""


class Address(BaseModel):
    strasse: str = ""
    hausnummer: str = ""
    plz: str = ""
    ort: str = ""


class Qualifications(BaseModel):
    mta_absolviert: bool = False
    dienstjahre_25: bool = False
    dienstjahre_40: bool = False

    def flags(self) -> List[str]:
        return [key for key, _, _ in QUALIFICATIONS if getattr(self, key)]

    def short_labels(self) -> List[str]:
        return [short for key, short, _ in QUALIFICATIONS if getattr(self, key)]

    def labels(self) -> List[str]:
        return [label for key, _, label in QUALIFICATIONS if getattr(self, key)]


class Consent(BaseModel):
    datenschutz: bool = False


class Meta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_verified: bool = Field(default=False, alias="accessVerified")


class ApplicationRecord(BaseModel):
    timestamp: str
    person: Person = Field(default_factory=Person)
    adresse: Address = Field(default_factory=Address)
    qualifikationen: Qualifications = Field(default_factory=Qualifications)
    consent: Consent = Field(default_factory=Consent)
    meta: Meta = Field(default_factory=Meta)

    @property
    def created(self) -> datetime:
        return parse_timestamp(self.timestamp) or datetime.fromtimestamp(0, tz=timezone.utc)

    @property
    def full_name(self) -> str:
        return f"{self.person.vorname} {self.person.nachname}".strip()

    @property
    def full_address(self) -> str:
        a = self.adresse
        return f"{a.strasse} {a.hausnummer}, {a.plz} {a.ort}"

    @property
    def qualification_count(self) -> int:
        return len(self.qualifikationen.flags())

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def is_checked(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _CHECKED_VALUES


def _text(form: Mapping[str, Any], key: str) -> str:
    value = form.get(key)
    if value is None or isinstance(value, bool):
        return ""
    return str(value).strip()


def iso_timestamp(now: Optional[datetime] = None) -> str:
    """UTC timestamp with millisecond precision and a trailing Z."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc).replace(tzinfo=None)
    return now.isoformat(timespec="milliseconds") + "Z"


def parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not value:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def parse_birth_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat((value or "").strip())
    except ValueError:
        return None


def qualification_flags_from_list(values: Any) -> Dict[str, bool]:
    """Map a list of checkbox values or labels onto the qualification flags."""
    if isinstance(values, str):
        values = [values]
    wanted = {str(v).strip().lower() for v in (values or [])}
    flags = {}
    for key, short, label in QUALIFICATIONS:
        flags[key] = bool(wanted & {key, short.lower(), label.lower()})
    return flags


def collect_form_data(form: Mapping[str, Any], now: Optional[datetime] = None) -> ApplicationRecord:
    """Read submitted form fields into a structured record."""
    qualifications = {key: is_checked(form.get(key)) for key, _, _ in QUALIFICATIONS}
    if form.get("qualifikationen"):
        listed = qualification_flags_from_list(form.get("qualifikationen"))
        qualifications = {k: v or listed[k] for k, v in qualifications.items()}

    password = _text(form, "passwort") or _text(form, "access_password")

    return ApplicationRecord(
        timestamp=iso_timestamp(now),
        person=Person(
            nachname=_text(form, "nachname"),
            vorname=_text(form, "vorname"),
            geburtsdatum=_text(form, "geburtsdatum"),
            email=_text(form, "email"),
            telefon=_text(form, "telefon"),
        ),
        adresse=Address(
            strasse=_text(form, "strasse"),
            hausnummer=_text(form, "hausnummer"),
            plz=_text(form, "plz"),
            ort=_text(form, "ort"),
        ),
        qualifikationen=Qualifications(**qualifications),
        consent=Consent(datenschutz=is_checked(form.get("datenschutz"))),
        meta=Meta(access_verified=bool(password)),
    )


def record_from_payload(data: Mapping[str, Any]) -> ApplicationRecord:
    """Accept both the nested record layout and the older flat layout."""
    if "person" in data:
        return ApplicationRecord.model_validate(dict(data))

    raw_quals = data.get("qualifikationen")
    if isinstance(raw_quals, Mapping):
        quals = {key: is_checked(raw_quals.get(key)) for key, _, _ in QUALIFICATIONS}
    else:
        quals = qualification_flags_from_list(raw_quals)

    return ApplicationRecord(
        timestamp=str(data.get("timestamp") or ""),
        person=Person(**{k: str(data.get(k) or "") for k in Person.model_fields}),
        adresse=Address(**{k: str(data.get(k) or "") for k in Address.model_fields}),
        qualifikationen=Qualifications(**quals),
        consent=Consent(datenschutz=is_checked(data.get("datenschutz"))),
    )


def duplicate_stem(record: ApplicationRecord) -> str:
    return f"member-{record.person.nachname}-{record.person.vorname}".lower()


def record_filename(record: ApplicationRecord) -> str:
    stamp = re.sub(r"[:.]", "-", record.timestamp)
    return f"member-{record.person.nachname}-{record.person.vorname}-{stamp}.json"


def generate_id(record: ApplicationRecord, prefix: str = "FF_HAM") -> str:
    date_str = record.created.strftime("%Y%m%d")
    name = f"{record.person.nachname}_{record.person.vorname}".lower()
    name = "".join(_UMLAUTS.get(ch, ch) for ch in name)
    name = re.sub(r"[^a-z]", "", name)
    return f"{prefix}_{date_str}_{name}"


def qualification_summary(record: ApplicationRecord) -> str:
    labels = record.qualifikationen.short_labels()
    return ", ".join(labels) if labels else "Keine Qualifikationen"


def age_in_years(record: ApplicationRecord, today: Optional[date] = None) -> Optional[int]:
    born = parse_birth_date(record.person.geburtsdatum)
    if born is None:
        return None
    today = today or date.today()
    return today.year - born.year


def yes_no(flag: bool) -> str:
    return "Ja" if flag else "Nein"


def german_date(value: Any) -> str:
    """Format like toLocaleDateString('de-DE'): 5.1.2026."""
    if isinstance(value, str):
        value = parse_timestamp(value) or parse_birth_date(value)
    if value is None:
        return ""
    return f"{value.day}.{value.month}.{value.year}"


def german_time(value: datetime) -> str:
    return value.strftime("%H:%M:%S")


def preview(record: ApplicationRecord) -> List[Tuple[str, str]]:
    """Labelled lines shown in the confirmation dialog before submitting."""
    q = record.qualifikationen
    return [
        ("Name", record.full_name),
        ("Geburtsdatum", record.person.geburtsdatum),
        ("E-Mail", record.person.email),
        ("Telefon", record.person.telefon),
        ("Adresse", record.full_address),
        ("MTA", yes_no(q.mta_absolviert)),
        ("25 Jahre", yes_no(q.dienstjahre_25)),
        ("40 Jahre", yes_no(q.dienstjahre_40)),
    ]
