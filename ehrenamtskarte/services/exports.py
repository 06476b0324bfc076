"""Regenerated export artifacts committed next to the member records."""

from __future__ import annotations

import csv
import io
import json
from datetime import date, datetime, timezone
from typing import Dict, List, Mapping, Optional

import requests
from pydantic import ValidationError

from ..core.config import Settings, settings as default_settings
from ..core.errors import ContentNotFoundError, GitHubAPIError
from ..core.logging import logger
from ..core.templates import render
from .github import GitHubContentsClient
from .records import (
    ApplicationRecord,
    age_in_years,
    generate_id,
    german_date,
    german_time,
    iso_timestamp,
    qualification_summary,
    record_from_payload,
    yes_no,
)
from .statistics import calculate_statistics

CSV_HEADERS = [
    "ID", "Timestamp", "Nachname", "Vorname", "Geburtsdatum", "Email", "Telefon",
    "Straße", "Hausnummer", "PLZ", "Ort",
    "MTA absolviert", "25 Jahre Dienst", "40 Jahre Dienst",
    "Qualifikationen erfüllt",
]

DETAILED_HEADERS = [
    "Eindeutige ID", "Anmeldedatum", "Anmeldezeit",
    "Nachname", "Vorname", "Geburtsdatum", "Alter",
    "E-Mail", "Telefon",
    "Straße", "Hausnummer", "PLZ", "Ort", "Vollständige Adresse",
    "MTA absolviert", "25 Jahre Dienst", "40 Jahre Dienst",
    "Anzahl erfüllte Kriterien", "Qualifikationsstatus",
    "Datenschutz zugestimmt", "Zugriff verifiziert",
]


def quoted_csv(rows: List[List[object]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def fetch_records(client: GitHubContentsClient, folder: str) -> List[ApplicationRecord]:
    """Load every member JSON file; a missing folder means no records yet."""
    try:
        entries = client.list_directory(folder)
    except ContentNotFoundError:
        logger.info(f"No records folder '{folder}' yet")
        return []

    records = []
    for entry in entries:
        name = entry.get("name", "")
        if not name.endswith(".json"):
            continue
        try:
            payload = client.download(entry)
            if not isinstance(payload, Mapping):
                raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
            records.append(record_from_payload(payload))
        except (GitHubAPIError, requests.RequestException, ValueError, ValidationError) as e:
            logger.warning(f"Failed to load {name}: {e}")
    return records


class ExportGenerator:
    def __init__(self, client: GitHubContentsClient, settings: Settings = default_settings):
        self.client = client
        self.settings = settings

    def fetch_all_applications(self) -> List[ApplicationRecord]:
        return fetch_records(self.client, self.settings.members_path)

    def record_id(self, record: ApplicationRecord) -> str:
        return generate_id(record, self.settings.id_prefix)

    def build_json_export(self, applications: List[ApplicationRecord], now: Optional[datetime] = None) -> str:
        export = {
            "generated": iso_timestamp(now),
            "total": len(applications),
            "applications": [
                {
                    **app.to_json_dict(),
                    "id": self.record_id(app),
                    "qualification_summary": qualification_summary(app),
                }
                for app in applications
            ],
        }
        return json.dumps(export, indent=2, ensure_ascii=False)

    def build_csv_export(self, applications: List[ApplicationRecord]) -> str:
        rows: List[List[object]] = [CSV_HEADERS]
        for app in applications:
            p, a, q = app.person, app.adresse, app.qualifikationen
            rows.append([
                self.record_id(app), app.timestamp,
                p.nachname, p.vorname, p.geburtsdatum, p.email, p.telefon,
                a.strasse, a.hausnummer, a.plz, a.ort,
                yes_no(q.mta_absolviert), yes_no(q.dienstjahre_25), yes_no(q.dienstjahre_40),
                qualification_summary(app),
            ])
        return quoted_csv(rows)

    def build_html_export(self, applications: List[ApplicationRecord], now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        return render(
            "exports/overview.html",
            applications=applications,
            stats=calculate_statistics(applications),
            organisation=self.settings.organisation_name,
            generated=f"{german_date(now)}, {german_time(now)}",
        )

    def build_detailed_csv(self, applications: List[ApplicationRecord], today: Optional[date] = None) -> str:
        rows: List[List[object]] = [DETAILED_HEADERS]
        for app in applications:
            p, a, q = app.person, app.adresse, app.qualifikationen
            created = app.created
            age = age_in_years(app, today)
            count = app.qualification_count
            rows.append([
                self.record_id(app), german_date(created), german_time(created),
                p.nachname, p.vorname, p.geburtsdatum, "" if age is None else age,
                p.email, p.telefon,
                a.strasse, a.hausnummer, a.plz, a.ort, app.full_address,
                yes_no(q.mta_absolviert), yes_no(q.dienstjahre_25), yes_no(q.dienstjahre_40),
                count, "Berechtigt" if count > 0 else "Nicht berechtigt",
                yes_no(app.consent.datenschutz), yes_no(app.meta.access_verified),
            ])
        return quoted_csv(rows)

    def generate(self, new_record: Optional[ApplicationRecord] = None) -> Dict[str, str]:
        """Rebuild all artifacts; each one is committed on its own."""
        applications = self.fetch_all_applications()
        if new_record is not None and not any(
            app.timestamp == new_record.timestamp and app.person.email == new_record.person.email
            for app in applications
        ):
            applications.append(new_record)

        total = len(applications)
        base = self.settings.exports_path
        artifacts = [
            (f"{base}/all_members.json", lambda: self.build_json_export(applications),
             f"📊 Update JSON export - {total} members"),
            (f"{base}/all_members.csv", lambda: self.build_csv_export(applications),
             f"📊 Update CSV export - {total} members"),
            (f"{base}/overview.html", lambda: self.build_html_export(applications),
             f"📊 Update HTML overview - {total} members"),
            (f"{base}/detailed_export.csv", lambda: self.build_detailed_csv(applications),
             f"📊 Update detailed Excel-compatible export - {total} members"),
        ]

        report: Dict[str, str] = {}
        for path, build, message in artifacts:
            try:
                self.client.upsert_file(path, build(), message)
                report[path] = "ok"
            except (GitHubAPIError, requests.RequestException) as e:
                logger.error(f"Failed to update {path}: {e}")
                report[path] = str(e)

        logger.info(f"Export generation finished for {total} members")
        return report
