from __future__ import annotations

import io
import json
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import List, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

from ..core.templates import render
from .exports import quoted_csv
from .records import ApplicationRecord, german_date
from .statistics import calculate_statistics

DOWNLOAD_COLUMNS = ["Datum", "Vorname", "Nachname", "Geburtsdatum", "E-Mail",
                    "Telefon", "Straße", "PLZ", "Ort", "Qualifikationen"]
SHEET_TITLE = "Ehrenamtskarte Anmeldungen"


@dataclass
class DownloadFile:
    content: bytes
    filename: str
    media_type: str


def filename_date(today: Optional[date] = None) -> str:
    return (today or date.today()).isoformat()


def _row(app: ApplicationRecord, separator: str) -> List[str]:
    return [
        german_date(app.created),
        app.person.vorname,
        app.person.nachname,
        app.person.geburtsdatum,
        app.person.email,
        app.person.telefon,
        app.adresse.strasse,
        app.adresse.plz,
        app.adresse.ort,
        separator.join(app.qualifikationen.labels()),
    ]


def export_to_excel(applications: List[ApplicationRecord], today: Optional[date] = None) -> DownloadFile:
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE[:31]

    ws.append(DOWNLOAD_COLUMNS)
    header_fill = PatternFill("solid", fgColor="E53E3E")
    for cell in ws[1]:
        cell.font = Font(bold=True, color="FFFFFF")
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center", vertical="center")

    for app in applications:
        ws.append(_row(app, ", "))

    for column in ws.columns:
        width = max(len(str(cell.value or "")) for cell in column)
        ws.column_dimensions[column[0].column_letter].width = min(max(width + 2, 10), 50)
    ws.freeze_panes = "A2"

    buffer = io.BytesIO()
    wb.save(buffer)
    return DownloadFile(
        content=buffer.getvalue(),
        filename=f"Ehrenamtskarte_Anmeldungen_{filename_date(today)}.xlsx",
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


def export_to_json(applications: List[ApplicationRecord], today: Optional[date] = None) -> DownloadFile:
    data = json.dumps([app.to_json_dict() for app in applications], indent=2, ensure_ascii=False)
    return DownloadFile(
        content=data.encode("utf-8"),
        filename=f"Ehrenamtskarte_Anmeldungen_{filename_date(today)}.json",
        media_type="application/json",
    )


def export_to_csv(applications: List[ApplicationRecord], today: Optional[date] = None) -> DownloadFile:
    rows = [DOWNLOAD_COLUMNS] + [_row(app, "; ") for app in applications]
    return DownloadFile(
        content=quoted_csv(rows).encode("utf-8"),
        filename=f"Ehrenamtskarte_Anmeldungen_{filename_date(today)}.csv",
        media_type="text/csv",
    )


def export_to_html(applications: List[ApplicationRecord], organisation: str,
                   today: Optional[date] = None) -> DownloadFile:
    html = render(
        "exports/report.html",
        applications=applications,
        stats=calculate_statistics(applications),
        organisation=organisation,
        generated=german_date(datetime.now(timezone.utc)),
    )
    return DownloadFile(
        content=html.encode("utf-8"),
        filename=f"Ehrenamtskarte_Bericht_{filename_date(today)}.html",
        media_type="text/html",
    )
