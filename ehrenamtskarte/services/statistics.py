from __future__ import annotations

from collections import Counter
from typing import Any, Dict, Iterable, List

from .records import QUALIFICATIONS, ApplicationRecord

GERMAN_MONTHS = ("Jan.", "Feb.", "März", "Apr.", "Mai", "Juni",
                 "Juli", "Aug.", "Sept.", "Okt.", "Nov.", "Dez.")
CHART_COLORS = ("#E53E3E", "#3182CE", "#38A169")


def sort_newest_first(records: Iterable[ApplicationRecord]) -> List[ApplicationRecord]:
    return sorted(records, key=lambda r: r.created, reverse=True)


def calculate_statistics(records: List[ApplicationRecord]) -> Dict[str, Any]:
    monthly: Counter = Counter(r.created.strftime("%Y-%m") for r in records)
    return {
        "total": len(records),
        "with_mta": sum(1 for r in records if r.qualifikationen.mta_absolviert),
        "with_25_years": sum(1 for r in records if r.qualifikationen.dienstjahre_25),
        "with_40_years": sum(1 for r in records if r.qualifikationen.dienstjahre_40),
        "qualified": sum(1 for r in records if r.qualification_count > 0),
        "monthly": dict(sorted(monthly.items())),
    }


def month_label(month: str) -> str:
    """'2026-10' -> 'Okt. 2026'."""
    year, number = month.split("-")
    return f"{GERMAN_MONTHS[int(number) - 1]} {year}"


def qualification_chart(stats: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "doughnut",
        "data": {
            "labels": [label for _, _, label in QUALIFICATIONS],
            "datasets": [{
                "data": [stats["with_mta"], stats["with_25_years"], stats["with_40_years"]],
                "backgroundColor": list(CHART_COLORS),
                "borderWidth": 2,
                "borderColor": "#fff",
            }],
        },
        "options": {"responsive": True, "plugins": {"legend": {"position": "bottom"}}},
    }


def monthly_chart(stats: Dict[str, Any], months: int = 12) -> Dict[str, Any]:
    monthly = stats["monthly"]
    selected = sorted(monthly)[-months:]
    return {
        "type": "bar",
        "data": {
            "labels": [month_label(m) for m in selected],
            "datasets": [{
                "label": "Anmeldungen",
                "data": [monthly[m] for m in selected],
                "backgroundColor": "#E53E3E",
                "borderColor": "#C53030",
                "borderWidth": 1,
            }],
        },
        "options": {
            "responsive": True,
            "scales": {"y": {"beginAtZero": True, "ticks": {"stepSize": 1}}},
        },
    }


def _matches_qualification(record: ApplicationRecord, qualification: str) -> bool:
    wanted = qualification.strip().lower()
    for key, short, label in QUALIFICATIONS:
        if wanted in (key, short.lower(), label.lower()):
            return getattr(record.qualifikationen, key)
    return False


def filter_records(records: List[ApplicationRecord], name: str = "", qualification: str = "") -> List[ApplicationRecord]:
    name = (name or "").strip().lower()
    qualification = (qualification or "").strip()

    result = []
    for record in records:
        if name and name not in record.person.vorname.lower() and name not in record.person.nachname.lower():
            continue
        if qualification and not _matches_qualification(record, qualification):
            continue
        result.append(record)
    return result
