"""
Schneller Durchlauf gegen einen laufenden Server: Entwurf, Vorschau, Absenden, Auswertung.

Voraussetzungen:
- Server läuft lokal (uvicorn ehrenamtskarte.main:app).
- ACCESS_PASSWORD und GITHUB_TOKEN sind gesetzt, oder werden hier übergeben.

Aufruf:
    python scripts/check_registration_flow.py
    BASE_URL=http://localhost:8000 ACCESS_PASSWORD=geheim GITHUB_TOKEN=ghp_xxx python scripts/check_registration_flow.py

Achtung: "Absenden" legt einen echten Eintrag im Data-Branch an.
"""

import os
from datetime import datetime

import requests

BASE_URL = os.environ.get("BASE_URL", "http://localhost:8000")


def sample_form() -> dict:
    stamp = datetime.now().strftime("%H%M%S")
    return {
        "nachname": f"Probe{stamp}",
        "vorname": "Test",
        "geburtsdatum": "1985-04-01",
        "email": f"probe{stamp}@example.de",
        "telefon": "",
        "strasse": "Teststraße",
        "hausnummer": "1",
        "plz": "83512",
        "ort": "Hamberg",
        "mta_absolviert": "on",
        "datenschutz": "on",
        "passwort": os.environ.get("ACCESS_PASSWORD", ""),
    }


def show(title: str, resp: requests.Response) -> None:
    print(f"\n### {title}")
    print(f"Status: {resp.status_code} | Body: {resp.text[:500]}")


def main() -> None:
    headers = {}
    if os.environ.get("GITHUB_TOKEN"):
        headers["X-GitHub-Token"] = os.environ["GITHUB_TOKEN"]

    form = sample_form()
    show("Entwurf speichern", requests.put(f"{BASE_URL}/draft", json=form, timeout=5))
    show("Entwurf laden", requests.get(f"{BASE_URL}/draft", timeout=5))
    show("Vorschau", requests.post(f"{BASE_URL}/preview", json=form, timeout=5))
    show("Falsches Passwort (403 erwartet)",
         requests.post(f"{BASE_URL}/preview", json={**form, "passwort": "falsch"}, timeout=5))
    show("Absenden", requests.post(f"{BASE_URL}/submit", json=form, headers=headers, timeout=60))
    show("Erneut absenden (409 erwartet)",
         requests.post(f"{BASE_URL}/submit", json=form, headers=headers, timeout=60))
    show("Auswertung", requests.get(f"{BASE_URL}/auswertung/statistics", headers=headers, timeout=30))


if __name__ == "__main__":
    main()
