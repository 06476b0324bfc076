import json

import requests
from fastapi.testclient import TestClient

from ehrenamtskarte.api.deps import get_settings
from ehrenamtskarte.core.config import Settings
from ehrenamtskarte.db.models import StorageScope
from ehrenamtskarte.main import app
from ehrenamtskarte.services.local_storage import TOKEN_KEY, get_item, set_item

from .conftest import browser_of


def test_health(api_client):
    assert api_client.get("/health").json() == {"status": "ok"}


def test_registration_page_renders_content(api_client):
    response = api_client.get("/")

    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert "Anmeldung absenden" in response.text
    assert "Adresse &amp; Kontakt" in response.text
    assert "Was ist die Ehrenamtskarte?" in response.text
    assert 'name="github_token"' not in response.text


def test_registration_page_prefills_draft(api_client):
    api_client.put("/draft", json={"vorname": "Eva", "mta_absolviert": "on"})
    html = api_client.get("/").text

    assert 'value="Eva"' in html
    assert 'id="mta_absolviert" checked' in html


def test_draft_endpoints(api_client):
    saved = api_client.put("/draft", json={"vorname": "Eva", "passwort": "geheim"}).json()
    assert saved == {"draft": {"vorname": "Eva"}}
    assert api_client.get("/draft").json() == {"draft": {"vorname": "Eva"}}

    assert api_client.delete("/draft").json() == {"ok": True}
    assert api_client.get("/draft").json() == {"draft": {}}


def test_reset_clears_draft(api_client):
    api_client.put("/draft", json={"vorname": "Eva"})
    body = api_client.post("/reset").json()

    assert body["status"] == {"message": "Formular zurückgesetzt.", "type": "info"}
    assert api_client.get("/draft").json() == {"draft": {}}


def test_content_endpoint(api_client):
    body = api_client.get("/content").json()
    assert body["hero"]["title"] == "Ehrenamtskarte"
    assert len(body["info_cards"]) == 6


def test_preview(api_client, form):
    body = api_client.post("/preview", json=form).json()

    assert body["ok"] is True
    assert {"label": "Name", "value": "Anna Müller"} in body["preview"]


def test_preview_rejects_invalid_form(api_client, form):
    form["plz"] = "123"
    response = api_client.post("/preview", json=form)

    assert response.status_code == 400
    status = response.json()["status"]
    assert status["type"] == "error"
    assert status["message"].startswith("❌ Fehler: ")


def test_submit(api_client, form, github):
    response = api_client.post("/submit", json=form)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/json; charset=utf-8"
    body = response.json()
    assert body["ok"] is True
    assert body["status"]["type"] == "success"
    assert body["status"]["message"].startswith("✅ Erfolgreich übermittelt")
    assert body["path"] in github.files
    assert body["log_written"] is True
    assert "Müller" in response.content.decode("utf-8")


def test_submit_wrong_password(api_client, form, github):
    form["passwort"] = "falsch"
    response = api_client.post("/submit", json=form)

    assert response.status_code == 403
    body = response.json()
    assert body["ok"] is False
    assert body["status"]["message"].startswith("❌ Falsches Feuerwehr-Passwort")
    assert github.calls == []


def test_submit_duplicate(api_client, form, github):
    github.add_json("data/members/member-müller-anna-2026-01-01T00-00-00-000Z.json", {})
    response = api_client.post("/submit", json=form)

    assert response.status_code == 409
    assert "Möglicherweise bereits vorhanden" in response.json()["status"]["message"]


def test_submit_without_token(api_client, form):
    app.dependency_overrides[get_settings] = lambda: Settings(
        github_token="REQUIRES_USER_TOKEN", access_password="geheim")
    response = api_client.post("/submit", json=form)

    assert response.status_code == 401
    assert "Kein GitHub Token" in response.json()["status"]["message"]


def test_submit_with_header_token(api_client, form, github, db):
    app.dependency_overrides[get_settings] = lambda: Settings(
        github_token="REQUIRES_USER_TOKEN", access_password="geheim", generate_exports=False)
    response = api_client.post("/submit", json=form, headers={"X-GitHub-Token": "ghp_typed"})

    assert response.status_code == 200
    assert get_item(db, browser_of(api_client), TOKEN_KEY, scope=StorageScope.SESSION) == "ghp_typed"


def test_theme_endpoints(api_client):
    assert api_client.get("/theme").json() == {"theme": "light", "theme_color": "#e53e3e"}
    assert api_client.post("/theme/toggle").json()["theme"] == "dark"
    assert api_client.post("/theme/light").json()["theme"] == "light"
    assert api_client.post("/theme/neon").status_code == 404


def test_theme_is_rendered(api_client):
    api_client.post("/theme/dark")
    assert 'data-theme="dark"' in api_client.get("/").text


def test_tabs(api_client):
    assert api_client.post("/tabs/info").json() == {"active_tab": "info"}
    assert api_client.post("/tabs/unbekannt").json() == {"active_tab": "info"}


def test_dashboard_page(api_client):
    response = api_client.get("/auswertung")
    assert response.status_code == 200
    assert "applicationsTableBody" in response.text


def test_dashboard_applications(api_client, seeded):
    body = api_client.get("/auswertung/applications").json()

    assert body["total"] == 3
    assert body["filtered"] == 3
    assert body["last_update"] == "20.9.2026"
    first = body["applications"][0]
    assert first["nr"] == 1
    assert first["name"] == "Josef Bauer"
    assert first["id"] == "FF_HAM_20260920_bauerjosef"
    assert first["birth_date"] == "1.1.1980"
    assert first["qualifications"] == ["40 Jahre aktiv"]
    assert body["statistics"]["with_mta"] == 2


def test_dashboard_filters(api_client, seeded):
    body = api_client.get("/auswertung/applications",
                          params={"qualification": "Truppmann", "name": "eva"}).json()
    assert body["total"] == 3
    assert [a["name"] for a in body["applications"]] == ["Eva Schmid"]


def test_dashboard_without_records(api_client):
    body = api_client.get("/auswertung/applications").json()
    assert body["total"] == 0
    assert body["last_update"] is None


def test_dashboard_statistics_and_charts(api_client, seeded):
    assert api_client.get("/auswertung/statistics").json()["monthly"] == {"2026-08": 1, "2026-09": 2}
    charts = api_client.get("/auswertung/charts").json()
    assert charts["monthly"]["data"]["labels"] == ["Aug. 2026", "Sept. 2026"]


def test_dashboard_rejected_token_is_cleared(api_client, github, db):
    api_client.get("/health")
    set_item(db, browser_of(api_client), TOKEN_KEY, "stale", scope=StorageScope.SESSION)
    github.fail("GET", "data/members", 401, "Bad credentials")

    response = api_client.get("/auswertung/applications")
    assert response.status_code == 401
    assert "GitHub Token ungültig" in response.json()["status"]["message"]
    assert get_item(db, browser_of(api_client), TOKEN_KEY, scope=StorageScope.SESSION) is None


def test_dashboard_downloads(api_client, seeded):
    response = api_client.get("/auswertung/export/xlsx")
    assert response.status_code == 200
    assert response.headers["content-disposition"].startswith(
        'attachment; filename="Ehrenamtskarte_Anmeldungen_')
    assert response.content[:2] == b"PK"

    data = json.loads(api_client.get("/auswertung/export/json").content)
    assert len(data) == 3

    assert api_client.get("/auswertung/export/csv").headers["content-type"].startswith("text/csv")
    assert "Ehrenamtskarte_Bericht_" in api_client.get("/auswertung/export/html").headers["content-disposition"]
    assert api_client.get("/auswertung/export/pdf").status_code == 404


def test_admin_regenerates_exports(api_client, github, seeded):
    body = api_client.post("/admin/exports").json()

    assert body["ok"] is True
    assert len(body["report"]) == 4
    assert "data/exports/overview.html" in github.files


def test_admin_reports_failed_exports(api_client, github, seeded):
    github.fail("PUT", "data/exports/all_members.json", 500, "nope")
    body = api_client.post("/admin/exports").json()

    assert body["ok"] is False
    assert body["status"]["message"] == "⚠️ 1 Export(e) fehlgeschlagen"


def test_admin_content_reload(api_client):
    assert api_client.post("/admin/content/reload").json() == {"loaded": True, "cards": 6}


def test_admin_config_status_hides_secrets(api_client):
    body = api_client.get("/admin/config-status").json()

    assert body["token_configured"] is True
    assert body["password_configured"] is True
    assert body["branch"] == "data"
    assert "test-token" not in json.dumps(body)
    assert "geheim" not in json.dumps(body)


def test_browser_cookies_are_issued_once(api_client):
    first = api_client.get("/health")
    assert "ff_client" in first.cookies
    assert "ff_session" in first.cookies
    browser = browser_of(api_client)

    second = api_client.get("/health")
    assert "ff_client" not in second.cookies
    assert browser_of(api_client) == browser


def test_storage_is_separate_per_browser(api_client):
    other = TestClient(app)
    api_client.put("/draft", json={"vorname": "Anna", "nachname": "Müller"})

    assert other.get("/draft").json() == {"draft": {}}
    assert 'value="Müller"' not in other.get("/").text
    assert api_client.get("/draft").json()["draft"]["nachname"] == "Müller"

    api_client.post("/theme/dark")
    assert other.get("/theme").json()["theme"] == "light"


def test_typed_token_is_not_used_for_other_browsers(api_client, form, github):
    app.dependency_overrides[get_settings] = lambda: Settings(
        github_token="REQUIRES_USER_TOKEN", access_password="geheim", generate_exports=False)
    response = api_client.post("/submit", json=form, headers={"X-GitHub-Token": "ghp_typed"})
    assert response.status_code == 200

    other = TestClient(app)
    form["vorname"] = "Eva"
    form["email"] = "eva@example.de"
    response = other.post("/submit", json=form)
    assert response.status_code == 401
    assert "Kein GitHub Token" in response.json()["status"]["message"]
    assert other.get("/auswertung/applications").status_code == 401


def test_submit_network_failure(api_client, form, github):
    github.raise_on("PUT", "data/members", requests.ConnectionError("connection reset"))
    response = api_client.post("/submit", json=form)

    assert response.status_code == 502
    assert "Netzwerkfehler" in response.json()["status"]["message"]
    assert response.json()["ok"] is False


def test_dashboard_network_failure(api_client, github, seeded):
    github.raise_on("GET", "data/members", requests.Timeout("read timed out"))
    response = api_client.get("/auswertung/applications")

    assert response.status_code == 502
    assert "Netzwerkfehler" in response.json()["status"]["message"]


def test_dashboard_skips_non_object_files(api_client, github, seeded):
    github.files["data/members/leer.json"] = "null"
    github.files["data/members/liste.json"] = "[]"

    response = api_client.get("/auswertung/applications")
    assert response.status_code == 200
    assert response.json()["total"] == 3
