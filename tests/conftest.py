import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import base64
import hashlib
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest
import requests
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ehrenamtskarte.core.config import Settings
from ehrenamtskarte.db import models  # noqa: F401
from ehrenamtskarte.db.base import Base
from ehrenamtskarte.services.github import GitHubContentsClient
from ehrenamtskarte.services.local_storage import BrowserIdentity

OWNER = "plankl"
REPO = "ehrenamtskarte_ff_hamberg_v2"
API = "https://api.github.com"
RAW = f"https://raw.githubusercontent.com/{OWNER}/{REPO}/data/"
NOW = datetime(2026, 10, 19, 14, 30, 5, 123000, tzinfo=timezone.utc)


def make_response(status: int, payload: Any = None, raw: Optional[bytes] = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = {200: "OK", 201: "Created", 401: "Unauthorized", 404: "Not Found",
                       422: "Unprocessable Entity", 500: "Internal Server Error"}.get(status, "")
    response._content = raw if raw is not None else json.dumps(payload).encode("utf-8")
    response.encoding = "utf-8"
    return response


class FakeGitHub:
    """In-memory contents API for one repository branch; used as the requests session."""

    def __init__(self):
        self.files: Dict[str, str] = {}
        self.calls: List[Tuple[str, str, Any]] = []
        self.failures: Dict[Tuple[str, str], Tuple[int, str]] = {}
        self.errors: Dict[Tuple[str, str], Exception] = {}
        self.prefix = f"{API}/repos/{OWNER}/{REPO}/contents/"

    @staticmethod
    def sha(text: str) -> str:
        return hashlib.sha1(text.encode("utf-8")).hexdigest()

    def fail(self, method: str, path_prefix: str, status: int, message: str = "failure") -> None:
        self.failures[(method, path_prefix)] = (status, message)

    def raise_on(self, method: str, path_prefix: str, error: Exception) -> None:
        """Make matching calls fail before any response, like a dropped connection."""
        self.errors[(method, path_prefix)] = error

    def add_json(self, path: str, data: Any) -> None:
        self.files[path] = json.dumps(data, indent=2, ensure_ascii=False)

    def puts(self, path_prefix: str = "") -> List[str]:
        return [url[len(self.prefix):] for method, url, _ in self.calls
                if method == "PUT" and url[len(self.prefix):].startswith(path_prefix)]

    def request(self, method: str, url: str, **kwargs) -> requests.Response:
        body = kwargs.get("json")
        self.calls.append((method, url, body))
        raw = url.startswith(RAW)
        path = url[len(RAW):] if raw else url[len(self.prefix):]

        for (fail_method, fail_path), error in self.errors.items():
            if fail_method == method and path.startswith(fail_path):
                raise error

        for (fail_method, fail_path), (status, message) in self.failures.items():
            if fail_method == method and path.startswith(fail_path):
                return make_response(status, {"message": message})

        if raw:
            if path in self.files:
                return make_response(200, raw=self.files[path].encode("utf-8"))
            return make_response(404, {"message": "Not Found"})

        if method == "GET":
            if path in self.files:
                text = self.files[path]
                return make_response(200, {
                    "name": path.rsplit("/", 1)[-1],
                    "path": path,
                    "sha": self.sha(text),
                    "content": base64.encodebytes(text.encode("utf-8")).decode("ascii"),
                })
            children = sorted(p for p in self.files
                              if p.startswith(path + "/") and "/" not in p[len(path) + 1:])
            if children:
                return make_response(200, [
                    {"name": p.rsplit("/", 1)[-1], "path": p, "type": "file", "download_url": RAW + p}
                    for p in children
                ])
            return make_response(404, {"message": "Not Found"})

        if method == "PUT":
            if path in self.files and body.get("sha") != self.sha(self.files[path]):
                return make_response(422, {"message": "sha wasn't supplied"})
            text = base64.b64decode(body["content"]).decode("utf-8")
            self.files[path] = text
            return make_response(201, {"content": {"path": path, "sha": self.sha(text)}})

        return make_response(500, {"message": f"unsupported {method}"})


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def browser() -> BrowserIdentity:
    return BrowserIdentity(local_id="browser-a", session_id="session-a")


def browser_of(client) -> BrowserIdentity:
    """Identity the app assigned to a test client through its cookies."""
    return BrowserIdentity(
        local_id=client.cookies.get("ff_client"),
        session_id=client.cookies.get("ff_session"),
    )


@pytest.fixture
def settings(tmp_path):
    return Settings(
        github_token="test-token",
        access_password="geheim",
        repo_owner=OWNER,
        repo_name=REPO,
        data_branch="data",
        github_api_url=API,
        environment="test",
    )


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def client_factory(github, settings):
    def factory(token: str) -> GitHubContentsClient:
        return GitHubContentsClient(
            token=token,
            owner=settings.repo_owner,
            repo=settings.repo_name,
            branch=settings.data_branch,
            base_url=settings.github_api_url,
            session=github,
        )
    return factory


@pytest.fixture
def form() -> Dict[str, Any]:
    return {
        "nachname": "Müller",
        "vorname": "Anna",
        "geburtsdatum": "1990-06-15",
        "email": "anna.mueller@example.de",
        "telefon": "0170 1234567",
        "strasse": "Hauptstraße",
        "hausnummer": "12a",
        "plz": "83512",
        "ort": "Hamberg",
        "mta_absolviert": "on",
        "dienstjahre_25": False,
        "dienstjahre_40": False,
        "datenschutz": "on",
        "passwort": "geheim",
    }


def stored_record(nachname: str, vorname: str, timestamp: str, email: str = "",
                  mta: bool = False, years25: bool = False, years40: bool = False) -> Dict[str, Any]:
    return {
        "timestamp": timestamp,
        "person": {"nachname": nachname, "vorname": vorname, "geburtsdatum": "1980-01-01",
                   "email": email or f"{vorname.lower()}@example.de", "telefon": ""},
        "adresse": {"strasse": "Dorfstraße", "hausnummer": "1", "plz": "83512", "ort": "Hamberg"},
        "qualifikationen": {"mta_absolviert": mta, "dienstjahre_25": years25, "dienstjahre_40": years40},
        "consent": {"datenschutz": True},
        "meta": {"accessVerified": True},
    }


@pytest.fixture
def seeded(github):
    """Three stored applications in the members folder."""
    records = [
        stored_record("Huber", "Max", "2026-08-02T09:00:00.000Z", mta=True),
        stored_record("Schmid", "Eva", "2026-09-15T10:00:00.000Z", mta=True, years25=True),
        stored_record("Bauer", "Josef", "2026-09-20T18:45:00.000Z", years40=True),
    ]
    for rec in records:
        stamp = rec["timestamp"].replace(":", "-").replace(".", "-")
        github.add_json(
            f"data/members/member-{rec['person']['nachname']}-{rec['person']['vorname']}-{stamp}.json",
            rec,
        )
    return records


@pytest.fixture
def api_client(db, settings, client_factory):
    from fastapi.testclient import TestClient

    from ehrenamtskarte.api.deps import get_client_factory, get_settings
    from ehrenamtskarte.db.session import get_db
    from ehrenamtskarte.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_client_factory] = lambda: client_factory
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
