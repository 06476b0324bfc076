import base64
import json
from typing import Any, Dict, List, Optional

import requests
from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.errors import (
    AuthenticationError,
    BranchNotFoundError,
    ContentNotFoundError,
    GitHubAPIError,
)
from ..core.logging import logger
from ..db.models import StorageScope
from .local_storage import TOKEN_KEY, BrowserIdentity, get_item, remove_item, set_item


def encode_content(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_content(encoded: str) -> str:
    # The API wraps base64 bodies at 60 columns
    return base64.b64decode("".join((encoded or "").split())).decode("utf-8")


class GitHubContentsClient:
    """Thin wrapper around the repository contents endpoints."""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        branch: str = "data",
        base_url: str = "https://api.github.com",
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.token = token
        self.owner = owner
        self.repo = repo
        self.branch = branch
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"token {self.token}",
            "Accept": "application/vnd.github.v3+json",
        }

    def contents_url(self, path: str) -> str:
        return f"{self.base_url}/repos/{self.owner}/{self.repo}/contents/{path.strip('/')}"

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            response = self.session.request(
                method, url, headers=self.headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise GitHubAPIError(f"Netzwerkfehler: {e}") from e
        if not response.ok:
            self._raise_for_status(response)
        return response

    @staticmethod
    def _raise_for_status(response: requests.Response) -> None:
        try:
            message = (response.json() or {}).get("message") or ""
        except ValueError:
            message = ""
        if not message:
            message = f"HTTP {response.status_code}: {response.reason}"

        if response.status_code == 401:
            raise AuthenticationError(
                "GitHub Token ungültig oder abgelaufen. Bitte versuchen Sie es erneut - "
                "Sie werden nach einem neuen Token gefragt."
            )
        if response.status_code == 404 and "Branch" in message:
            raise BranchNotFoundError(
                "Data Branch nicht gefunden. Bitte kontaktieren Sie den Administrator."
            )
        if response.status_code == 404:
            raise ContentNotFoundError(message)
        raise GitHubAPIError(message, status_code=response.status_code)

    def list_directory(self, path: str) -> List[Dict[str, Any]]:
        response = self._request("GET", self.contents_url(path), params={"ref": self.branch})
        entries = response.json()
        return entries if isinstance(entries, list) else []

    def get_file(self, path: str) -> Optional[Dict[str, Any]]:
        """Return the decoded text and sha of a file, or None if it does not exist."""
        try:
            response = self._request("GET", self.contents_url(path), params={"ref": self.branch})
        except ContentNotFoundError:
            return None
        data = response.json()
        return {
            "path": data.get("path", path),
            "sha": data.get("sha"),
            "text": decode_content(data.get("content", "")),
        }

    def download(self, entry: Dict[str, Any]) -> Any:
        """Fetch a listed JSON file through its download_url."""
        url = entry.get("download_url")
        if not url:
            raise GitHubAPIError(f"No download_url for {entry.get('name')}")
        response = self._request("GET", url)
        return json.loads(response.content.decode("utf-8"))

    def put_file(self, path: str, content: str, message: str, sha: Optional[str] = None) -> Dict[str, Any]:
        body = {
            "message": message,
            "content": encode_content(content),
            "branch": self.branch,
        }
        if sha:
            body["sha"] = sha
        response = self._request("PUT", self.contents_url(path), json=body)
        logger.info(f"Committed {path} to {self.owner}/{self.repo}@{self.branch}")
        return response.json()

    def upsert_file(self, path: str, content: str, message: str) -> Dict[str, Any]:
        existing = self.get_file(path)
        return self.put_file(path, content, message, sha=existing["sha"] if existing else None)

    def append_to_file(self, path: str, content: str, message: str) -> Dict[str, Any]:
        existing = self.get_file(path)
        if existing:
            return self.put_file(path, existing["text"] + "\n" + content, message, sha=existing["sha"])
        return self.put_file(path, content, message)


def build_client(token: str, settings: Settings = default_settings,
                 session: Optional[requests.Session] = None) -> GitHubContentsClient:
    return GitHubContentsClient(
        token=token,
        owner=settings.repo_owner,
        repo=settings.repo_name,
        branch=settings.data_branch,
        base_url=settings.github_api_url,
        timeout=settings.github_timeout,
        session=session,
    )


class TokenProvider:
    """Resolves the API token: master token, cached, configured, then typed in by the user."""

    def __init__(self, db: Session, browser: BrowserIdentity, settings: Settings = default_settings):
        self.db = db
        self.browser = browser
        self.settings = settings

    def get_token(self, supplied: Optional[str] = None) -> str:
        if self.settings.uses_master_token and self.settings.token_configured():
            return self.settings.github_token

        cached = self._cached()
        if cached:
            return cached

        if self.settings.token_configured():
            return self._cache(self.settings.github_token)

        supplied = (supplied or "").strip()
        if supplied:
            return self._cache(supplied)
        return ""

    def _cached(self) -> Optional[str]:
        return get_item(self.db, self.browser, TOKEN_KEY, scope=StorageScope.SESSION)

    def _cache(self, token: str) -> str:
        set_item(self.db, self.browser, TOKEN_KEY, token, scope=StorageScope.SESSION)
        return token

    def clear_token(self) -> None:
        if remove_item(self.db, self.browser, TOKEN_KEY, scope=StorageScope.SESSION):
            logger.info("Cached GitHub token cleared")

    def configuration_status(self) -> List[Dict[str, str]]:
        """Banners shown when the registration page loads."""
        notices = []
        if self.settings.uses_master_token and self.settings.token_configured():
            logger.info("Master GitHub token configured - keine Benutzer-Eingabe erforderlich")
        elif not self.settings.token_configured() and not self._cached():
            logger.warning("GitHub token not configured. Submission will prompt for token.")
            notices.append({
                "message": "ℹ️ Beim ersten Absenden werden Sie nach Ihrem GitHub Token gefragt.",
                "type": "info",
            })

        if not self.settings.password_configured() and not self.settings.is_development:
            logger.warning("No access password configured in secrets - basic validation only")
            notices.append({
                "message": "⚠️ Feuerwehr-Passwort nicht konfiguriert - Grundvalidierung aktiv.",
                "type": "info",
            })
        return notices
