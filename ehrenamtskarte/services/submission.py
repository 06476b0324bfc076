import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

import requests
from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.errors import (
    AuthenticationError,
    DuplicateApplicationError,
    GitHubAPIError,
    MissingTokenError,
)
from ..core.logging import logger
from .drafts import DraftStore
from .exports import ExportGenerator
from .github import GitHubContentsClient, TokenProvider, build_client
from .local_storage import BrowserIdentity
from .records import (
    ApplicationRecord,
    collect_form_data,
    duplicate_stem,
    german_date,
    iso_timestamp,
    record_filename,
)
from .validation import validate_form

SUCCESS_MESSAGE = "✅ Erfolgreich übermittelt! Vielen Dank für Ihre Daten."

ClientFactory = Callable[[str], GitHubContentsClient]


@dataclass
class SubmissionResult:
    record: ApplicationRecord
    filename: str
    path: str
    log_written: bool = False
    exports: Dict[str, str] = field(default_factory=dict)


class SubmissionPipeline:
    """validate -> duplicate check -> commit record -> processing log -> exports."""

    def __init__(
        self,
        db: Session,
        settings: Settings = default_settings,
        client_factory: Optional[ClientFactory] = None,
        *,
        browser: BrowserIdentity,
    ):
        self.db = db
        self.settings = settings
        self.client_factory = client_factory or (lambda token: build_client(token, settings))
        self.tokens = TokenProvider(db, browser, settings)
        self.drafts = DraftStore(db, browser)

    def submit(
        self,
        form: Mapping[str, Any],
        supplied_token: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SubmissionResult:
        validate_form(form, self.settings)

        token = self.tokens.get_token(supplied_token)
        if not token:
            raise MissingTokenError("Kein GitHub Token verfügbar.")

        record = collect_form_data(form, now)
        client = self.client_factory(token)

        try:
            self.check_for_duplicates(client, record)
            filename = record_filename(record)
            path = f"{self.settings.members_path}/{filename}"
            client.put_file(
                path,
                json.dumps(record.to_json_dict(), indent=2, ensure_ascii=False),
                f"🚒 Add member: {record.full_name} ({german_date(record.created)})",
            )
        except AuthenticationError:
            self.tokens.clear_token()
            raise

        logger.info(f"Application stored as {path}")
        result = SubmissionResult(record=record, filename=filename, path=path)
        result.log_written = self.write_processing_log(client, record, now)

        if self.settings.generate_exports:
            try:
                result.exports = ExportGenerator(client, self.settings).generate(new_record=record)
            except (GitHubAPIError, requests.RequestException) as e:
                logger.error(f"Export generation failed: {e}")

        self.drafts.clear_draft()
        return result

    def check_for_duplicates(self, client: GitHubContentsClient, record: ApplicationRecord) -> None:
        """Reject when an existing filename contains the applicant's name or e-mail."""
        try:
            files = client.list_directory(self.settings.members_path)
        except AuthenticationError:
            raise
        except (GitHubAPIError, requests.RequestException) as e:
            # The folder or branch may not exist yet
            logger.warning(f"Duplicate check failed: {e}")
            return

        stem = duplicate_stem(record)
        email = record.person.email.lower()
        for entry in files:
            name = str(entry.get("name", "")).lower()
            if stem in name or (email and email in name):
                raise DuplicateApplicationError(
                    f"Möglicherweise bereits vorhanden: {record.full_name}. "
                    "Bei Fragen wenden Sie sich an die Feuerwehr-Leitung."
                )

    def write_processing_log(
        self,
        client: GitHubContentsClient,
        record: ApplicationRecord,
        now: Optional[datetime] = None,
    ) -> bool:
        """Append to the daily processing log; failures never fail the submission."""
        stamp = iso_timestamp(now)
        entry = {
            "timestamp": stamp,
            "action": "member_added",
            "member": record.full_name,
            "email": record.person.email,
            "qualifications": record.qualifikationen.model_dump(),
        }
        path = f"{self.settings.logs_path}/processing-{stamp[:10]}.log"
        try:
            client.append_to_file(
                path,
                json.dumps(entry, indent=2, ensure_ascii=False) + "\n",
                f"📊 Log: Member added - {record.full_name}",
            )
        except (GitHubAPIError, requests.RequestException) as e:
            logger.warning(f"Logging failed: {e}")
            return False
        logger.info("Processing log updated successfully")
        return True
