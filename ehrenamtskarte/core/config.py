from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings


# Values shipped in the deployment template until the real secrets are filled in
TOKEN_PLACEHOLDER = "GITHUB_TOKEN_PLACEHOLDER"
REQUIRES_USER_TOKEN = "REQUIRES_USER_TOKEN"
PASSWORD_PLACEHOLDER = "FEUERWEHR_ACCESS_PASSWORD_PLACEHOLDER"

DEFAULT_CONTENT_DIR = str(Path(__file__).resolve().parent.parent / "content")


class Settings(BaseSettings):
    # Local storage (drafts, cached token, preferences)
    database_url: str = "sqlite:///./ehrenamtskarte.db"
    auto_create_db: bool = True

    # GitHub contents API
    github_api_url: str = "https://api.github.com"
    github_token: Optional[str] = TOKEN_PLACEHOLDER
    github_timeout: float = 15.0
    uses_master_token: bool = False
    repo_owner: str = "plankl"
    repo_name: str = "ehrenamtskarte_ff_hamberg_v2"
    data_branch: str = "data"
    data_folder: str = "data"

    # Registration
    access_password: Optional[str] = PASSWORD_PLACEHOLDER
    organisation_name: str = "Feuerwehr Hamberg"
    id_prefix: str = "FF_HAM"
    content_dir: str = DEFAULT_CONTENT_DIR
    generate_exports: bool = True

    # Browser identity cookies
    client_cookie: str = "ff_client"
    session_cookie: str = "ff_session"
    client_cookie_max_age: int = 60 * 60 * 24 * 365
    session_ttl_hours: int = 12

    # Application
    debug: bool = False
    log_level: str = "INFO"

    # Environment
    environment: str = "development"

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    def token_configured(self) -> bool:
        return bool(self.github_token) and self.github_token not in (TOKEN_PLACEHOLDER, REQUIRES_USER_TOKEN)

    def password_configured(self) -> bool:
        return bool(self.access_password) and self.access_password != PASSWORD_PLACEHOLDER

    @property
    def members_path(self) -> str:
        return f"{self.data_folder}/members"

    @property
    def logs_path(self) -> str:
        return f"{self.data_folder}/logs"

    @property
    def exports_path(self) -> str:
        return f"{self.data_folder}/exports"


# Global settings instance
settings = Settings()
