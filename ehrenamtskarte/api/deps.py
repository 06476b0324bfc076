from typing import Optional

from fastapi import Depends, Header, Request

from ..core.config import Settings, settings
from ..services.content import MarkdownContentManager, get_content_manager
from ..services.github import build_client
from ..services.local_storage import BrowserIdentity
from ..services.submission import ClientFactory


def get_settings() -> Settings:
    return settings


def get_client_factory(config: Settings = Depends(get_settings)) -> ClientFactory:
    return lambda token: build_client(token, config)


def get_content(config: Settings = Depends(get_settings)) -> MarkdownContentManager:
    return get_content_manager(config.content_dir)


def get_browser(request: Request) -> BrowserIdentity:
    """Storage owner of the calling browser, set by the identity middleware."""
    return request.state.browser


def get_supplied_token(x_github_token: Optional[str] = Header(None)) -> Optional[str]:
    """Token typed in by the user, sent along instead of the browser prompt."""
    return x_github_token
