from typing import Tuple

from sqlalchemy.orm import Session

from ..core.logging import logger
from .local_storage import TAB_KEY, THEME_KEY, BrowserIdentity, get_item, set_item

THEMES: Tuple[str, ...] = ("light", "dark")
THEME_COLORS = {"light": "#e53e3e", "dark": "#1a202c"}
TABS: Tuple[str, ...] = ("registration", "info")


class ThemeManager:
    def __init__(self, db: Session, browser: BrowserIdentity):
        self.db = db
        self.browser = browser

    @property
    def current_theme(self) -> str:
        theme = get_item(self.db, self.browser, THEME_KEY, "light")
        return theme if theme in THEMES else "light"

    def apply_theme(self, theme: str) -> str:
        if theme not in THEMES:
            raise ValueError(f"Unknown theme: {theme}")
        set_item(self.db, self.browser, THEME_KEY, theme)
        return theme

    def toggle(self) -> str:
        new_theme = "dark" if self.current_theme == "light" else "light"
        logger.info(f"Theme switched to {new_theme}")
        return self.apply_theme(new_theme)

    @property
    def theme_color(self) -> str:
        """Colour for the mobile browser theme-color meta tag."""
        return THEME_COLORS[self.current_theme]


class TabManager:
    def __init__(self, db: Session, browser: BrowserIdentity):
        self.db = db
        self.browser = browser

    @property
    def active_tab(self) -> str:
        tab = get_item(self.db, self.browser, TAB_KEY, TABS[0])
        return tab if tab in TABS else TABS[0]

    def show_tab(self, name: str) -> str:
        """Activate a known tab; unknown names keep the current one."""
        if name not in TABS:
            logger.warning(f"Ignoring unknown tab '{name}'")
            return self.active_tab
        set_item(self.db, self.browser, TAB_KEY, name)
        return name
