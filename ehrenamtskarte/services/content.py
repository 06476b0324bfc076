"""Page texts maintained as markdown files next to the application.

Conventions understood by the parser:

* ``#`` starts a section, ``##`` and ``###`` start a subsection of it.
* ``---`` separators and blank lines are ignored.
* ``**Key:** value`` lines carry single values (titles, subtitles, notes).
* ``- <emoji> text`` list items inside the hero section become badges.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from markupsafe import escape

from ..core.logging import logger

Sections = Dict[str, Dict[str, str]]

REGISTRATION_FILES = ("content-registration.md", "registration.md")
INFO_FILES = ("content-info.md", "content.md")

CARD_ICONS = {
    "Was ist die Ehrenamtskarte?": "🎫",
    "Voraussetzungen für Feuerwehren": "✅",
    "Vorteile in Bayern": "🎁",
    "Datenschutz & Sicherheit": "🔒",
    "Beantragung & Bearbeitung": "📋",
    "Kontakt & Zuständigkeit": "💬",
}
DEFAULT_ICON = "📄"

_KEY_VALUE_RE = re.compile(r"^\s*(?:-\s*)?\*\*(.+?):\*\*\s*(.*)$")
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_ITALIC_RE = re.compile(r"(?<!\*)\*([^*]+)\*(?!\*)")
_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)\s]+)\)")


@dataclass
class Badge:
    icon: str
    text: str


@dataclass
class HeroContent:
    title: str = ""
    subtitle: str = ""
    badges: List[Badge] = field(default_factory=list)


@dataclass
class InfoCard:
    icon: str
    title: str
    html: str


def parse_markdown(text: str) -> Sections:
    content: Sections = {}
    section = ""
    subsection = ""
    lines: List[str] = []

    def save() -> None:
        cleaned = "\n".join(line for line in lines if line.strip()).strip()
        if section and cleaned:
            content.setdefault(section, {})[subsection or "_content"] = cleaned

    for line in (text or "").splitlines():
        if line.startswith("# "):
            save()
            section, subsection, lines = line[2:].strip(), "", []
        elif line.startswith("## ") or line.startswith("### "):
            save()
            subsection, lines = line.split(" ", 1)[1].strip(), []
        elif line.strip() == "---":
            continue
        else:
            lines.append(line)
    save()
    return content


def parse_key_values(text: str) -> Dict[str, str]:
    values = {}
    for line in (text or "").splitlines():
        m = _KEY_VALUE_RE.match(line)
        if m:
            values[m.group(1).strip()] = m.group(2).strip()
    return values


def split_icon(title: str) -> Tuple[Optional[str], str]:
    """'🎫 Was ist ...' -> ('🎫', 'Was ist ...')."""
    parts = title.strip().split(" ", 1)
    first = parts[0]
    if len(parts) == 2 and first and not first[0].isalnum() and ord(first[0]) > 0x2000:
        return first, parts[1].strip()
    return None, title.strip()


def _inline(text: str) -> str:
    text = _BOLD_RE.sub(r"<strong>\1</strong>", text)
    text = _ITALIC_RE.sub(r"<em>\1</em>", text)
    return _LINK_RE.sub(r'<a href="\2" target="_blank" rel="noopener">\1</a>', text)


def markdown_to_html(text: str) -> str:
    """Small markdown subset: headings, emphasis, links, lists, paragraphs."""
    if not text:
        return ""

    html: List[str] = []
    items: List[str] = []
    paragraph: List[str] = []

    def flush() -> None:
        if items:
            html.append("<ul>" + "".join(f"<li>{i}</li>" for i in items) + "</ul>")
            items.clear()
        if paragraph:
            html.append("<p>" + "<br>".join(paragraph) + "</p>")
            paragraph.clear()

    for raw in str(escape(text)).splitlines():
        line = raw.strip()
        if not line:
            flush()
        elif line.startswith("### "):
            flush()
            html.append(f"<h4>{_inline(line[4:])}</h4>")
        elif line.startswith("## "):
            flush()
            html.append(f"<h3>{_inline(line[3:])}</h3>")
        elif line.startswith("- ") or line.startswith("* "):
            if paragraph:
                flush()
            items.append(_inline(line[2:]))
        else:
            if items:
                flush()
            paragraph.append(_inline(line))
    flush()
    return "".join(html)


def _blocks(content: Sections) -> Iterator[Tuple[str, str, str]]:
    for section, parts in content.items():
        for sub, text in parts.items():
            yield section, sub, text


class MarkdownContentManager:
    """Loads the registration and info texts and exposes what the pages render."""

    def __init__(self, content_dir: str):
        self.content_dir = Path(content_dir)
        self.registration_content: Sections = {}
        self.info_content: Sections = {}
        self.is_loaded = False

    def _read_first(self, names: Tuple[str, ...]) -> Optional[str]:
        for name in names:
            path = self.content_dir / name
            if path.is_file():
                return path.read_text(encoding="utf-8")
        return None

    def load_all_content(self) -> bool:
        registration = self._read_first(REGISTRATION_FILES)
        info = self._read_first(INFO_FILES)
        self.registration_content = parse_markdown(registration) if registration else {}
        self.info_content = parse_markdown(info) if info else {}
        self.is_loaded = registration is not None or info is not None

        if self.is_loaded:
            logger.info(f"Markdown content loaded from {self.content_dir}")
        else:
            logger.warning("Using fallback content - markdown files could not be loaded")
        return self.is_loaded

    def reload(self) -> bool:
        logger.info("Reloading markdown content...")
        return self.load_all_content()

    def hero(self) -> Optional[HeroContent]:
        for section, sub, text in _blocks(self.registration_content):
            values = parse_key_values(text)
            name = f"{section} {sub}".lower()
            if "Haupttitel" not in values and not ("hero" in name and "Titel" in values):
                continue

            hero = HeroContent(
                title=values.get("Haupttitel") or values.get("Titel", ""),
                subtitle=values.get("Untertitel", ""),
            )
            for line in text.splitlines():
                if line.startswith("- ") and not _KEY_VALUE_RE.match(line):
                    icon, label = split_icon(line[2:])
                    if icon:
                        hero.badges.append(Badge(icon=icon, text=label))
            for key in ("Badge 1", "Badge 2", "Badge 3"):
                if values.get(key):
                    hero.badges.append(Badge(icon="", text=values[key]))
            return hero
        return None

    def _values_for(self, content: Sections, needle: str) -> Dict[str, str]:
        values: Dict[str, str] = {}
        for section, sub, text in _blocks(content):
            if needle in section.lower() or needle in sub.lower():
                values.update(parse_key_values(text))
        return values

    def form_sections(self) -> Dict[str, str]:
        values = self._values_for(self.registration_content, "formular")
        if "Wichtiger Hinweis" in values and "Hinweis" not in values:
            values["Hinweis"] = values.pop("Wichtiger Hinweis")
        return values

    def submit_text(self) -> Optional[str]:
        return self._values_for(self.registration_content, "submit").get("Text")

    def info_header(self) -> Dict[str, str]:
        for _, sub, text in _blocks(self.info_content):
            if sub == "Header":
                values = parse_key_values(text)
                return {"title": values.get("Titel", ""), "subtitle": values.get("Untertitel", "")}
        return {}

    def info_cards(self) -> List[InfoCard]:
        sections = [(t, parts) for t, parts in self.info_content.items() if "Header" not in parts]
        if len(self.info_content) == 1:
            # A single titled page: its subsections are the cards
            parts = next(iter(self.info_content.values()))
            return [self._card(title, {"_content": text})
                    for title, text in parts.items() if title not in ("Header", "_content")]
        return [self._card(title, parts) for title, parts in sections]

    def _card(self, title: str, parts: Dict[str, str]) -> InfoCard:
        icon, clean_title = split_icon(title)
        body = []
        for sub, text in parts.items():
            if sub != "_content":
                body.append(f'<div class="subsection"><h4>{escape(sub)}</h4>{markdown_to_html(text)}</div>')
        if "_content" in parts:
            body.append(markdown_to_html(parts["_content"]))
        return InfoCard(
            icon=icon or CARD_ICONS.get(clean_title, DEFAULT_ICON),
            title=clean_title,
            html="".join(body),
        )

    def page_context(self) -> Dict[str, object]:
        hero = self.hero()
        return {
            "loaded": self.is_loaded,
            "hero": asdict(hero) if hero else None,
            "form_sections": self.form_sections(),
            "submit_text": self.submit_text(),
            "info_header": self.info_header(),
            "info_cards": [asdict(card) for card in self.info_cards()],
        }


_manager: Optional[MarkdownContentManager] = None


def get_content_manager(content_dir: str) -> MarkdownContentManager:
    global _manager
    if _manager is None or _manager.content_dir != Path(content_dir):
        _manager = MarkdownContentManager(content_dir)
        _manager.load_all_content()
    return _manager
