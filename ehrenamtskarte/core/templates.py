from pathlib import Path

from fastapi.templating import Jinja2Templates

from ..services.records import german_date

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
templates.env.filters["german_date"] = german_date


def render(name: str, **context) -> str:
    """Render a template to a string, for artifacts that are not HTTP responses."""
    return templates.get_template(name).render(**context)
