"""
Wastebin: Jinja2 Templates
============================

What:  The template environment shared by every HTML view.
How:   `Jinja2Templates` with autoescaping (on by default for .html), so paste
       bodies are always HTML-escaped where they are printed. Two globals are
       available in every template:

           modes         the configured mode allow-list (sysname, name)
           resource_dir  base URL for CSS/JS assets

       and one filter:

           preview       first PREVIEW_LENGTH characters of a paste body

Templates come from `settings.template_path` when set, else from the
`templates/` directory inside this package.
"""

from pathlib import Path

from fastapi.templating import Jinja2Templates

from wastebin.config import Settings

BUNDLED_TEMPLATES = Path(__file__).parent / "templates"

PREVIEW_LENGTH = 200


def preview(value) -> str:
    if value is None:
        return ""
    text = str(value)
    return text[:PREVIEW_LENGTH]


def create_templates(settings: Settings) -> Jinja2Templates:
    directory = Path(settings.template_path).expanduser() if settings.template_path else BUNDLED_TEMPLATES
    templates = Jinja2Templates(directory=str(directory))
    templates.env.filters["preview"] = preview
    templates.env.globals["modes"] = [mode.model_dump() for mode in settings.modes]
    templates.env.globals["resource_dir"] = settings.resource_path
    return templates
