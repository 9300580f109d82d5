"""Render owner notifications using Jinja2 templates."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = Path(__file__).parent / "templates"

# Slack mrkdwn does not need HTML escaping – it breaks apostrophes etc.
_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
    undefined=StrictUndefined,
)


def render_notification(name: str, **context: Any) -> str:
    """Render the ``<name>.md.j2`` template with *context*."""
    template = _env.get_template(f"{name}.md.j2")
    text = template.render(**context).strip()
    logger.debug("Rendered notification %s (len=%d)", name, len(text))
    return text
