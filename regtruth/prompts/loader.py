"""
Prompt template loader.

Loads .md templates from regtruth/prompts/ and fills {{VARIABLE_NAME}} placeholders.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

_PROMPTS_DIR = Path(__file__).parent

_PLACEHOLDER_RE = re.compile(r"\{\{([A-Z_][A-Z0-9_]*)\}\}")


@lru_cache(maxsize=16)
def load_prompt(template_name: str) -> str:
    """Return the raw template (placeholders intact).

    Raises:
        FileNotFoundError: If regtruth/prompts/<template_name>.md does not exist.
    """
    path = _PROMPTS_DIR / f"{template_name}.md"
    if not path.is_file():
        available = sorted(p.stem for p in _PROMPTS_DIR.glob("*.md"))
        raise FileNotFoundError(
            f"Prompt template '{template_name}' not found at {path}. Available templates: {available}"
        )
    return path.read_text(encoding="utf-8")


def render_prompt(template_name: str, **variables: str) -> str:
    """Load template_name and substitute every {{NAME}} with variables[NAME].

    Raises:
        ValueError: If a placeholder is left unfilled.
    """
    rendered = load_prompt(template_name)
    placeholders = set(_PLACEHOLDER_RE.findall(rendered))
    for name in variables:
        if name not in placeholders:
            logger.warning("Variable '%s' not used by template '%s'", name, template_name)
    for name, value in variables.items():
        rendered = rendered.replace(f"{{{{{name}}}}}", str(value))
    remaining = _PLACEHOLDER_RE.findall(rendered)
    if remaining:
        raise ValueError(f"Unfilled placeholders in template '{template_name}': {sorted(set(remaining))}")
    return rendered
