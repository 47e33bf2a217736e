"""
sddgen Rendering - Jinja2 environment for prompts and config templates

Prompt wording, per-phase system instructions and the bodies of generated
config files all live as templates under sddgen/templates.
"""

from __future__ import annotations

import json
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

TEMPLATES_DIR = Path(__file__).parent / "templates"
INSTRUCTIONS_DIR = TEMPLATES_DIR / "instructions"


def kebab_case(s: str) -> str:
    """Convert to kebab-case."""
    # First replace spaces/underscores with hyphens
    s = re.sub(r"[\s_]+", "-", s)
    # Then handle camelCase/PascalCase
    s = re.sub(r"([a-z])([A-Z])", r"\1-\2", s).lower()
    # Clean up multiple hyphens
    s = re.sub(r"-+", "-", s)
    return s.strip("-")


def create_jinja_env(templates_dir: Path = TEMPLATES_DIR) -> Environment:
    """Create Jinja2 environment with custom filters."""

    env = Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=False,
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )

    env.filters["kebab_case"] = kebab_case
    env.filters["to_json"] = lambda x: json.dumps(x, indent=2, ensure_ascii=False)
    env.filters["quote"] = lambda x: f"'{x}'"

    return env


@lru_cache(maxsize=None)
def _default_env() -> Environment:
    return create_jinja_env()


def render(template_path: str, **context: Any) -> str:
    """Render a template from the package templates directory."""
    return _default_env().get_template(template_path).render(**context)


def load_instructions(phase_name: str) -> str:
    """System instructions for a phase (templates/instructions/<phase>.md)."""
    return (INSTRUCTIONS_DIR / f"{phase_name}.md").read_text(encoding="utf-8")
