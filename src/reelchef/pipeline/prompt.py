"""Extraction prompt loading and rendering."""

from __future__ import annotations

import re
from pathlib import Path

from reelchef.core.constants import EXTRACT_PROMPT_TEMPLATE
from reelchef.core.exceptions import InvalidInputError

# Only these two placeholders; templates may contain literal JSON braces
PLACEHOLDER_RE = re.compile(r"\{(caption|transcript)\}")


def load_template(path: Path | None = None) -> str:
    """Return the prompt template at ``path``, or the built-in one."""
    if path is None:
        return EXTRACT_PROMPT_TEMPLATE
    try:
        return Path(path).expanduser().read_text()
    except OSError as e:
        raise InvalidInputError(f"Cannot read prompt template {path}: {e}") from e


def render_prompt(template: str, caption: str, transcript: str) -> str:
    # Single pass, so placeholder text inside the values is left as is
    values = {"caption": caption, "transcript": transcript}
    return PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], template)
