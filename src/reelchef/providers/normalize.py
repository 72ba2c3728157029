"""Decode model output into canonical recipes.

Models answer with one of two envelopes, optionally wrapped in a Markdown
code fence:

    [{"title": ..., "ingredients": [...], "instructions": [...]}, ...]
    {"recipes": [{"title": ..., ...}, ...]}

Both decode to the same ``list[ExtractedRecipe]``.
"""

from __future__ import annotations

import re
from typing import Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from reelchef.core.exceptions import ResponseShapeError

_FENCE_RE = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?(.*?)\n?```$", re.DOTALL)


class ExtractedRecipe(BaseModel):
    title: str
    ingredients: list[str] = Field(default_factory=list)
    instructions: list[str] = Field(default_factory=list)


class RecipeEnvelope(BaseModel):
    recipes: list[ExtractedRecipe]


_RECIPES_ADAPTER: TypeAdapter[Union[list[ExtractedRecipe], RecipeEnvelope]] = TypeAdapter(
    Union[list[ExtractedRecipe], RecipeEnvelope]
)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) fence, if any."""
    stripped = text.strip()
    match = _FENCE_RE.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def parse_recipes(text: str) -> list[ExtractedRecipe]:
    """Decode recipe JSON in either envelope. Raises ResponseShapeError."""
    payload = strip_code_fence(text)
    if not payload:
        raise ResponseShapeError("Model returned an empty response")

    try:
        decoded = _RECIPES_ADAPTER.validate_json(payload)
    except ValidationError as e:
        preview = payload[:200]
        raise ResponseShapeError(
            f"Model output is not a recipe list ({e.error_count()} errors): {preview!r}"
        ) from e

    if isinstance(decoded, RecipeEnvelope):
        return decoded.recipes
    return decoded
