"""Recipe persistence.

Recipes are stored as one JSON file per recipe id:

    recipes/
      3f2c...e1.json    {"id", "name", "institution", "startUrl", "steps"}

Sensitive steps are stripped of their value both when a recipe is written
and when one is read, so a hand-edited file cannot smuggle a secret into
playback.
"""

import json
import os
import re
from pathlib import Path
from typing import Union

import structlog

from ..config import Settings
from .models import Recipe

logger = structlog.get_logger()

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class RecipeStoreError(Exception):
    """Exception raised when recipes cannot be stored or loaded."""

    pass


class RecipeStore:
    """File-backed recipe store.

    Usage:
        store = RecipeStore("./recipes")
        store.save(draft.to_recipe("USAA checking", "USAA"))
        recipe = store.load(recipe_id)
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.log = logger.bind(component="recipe_store", directory=str(self.directory))

    @classmethod
    def from_settings(cls, settings: Settings) -> "RecipeStore":
        return cls(settings.recipe_dir)

    def _path(self, recipe_id: str) -> Path:
        if not _SAFE_ID.match(recipe_id or ""):
            raise RecipeStoreError(f"Invalid recipe id: {recipe_id!r}")
        return self.directory / f"{recipe_id}.json"

    def save(self, recipe: Recipe) -> Path:
        """Write a sanitized copy of ``recipe``."""
        path = self._path(recipe.id)
        clean = recipe.sanitized()
        self.directory.mkdir(parents=True, exist_ok=True)

        tmp = path.with_suffix(".json.tmp")
        try:
            tmp.write_text(json.dumps(clean.to_dict(), indent=2), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise RecipeStoreError(f"Failed to save recipe {recipe.id}: {e}") from e

        self.log.info(
            "Recipe saved",
            recipe_id=recipe.id,
            steps=len(clean.steps),
            sensitive_steps=clean.sensitive_step_count,
        )
        return path

    def load(self, recipe_id: str) -> Recipe:
        path = self._path(recipe_id)
        if not path.exists():
            raise RecipeStoreError(f"Recipe not found: {recipe_id}")
        return self._read(path)

    def list_recipes(self) -> list[Recipe]:
        """All readable recipes, sorted by name. Unreadable files are skipped."""
        if not self.directory.exists():
            return []
        recipes = []
        for path in sorted(self.directory.glob("*.json")):
            try:
                recipes.append(self._read(path))
            except RecipeStoreError as e:
                self.log.warning("Skipping unreadable recipe", path=str(path), error=str(e))
        return sorted(recipes, key=lambda r: (r.name.lower(), r.id))

    def delete(self, recipe_id: str) -> bool:
        path = self._path(recipe_id)
        if not path.exists():
            return False
        path.unlink()
        self.log.info("Recipe deleted", recipe_id=recipe_id)
        return True

    def _read(self, path: Path) -> Recipe:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            recipe = Recipe.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise RecipeStoreError(f"Invalid recipe file {path.name}: {e}") from e
        return recipe.sanitized()
