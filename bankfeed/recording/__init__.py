"""Recording and replay of browser interaction recipes.

The recorder and player live in ``bankfeed.recording.recorder`` and
``bankfeed.recording.player``; they depend on the browser package, which
itself uses the listener script defined here.
"""

from .models import (
    Recipe,
    RecipeDraft,
    RecordingStep,
    StepType,
    is_sensitive_target,
)
from .recorder_snippet import RecorderConfig, RecorderSnippetGenerator
from .store import RecipeStore, RecipeStoreError

__all__ = [
    "Recipe",
    "RecipeDraft",
    "RecordingStep",
    "StepType",
    "is_sensitive_target",
    "RecorderConfig",
    "RecorderSnippetGenerator",
    "RecipeStore",
    "RecipeStoreError",
]
