"""Data models for recorded browser interaction recipes."""

import re
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional

# Field names and labels that identify a secret
SECRET_PATTERN = re.compile(
    r"pass(?:word|wd|code)|(?<![a-z])(?:pin|otp|cvv|ssn)(?![a-z])|one[-_ ]?time"
    r"|verification[-_ ]?code|security[-_ ]?code|secret|token",
    re.IGNORECASE,
)


class StepType(str, Enum):
    """Recorded interaction types."""

    CLICK = "click"
    TYPE = "type"
    SELECT = "select"
    NAVIGATE = "navigate"
    WAIT = "wait"


def is_sensitive_target(
    selector: Optional[str] = None,
    label: Optional[str] = None,
    input_type: Optional[str] = None,
) -> bool:
    """True for password inputs and fields whose selector or label looks secret."""
    if input_type and input_type.lower() == "password":
        return True
    return any(text and SECRET_PATTERN.search(text) for text in (selector, label))


@dataclass
class RecordingStep:
    """One replayable interaction."""

    type: StepType
    selector: Optional[str] = None
    value: Optional[str] = None
    url: Optional[str] = None
    delay_ms: Optional[int] = None
    is_sensitive: bool = False
    field_label: Optional[str] = None

    def sanitized(self) -> "RecordingStep":
        """Copy with the value removed when the step is sensitive."""
        if self.is_sensitive and self.value is not None:
            return replace(self, value=None)
        return self

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value}
        if self.selector is not None:
            data["selector"] = self.selector
        if self.value is not None:
            data["value"] = self.value
        if self.url is not None:
            data["url"] = self.url
        if self.delay_ms is not None:
            data["delayMs"] = self.delay_ms
        data["isSensitive"] = self.is_sensitive
        if self.field_label is not None:
            data["fieldLabel"] = self.field_label
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecordingStep":
        delay = data.get("delayMs")
        return cls(
            type=StepType(data["type"]),
            selector=data.get("selector"),
            value=data.get("value"),
            url=data.get("url"),
            delay_ms=int(delay) if delay is not None else None,
            is_sensitive=bool(data.get("isSensitive", False)),
            field_label=data.get("fieldLabel"),
        )


@dataclass
class Recipe:
    """A named, replayable sequence of steps starting at ``start_url``."""

    id: str
    name: str
    institution: str
    start_url: str
    steps: list[RecordingStep] = field(default_factory=list)

    @property
    def sensitive_step_count(self) -> int:
        return sum(1 for step in self.steps if step.is_sensitive)

    def sanitized(self) -> "Recipe":
        return replace(self, steps=[step.sanitized() for step in self.steps])

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "institution": self.institution,
            "startUrl": self.start_url,
            "steps": [step.to_dict() for step in self.steps],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Recipe":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            institution=data.get("institution", ""),
            start_url=data.get("startUrl", ""),
            steps=[RecordingStep.from_dict(s) for s in data.get("steps", [])],
        )


@dataclass(frozen=True)
class RecipeDraft:
    """Frozen output of a stopped recording, not yet named or saved."""

    start_url: str
    steps: tuple[RecordingStep, ...] = ()

    def to_recipe(self, name: str, institution: str = "", recipe_id: Optional[str] = None) -> Recipe:
        return Recipe(
            id=recipe_id or uuid.uuid4().hex,
            name=name,
            institution=institution,
            start_url=self.start_url,
            steps=[step.sanitized() for step in self.steps],
        )
