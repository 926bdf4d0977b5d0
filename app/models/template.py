import re
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ScoreRule(BaseModel):
    """A body-text pattern and the weight added per match."""

    model_config = ConfigDict(frozen=True)

    pattern: str
    weight: int = 5

    @field_validator("pattern")
    @classmethod
    def _compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"Invalid score pattern {value!r}: {exc}") from exc
        return value

    def count(self, text: str) -> int:
        return len(re.findall(self.pattern, text, re.IGNORECASE))


class TemplateCandidate(BaseModel):
    """One entry of the static template catalog."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    default_tags: Tuple[str, ...] = ()
    score_rules: Tuple[ScoreRule, ...] = Field(default=())
    # Explicit-use templates (e.g. web clips) are never chosen by scoring.
    selectable: bool = True


class TemplateInfo(BaseModel):
    id: str
    name: str
    description: str
    default_tags: List[str]
