"""
Scenario data models.

These models describe what a scenario breaks; the breaking itself lives
in the scenario modules.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, Field, field_validator, model_validator


class Difficulty(str, Enum):
    """Scenario difficulty grade."""

    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class Breakage(BaseModel):
    """A single deliberate corruption within a scenario."""

    code: str = Field(..., description="Breakage code such as '2c'", pattern=r"^[1-5][a-z]$")
    summary: str = Field(..., min_length=1, description="What the breakage does")
    issue: str = Field(..., min_length=1, description="Symptom the learner will observe")


class ScenarioInfo(BaseModel):
    """Static description of a scenario."""

    number: int = Field(..., ge=1, le=5)
    title: str = Field(..., min_length=1)
    difficulty: Difficulty
    concepts: List[str] = Field(default_factory=list)
    breakages: List[Breakage] = Field(..., min_length=1)
    troubleshooting: List[str] = Field(
        default_factory=list,
        description="Command templates; '{namespace}' is substituted",
    )

    @field_validator("troubleshooting")
    @classmethod
    def validate_templates(cls, v):
        """Reject templates with placeholders other than {namespace}."""
        for template in v:
            try:
                template.format(namespace="ns")
            except (KeyError, IndexError, ValueError) as e:
                raise ValueError(f"Invalid command template {template!r}: {e}")
        return v

    @model_validator(mode="after")
    def validate_codes(self):
        """Codes must belong to this scenario and be unique."""
        codes = [b.code for b in self.breakages]
        if len(codes) != len(set(codes)):
            raise ValueError(f"Duplicate breakage codes in scenario {self.number}")
        for code in codes:
            if not code.startswith(str(self.number)):
                raise ValueError(f"Breakage {code} does not belong to scenario {self.number}")
        return self

    @property
    def label(self) -> str:
        return f"Scenario {self.number}: {self.title}"

    @property
    def codes(self) -> List[str]:
        return [b.code for b in self.breakages]

    def commands(self, namespace: str) -> List[str]:
        return [t.format(namespace=namespace) for t in self.troubleshooting]
