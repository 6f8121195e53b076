"""Engine configuration model for the session orchestrator.

JSON example:
    {
      "darts_per_visit": 3,
      "default_checkout_attempts": 3,
      "assessment_session_names": ["ITA", "Initial Training Assessment"],
      "strict_segments": true
    }

Every key is optional; unknown keys are rejected.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class EngineConfig(BaseModel):
    """Structured orchestrator configuration."""

    # Darts entered per manual/voice visit on accuracy steps.
    darts_per_visit: int = Field(default=3, ge=1)

    # Fallbacks when no level requirement exists for a routine type.
    default_accuracy_darts: int = Field(default=3, ge=1)
    default_checkout_darts: int = Field(default=9, ge=1)
    default_checkout_attempts: int = Field(default=3, ge=1)

    # Session names (case-insensitive) that mark the initial assessment.
    assessment_session_names: tuple[str, ...] = ("ita", "initial training assessment")

    # Reject segment text that does not normalize to a canonical code.
    strict_segments: bool = True

    # Navigation targets handed back to the host.
    assessment_href: str = Field(default="/play/ita", min_length=1)
    free_training_href: str = Field(default="/play/free-training", min_length=1)
    session_href_prefix: str = Field(default="/play/session/", min_length=1)
    free_run_href_prefix: str = Field(default="/play/free-training/run/", min_length=1)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @classmethod
    def from_json_obj(cls, cfg_obj: dict[str, Any]) -> EngineConfig:
        """Create an EngineConfig instance from a JSON-compatible object."""
        return cls.model_validate(cfg_obj)

    @classmethod
    def from_file(cls, path: str | Path) -> EngineConfig:
        """Load an EngineConfig from a JSON file."""
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(p)
        return cls.from_json_obj(json.loads(p.read_text(encoding="utf-8")))

    @field_validator("assessment_session_names")
    @classmethod
    def _normalize_names(cls, names: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(name.strip().lower() for name in names if name.strip())

    @model_validator(mode="after")
    def validate_consistency(self) -> EngineConfig:
        """Validate internal consistency of the configuration."""
        if self.default_accuracy_darts < self.darts_per_visit:
            raise ValueError("default_accuracy_darts must be >= darts_per_visit")
        return self

    def is_assessment_session(self, session_name: str | None) -> bool:
        """Return True if ``session_name`` names the initial assessment."""
        if not session_name:
            return False
        return session_name.strip().lower() in self.assessment_session_names
