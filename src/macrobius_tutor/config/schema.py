from __future__ import annotations

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, validator

LearningStyleName = Literal["visual", "auditory", "kinesthetic", "reading", "mixed"]
ProficiencyName = Literal["beginner", "intermediate", "advanced", "expert"]


class ProfileDefaults(BaseModel):
    """Values used to fill any field left unset when a learner profile is created."""

    learning_style: LearningStyleName = "mixed"
    proficiency_level: ProficiencyName = "beginner"
    preferred_difficulty: float = Field(0.5, ge=0, le=1)
    learning_speed: float = Field(0.5, ge=0, le=1)
    retention_rate: float = Field(0.7, ge=0, le=1)
    motivation_factors: List[str] = Field(default_factory=lambda: ["achievement", "knowledge"])


class AdaptationConfig(BaseModel):
    """Parameters of the target-accuracy difficulty adapter."""

    target_accuracy: float = Field(0.75, ge=0, le=1, description="Optimal challenge point.")
    accuracy_scale: float = Field(0.25, gt=0, le=1)
    tolerance: float = Field(0.1, ge=0, description="Dead band around the target accuracy.")
    step: float = Field(0.1, ge=0, le=1)
    max_delta: float = Field(0.2, ge=0, le=1)
    confidence: float = Field(0.8, ge=0, le=1)

    @validator("tolerance")
    def tolerance_inside_scale(cls, value: float, values: dict[str, float]) -> float:
        """Keep the dead band narrower than the accuracy scale so adjustments can occur."""
        scale = values.get("accuracy_scale", 0.25)
        if value >= scale:
            raise ValueError("tolerance must be smaller than accuracy_scale")
        return value


class RecommendationConfig(BaseModel):
    """Controls for the recommendation generator."""

    history_window: int = Field(10, ge=1, description="Number of recent sessions considered.")
    consistency_threshold: float = Field(0.3, ge=0, le=1)
    review_minutes_per_item: int = Field(2, ge=1)


class ReviewConfig(BaseModel):
    """SM-2 spaced repetition parameters."""

    initial_easiness: float = Field(2.5, ge=1.3)
    minimum_easiness: float = Field(1.3, gt=0)
    first_interval: int = Field(1, ge=1, description="Days until the first review.")
    second_interval: int = Field(6, ge=1, description="Days until the second review.")

    @validator("second_interval")
    def second_after_first(cls, value: int, values: dict[str, int]) -> int:
        """Ensure the second review never comes before the first."""
        if value < values.get("first_interval", 1):
            raise ValueError("second_interval must not be shorter than first_interval")
        return value


class BackendConfig(BaseModel):
    """Connection settings for the Macrobius passage/vocabulary service."""

    enabled: bool = False
    base_url: str = Field("http://152.70.184.232:8080/api")
    timeout_seconds: float = Field(5.0, gt=0)


class PathsConfig(BaseModel):
    """Filesystem layout for learner profiles and the closed-session archive."""

    data_dir: Path = Field(Path("data"))
    profiles_dir: Optional[Path] = Field(Path("data/profiles"))
    sessions_log: Optional[Path] = Field(Path("data/sessions.jsonl"))


class LoggingConfig(BaseModel):
    """Controls for logging output and format."""

    level: str = Field("INFO")
    use_json: bool = False


class Settings(BaseModel):
    """Top-level project configuration aggregating all sub-settings."""

    project_name: str = Field("Macrobius Tutor")
    profile_defaults: ProfileDefaults = Field(default_factory=ProfileDefaults)
    adaptation: AdaptationConfig = Field(default_factory=AdaptationConfig)
    recommendations: RecommendationConfig = Field(default_factory=RecommendationConfig)
    review: ReviewConfig = Field(default_factory=ReviewConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
