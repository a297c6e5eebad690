"""Environment and settings (Pydantic Settings)."""

from pathlib import Path
from typing import Any, Literal, Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from taskrank.models import SortCriterion, VagueMode

# Default data directory: ~/.taskrank/data/
_data_dir = Path.home() / ".taskrank" / "data"


class Settings(BaseSettings):
    """taskrank settings loaded from environment and .env.

    LLM provider credentials are loaded from ~/.taskrank/config.toml by the
    LLM module. Everything that shapes parsing, scoring and ranking lives here.
    """

    model_config = SettingsConfigDict(
        env_prefix="TASKRANK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    tasks_path: Optional[Path] = None
    log_file: Path = _data_dir / "taskrank.log"

    # AI parsing
    enable_ai: bool = True
    ai_parse_timeout: float = Field(default=30.0, gt=0)

    # Semantic expansion
    languages: list[str] = Field(default_factory=lambda: ["English"])
    expansions_per_language: int = Field(default=5, ge=0, le=20)
    enable_semantic_expansion: bool = True

    # Vague query detection
    vague_mode: VagueMode = "auto"
    vague_threshold: float = Field(default=0.7, ge=0.5, le=0.9)

    # Sorting
    sort_order: list[SortCriterion] = Field(
        default_factory=lambda: ["relevance", "dueDate", "priority"]
    )

    # Main weights (R / D / P / S)
    relevance_weight: float = Field(default=20.0, ge=0)
    due_date_weight: float = Field(default=4.0, ge=0)
    priority_weight: float = Field(default=1.0, ge=0)
    status_weight: float = Field(default=1.0, ge=0)

    # Relevance split
    relevance_core_weight: float = Field(default=0.2, ge=0)
    relevance_all_weight: float = Field(default=1.0, ge=0)

    # Due date buckets
    due_date_overdue_score: float = Field(default=1.5, ge=0)
    due_date_within_7_days_score: float = Field(default=1.0, ge=0)
    due_date_within_1_month_score: float = Field(default=0.5, ge=0)
    due_date_later_score: float = Field(default=0.2, ge=0)
    due_date_none_score: float = Field(default=0.1, ge=0)

    # Priority buckets
    priority_p1_score: float = Field(default=1.0, ge=0)
    priority_p2_score: float = Field(default=0.75, ge=0)
    priority_p3_score: float = Field(default=0.5, ge=0)
    priority_p4_score: float = Field(default=0.2, ge=0)
    priority_none_score: float = Field(default=0.1, ge=0)

    # Status buckets; categories without a bucket score as "other"
    status_open_score: float = Field(default=1.0, ge=0)
    status_in_progress_score: float = Field(default=0.75, ge=0)
    status_completed_score: float = Field(default=0.2, ge=0)
    status_cancelled_score: float = Field(default=0.1, ge=0)
    status_other_score: float = Field(default=0.5, ge=0)

    # Quality filter: fraction of the max possible score, or "adaptive"
    quality_filter_strength: Union[float, Literal["adaptive"]] = "adaptive"
    minimum_relevance: float = Field(default=0.0, ge=0, le=1)

    # Result limits
    max_results: int = Field(default=50, ge=1)
    max_tasks_for_analysis: int = Field(default=30, ge=1)

    # User vocabulary, layered over the built-in tables
    user_terms: dict[str, dict[str, dict[str, Any]]] = Field(default_factory=dict)
    user_stop_words: list[str] = Field(default_factory=list)
    user_generic_words: list[str] = Field(default_factory=list)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("quality_filter_strength")
    @classmethod
    def _check_strength(cls, value: Union[float, str]) -> Union[float, str]:
        if isinstance(value, float) and not 0.0 <= value <= 1.0:
            raise ValueError("quality_filter_strength must be between 0 and 1")
        return value


def get_settings() -> Settings:
    """Return application settings (singleton-like)."""
    return Settings()
