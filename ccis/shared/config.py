"""
Configuration management for the CCIS engine.
Loads from config/ccis.yaml and environment variables.
"""

from pathlib import Path
from typing import Optional, Dict, Any
import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, model_validator


class ScoringConfig(BaseSettings):
    """Level classification thresholds (lower bounds of levels 2, 3 and 4)."""
    level_2_threshold: float = Field(default=0.25, ge=0.0, le=1.0)
    level_3_threshold: float = Field(default=0.50, ge=0.0, le=1.0)
    level_4_threshold: float = Field(default=0.85, ge=0.0, le=1.0)

    model_config = SettingsConfigDict(env_prefix="SCORING_", extra="ignore")

    @model_validator(mode="after")
    def _check_ordering(self) -> "ScoringConfig":
        if not (self.level_2_threshold < self.level_3_threshold < self.level_4_threshold):
            raise ValueError("Level thresholds must be strictly increasing")
        return self


class SessionConfig(BaseSettings):
    """Session orchestration thresholds."""
    max_duration_limit_minutes: int = Field(default=240, alias="SESSION_MAX_DURATION_LIMIT")
    min_signals_for_completion: int = Field(default=5)
    min_completion_confidence: float = Field(default=0.3)
    reliability_min_signals: int = Field(default=5)

    # Gaming
    pattern_window: int = Field(default=5)
    pattern_variance_threshold: float = Field(default=0.3)

    # Interventions
    low_confidence_threshold: float = Field(default=0.4)
    low_confidence_min_signals: int = Field(default=5)
    scaffolding_decrease_percentage: float = Field(default=75.0)
    scaffolding_decrease_confidence: float = Field(default=0.8)
    break_ratio: float = Field(default=0.8)
    plateau_window: int = Field(default=10)
    plateau_range: float = Field(default=0.1)

    model_config = SettingsConfigDict(env_prefix="SESSION_", extra="ignore", populate_by_name=True)


class CCISSettings(BaseSettings):
    """Main CCIS configuration."""
    env: str = Field(default="dev", alias="CCIS_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: Optional[Path] = Field(default=None, alias="LOG_FILE")

    # Sub-configurations
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
        populate_by_name=True,
    )

    @classmethod
    def load_from_yaml(cls, config_path: Optional[Path] = None) -> "CCISSettings":
        """Load settings from YAML file and merge with environment variables."""
        if config_path is None:
            config_path = Path("config/ccis.yaml")

        config_dict: Dict[str, Any] = {}

        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f) or {}
                config_dict = yaml_data.get("ccis", {}) or {}

        # Flatten scoring.levels.{2,3,4} if present
        if "scoring" in config_dict and isinstance(config_dict["scoring"], dict):
            scoring_cfg = dict(config_dict["scoring"])
            levels = scoring_cfg.pop("levels", None)
            if isinstance(levels, dict):
                for level in (2, 3, 4):
                    if level in levels:
                        scoring_cfg[f"level_{level}_threshold"] = levels[level]
            config_dict["scoring"] = scoring_cfg

        return cls(**config_dict)


# Global settings instance
_settings: Optional[CCISSettings] = None


def get_settings() -> CCISSettings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = CCISSettings.load_from_yaml()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call reloads them."""
    global _settings
    _settings = None


# Alias for convenience
settings = get_settings()
