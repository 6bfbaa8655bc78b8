"""
Read-only snapshots of session state for external consumers.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


class AssessmentReliability(str, Enum):
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"
    INSUFFICIENT_DATA = "insufficient_data"


class CompetencyProgress(BaseModel):
    """Latest classification for one competency within a session."""
    model_config = ConfigDict(frozen=True)

    ccis_level: int = Field(ge=1, le=4)
    confidence: float = Field(ge=0.0, le=1.0)
    signal_count: int = Field(ge=0)
    last_updated: datetime


class SessionProgress(BaseModel):
    """Point-in-time view of a session's classification state."""
    model_config = ConfigDict(frozen=True)

    session_id: str
    status: str
    total_interactions: int
    signal_collection_count: int
    current_ccis_level: int = Field(ge=1, le=4)
    overall_score: float = Field(ge=0.0, le=1.0)
    overall_confidence: float = Field(ge=0.0, le=1.0)
    competency_progress: Dict[str, CompetencyProgress] = Field(default_factory=dict)
    interventions_triggered: List[str] = Field(default_factory=list)
    gaming_pattern_detected: bool = False
    assessment_reliability: AssessmentReliability


class EngagementMetrics(BaseModel):
    total_time_spent: float = 0.0  # minutes
    active_time_percentage: float = 0.0
    task_completion_rate: float = 0.0
    average_response_time: float = 0.0  # seconds


class LearningMetrics(BaseModel):
    ccis_progression: List[int] = Field(default_factory=list)
    score_progression: List[float] = Field(default_factory=list)
    confidence_progression: List[float] = Field(default_factory=list)
    error_patterns: List[str] = Field(default_factory=list)
    improvement_rate: float = 0.0


class BehavioralMetrics(BaseModel):
    hint_usage_pattern: List[float] = Field(default_factory=list)
    help_seeking_frequency: float = 0.0
    self_assessment_accuracy: float = 0.0
    metacognitive_awareness: float = 0.0


class PredictiveMetrics(BaseModel):
    projected_ccis_level: int = Field(default=1, ge=1, le=4)
    time_to_completion: float = 0.0  # minutes
    intervention_likelihood: float = 0.0
    success_probability: float = 0.0


class SessionAnalytics(BaseModel):
    """Rolling engagement, learning, behavioral and predictive metrics."""
    engagement_metrics: EngagementMetrics = Field(default_factory=EngagementMetrics)
    learning_metrics: LearningMetrics = Field(default_factory=LearningMetrics)
    behavioral_metrics: BehavioralMetrics = Field(default_factory=BehavioralMetrics)
    predictive_metrics: PredictiveMetrics = Field(default_factory=PredictiveMetrics)
