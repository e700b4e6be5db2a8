from typing import TypedDict, Optional, Literal
from pydantic import BaseModel, Field, field_validator


# Shared constants, imported by src/filters.py, src/aggregate.py, nodes/ and main.py
SENTIMENTS = ["positive", "neutral", "negative"]
THEMES = [
    "performance", "pricing", "documentation", "developer-experience",
    "reliability", "feature-request", "other"
]
URGENCIES = ["low", "medium", "high", "critical"]
VALUE_SCORES = ["low", "medium", "high"]
CHANNELS = ["support", "github", "discord", "twitter", "forum"]

# Column defaults for rows that have not been classified yet
PENDING_SENTIMENT = "pending"
UNCATEGORIZED_THEME = "uncategorized"

# Sentinel accepted by every listing filter meaning "no constraint"
ALL = "all"


class InvalidInputError(ValueError):
    """Raised when a caller passes missing or out-of-domain input."""


class FeedbackItem(TypedDict):
    id: int
    created_at: str                  # "YYYY-MM-DD HH:MM:SS" (UTC)
    channel: str
    title: Optional[str]
    content: str
    author: Optional[str]
    sentiment: str                   # SENTIMENTS or "pending"
    sentiment_score: float           # [-1.0, 1.0]
    theme: str                       # THEMES or "uncategorized"
    urgency: str
    value_score: str
    analyzed: bool


class NewFeedback(TypedDict, total=False):
    """Caller-supplied fields for a feedback item that is about to be created."""
    channel: str
    content: str
    title: Optional[str]
    author: Optional[str]
    created_at: Optional[str]        # Only set for imports/seeds, otherwise the store assigns it


class IngestionState(TypedDict):
    # Input
    feedback: NewFeedback

    # From ingest node
    feedback_id: Optional[int]

    # From classify node
    classification: Optional[dict]   # ClassificationResult.model_dump()

    # Workflow status
    status: str  # "pending" | "stored" | "classified" | "saved"


class ClassificationResult(BaseModel):
    """Validated output of the classification pipeline."""
    sentiment: Literal["positive", "neutral", "negative"] = Field(
        description="Overall tone of the feedback"
    )
    sentiment_score: float = Field(
        default=0.0,
        description="Sentiment from -1.0 (very negative) to 1.0 (very positive)"
    )
    theme: Literal[
        "performance", "pricing", "documentation", "developer-experience",
        "reliability", "feature-request", "other"
    ] = Field(description="Product area the feedback is about")
    urgency: Literal["low", "medium", "high", "critical"] = Field(
        description="How quickly the feedback needs attention"
    )
    summary: str = Field(default="", description="One sentence summary of the feedback")

    # Diagnostics, only set on fallback results
    raw_response: Optional[str] = None
    error: Optional[str] = None

    @field_validator("sentiment_score", mode="after")
    @classmethod
    def _clamp_score(cls, value: float) -> float:
        if value != value:  # NaN
            raise ValueError("sentiment_score must be a number")
        return max(-1.0, min(1.0, value))

    def to_record(self) -> dict:
        """JSON-serializable dict without unset diagnostic fields."""
        return self.model_dump(exclude_none=True)
