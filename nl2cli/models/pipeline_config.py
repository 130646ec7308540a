"""Option models handed to pipeline components by the configuration layer"""

import re

from pydantic import BaseModel, Field, field_validator, model_validator


class ChunkingConfig(BaseModel):
    """Character-based chunking options"""

    chunk_size: int = Field(default=800, ge=1, description="Maximum chunk length in characters")
    overlap: int = Field(default=100, ge=0, description="Characters shared by adjacent chunks")

    @model_validator(mode="after")
    def validate_overlap(self) -> "ChunkingConfig":
        if self.overlap >= self.chunk_size:
            raise ValueError(
                f"overlap ({self.overlap}) must be smaller than chunk_size ({self.chunk_size})"
            )
        return self


class SearchConfig(BaseModel):
    """Retrieval options"""

    top_k: int = Field(default=3, ge=1, le=50, description="Maximum number of results")
    min_score: float = Field(
        default=0.3, ge=-1.0, le=1.0, description="Minimum cosine similarity for a result"
    )
    max_context_length: int = Field(
        default=2000, ge=0, description="Character budget for the assembled context"
    )
    filter_by_provider: bool = Field(
        default=True,
        description="Exclude chunks tagged with a different provider than the query's hint",
    )


class RetryPolicy(BaseModel):
    """Bounds on generation attempts for one translation"""

    max_retries: int = Field(default=2, ge=0, le=10, description="Attempts after the first")
    backoff_seconds: float = Field(
        default=1.0, ge=0.0, description="Base delay before retrying after a network failure"
    )

    @property
    def max_attempts(self) -> int:
        return 1 + self.max_retries


class QualityWeights(BaseModel):
    """Relative weights of the quality sub-scores"""

    syntax: float = Field(default=1.0, ge=0.0)
    provider_prefix: float = Field(default=1.0, ge=0.0)
    length: float = Field(default=1.0, ge=0.0)
    forbidden_pattern: float = Field(default=1.0, ge=0.0)

    @model_validator(mode="after")
    def validate_total(self) -> "QualityWeights":
        if self.syntax + self.provider_prefix + self.length + self.forbidden_pattern <= 0:
            raise ValueError("At least one quality weight must be positive")
        return self


class QualityConfig(BaseModel):
    """Quality analyzer thresholds"""

    weights: QualityWeights = Field(default_factory=QualityWeights)
    acceptance_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    min_tokens: int = Field(default=2, ge=1, description="Fewest tokens scoring full length")
    max_tokens: int = Field(default=40, ge=1, description="Most tokens scoring full length")
    length_decay_tokens: int = Field(
        default=20, ge=1, description="Tokens past max_tokens at which the length score hits 0"
    )
    forbidden_patterns: list[str] | None = Field(
        default=None, description="Regex deny-list; None uses the built-in list"
    )

    @field_validator("forbidden_patterns")
    @classmethod
    def validate_patterns(cls, patterns: list[str] | None) -> list[str] | None:
        for pattern in patterns or []:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid forbidden pattern '{pattern}': {e}") from e
        return patterns

    @model_validator(mode="after")
    def validate_range(self) -> "QualityConfig":
        if self.min_tokens > self.max_tokens:
            raise ValueError(
                f"min_tokens ({self.min_tokens}) must not exceed max_tokens ({self.max_tokens})"
            )
        return self


class LearningConfig(BaseModel):
    """Learning store persistence and matching options"""

    path: str | None = Field(
        default=None, description="JSON Lines append log; None keeps corrections in memory"
    )
    fuzzy_threshold: float = Field(
        default=0.7, gt=0.0, le=1.0, description="Minimum token-overlap ratio for a fuzzy match"
    )
