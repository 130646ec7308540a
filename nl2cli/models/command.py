"""Translated command and quality score models"""

from enum import Enum

from pydantic import BaseModel, Field


class QualityScore(BaseModel):
    """Heuristic sub-scores for a candidate command plus their weighted aggregate"""

    syntax: float = Field(ge=0.0, le=1.0, description="Single line, balanced quotes/brackets")
    provider_prefix: float = Field(ge=0.0, le=1.0, description="First token matches the CLI")
    length: float = Field(ge=0.0, le=1.0, description="Token count within configured range")
    forbidden_pattern: float = Field(
        ge=0.0, le=1.0, description="1.0 unless a deny-list pattern matched"
    )
    aggregate: float = Field(ge=0.0, le=1.0, description="Weighted average of sub-scores")
    acceptable: bool = Field(description="Aggregate reached the acceptance threshold")
    reasons: list[str] = Field(
        default_factory=list, description="Why each imperfect sub-score lost points"
    )

    @classmethod
    def trusted(cls) -> "QualityScore":
        """Score given to user-confirmed corrections"""
        return cls(
            syntax=1.0,
            provider_prefix=1.0,
            length=1.0,
            forbidden_pattern=1.0,
            aggregate=1.0,
            acceptable=True,
        )

    def rejection_reason(self) -> str:
        if self.reasons:
            return "; ".join(self.reasons)
        return f"quality score {self.aggregate:.2f} was below the acceptance threshold"


class CommandSource(str, Enum):
    """Where a translated command came from"""

    LEARNED = "learned"
    GENERATED = "generated"


class Command(BaseModel):
    """An executable single-line command ready to hand to the execution collaborator"""

    text: str = Field(min_length=1, description="Single-line command string")
    provider: str | None = Field(default=None, description="Provider tag or executable hint")
    quality: QualityScore = Field(description="Quality assessment of the command")
    source: CommandSource = Field(default=CommandSource.GENERATED)
    attempts: int = Field(default=0, ge=0, description="Generation attempts used (0 if learned)")


class RecoverySuggestion(BaseModel):
    """Model-suggested fix for a command that failed to execute"""

    explanation: str = Field(default="", description="Why the command failed")
    command: str | None = Field(default=None, description="Corrected command or next step")
    correctable: bool = Field(
        default=False, description="Whether the error looks fixable by a different command"
    )
    learned_commands: list[str] = Field(
        default_factory=list, description="Commands users confirmed for the same failure"
    )
