"""User-confirmed command correction model"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class CorrectionType(str, Enum):
    """Category of the failure a correction fixed"""

    COMMAND_NOT_FOUND = "command_not_found"
    INVALID_SYNTAX = "invalid_syntax"
    MISSING_PLUGIN = "missing_plugin"
    WRONG_SUBCOMMAND = "wrong_subcommand"
    PARAMETER_ERROR = "parameter_error"
    COMMAND_FIX = "command_fix"
    OTHER = "other"


class CorrectionRecord(BaseModel):
    """One entry of the append-only correction log"""

    model_config = {"frozen": True}

    query: str = Field(min_length=1, description="Original user request")
    corrected_command: str = Field(min_length=1, description="Command the user confirmed")
    failed_command: str | None = Field(
        default=None, description="Rejected or failed command, if any"
    )
    error_message: str | None = Field(default=None, description="Execution error, if any")
    correction_type: CorrectionType = Field(default=CorrectionType.COMMAND_FIX)
    provider: str | None = Field(default=None, description="Provider tag of the command")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="When the correction was recorded"
    )
