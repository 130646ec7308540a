"""Translation and retrieval query model"""

from pydantic import BaseModel, Field


class Query(BaseModel):
    """User request to be translated into a command"""

    text: str = Field(min_length=1, description="Free-text request")
    provider: str | None = Field(
        default=None, description="Optional provider or executable hint (e.g. 'aws', 'tool')"
    )
