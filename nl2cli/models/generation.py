"""Generation request/response models"""

from pydantic import BaseModel, Field


class GenerationConfig(BaseModel):
    """Sampling and limits for one generation call"""

    model_id: str = Field(
        default="ibm/granite-3-3-8b-instruct", description="Backend model identifier"
    )
    temperature: float = Field(
        default=0.0, ge=0.0, le=2.0, description="Sampling temperature (0 = greedy decoding)"
    )
    max_new_tokens: int = Field(default=200, ge=1, le=4096, description="Maximum new tokens")
    min_new_tokens: int = Field(default=1, ge=0, description="Minimum new tokens")
    stop_sequences: list[str] = Field(
        default_factory=lambda: ["Human:", "Assistant:", "Query:"],
        description="Sequences that end generation",
    )
    top_k: int = Field(default=50, ge=1, description="Top-k sampling cutoff")
    top_p: float = Field(default=1.0, gt=0.0, le=1.0, description="Nucleus sampling cutoff")
    repetition_penalty: float = Field(default=1.1, ge=1.0, le=2.0)
    timeout_seconds: float = Field(
        default=60.0, gt=0.0, description="Timeout for the whole call, in seconds"
    )


class GenerationRequest(BaseModel):
    """Prompt plus configuration for a single attempt"""

    prompt: str = Field(min_length=1, description="Full prompt text")
    config: GenerationConfig = Field(default_factory=GenerationConfig)


class GenerationResponse(BaseModel):
    """Raw text returned by a backend"""

    text: str = Field(min_length=1, description="Generated text, non-empty on success")
    model_id: str | None = Field(default=None, description="Model that produced the text")
