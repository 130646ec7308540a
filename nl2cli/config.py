"""Centralized configuration using Pydantic BaseSettings"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from nl2cli.models.generation import GenerationConfig
from nl2cli.models.pipeline_config import (
    ChunkingConfig,
    LearningConfig,
    QualityConfig,
    QualityWeights,
    RetryPolicy,
    SearchConfig,
)


class AppConfig(BaseSettings):
    """Application configuration with environment variable support"""

    # Knowledge base and learned corrections
    knowledge_path: str = Field(
        default="knowledge.yaml", description="YAML file listing documents to index at startup"
    )
    learning_store_path: str | None = Field(
        default="./data/corrections.jsonl",
        description="Append log for learned corrections (unset to keep them in memory)",
    )

    # Embedding
    embedding_backend: Literal["fastembed", "hashing"] = Field(
        default="fastembed",
        description="fastembed for a local model, hashing for a dependency-free embedder",
    )
    embedding_model: str = Field(
        default="BAAI/bge-small-en-v1.5", description="Local embedding model name (fastembed)"
    )
    fastembed_cache_dir: str = Field(
        default="./data/models", description="Directory to cache embedding model"
    )
    embedding_batch_size: int = Field(
        default=32, ge=1, le=256, description="Batch size for embedding generation"
    )
    embedding_dimension: int = Field(
        default=384, ge=8, description="Embedding vector dimension (384 for bge-small-en-v1.5)"
    )

    # Chunking
    chunk_size_chars: int = Field(
        default=800, ge=50, le=8000, description="Maximum chunk length in characters"
    )
    chunk_overlap_chars: int = Field(
        default=100, ge=0, le=2000, description="Character overlap between adjacent chunks"
    )

    # Retrieval
    retrieval_top_k: int = Field(default=3, ge=1, le=50, description="Chunks retrieved per query")
    retrieval_min_score: float = Field(
        default=0.3, ge=-1.0, le=1.0, description="Minimum similarity for a retrieved chunk"
    )
    max_context_length: int = Field(
        default=2000, ge=0, description="Character budget for documentation in the prompt"
    )
    filter_by_provider: bool = Field(
        default=True, description="Only retrieve chunks tagged with the query's provider"
    )

    # watsonx.ai
    watsonx_api_key: str = Field(default="", description="IBM Cloud API key for watsonx.ai")
    watsonx_project_id: str = Field(default="", description="watsonx.ai project id")
    watsonx_api_url: str = Field(
        default="https://us-south.ml.cloud.ibm.com", description="watsonx.ai regional endpoint"
    )
    watsonx_iam_url: str = Field(
        default="iam.cloud.ibm.com", description="IAM host used to exchange the API key"
    )
    model_id: str = Field(
        default="ibm/granite-3-3-8b-instruct", description="Generation model identifier"
    )
    generation_timeout_seconds: float = Field(
        default=60.0, gt=0.0, description="Timeout for one generation call"
    )
    max_new_tokens: int = Field(default=200, ge=1, le=4096)
    min_new_tokens: int = Field(default=1, ge=0)
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)

    # Translation
    max_retries: int = Field(
        default=2, ge=0, le=10, description="Generation attempts after the first failure"
    )
    retry_backoff_seconds: float = Field(
        default=1.0, ge=0.0, description="Base backoff after a network failure (doubles per attempt)"
    )
    acceptance_threshold: float = Field(
        default=0.6, ge=0.0, le=1.0, description="Minimum aggregate quality score"
    )
    min_command_tokens: int = Field(default=2, ge=1)
    max_command_tokens: int = Field(default=40, ge=1)
    quality_weight_syntax: float = Field(default=1.0, ge=0.0)
    quality_weight_provider_prefix: float = Field(default=1.0, ge=0.0)
    quality_weight_length: float = Field(default=1.0, ge=0.0)
    quality_weight_forbidden_pattern: float = Field(default=1.0, ge=0.0)
    forbidden_patterns: list[str] | None = Field(
        default=None,
        description="Regex deny-list for generated commands as a JSON list (unset for built-in)",
    )
    fuzzy_match_threshold: float = Field(
        default=0.7, gt=0.0, le=1.0, description="Token overlap needed for a fuzzy learned match"
    )
    default_provider: str | None = Field(
        default=None, description="Provider assumed when none is given or detected"
    )
    translate_concurrency: int = Field(
        default=4, ge=1, le=64, description="Parallel translations in batch mode"
    )

    # MCP Server
    mcp_host: str = Field(default="0.0.0.0", description="MCP server bind address")
    mcp_port: int = Field(default=8080, ge=1024, le=65535, description="MCP server port")

    # OpenTelemetry
    otel_logging_enabled: bool = Field(
        default=False, description="Enable OpenTelemetry logging of translations"
    )
    otel_tracing_enabled: bool = Field(
        default=False, description="Enable OpenTelemetry tracing for HTTP requests"
    )
    otel_endpoint: str = Field(
        default="http://localhost:4318",
        description="OpenTelemetry collector endpoint (HTTP/protobuf)",
    )
    otel_service_name: str = Field(default="nl2cli", description="Service name for OpenTelemetry")
    otel_service_version: str = Field(
        default="0.1.0", description="Service version for OpenTelemetry"
    )
    otel_log_full_results: bool = Field(
        default=False, description="Include full retrieved context in telemetry logs"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    def chunking_config(self) -> ChunkingConfig:
        return ChunkingConfig(chunk_size=self.chunk_size_chars, overlap=self.chunk_overlap_chars)

    def search_config(self) -> SearchConfig:
        return SearchConfig(
            top_k=self.retrieval_top_k,
            min_score=self.retrieval_min_score,
            max_context_length=self.max_context_length,
            filter_by_provider=self.filter_by_provider,
        )

    def generation_config(self) -> GenerationConfig:
        return GenerationConfig(
            model_id=self.model_id,
            temperature=self.temperature,
            max_new_tokens=self.max_new_tokens,
            min_new_tokens=self.min_new_tokens,
            timeout_seconds=self.generation_timeout_seconds,
        )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries, backoff_seconds=self.retry_backoff_seconds
        )

    def quality_config(self) -> QualityConfig:
        return QualityConfig(
            weights=QualityWeights(
                syntax=self.quality_weight_syntax,
                provider_prefix=self.quality_weight_provider_prefix,
                length=self.quality_weight_length,
                forbidden_pattern=self.quality_weight_forbidden_pattern,
            ),
            acceptance_threshold=self.acceptance_threshold,
            min_tokens=self.min_command_tokens,
            max_tokens=self.max_command_tokens,
            forbidden_patterns=self.forbidden_patterns,
        )

    def learning_config(self) -> LearningConfig:
        return LearningConfig(
            path=self.learning_store_path or None, fuzzy_threshold=self.fuzzy_match_threshold
        )


# Global config instance
config = AppConfig()
