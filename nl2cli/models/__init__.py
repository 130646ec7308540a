"""Data models for the command translation pipeline"""

from nl2cli.models.command import Command, CommandSource, QualityScore, RecoverySuggestion
from nl2cli.models.correction import CorrectionRecord, CorrectionType
from nl2cli.models.document import Document, DocumentChunk, IndexingResult
from nl2cli.models.generation import GenerationConfig, GenerationRequest, GenerationResponse
from nl2cli.models.knowledge import KnowledgeBase, KnowledgeEntry
from nl2cli.models.pipeline_config import (
    ChunkingConfig,
    LearningConfig,
    QualityConfig,
    QualityWeights,
    RetryPolicy,
    SearchConfig,
)
from nl2cli.models.provider import (
    Provider,
    ProviderDetection,
    cli_command_for,
    detect_provider_from_query,
)
from nl2cli.models.query import Query
from nl2cli.models.record import QueryInfo, RetrievalResult, SearchHit, VectorRecord

__all__ = [
    "Command",
    "CommandSource",
    "QualityScore",
    "RecoverySuggestion",
    "CorrectionRecord",
    "CorrectionType",
    "Document",
    "DocumentChunk",
    "IndexingResult",
    "GenerationConfig",
    "GenerationRequest",
    "GenerationResponse",
    "KnowledgeBase",
    "KnowledgeEntry",
    "ChunkingConfig",
    "LearningConfig",
    "QualityConfig",
    "QualityWeights",
    "RetryPolicy",
    "SearchConfig",
    "Provider",
    "ProviderDetection",
    "cli_command_for",
    "detect_provider_from_query",
    "Query",
    "QueryInfo",
    "RetrievalResult",
    "SearchHit",
    "VectorRecord",
]
