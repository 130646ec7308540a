"""Shared fixtures: deterministic embedder, isolated stores and a scripted backend"""

import pytest

from nl2cli.models.generation import GenerationConfig, GenerationResponse
from nl2cli.models.pipeline_config import LearningConfig, RetryPolicy, SearchConfig
from nl2cli.services.document_indexer import DocumentIndexer
from nl2cli.services.embedder import HashingEmbedder
from nl2cli.services.generation import GenerationBackend
from nl2cli.services.learning_store import LearningStore
from nl2cli.services.quality_analyzer import QualityAnalyzer
from nl2cli.services.rag_engine import RagEngine
from nl2cli.services.translator import CommandTranslator
from nl2cli.services.vector_index import VectorIndex


class ScriptedBackend(GenerationBackend):
    """Replays canned responses (or raises canned errors) and records every prompt"""

    def __init__(self, responses):
        self.responses = list(responses)
        self.prompts: list[str] = []
        self.closed = False

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def _generate(self, prompt: str, config: GenerationConfig) -> GenerationResponse:
        self.prompts.append(prompt)
        # The last response repeats once the script runs out
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return GenerationResponse(text=item, model_id=config.model_id)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def embedder():
    return HashingEmbedder(dimension=384)


@pytest.fixture
def vector_index():
    return VectorIndex()


@pytest.fixture
def indexer(vector_index, embedder):
    return DocumentIndexer(vector_index, embedder)


@pytest.fixture
def rag_engine(vector_index, embedder):
    return RagEngine(vector_index, embedder, search_config=SearchConfig())


@pytest.fixture
def learning_store():
    return LearningStore(LearningConfig(path=None))


@pytest.fixture
def make_backend():
    return ScriptedBackend


@pytest.fixture
def make_translator(rag_engine, learning_store):
    """Build a translator around a scripted backend with no retry backoff"""

    def _make(backend, max_retries: int = 2, default_provider: str | None = None):
        return CommandTranslator(
            backend=backend,
            rag_engine=rag_engine,
            quality_analyzer=QualityAnalyzer(),
            learning_store=learning_store,
            retry_policy=RetryPolicy(max_retries=max_retries, backoff_seconds=0.0),
            default_provider=default_provider,
        )

    return _make
