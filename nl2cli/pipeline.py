"""Construction and teardown of the translation pipeline"""

import logging
from pathlib import Path

from nl2cli.config import AppConfig
from nl2cli.models.document import IndexingResult
from nl2cli.services.document_indexer import DocumentIndexer
from nl2cli.services.embedder import Embedder, create_embedder
from nl2cli.services.generation import GenerationBackend
from nl2cli.services.learning_store import LearningStore
from nl2cli.services.quality_analyzer import QualityAnalyzer
from nl2cli.services.rag_engine import RagEngine
from nl2cli.services.translator import CommandTranslator
from nl2cli.services.vector_index import VectorIndex
from nl2cli.services.watsonx_client import WatsonxClient
from nl2cli.utils.knowledge_loader import load_knowledge_base

logger = logging.getLogger(__name__)


class Pipeline:
    """Every component of one process, sharing a single index and learning store"""

    def __init__(
        self,
        vector_index: VectorIndex,
        embedder: Embedder,
        indexer: DocumentIndexer,
        rag_engine: RagEngine,
        learning_store: LearningStore,
        backend: GenerationBackend,
        translator: CommandTranslator,
    ):
        self.vector_index = vector_index
        self.embedder = embedder
        self.indexer = indexer
        self.rag_engine = rag_engine
        self.learning_store = learning_store
        self.backend = backend
        self.translator = translator

    def index_knowledge(self, knowledge_path: str | Path) -> IndexingResult:
        """Load a knowledge file and index every document in it"""
        documents = load_knowledge_base(knowledge_path)
        return self.indexer.index_many(documents)

    async def close(self) -> None:
        """Release the backend connection and embedding model, then drop indexed records"""
        await self.backend.close()
        self.embedder.close()
        self.vector_index.clear()


def build_pipeline(
    app_config: AppConfig,
    backend: GenerationBackend | None = None,
    embedder: Embedder | None = None,
    index_knowledge: bool = True,
) -> Pipeline:
    """
    Build the pipeline from configuration

    Args:
        app_config: Application configuration
        backend: Generation backend override (defaults to watsonx.ai)
        embedder: Embedder override (defaults to the configured backend)
        index_knowledge: Index the configured knowledge file when it exists

    Returns:
        Pipeline: Ready-to-use components
    """
    embedder = embedder or create_embedder(
        app_config.embedding_backend,
        model_name=app_config.embedding_model,
        cache_dir=app_config.fastembed_cache_dir,
        batch_size=app_config.embedding_batch_size,
        dimension=app_config.embedding_dimension,
    )
    backend = backend or WatsonxClient(
        api_key=app_config.watsonx_api_key,
        project_id=app_config.watsonx_project_id,
        api_url=app_config.watsonx_api_url,
        iam_url=app_config.watsonx_iam_url,
    )

    vector_index = VectorIndex()
    indexer = DocumentIndexer(
        vector_index,
        embedder,
        chunking_config=app_config.chunking_config(),
        batch_size=app_config.embedding_batch_size,
    )
    rag_engine = RagEngine(vector_index, embedder, search_config=app_config.search_config())
    learning_store = LearningStore(app_config.learning_config())
    translator = CommandTranslator(
        backend=backend,
        rag_engine=rag_engine,
        quality_analyzer=QualityAnalyzer(app_config.quality_config()),
        learning_store=learning_store,
        generation_config=app_config.generation_config(),
        retry_policy=app_config.retry_policy(),
        default_provider=app_config.default_provider,
    )

    pipeline = Pipeline(
        vector_index=vector_index,
        embedder=embedder,
        indexer=indexer,
        rag_engine=rag_engine,
        learning_store=learning_store,
        backend=backend,
        translator=translator,
    )

    if index_knowledge:
        if Path(app_config.knowledge_path).exists():
            result = pipeline.index_knowledge(app_config.knowledge_path)
            logger.info(
                f"Knowledge base ready: {result.chunks_indexed} chunks "
                f"from {result.documents_indexed} documents"
            )
        else:
            logger.warning(
                f"Knowledge base {app_config.knowledge_path} not found; "
                "translating without documentation context"
            )

    return pipeline
