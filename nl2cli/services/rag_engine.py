"""Retrieval engine: embed a query, search the index and assemble prompt context"""

import logging
import time

from nl2cli.models.pipeline_config import SearchConfig
from nl2cli.models.provider import Provider
from nl2cli.models.query import Query
from nl2cli.models.record import QueryInfo, RetrievalResult, VectorRecord
from nl2cli.services.embedder import Embedder
from nl2cli.services.vector_index import VectorIndex

logger = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n---\n"

PROMPT_TEMPLATE = "=== RELEVANT DOCUMENTATION ===\n{context}\n=== END DOCUMENTATION ===\n\n{base_prompt}"


def _provider_tag(hint: str | None) -> str | None:
    if not hint or not hint.strip():
        return None
    provider = Provider.from_str(hint)
    return provider.value if provider else hint.strip().lower()


def build_context(result: RetrievalResult, max_context_length: int) -> str:
    """
    Join retrieved chunk texts, highest score first, within a character budget

    Chunks are never cut: the lowest-scoring chunks are dropped until the joined
    text fits, so the result may be empty when even the best chunk is too long.
    """
    texts = [text for text in result.texts() if text.strip()]
    while texts:
        context = CONTEXT_SEPARATOR.join(texts)
        if len(context) <= max_context_length:
            return context
        texts.pop()
    return ""


def enhance_prompt(base_prompt: str, context: str) -> str:
    """Prepend a documentation block to the prompt; an empty context leaves it unchanged"""
    if not context.strip():
        return base_prompt
    return PROMPT_TEMPLATE.format(context=context, base_prompt=base_prompt)


class RagEngine:
    """Handle retrieval of documentation context for translation prompts"""

    def __init__(
        self,
        vector_index: VectorIndex,
        embedder: Embedder,
        search_config: SearchConfig | None = None,
    ):
        self.vector_index = vector_index
        self.embedder = embedder
        self.search_config = search_config or SearchConfig()

    def retrieve(self, query: Query, search_config: SearchConfig | None = None) -> RetrievalResult:
        """
        Execute a similarity search for a query

        Args:
            query: Query text plus optional provider hint
            search_config: Overrides the engine's search options for this call

        Returns:
            RetrievalResult: Ranked hits with query metadata, possibly empty
        """
        start_time = time.time()
        options = search_config or self.search_config

        predicate = None
        tag = _provider_tag(query.provider)
        if tag and options.filter_by_provider:

            def predicate(record: VectorRecord) -> bool:
                # Untagged chunks apply to every provider
                record_tag = record.metadata.get("provider")
                return record_tag is None or _provider_tag(record_tag) == tag

        query_embedding = self.embedder.embed_text(query.text)
        result = self.vector_index.search(
            query_embedding, top_k=options.top_k, min_score=options.min_score, predicate=predicate
        )

        query_time_ms = (time.time() - start_time) * 1000
        result.query_info = QueryInfo(
            original_query=query.text,
            total_results=len(result.results),
            query_time_ms=query_time_ms,
        )
        logger.debug(
            f"Retrieved {len(result.results)} chunks for '{query.text[:50]}' "
            f"in {query_time_ms:.1f}ms"
        )
        return result

    def context_for(self, query: Query, search_config: SearchConfig | None = None) -> str:
        """Retrieve and assemble the context block for a query"""
        options = search_config or self.search_config
        return build_context(self.retrieve(query, options), options.max_context_length)
