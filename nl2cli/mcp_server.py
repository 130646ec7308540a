"""MCP server implementation using fastmcp"""

import asyncio
import logging
import threading
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastmcp import FastMCP
from fastmcp.exceptions import McpError
from mcp.types import ErrorData
from starlette.responses import JSONResponse

from nl2cli.config import config
from nl2cli.models.command import Command, RecoverySuggestion
from nl2cli.models.pipeline_config import SearchConfig
from nl2cli.models.query import Query
from nl2cli.models.record import RetrievalResult
from nl2cli.pipeline import Pipeline, build_pipeline
from nl2cli.services.generation import GenerationError
from nl2cli.services.telemetry import get_telemetry_service
from nl2cli.services.translator import TranslationFailedError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize fastmcp server
mcp = FastMCP(name="nl2cli", version="0.1.0")

# Initialized on first request
_pipeline: Pipeline | None = None
_pipeline_lock = threading.Lock()


def _get_pipeline() -> Pipeline:
    """Get or build the process-wide pipeline"""
    global _pipeline
    with _pipeline_lock:
        if _pipeline is None:
            _pipeline = build_pipeline(config)
    return _pipeline


@mcp.tool()
async def translate_command(query: str, provider: str | None = None) -> Command:
    """Translate a natural language request into a single CLI command

    Args:
        query: What the user wants to do, in plain language
        provider: Target CLI or provider (ibmcloud, aws, gcp, azure, vmware, or any executable)

    Returns:
        Command: The command with its quality score and how it was produced
    """
    telemetry = get_telemetry_service()
    error: Exception | None = None
    command: Command | None = None

    try:
        translator = _get_pipeline().translator
        try:
            command = await translator.translate(query, provider)
            return command
        except ValueError as e:
            error = e
            raise McpError(ErrorData(code=-32602, message=str(e))) from e
        except TranslationFailedError as e:
            error = e
            raise McpError(ErrorData(code=-32603, message=str(e))) from e
    finally:
        telemetry.log_translation(
            source="translate_command",
            query=query,
            provider=provider,
            command=command,
            error=error,
        )


@mcp.tool()
async def record_correction(
    query: str,
    corrected_command: str,
    failed_command: str | None = None,
    error_message: str | None = None,
    provider: str | None = None,
) -> dict[str, Any]:
    """Teach the translator the correct command for a request

    Args:
        query: The original request
        corrected_command: The command that actually worked
        failed_command: The command that was wrong, if any
        error_message: The error the wrong command produced, if any
        provider: Target CLI or provider

    Returns:
        dict: The stored correction record
    """
    try:
        record = _get_pipeline().translator.record_correction(
            query,
            corrected_command,
            failed_command=failed_command,
            error_message=error_message,
            provider=provider,
        )
    except ValueError as e:
        raise McpError(ErrorData(code=-32602, message=str(e))) from e
    return record.model_dump(mode="json")


@mcp.tool()
async def suggest_recovery(
    query: str, failed_command: str, error_message: str
) -> RecoverySuggestion:
    """Explain why a command failed and suggest a fix

    Args:
        query: The original request
        failed_command: The command that failed
        error_message: The error output of the failed command
    """
    try:
        return await _get_pipeline().translator.suggest_recovery(
            query, failed_command, error_message
        )
    except GenerationError as e:
        raise McpError(ErrorData(code=-32603, message=f"Recovery failed: {e}")) from e


@mcp.tool()
async def search_docs(
    query: str, provider: str | None = None, limit: int = 3, min_score: float | None = None
) -> RetrievalResult:
    """Search the indexed CLI documentation

    Args:
        query: Search query (natural language)
        provider: Only return documentation for this provider
        limit: Maximum number of results to return (1-50, default: 3)
        min_score: Minimum similarity score (-1.0 to 1.0)
    """
    pipeline = _get_pipeline()
    defaults = pipeline.rag_engine.search_config
    try:
        search_config = SearchConfig(
            top_k=limit,
            min_score=defaults.min_score if min_score is None else min_score,
            max_context_length=defaults.max_context_length,
            filter_by_provider=defaults.filter_by_provider,
        )
        return pipeline.rag_engine.retrieve(Query(text=query, provider=provider), search_config)
    except ValueError as e:
        raise McpError(ErrorData(code=-32602, message=f"Invalid search: {e}")) from e


@mcp.tool()
async def get_chunk(chunk_id: str) -> dict[str, Any]:
    """Retrieve the full text and metadata of an indexed documentation chunk

    Args:
        chunk_id: Chunk identifier as returned by search_docs

    Returns:
        dict: Chunk id, text and metadata
    """
    record = _get_pipeline().vector_index.get(chunk_id)
    if record is None:
        raise McpError(ErrorData(code=-32002, message=f"Chunk with ID {chunk_id} not found"))
    return record.model_dump(exclude={"embedding"})


@mcp.custom_route("/", methods=["GET"])
@mcp.custom_route("/health", methods=["GET"])
def health_check(request):
    pipeline = _pipeline
    return JSONResponse(
        {
            "status": "ok",
            "indexed_chunks": pipeline.vector_index.count() if pipeline else 0,
            "learned_corrections": pipeline.learning_store.count() if pipeline else 0,
        }
    )


def main() -> None:
    """Entry point for the MCP server"""
    global _pipeline
    # Load .env file first (won't override existing env vars)
    if Path(".env").exists():
        load_dotenv()
    pipeline = _get_pipeline()
    try:
        mcp.run(transport="streamable-http", host=config.mcp_host, port=config.mcp_port)
    finally:
        with _pipeline_lock:
            _pipeline = None
        asyncio.run(pipeline.close())
        logger.info("Pipeline closed")


if __name__ == "__main__":
    main()
