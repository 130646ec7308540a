"""Translation orchestrator: learned fast path, retrieval, generation and scoring"""

import asyncio
import logging
import re

from nl2cli.models.command import Command, CommandSource, RecoverySuggestion
from nl2cli.models.correction import CorrectionRecord
from nl2cli.models.generation import GenerationConfig, GenerationRequest
from nl2cli.models.pipeline_config import RetryPolicy, SearchConfig
from nl2cli.models.provider import Provider, cli_command_for, detect_provider_from_query
from nl2cli.models.query import Query
from nl2cli.services.generation import (
    AuthenticationError,
    EmptyResponseError,
    GenerationBackend,
    GenerationError,
    NetworkError,
)
from nl2cli.services.learning_store import LearningStore, is_correctable_error
from nl2cli.services.quality_analyzer import QualityAnalyzer
from nl2cli.services.rag_engine import RagEngine, enhance_prompt
from nl2cli.utils.command_text import extract_command

logger = logging.getLogger(__name__)

_EXPLANATION = re.compile(r"^\s*Explanation:\s*(.*)$", re.IGNORECASE | re.MULTILINE)
_SUGGESTED = re.compile(r"^\s*Suggested Command:\s*(.*)$", re.IGNORECASE | re.MULTILINE)


class TranslationFailedError(Exception):
    """No acceptable command was produced within the attempt bound"""

    def __init__(self, query: str, reason: str, attempts: int):
        self.query = query
        self.reason = reason
        self.attempts = attempts
        super().__init__(
            f"Could not translate '{query}' after {attempts} attempt(s): {reason}"
        )


class CommandTranslator:
    """Turn a natural-language request into a single command line"""

    def __init__(
        self,
        backend: GenerationBackend,
        rag_engine: RagEngine,
        quality_analyzer: QualityAnalyzer,
        learning_store: LearningStore,
        generation_config: GenerationConfig | None = None,
        retry_policy: RetryPolicy | None = None,
        search_config: SearchConfig | None = None,
        default_provider: str | None = None,
    ):
        self.backend = backend
        self.rag_engine = rag_engine
        self.quality_analyzer = quality_analyzer
        self.learning_store = learning_store
        self.generation_config = generation_config or GenerationConfig()
        self.retry_policy = retry_policy or RetryPolicy()
        self.search_config = search_config
        self.default_provider = default_provider

    def resolve_provider(self, query: str, provider: str | None = None) -> str | None:
        """Explicit hint first, then keyword detection, then the configured default"""
        if provider and provider.strip():
            return provider.strip()
        detection = detect_provider_from_query(query)
        if detection:
            logger.debug(f"Detected provider {detection.provider.value}: {detection.reason}")
            return detection.provider.value
        return self.default_provider

    def build_prompt(self, query: str, provider: str | None) -> str:
        """Instruction prompt ending with the query, before any documentation is added"""
        known = Provider.from_str(provider) if provider else None
        executable = cli_command_for(provider)

        if known:
            target = f"{known.display_name} CLI ({executable})"
        elif executable:
            target = f"'{executable}' CLI"
        else:
            target = "command-line"

        sections = [
            f"You are a {target} expert. Translate the following natural language query "
            f"into a single valid {target} command.",
            "Only output the command itself, on one line, with no explanation or formatting.",
        ]
        if known:
            sections.append(f"\nCommand reference:\n{known.prompt_guidance}")

        examples = self.learning_store.related(query, limit=3)
        if examples:
            lines = [f"- '{record.query}' -> {record.corrected_command}" for record in examples]
            sections.append("\nLearned corrections:\n" + "\n".join(lines))

        sections.append(f"\nQuery: {query.strip()}\nCommand:")
        return "\n".join(sections)

    async def translate(self, query: str, provider: str | None = None) -> Command:
        """
        Translate a request into a command

        A learned correction answers immediately. Otherwise documentation context is
        retrieved once and reused while up to 1 + max_retries generation attempts run
        one after another, each retry carrying the previous rejection reason.

        Raises:
            TranslationFailedError: When no attempt produced an acceptable command, or
                the backend rejected the credentials
        """
        if not query.strip():
            raise ValueError("query must be non-empty")

        learned = self.learning_store.lookup(query)
        if learned:
            logger.info(f"Using learned command for '{query.strip()}'")
            if learned.provider is None and provider:
                learned = learned.model_copy(update={"provider": provider})
            return learned

        resolved = self.resolve_provider(query, provider)
        executable = cli_command_for(resolved)
        context = self.rag_engine.context_for(
            Query(text=query, provider=resolved), self.search_config
        )
        prompt = enhance_prompt(self.build_prompt(query, resolved), context)

        max_attempts = self.retry_policy.max_attempts
        last_reason = "no attempt was made"
        feedback: str | None = None

        for attempt in range(1, max_attempts + 1):
            request = GenerationRequest(prompt=prompt, config=self.generation_config)
            try:
                if feedback is None:
                    response = await self.backend.generate(request.prompt, request.config)
                else:
                    response = await self.backend.generate_with_feedback(
                        request.prompt, request.config, feedback, attempt=attempt - 1
                    )
            except AuthenticationError as e:
                logger.error(f"Generation backend rejected credentials: {e}")
                raise TranslationFailedError(query, f"authentication failed: {e}", attempt) from e
            except NetworkError as e:
                last_reason = f"network error: {e}"
                logger.warning(f"Attempt {attempt}/{max_attempts} failed: {last_reason}")
                if attempt < max_attempts:
                    wait_time = self.retry_policy.backoff_seconds * 2 ** (attempt - 1)
                    await asyncio.sleep(wait_time)
                continue
            except EmptyResponseError as e:
                last_reason = feedback = "previous answer was empty"
                logger.warning(f"Attempt {attempt}/{max_attempts} failed: {e}")
                continue
            except GenerationError as e:
                last_reason = f"{type(e).__name__}: {e}"
                logger.warning(f"Attempt {attempt}/{max_attempts} failed: {last_reason}")
                continue

            candidate = extract_command(response.text, executable)
            score = self.quality_analyzer.analyze(candidate, resolved)
            if score.acceptable:
                logger.info(
                    f"Translated '{query.strip()}' -> '{candidate}' "
                    f"(score {score.aggregate:.2f}, attempt {attempt})"
                )
                return Command(
                    text=candidate,
                    provider=resolved,
                    quality=score,
                    source=CommandSource.GENERATED,
                    attempts=attempt,
                )

            last_reason = feedback = score.rejection_reason()
            logger.info(
                f"Attempt {attempt}/{max_attempts} rejected '{candidate}' "
                f"(score {score.aggregate:.2f}): {last_reason}"
            )

        raise TranslationFailedError(query, last_reason, max_attempts)

    async def translate_many(
        self, queries: list[Query], concurrency: int = 4
    ) -> list[Command | TranslationFailedError]:
        """
        Translate independent requests concurrently

        Returns:
            list: One Command or TranslationFailedError per query, in input order
        """
        semaphore = asyncio.Semaphore(concurrency)

        async def _translate(query: Query) -> Command | TranslationFailedError:
            async with semaphore:
                try:
                    return await self.translate(query.text, query.provider)
                except TranslationFailedError as e:
                    return e

        return await asyncio.gather(*(_translate(query) for query in queries))

    def record_correction(
        self,
        query: str,
        corrected_command: str,
        failed_command: str | None = None,
        error_message: str | None = None,
        provider: str | None = None,
    ) -> CorrectionRecord:
        """Teach the learning store the right command for a request"""
        return self.learning_store.record(
            query,
            corrected_command,
            failed_command=failed_command,
            error_message=error_message,
            provider=provider or self.resolve_provider(query),
        )

    async def suggest_recovery(
        self, query: str, failed_command: str, error_message: str
    ) -> RecoverySuggestion:
        """Ask the backend to explain an execution failure and propose a fix"""
        learned = self.learning_store.suggestions(failed_command, error_message)
        known_fixes = ""
        if learned:
            known_fixes = "Fixes users confirmed for this failure before:\n" + "".join(
                f"- {command}\n" for command in learned
            ) + "\n"

        prompt = (
            "You are an expert in cloud CLI troubleshooting. A user tried to execute a "
            "command but it failed.\n\n"
            f"Original Intent: {query}\n"
            f"Failed Command: {failed_command}\n"
            f"Error Message: {error_message}\n\n"
            f"{known_fixes}"
            "Analyze the error and provide:\n"
            "1. A brief explanation of what went wrong (1-2 sentences)\n"
            "2. The corrected command or next step to fix the issue\n\n"
            "Format your response as:\n"
            "Explanation: [your explanation]\n"
            "Suggested Command: [the corrected command or next step]\n\n"
            "Be concise and practical."
        )
        config = self.generation_config.model_copy(update={"max_new_tokens": 300})
        response = await self.backend.generate(prompt, config)

        explanation = _EXPLANATION.search(response.text)
        suggested = _SUGGESTED.search(response.text)
        command = extract_command(suggested.group(1)) if suggested else ""
        return RecoverySuggestion(
            explanation=explanation.group(1).strip() if explanation else response.text.strip(),
            command=command or None,
            correctable=is_correctable_error(error_message),
            learned_commands=learned,
        )
