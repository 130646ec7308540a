"""Generation capability contract shared by every language-model backend"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from nl2cli.models.generation import GenerationConfig, GenerationResponse

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """Base class for failures of a single generation attempt"""


class NetworkError(GenerationError):
    """Connectivity failure, timeout or transient server error"""


class AuthenticationError(GenerationError):
    """The backend rejected the credentials"""


class MalformedResponseError(GenerationError):
    """The backend returned content that could not be parsed"""


class EmptyResponseError(GenerationError):
    """The backend returned no text"""


def build_feedback_prompt(base_prompt: str, previous_failure_reason: str, attempt: int) -> str:
    """
    Amend a prompt with why the previous answer was rejected

    The instructions get firmer as the attempt number grows. When the prompt ends
    with a "Query:" block the feedback goes just before it, so the prompt still
    ends with the question being answered.
    """
    lines = [
        "PREVIOUS ATTEMPT FAILED:",
        f"- {previous_failure_reason}",
        "",
    ]
    if attempt <= 1:
        lines.append("Please answer with a more specific and accurate command.")
    elif attempt == 2:
        lines.extend(
            [
                "IMPORTANT: The previous answer was rejected. Please:",
                "- Reply with exactly one command on a single line",
                "- Start with the CLI executable name",
                "- Check subcommand names and parameter format carefully",
            ]
        )
    else:
        lines.extend(
            [
                "CRITICAL: Multiple attempts failed. Please:",
                "- Use only well-established, documented commands",
                "- Avoid deprecated or experimental features",
                "- Output the command alone, without explanation or formatting",
            ]
        )
    feedback = "\n".join(lines)

    head, marker, tail = base_prompt.rpartition("\nQuery:")
    if marker:
        return f"{head.rstrip()}\n\n{feedback}\n{marker}{tail}"
    return f"{base_prompt.rstrip()}\n\n{feedback}\n"


class GenerationBackend(ABC):
    """
    Produce text from a prompt against a language-model backend

    Every call performs exactly one attempt; retry policy belongs to the caller.
    Subclasses implement `_generate` and may override `_stream` to stream natively.
    """

    @abstractmethod
    async def _generate(self, prompt: str, config: GenerationConfig) -> GenerationResponse:
        """Perform one generation request without a timeout"""

    async def _stream(self, prompt: str, config: GenerationConfig) -> AsyncIterator[str]:
        response = await self._generate(prompt, config)
        yield response.text

    async def generate(self, prompt: str, config: GenerationConfig) -> GenerationResponse:
        """
        Generate a completion for a prompt

        Raises:
            NetworkError: On connectivity failure or when config.timeout_seconds elapses
            AuthenticationError: If the credentials are rejected
            MalformedResponseError: If the response cannot be parsed
            EmptyResponseError: If the backend produced no text
        """
        try:
            return await asyncio.wait_for(
                self._generate(prompt, config), timeout=config.timeout_seconds
            )
        except TimeoutError as e:
            raise NetworkError(
                f"Generation timed out after {config.timeout_seconds}s"
            ) from e

    async def generate_with_feedback(
        self,
        prompt: str,
        config: GenerationConfig,
        previous_failure_reason: str,
        attempt: int = 1,
    ) -> GenerationResponse:
        """Generate again with the previous rejection reason added to the prompt"""
        feedback_prompt = build_feedback_prompt(prompt, previous_failure_reason, attempt)
        return await self.generate(feedback_prompt, config)

    async def generate_stream(self, prompt: str, config: GenerationConfig) -> AsyncIterator[str]:
        """
        Yield generated text fragments as they arrive

        The fragments joined together equal what `generate` returns. The consumer may
        stop iterating at any time; closing the iterator releases the connection.
        """
        stream = self._stream(prompt, config)
        # The deadline only applies while waiting on the backend, never while suspended at yield
        deadline = asyncio.get_running_loop().time() + config.timeout_seconds
        try:
            while True:
                try:
                    async with asyncio.timeout_at(deadline):
                        fragment = await anext(stream)
                except StopAsyncIteration:
                    break
                except TimeoutError as e:
                    raise NetworkError(
                        f"Generation stream timed out after {config.timeout_seconds}s"
                    ) from e
                if fragment:
                    yield fragment
        finally:
            await stream.aclose()

    async def close(self) -> None:
        """Release backend resources"""
