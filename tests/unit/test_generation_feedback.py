"""Unit tests for the generation contract and feedback prompts"""

import asyncio

import pytest

from nl2cli.models.generation import GenerationConfig
from nl2cli.services.generation import NetworkError, build_feedback_prompt

BASE_PROMPT = "You are a CLI expert.\n\nQuery: list my buckets\nCommand:"


class TestFeedbackPrompt:
    """Test how rejection reasons are folded back into the prompt"""

    def test_feedback_goes_before_query_block(self):
        prompt = build_feedback_prompt(BASE_PROMPT, "command must start with 'aws'", 1)

        assert prompt.startswith("You are a CLI expert.")
        assert prompt.endswith("\nQuery: list my buckets\nCommand:")
        assert prompt.index("PREVIOUS ATTEMPT FAILED:") < prompt.index("Query:")
        assert "- command must start with 'aws'" in prompt

    def test_feedback_appended_without_query_block(self):
        prompt = build_feedback_prompt("Translate this request.", "answer was empty", 1)

        assert prompt.startswith("Translate this request.\n\nPREVIOUS ATTEMPT FAILED:")

    def test_feedback_inserted_before_last_query_only(self):
        prompt = "Example\nQuery: a\nCommand: b\n\nQuery: list my buckets\nCommand:"

        result = build_feedback_prompt(prompt, "too long", 1)

        assert result.index("Query: a") < result.index("PREVIOUS ATTEMPT FAILED:")
        assert result.endswith("\nQuery: list my buckets\nCommand:")

    @pytest.mark.parametrize(
        ("attempt", "marker"),
        [(1, "more specific"), (2, "IMPORTANT"), (3, "CRITICAL"), (5, "CRITICAL")],
    )
    def test_feedback_escalates_with_attempt(self, attempt, marker):
        prompt = build_feedback_prompt(BASE_PROMPT, "rejected", attempt)

        assert marker in prompt


class TestGenerationBackend:
    """Test timeouts and feedback generation on the shared backend contract"""

    @pytest.mark.asyncio
    async def test_generate_returns_text(self, make_backend):
        backend = make_backend(["aws s3 ls"])

        response = await backend.generate("prompt", GenerationConfig())

        assert response.text == "aws s3 ls"
        assert backend.calls == 1

    @pytest.mark.asyncio
    async def test_generate_with_feedback_sends_amended_prompt(self, make_backend):
        backend = make_backend(["aws s3 ls"])

        await backend.generate_with_feedback(
            BASE_PROMPT, GenerationConfig(), "answer spans multiple lines", attempt=2
        )

        assert "answer spans multiple lines" in backend.prompts[0]
        assert "IMPORTANT" in backend.prompts[0]

    @pytest.mark.asyncio
    async def test_generate_timeout_is_network_error(self, make_backend):
        class SlowBackend(make_backend):
            async def _generate(self, prompt, config):
                await asyncio.sleep(5)
                return await super()._generate(prompt, config)

        backend = SlowBackend(["aws s3 ls"])

        with pytest.raises(NetworkError, match="timed out"):
            await backend.generate("prompt", GenerationConfig(timeout_seconds=0.05))
