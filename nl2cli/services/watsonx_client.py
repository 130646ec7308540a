"""watsonx.ai text generation backend over HTTP with server-sent events"""

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator
from typing import Any

import httpx

from nl2cli.models.generation import GenerationConfig, GenerationResponse
from nl2cli.services.generation import (
    AuthenticationError,
    EmptyResponseError,
    GenerationBackend,
    MalformedResponseError,
    NetworkError,
)

logger = logging.getLogger(__name__)

GENERATION_PATH = "/ml/v1/text/generation_stream"
API_VERSION = "2023-05-29"
IAM_GRANT_TYPE = "urn:ibm:params:oauth:grant-type:apikey"

# Refresh the IAM token this many seconds before it expires
TOKEN_EXPIRY_MARGIN_SECONDS = 60


def _raise_for_status(response: httpx.Response, body: str) -> None:
    """Map an unsuccessful HTTP status to the generation error taxonomy"""
    status = response.status_code
    if 200 <= status < 300:
        return
    detail = f"HTTP {status}: {body[:200]}"
    if status in (401, 403):
        raise AuthenticationError(detail)
    if status in (408, 429) or status >= 500:
        raise NetworkError(detail)
    raise MalformedResponseError(detail)


def _parse_event(payload: str) -> str:
    """Extract the generated text from one SSE data payload"""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Undecodable event payload: {payload[:200]}") from e

    if not isinstance(data, dict):
        raise MalformedResponseError(f"Unexpected event payload: {payload[:200]}")
    if data.get("errors"):
        raise MalformedResponseError(f"Backend reported errors: {data['errors']}")

    results = data.get("results")
    if not results or not isinstance(results, list):
        raise MalformedResponseError(f"Event payload has no results: {payload[:200]}")
    text = results[0].get("generated_text", "") if isinstance(results[0], dict) else None
    if not isinstance(text, str):
        raise MalformedResponseError(f"Event payload has no generated_text: {payload[:200]}")
    return text


class WatsonxClient(GenerationBackend):
    """Generate text with a watsonx.ai foundation model"""

    def __init__(
        self,
        api_key: str,
        project_id: str,
        api_url: str = "https://us-south.ml.cloud.ibm.com",
        iam_url: str = "iam.cloud.ibm.com",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize client with credentials

        Args:
            api_key: IBM Cloud API key, exchanged for an IAM bearer token
            project_id: watsonx.ai project the requests are billed to
            api_url: Regional watsonx.ai endpoint
            iam_url: IAM host (with or without scheme)
            transport: Optional transport override, used by tests
        """
        self.api_key = api_key
        self.project_id = project_id
        self.api_url = api_url.rstrip("/")
        self.iam_url = iam_url if "://" in iam_url else f"https://{iam_url}"
        self.client = httpx.AsyncClient(transport=transport, timeout=httpx.Timeout(30.0))
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    async def _access_token(self) -> str:
        """Return a cached IAM token, exchanging the API key when missing or expiring"""
        async with self._token_lock:
            if self._token and time.time() < self._token_expires_at - TOKEN_EXPIRY_MARGIN_SECONDS:
                return self._token

            if not self.api_key:
                raise AuthenticationError("No watsonx.ai API key configured")

            try:
                response = await self.client.post(
                    f"{self.iam_url.rstrip('/')}/identity/token",
                    data={"grant_type": IAM_GRANT_TYPE, "apikey": self.api_key},
                    headers={"Accept": "application/json"},
                )
            except httpx.TransportError as e:
                raise NetworkError(f"IAM token request failed: {e}") from e

            if response.status_code in (400, 401, 403):
                raise AuthenticationError(f"IAM rejected the API key: HTTP {response.status_code}")
            _raise_for_status(response, response.text)

            try:
                payload = response.json()
                token = payload["access_token"]
            except (ValueError, KeyError) as e:
                raise MalformedResponseError("IAM response has no access_token") from e

            self._token = token
            self._token_expires_at = float(
                payload.get("expiration") or time.time() + payload.get("expires_in", 3600)
            )
            logger.info("Obtained watsonx.ai access token")
            return token

    def _request_body(self, prompt: str, config: GenerationConfig) -> dict[str, Any]:
        parameters: dict[str, Any] = {
            "decoding_method": "greedy" if config.temperature == 0 else "sample",
            "max_new_tokens": config.max_new_tokens,
            "min_new_tokens": config.min_new_tokens,
            "top_k": config.top_k,
            "top_p": config.top_p,
            "repetition_penalty": config.repetition_penalty,
            "stop_sequences": config.stop_sequences,
        }
        if config.temperature > 0:
            parameters["temperature"] = config.temperature
        return {
            "input": prompt,
            "parameters": parameters,
            "model_id": config.model_id,
            "project_id": self.project_id,
        }

    async def _stream(self, prompt: str, config: GenerationConfig) -> AsyncIterator[str]:
        token = await self._access_token()
        url = f"{self.api_url}{GENERATION_PATH}"
        produced = False

        try:
            async with self.client.stream(
                "POST",
                url,
                params={"version": API_VERSION},
                json=self._request_body(prompt, config),
                headers={
                    "Accept": "text/event-stream",
                    "Authorization": f"Bearer {token}",
                },
            ) as response:
                if response.status_code >= 300:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    if response.status_code == 401:
                        self._token = None
                    _raise_for_status(response, body)

                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    payload = line[len("data:") :].strip()
                    if not payload or payload == "[DONE]":
                        continue
                    fragment = _parse_event(payload)
                    if fragment:
                        produced = produced or bool(fragment.strip())
                        yield fragment
        except httpx.TransportError as e:
            raise NetworkError(f"Generation request failed: {e}") from e

        if not produced:
            raise EmptyResponseError(f"Model {config.model_id} returned no text")

    async def _generate(self, prompt: str, config: GenerationConfig) -> GenerationResponse:
        fragments = [fragment async for fragment in self._stream(prompt, config)]
        text = "".join(fragments)
        if not text.strip():
            raise EmptyResponseError(f"Model {config.model_id} returned no text")
        return GenerationResponse(text=text, model_id=config.model_id)

    async def close(self) -> None:
        """Close the underlying HTTP client"""
        await self.client.aclose()
