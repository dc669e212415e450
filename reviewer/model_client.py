"""Ollama ``/api/generate`` client for the reviewer model."""

import logging
from typing import Optional, Protocol

import httpx

from reviewer.models.review_schemas import ModelResponse

logger = logging.getLogger(__name__)


class ModelClient(Protocol):
    async def generate(self, prompt: str) -> ModelResponse: ...


class ModelCallError(Exception):
    """The model endpoint could not be reached or answered with an error."""


class OllamaClient:
    """Single-shot, non-streaming generation against an Ollama server.

    ``done`` in the response is False when generation stopped early, which
    the response recoverer treats as a truncation signal.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "qwen2.5-coder:7b",
        *,
        temperature: float = 0.7,
        max_tokens: int = 8000,
        timeout: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._transport = transport

    async def generate(self, prompt: str) -> ModelResponse:
        url = f"{self.base_url}/api/generate"
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.temperature,
                "num_predict": self.max_tokens,
            },
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.ConnectError as exc:
            logger.error(
                "Connection failed - please ensure Ollama is running and accessible at %s",
                self.base_url,
            )
            raise ModelCallError(f"Cannot reach model server at {self.base_url}: {exc}") from exc
        except httpx.HTTPError as exc:
            logger.error("Model call failed: %s", exc)
            raise ModelCallError(f"Model call to {url} failed: {exc}") from exc
        except ValueError as exc:
            raise ModelCallError(f"Model server returned a non-JSON body: {exc}") from exc

        if not isinstance(data, dict):
            logger.error("Model server returned a JSON %s instead of an object", type(data).__name__)
            raise ModelCallError(f"Model server returned an unexpected body: {type(data).__name__}")

        text = data.get("response") or ""
        # Ollama reports done_reason="length" when num_predict ran out.
        done = data.get("done") is not False and data.get("done_reason") != "length"
        if not done:
            logger.warning("Model response for %d-char prompt was cut off", len(prompt))
        return ModelResponse(text=text, done=done)
