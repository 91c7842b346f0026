"""Async client for OpenAI-compatible chat completion endpoints."""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Literal

import httpx

from app.errors import LLMAPIError

from .parsers import Classification, extract_content, parse_classification

logger = logging.getLogger(__name__)

ImageDetail = Literal["auto", "low", "high"]

LABEL_SYSTEM_PROMPT = (
    'You always respond with the following JSON structure, regardless of the prompt: '
    '`{ "label": "XXX", "reason": "YYY" }`. '
    "Put the requested answer in 'label', and put your reasoning in 'reason'."
)


@dataclass
class TokenUsage:
    """Running token totals across every request made by one client."""

    prompt_tokens: int = 0
    completion_tokens: int = 0

    def add(self, usage: dict[str, Any] | None) -> None:
        if not usage:
            return
        self.prompt_tokens += int(usage.get("prompt_tokens") or 0)
        self.completion_tokens += int(usage.get("completion_tokens") or 0)


class AsyncLLMClient:
    """Async client for OpenAI-compatible LLM endpoints.

    Requests are made once; retrying is left to the caller so one policy governs
    both the HTTP call and the validation of what comes back.
    """

    def __init__(
        self,
        endpoint: str,
        model: str,
        api_key: str | None = None,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize async LLM client.

        Args:
            endpoint: Base URL for the LLM API
            model: Model identifier
            api_key: Optional API authentication token
            timeout: Request timeout in seconds
            client: Pre-built HTTP client, mainly for tests
        """
        self.endpoint = endpoint.rstrip("/")
        self.model = model
        self.usage = TokenUsage()

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = client or httpx.AsyncClient(
            base_url=self.endpoint, headers=headers, timeout=timeout
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncLLMClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def chat(
        self,
        messages: list[dict[str, Any]],
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        Send chat completion request to LLM API.

        Args:
            messages: List of message objects with role and content
            **kwargs: Additional parameters to pass to the API

        Returns:
            API response as dictionary

        Raises:
            LLMAPIError: If the API request fails
        """
        payload = {"model": self.model, "messages": messages}
        payload.update(kwargs)

        logger.debug(
            "Sending LLM request",
            extra={"model": self.model, "message_count": len(messages)},
        )

        try:
            response = await self._client.post("/v1/chat/completions", json=payload)
            response.raise_for_status()
            result = response.json()
        except httpx.TimeoutException as exc:
            raise LLMAPIError("LLM API request timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise LLMAPIError(
                f"LLM API returned error: {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise LLMAPIError(f"Network error connecting to LLM API: {exc}") from exc
        except ValueError as exc:
            raise LLMAPIError("LLM API returned a non-JSON body") from exc

        if not isinstance(result, dict):
            raise LLMAPIError("LLM API returned an unexpected body")
        self.usage.add(result.get("usage"))
        return result

    async def chat_with_vision(
        self,
        text: str,
        images: list[str],
        system_prompt: str | None = None,
        detail: ImageDetail = "auto",
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        Send vision-language model request with text and images.

        Args:
            text: User text prompt
            images: List of base64-encoded image data URIs
            system_prompt: Optional system prompt
            detail: Image fidelity requested from the model
            **kwargs: Additional parameters

        Returns:
            API response as dictionary
        """
        messages: list[dict[str, Any]] = []

        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})

        user_content: list[dict[str, Any]] = [{"type": "text", "text": text}]
        user_content.extend([
            {"type": "image_url", "image_url": {"url": img, "detail": detail}}
            for img in images
        ])

        messages.append({
            "role": "user",
            "content": user_content,
        })

        return await self.chat(messages, **kwargs)

    async def classify(
        self, image: bytes, prompt: str, detail: ImageDetail = "auto"
    ) -> Classification:
        """Ask the model for a single label for a JPEG image.

        Raises:
            LLMAPIError: If the request fails
            ResponseParseError: If the answer is not a ``{label, reason}`` object
        """
        data_uri = "data:image/jpeg;base64," + base64.b64encode(image).decode("ascii")
        response = await self.chat_with_vision(
            prompt, [data_uri], system_prompt=LABEL_SYSTEM_PROMPT, detail=detail
        )
        return parse_classification(extract_content(response))
