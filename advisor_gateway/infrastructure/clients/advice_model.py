"""Advice model HTTP client with exponential backoff retry logic"""

import asyncio
import logging
import httpx
from typing import Any, Dict
from advisor_gateway.domain.models import ModelParameters, ModelResponse
from advisor_gateway.domain.exceptions import ModelError
from advisor_gateway.config import settings
from advisor_gateway.infrastructure.observability.metrics import model_latency_histogram, model_failure_counter

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


def default_parameters() -> ModelParameters:
    return ModelParameters(
        max_tokens=settings.advice_model_max_tokens,
        temperature=settings.advice_model_temperature,
        top_p=settings.advice_model_top_p,
    )


class AdviceModelClient:
    """Client for the hosted large-language-model invoke endpoint"""

    def __init__(
        self,
        base_url: str | None = None,
        model_id: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_base: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.advice_model_base).rstrip("/")
        self.model_id = model_id or settings.advice_model_id
        self.api_key = api_key if api_key is not None else settings.advice_model_api_key
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.model_max_retries
        self.backoff_base = backoff_base if backoff_base is not None else settings.model_backoff_base
        self.transport = transport

    @property
    def invoke_url(self) -> str:
        return f"{self.base_url}/model/{self.model_id}/invoke"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _body(self, prompt: str, params: ModelParameters) -> Dict[str, Any]:
        return {
            "anthropic_version": settings.advice_model_anthropic_version,
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
            "top_p": params.top_p,
            "messages": [{"role": "user", "content": prompt}],
        }

    async def invoke(self, prompt: str, params: ModelParameters | None = None) -> ModelResponse:
        """
        Submit a prompt and return the generated text.

        Retry strategy:
        - Exponential backoff: base, 2x base, 4x base ... (base * 2^(attempt-1))
        - Retries on 429, 5xx and network failures; other 4xx fail immediately
        - Tracks latency histogram and failure counter

        Raises:
            ModelError: On timeout, HTTP errors, or malformed response
        """
        params = params or default_parameters()
        logging.info(
            "Sending request to advice model",
            extra={"model_id": self.model_id, "prompt_length": len(prompt)},
        )

        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            while True:
                try:
                    with model_latency_histogram.time():
                        response = await client.post(
                            self.invoke_url,
                            json=self._body(prompt, params),
                            headers=self._headers(),
                        )
                        response.raise_for_status()
                    return self._parse(response)

                except httpx.TimeoutException as e:
                    model_failure_counter.inc()
                    raise ModelError(f"Advice model timeout after {self.timeout}s") from e

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    model_failure_counter.inc()

                    retryable = (
                        isinstance(e, httpx.RequestError)
                        or e.response.status_code in RETRYABLE_STATUS_CODES
                    )
                    if not retryable or attempt >= self.max_retries:
                        if isinstance(e, httpx.HTTPStatusError):
                            raise ModelError(f"Advice model error: {e.response.status_code}") from e
                        raise ModelError(f"Advice model unreachable: {e}") from e

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    logging.warning(
                        "Advice model call failed, retrying",
                        extra={"attempt": attempt, "backoff_seconds": backoff, "error": str(e)},
                    )
                    await asyncio.sleep(backoff)

    def _parse(self, response: httpx.Response) -> ModelResponse:
        try:
            data = response.json()
            text = data["content"][0]["text"]
            if not isinstance(text, str) or not text.strip():
                raise ValueError("empty completion")
        except (KeyError, IndexError, ValueError, TypeError) as e:
            model_failure_counter.inc()
            raise ModelError(f"Invalid response from advice model: {e}") from e

        logging.info(
            "Received response from advice model",
            extra={"model_id": self.model_id, "response_length": len(text)},
        )
        return ModelResponse(content=text.strip(), model_id=self.model_id, usage=data.get("usage") or {})
