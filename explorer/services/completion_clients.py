"""
Text completion providers.

Three interchangeable providers answer a prompt with generated text. They are
used as a text-in/text-out oracle only: transport failures, HTTP errors and
malformed payloads are retried a fixed number of times, after which the
client answers None ("no answer") instead of raising.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx
from django.conf import settings

logger = logging.getLogger(__name__)


class CompletionClient:
    """
    Base async client: POST a JSON payload, read the generated text.

    Subclasses define ``name``, ``endpoint``, ``max_retries``, the payload
    and how to read the text out of the response body.
    """

    name = "base"
    endpoint = ""
    api_key_setting = ""
    max_retries = 2

    def __init__(
        self,
        api_key: Optional[str] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else getattr(settings, self.api_key_setting, "")
        self.retry_delay = retry_delay if retry_delay is not None else getattr(
            settings, "EXPLORER_PROVIDER_RETRY_DELAY", 60
        )
        self.timeout = timeout if timeout is not None else getattr(
            settings, "EXPLORER_PROVIDER_TIMEOUT", 120
        )

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        raise NotImplementedError

    def parse_text(self, data: Any, prompt: str) -> Optional[str]:
        raise NotImplementedError

    async def complete(self, prompt: str) -> Optional[str]:
        """
        Generated text for ``prompt``, or None once every attempt failed.
        """
        last_error: Optional[str] = None

        for attempt in range(self.max_retries):
            logger.info(f"{self.name} => completion (attempt {attempt + 1}/{self.max_retries})")
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(
                        self.endpoint,
                        json=self.build_payload(prompt),
                        headers=self._get_headers(),
                    )
                    response.raise_for_status()
                    text = self.parse_text(response.json(), prompt)
                    if text:
                        return text
                    last_error = "empty completion"

            except httpx.TimeoutException as e:
                last_error = f"Request timeout after {self.timeout}s: {e}"

            except httpx.HTTPStatusError as e:
                last_error = f"HTTP {e.response.status_code}: {e.response.text[:200]}"

            except httpx.HTTPError as e:
                last_error = f"Connection error: {e}"

            except (ValueError, KeyError, IndexError, TypeError) as e:
                last_error = f"Unexpected response format: {e}"

            logger.warning(
                "%s failed on attempt %d/%d: %s",
                self.name,
                attempt + 1,
                self.max_retries,
                last_error,
            )

            if attempt < self.max_retries - 1:
                logger.debug("Waiting %.1fs before retry %d", self.retry_delay, attempt + 2)
                await asyncio.sleep(self.retry_delay)

        logger.error(f"{self.name}: max retries ({self.max_retries}) reached, no answer: {last_error}")
        return None


class HuggingFaceClient(CompletionClient):
    """Hosted inference of Mistral-7B-Instruct; echoes the prompt before the answer."""

    name = "huggingface"
    model = "mistralai/Mistral-7B-Instruct-v0.3"
    endpoint = f"https://api-inference.huggingface.co/models/{model}"
    api_key_setting = "HUGGING_FACE_API_KEY"
    max_retries = 3

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        return {"inputs": prompt}

    def parse_text(self, data: Any, prompt: str) -> Optional[str]:
        if isinstance(data, list):
            data = data[0] if data else {}
        generated = data.get("generated_text") or ""
        return generated.replace(prompt, "").strip()


class ChatCompletionClient(CompletionClient):
    """OpenAI style /chat/completions endpoint."""

    model = ""
    max_tokens = 1000

    def messages(self, prompt: str) -> List[Dict[str, str]]:
        return [{"role": "user", "content": prompt}]

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": self.messages(prompt),
            "max_tokens": self.max_tokens,
        }

    def parse_text(self, data: Any, prompt: str) -> Optional[str]:
        choices = data.get("choices") or []
        if not choices:
            raise ValueError("no choices in response")
        return (choices[0].get("message") or {}).get("content")


class MistralClient(ChatCompletionClient):
    name = "mistral"
    endpoint = "https://api.mistral.ai/v1/chat/completions"
    api_key_setting = "MISTRAL_API_KEY"
    model = "mistral-small-latest"
    max_retries = 2

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        payload = super().build_payload(prompt)
        payload["temperature"] = 0.7
        return payload


class VeniceClient(ChatCompletionClient):
    name = "venice"
    endpoint = "https://api.venice.ai/api/v1/chat/completions"
    api_key_setting = "VENICE_API_KEY"
    model = "llama-3.3-70b"
    max_retries = 2

    def messages(self, prompt: str) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": "You are a helpful assistant"},
            {"role": "user", "content": prompt},
        ]

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        payload = super().build_payload(prompt)
        payload.update({
            "venice_parameters": {
                "enable_web_search": "on",
                "include_venice_system_prompt": True,
            },
            "temperature": 1,
            "top_p": 0.1,
            "stream": False,
        })
        return payload


PROVIDERS = {
    HuggingFaceClient.name: HuggingFaceClient,
    MistralClient.name: MistralClient,
    VeniceClient.name: VeniceClient,
}


def get_completion_clients(order: Optional[List[str]] = None) -> List[CompletionClient]:
    """
    Providers in priority order (``EXPLORER_PROVIDER_ORDER`` by default).

    Providers without an API key are left out.
    """
    if order is None:
        order = getattr(settings, "EXPLORER_PROVIDER_ORDER", list(PROVIDERS))

    clients: List[CompletionClient] = []
    for name in order:
        provider = PROVIDERS.get(name.strip().lower())
        if provider is None:
            logger.warning(f"Unknown completion provider: {name}")
            continue
        client = provider()
        if not client.api_key:
            logger.warning(f"No API key for completion provider '{name}', skipped")
            continue
        clients.append(client)
    return clients
