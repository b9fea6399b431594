"""
LLM Provider Implementations
Supports multiple chat-completion providers with a unified interface.
"""
import httpx
import logging
from abc import ABC, abstractmethod
from kartproxy.core.errors import UpstreamError
from kartproxy.core.logger import logs

class BaseLLMProvider(ABC):
    """Base class for all LLM providers"""

    base_url: str = ""

    def __init__(self, api_key: str, model: str, transport: httpx.AsyncBaseTransport | None = None):
        self.api_key = api_key
        self.model = model
        self.transport = transport

    @abstractmethod
    def build_request(self, messages: list, temperature: float) -> tuple[dict, dict]:
        """Return (headers, payload) for a chat completion call"""

    @abstractmethod
    def parse_response(self, data: dict) -> str:
        """Extract the reply text from the provider's JSON body"""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the name of the provider"""

    async def generate(self, messages: list, temperature: float = 0.1, timeout: float = 10.0) -> str:
        headers, payload = self.build_request(messages, temperature)

        async with httpx.AsyncClient(transport=self.transport) as client:
            try:
                response = await client.post(
                    self.base_url,
                    json=payload,
                    headers=headers,
                    timeout=timeout
                )
            except httpx.HTTPError as e:
                logs.log(logging.ERROR, f"{self.get_provider_name()} API unreachable: {str(e)}")
                raise UpstreamError("Chat service unavailable") from e

        if not response.is_success:
            logs.log(logging.ERROR, f"{self.get_provider_name()} API error: {response.status_code}")
            raise UpstreamError("Chat service request failed", upstream_status=response.status_code)

        try:
            return self.parse_response(response.json()).strip()
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logs.log(logging.ERROR, f"{self.get_provider_name()} returned an unexpected body: {str(e)}")
            raise UpstreamError("Chat service returned an unexpected response") from e


class OpenAICompatibleProvider(BaseLLMProvider):
    """Providers speaking the OpenAI chat/completions dialect"""

    def build_request(self, messages: list, temperature: float) -> tuple[dict, dict]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature
        }
        return headers, payload

    def parse_response(self, data: dict) -> str:
        return data["choices"][0]["message"]["content"]


class MistralProvider(OpenAICompatibleProvider):
    """Mistral AI Provider"""
    base_url = "https://api.mistral.ai/v1/chat/completions"

    def get_provider_name(self) -> str:
        return "Mistral AI"


class OpenAIProvider(OpenAICompatibleProvider):
    """OpenAI Provider (GPT-4o, GPT-4o mini, etc.)"""
    base_url = "https://api.openai.com/v1/chat/completions"

    def get_provider_name(self) -> str:
        return "OpenAI"


class GroqProvider(OpenAICompatibleProvider):
    """Groq Provider (Fast inference with Llama, Mixtral, etc.)"""
    base_url = "https://api.groq.com/openai/v1/chat/completions"

    def get_provider_name(self) -> str:
        return "Groq"


class AnthropicProvider(BaseLLMProvider):
    """Anthropic Claude Provider"""
    base_url = "https://api.anthropic.com/v1/messages"

    def build_request(self, messages: list, temperature: float) -> tuple[dict, dict]:
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": "2023-06-01",
            "Content-Type": "application/json"
        }
        # Anthropic takes the system prompt as a top-level field
        system_message = None
        converted_messages = []
        for msg in messages:
            if msg["role"] == "system":
                system_message = msg["content"]
            else:
                converted_messages.append({"role": msg["role"], "content": msg["content"]})

        payload = {
            "model": self.model,
            "messages": converted_messages,
            "temperature": temperature,
            "max_tokens": 1024
        }
        if system_message:
            payload["system"] = system_message
        return headers, payload

    def parse_response(self, data: dict) -> str:
        return data["content"][0]["text"]

    def get_provider_name(self) -> str:
        return "Anthropic Claude"
