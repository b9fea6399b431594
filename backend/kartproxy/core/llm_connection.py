import httpx
import logging
from kartproxy.core.config import Settings, is_placeholder_key, settings as default_settings
from kartproxy.core.errors import ConfigError
from kartproxy.core.logger import logs
from kartproxy.core.llm_providers import (
    BaseLLMProvider,
    MistralProvider,
    OpenAIProvider,
    AnthropicProvider,
    GroqProvider
)

PROVIDERS = {
    "mistral": (MistralProvider, "MISTRAL_API_KEY", "MISTRAL_MODEL"),
    "openai": (OpenAIProvider, "OPENAI_API_KEY", "OPENAI_MODEL"),
    "anthropic": (AnthropicProvider, "ANTHROPIC_API_KEY", "ANTHROPIC_MODEL"),
    "groq": (GroqProvider, "GROQ_API_KEY", "GROQ_MODEL"),
}


class LLMService:
    def __init__(self, settings: Settings = default_settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.provider = self._initialize_provider(transport)
        logs.log(logging.INFO, f"🤖 LLM Provider initialized: {self.provider.get_provider_name()}")

    def _initialize_provider(self, transport: httpx.AsyncBaseTransport | None) -> BaseLLMProvider:
        """Initialize the selected LLM provider based on settings"""
        provider = self.settings.LLM_PROVIDER.lower()
        if provider not in PROVIDERS:
            logs.log(logging.WARNING, f"Unknown provider '{provider}', defaulting to OpenAI")
            provider = "openai"

        provider_cls, key_field, model_field = PROVIDERS[provider]
        self.key_field = key_field
        return provider_cls(
            api_key=getattr(self.settings, key_field),
            model=getattr(self.settings, model_field),
            transport=transport
        )

    def ensure_configured(self):
        """Fail fast before any network call when the API key is unusable."""
        if is_placeholder_key(self.provider.api_key):
            raise ConfigError(f"{self.key_field} is not configured")

    async def complete(self, system_prompt: str, user_message: str, temperature: float = 0.7) -> str:
        """Send one system + user turn and return the raw reply text."""
        self.ensure_configured()

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message}
        ]
        return await self.provider.generate(messages, temperature=temperature, timeout=self.settings.LLM_TIMEOUT)
