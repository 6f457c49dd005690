import json
import logging
import os
from typing import Optional, Dict, Any

import litellm

from app.config import settings

logger = logging.getLogger(__name__)

litellm.drop_params = True

# Provider -> (model prefix, env var holding the key, settings attribute)
PROVIDERS = {
    "openrouter": ("openrouter/", "OPENROUTER_API_KEY", "openrouter_api_key"),
    "ollama": ("ollama/", None, None),
    "anthropic": ("", "ANTHROPIC_API_KEY", "anthropic_api_key"),
    "openai": ("", "OPENAI_API_KEY", "openai_api_key"),
}


def strip_code_fence(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    if cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


class AIClient:
    """Thin litellm wrapper used for category suggestions."""

    def __init__(self, provider: Optional[str] = None, model: Optional[str] = None):
        self.provider = provider or settings.ai_provider
        self.model = self._get_model_string(model or settings.ai_model)
        self.api_base = self._get_api_base()

    def _get_model_string(self, model: str) -> str:
        prefix = PROVIDERS.get(self.provider, ("", None, None))[0]
        if prefix and not model.startswith(prefix):
            return f"{prefix}{model}"
        return model

    def _get_api_base(self) -> Optional[str]:
        if self.provider == "openrouter":
            return "https://openrouter.ai/api/v1"
        if self.provider == "ollama":
            return settings.ai_base_url or "http://localhost:11434"
        return settings.ai_base_url

    def _api_key(self):
        _, env_var, attr = PROVIDERS.get(self.provider, ("", None, None))
        if not attr:
            return None, None
        return env_var, getattr(settings, attr, None)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.1,
        max_tokens: int = 300,
        json_mode: bool = False
    ) -> str:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt}
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        env_var, key = self._api_key()
        try:
            if env_var and key:
                os.environ[env_var] = key
            response = await litellm.acompletion(**kwargs)
            return response.choices[0].message.content
        except Exception as e:
            logger.error(f"AI completion error: {e}")
            raise
        finally:
            if env_var and key:
                os.environ.pop(env_var, None)

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.1,
        max_tokens: int = 300
    ) -> Dict[str, Any]:
        response = await self.complete(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=True
        )
        return json.loads(strip_code_fence(response))
