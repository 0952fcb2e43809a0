"""
LLM Service - JSON-mode chat completions for the extractors.

Extractors treat the LLM as an optional enrichment step: every call site
has a heuristic fallback, so ``complete_json`` returns None instead of
raising when the model is unavailable, the request fails, or the reply is
not valid JSON.

Usage:
    from repocontext.services.llm import LLMService

    llm = LLMService()
    if llm.is_available:
        result = llm.complete_json(system_prompt, user_prompt)
"""

import json
from typing import Any, Optional

from openai import OpenAI, OpenAIError

from ..config import LLMConfig, get_config
from ..logging import get_logger


logger = get_logger(__name__)


class LLMService:
    """Wrapper around the OpenAI chat completions API in JSON response mode."""

    def __init__(self, config: Optional[LLMConfig] = None, client: Optional[Any] = None):
        """
        Args:
            config: LLM configuration. Uses the global configuration if omitted.
            client: Pre-built OpenAI-compatible client (tests inject fakes here).
        """
        self.config = config or get_config().llm
        self._client = client

    @property
    def is_available(self) -> bool:
        return self._client is not None or self.config.is_available

    def _get_client(self):
        if self._client is None:
            self._client = OpenAI(api_key=self.config.api_key, base_url=self.config.base_url)
        return self._client

    def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
    ) -> Optional[dict[str, Any]]:
        """
        Ask the model for a JSON object.

        Returns:
            The parsed object, or None when the LLM is unavailable or the
            call does not produce a JSON object.
        """
        if not self.is_available:
            return None

        try:
            response = self._get_client().chat.completions.create(
                model=self.config.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.config.temperature if temperature is None else temperature,
                max_tokens=self.config.max_tokens,
                response_format={"type": "json_object"},
            )
            content = response.choices[0].message.content or "{}"
            result = json.loads(content)
        except OpenAIError as error:
            logger.warning("LLM request failed", extra={"model": self.config.model, "error": str(error)})
            return None
        except json.JSONDecodeError as error:
            logger.warning("LLM returned invalid JSON", extra={"model": self.config.model, "error": str(error)})
            return None

        if not isinstance(result, dict):
            logger.warning("LLM returned a non-object JSON value", extra={"model": self.config.model})
            return None

        return result
