"""Token counting via tiktoken.

Uses the encoding of the configured model (``gpt-4`` → cl100k_base). When
no encoding can be loaded, counts fall back to ``ceil(len(text) / 4)``.
"""

import math
from typing import Optional

import tiktoken

from ..constants import CHARS_PER_TOKEN, DEFAULT_TOKEN_MODEL
from ..logging import get_logger


logger = get_logger(__name__)

# Encoders are expensive to build; share them per model
_encoder_cache: dict[str, Optional[tiktoken.Encoding]] = {}


def _load_encoder(model: str) -> Optional[tiktoken.Encoding]:
    if model not in _encoder_cache:
        try:
            try:
                _encoder_cache[model] = tiktoken.encoding_for_model(model)
            except KeyError:
                # Unknown model name
                _encoder_cache[model] = tiktoken.get_encoding("cl100k_base")
        except (OSError, ValueError) as error:
            # Encoding files could not be fetched (offline)
            logger.warning(
                "tiktoken encoding unavailable, using character estimate",
                extra={"model": model, "error": str(error)},
            )
            _encoder_cache[model] = None
    return _encoder_cache[model]


class TokenCounter:
    """Count and truncate text by tokens."""

    def __init__(self, model: str = DEFAULT_TOKEN_MODEL):
        self.model = model
        self._encoder = _load_encoder(model)

    def count(self, text: str) -> int:
        """Return the number of tokens in text."""
        if not text:
            return 0
        if self._encoder is None:
            return math.ceil(len(text) / CHARS_PER_TOKEN)
        return len(self._encoder.encode(text))

    def truncate(self, text: str, max_tokens: int) -> str:
        """Cut text to at most ``max_tokens`` tokens at a token boundary."""
        if max_tokens <= 0:
            return ""
        if self._encoder is None:
            return text[: max_tokens * CHARS_PER_TOKEN]
        tokens = self._encoder.encode(text)
        if len(tokens) <= max_tokens:
            return text
        return self._encoder.decode(tokens[:max_tokens])
