"""
Tests for token counting and token-boundary truncation.

Tests cover:
- Counting and truncating through an encoder
- The character estimate used when no encoding is available
- Encoder loading fallbacks
- Tier fitting on the encoder path

An in-memory encoder stands in for tiktoken: every run of
non-whitespace or whitespace is one token, so decode(encode(t)) == t.

Author: RepoContext Team
"""

import re
from unittest.mock import patch

from repocontext.constants import TRUNCATION_MARKER, ContextTier
from repocontext.context.budget import fit_tier
from repocontext.context.formatter import render_tier
from repocontext.models.knowledge import ArchitecturePattern
from repocontext.services.token_counter import TokenCounter, _encoder_cache, _load_encoder


class WordEncoding:
    """Lossless encoder with word and whitespace tokens."""

    def __init__(self):
        self.vocab: dict[str, int] = {}
        self.pieces: list[str] = []

    def encode(self, text: str) -> list[int]:
        ids = []
        for piece in re.findall(r"\S+|\s+", text):
            if piece not in self.vocab:
                self.vocab[piece] = len(self.pieces)
                self.pieces.append(piece)
            ids.append(self.vocab[piece])
        return ids

    def decode(self, tokens: list[int]) -> str:
        return "".join(self.pieces[token] for token in tokens)


def encoded_counter() -> TokenCounter:
    counter = TokenCounter()
    counter._encoder = WordEncoding()
    return counter


class TestEncoderPath:
    """Tests for counting and truncating with an encoder."""

    def test_count(self):
        counter = encoded_counter()

        assert counter.count("alpha beta gamma") == 5
        assert counter.count("") == 0

    def test_truncate_on_token_boundary(self):
        counter = encoded_counter()

        assert counter.truncate("alpha beta gamma", 3) == "alpha beta"
        assert counter.truncate("alpha beta gamma", 4) == "alpha beta "
        assert counter.truncate("alpha beta gamma", 0) == ""

    def test_short_text_is_returned_whole(self):
        counter = encoded_counter()

        assert counter.truncate("alpha beta", 50) == "alpha beta"

    def test_fit_tier_cuts_within_allowance(self):
        counter = encoded_counter()
        items = [
            ArchitecturePattern(
                pattern_type="monolith",
                pattern_name="Monolith",
                description="settlement " * 300,
                evidence_source="docs/architecture.md",
            )
        ]
        full_text = render_tier(ContextTier.ARCHITECTURE, items)

        section = fit_tier(ContextTier.ARCHITECTURE, items, 60, counter)

        assert section.truncated is True
        assert section.tokens <= 60
        assert section.tokens == counter.count(section.text)
        assert section.text.endswith(TRUNCATION_MARKER + "\n")
        kept = section.text[: -len("\n" + TRUNCATION_MARKER + "\n")]
        assert full_text.startswith(kept)
        assert counter.count(kept) + counter.count(full_text[len(kept):]) == counter.count(full_text)


class TestCharacterEstimate:
    """Tests for the fallback used when no encoding loads."""

    def test_count_rounds_up(self, counter):
        assert counter.count("abcde") == 2

    def test_truncate_by_characters(self, counter):
        assert counter.truncate("a" * 20, 2) == "a" * 8


class TestLoadEncoder:
    """Tests for encoder loading."""

    def test_unknown_model_uses_cl100k(self):
        _encoder_cache.pop("model-unknown-to-tiktoken", None)

        with patch("repocontext.services.token_counter.tiktoken") as mock_tiktoken:
            mock_tiktoken.encoding_for_model.side_effect = KeyError("model-unknown-to-tiktoken")

            encoder = _load_encoder("model-unknown-to-tiktoken")

        mock_tiktoken.get_encoding.assert_called_once_with("cl100k_base")
        assert encoder is mock_tiktoken.get_encoding.return_value
        _encoder_cache.pop("model-unknown-to-tiktoken", None)

    def test_offline_falls_back_to_estimate(self):
        _encoder_cache.pop("model-offline", None)

        with patch("repocontext.services.token_counter.tiktoken") as mock_tiktoken:
            mock_tiktoken.encoding_for_model.side_effect = OSError("network unreachable")

            assert _load_encoder("model-offline") is None

        _encoder_cache.pop("model-offline", None)
