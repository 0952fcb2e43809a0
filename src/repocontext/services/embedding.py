"""
Embedding Service for Vector Generation.

Converts code chunks and search queries into vectors for the code index.

Supported Backends:
    1. **Local Models** (sentence-transformers, default):
       - all-MiniLM-L6-v2: fast, 384 dimensions
       - any other sentence-transformers model name
    2. **OpenAI** (models named ``text-embedding-*``, needs OPENAI_API_KEY)
    3. **Mock** (testing): deterministic hash-based vectors

Usage:
    from repocontext.services.embedding import EmbeddingService

    service = EmbeddingService()
    embeddings = service.embed_chunks(chunks)
    query_vector = service.embed_query("payment retry handling")

Author: RepoContext Team
"""

import hashlib
from typing import Optional

from ..config import EmbeddingConfig, get_config
from ..constants import MOCK_EMBEDDING_DIMENSION, MOCK_EMBEDDING_MODEL
from ..logging import get_logger
from ..models.chunk import CodeChunk


logger = get_logger(__name__)

# Loaded sentence-transformers models, shared across service instances
_model_cache: dict[str, object] = {}

OPENAI_MODEL_PREFIX = "text-embedding"
OPENAI_BATCH_SIZE = 2048


class EmbeddingService:
    """
    Service for generating vector embeddings from code.

    Attributes:
        model: Name of the embedding model being used.
        batch_size: Texts encoded per local model call.
    """

    def __init__(self, model: Optional[str] = None, config: Optional[EmbeddingConfig] = None):
        config = config or get_config().embedding
        self.model = model or config.model
        self.batch_size = config.batch_size
        self._client: Optional[object] = None
        self._dimension: Optional[int] = MOCK_EMBEDDING_DIMENSION if self.is_mock else None

    @property
    def is_mock(self) -> bool:
        return self.model == MOCK_EMBEDDING_MODEL

    @property
    def is_local(self) -> bool:
        """True when no text leaves the machine."""
        return not self.model.startswith(OPENAI_MODEL_PREFIX)

    @property
    def dimension(self) -> Optional[int]:
        """Vector dimension, known once the model has been loaded."""
        return self._dimension

    def embed_chunks(self, chunks: list[CodeChunk]) -> list[list[float]]:
        return self.embed_texts([chunk.to_embedding_text() for chunk in chunks])

    def embed_query(self, query: str) -> list[float]:
        return self.embed_texts([query])[0]

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a list of texts, in input order."""
        if not texts:
            return []

        if self.is_mock:
            return self._embed_mock(texts)
        if not self.is_local:
            return self._embed_openai(texts)
        return self._embed_local(texts)

    def _embed_local(self, texts: list[str]) -> list[list[float]]:
        """Embed with a sentence-transformers model, L2-normalized for cosine search."""
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise ImportError(
                "sentence-transformers is required for local embeddings. "
                "Install with: pip install sentence-transformers"
            ) from e

        if self.model not in _model_cache:
            logger.info("Loading local embedding model", extra={"model": self.model})
            _model_cache[self.model] = SentenceTransformer(self.model)
        self._client = _model_cache[self.model]
        self._dimension = self._client.get_sentence_embedding_dimension()

        embeddings = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            encoded = self._client.encode(batch, show_progress_bar=False, normalize_embeddings=True)
            embeddings.extend(vector.tolist() for vector in encoded)
        return embeddings

    def _embed_openai(self, texts: list[str]) -> list[list[float]]:
        from openai import OpenAI

        if self._client is None:
            api_key = get_config().llm.api_key
            if not api_key:
                raise ValueError(
                    "OPENAI_API_KEY environment variable not set. "
                    "For local embeddings, use model='all-MiniLM-L6-v2' instead."
                )
            self._client = OpenAI(api_key=api_key, base_url=get_config().llm.base_url)

        embeddings = []
        for start in range(0, len(texts), OPENAI_BATCH_SIZE):
            batch = texts[start : start + OPENAI_BATCH_SIZE]
            response = self._client.embeddings.create(input=batch, model=self.model)
            embeddings.extend(item.embedding for item in response.data)

        if embeddings:
            self._dimension = len(embeddings[0])
        return embeddings

    def _embed_mock(self, texts: list[str]) -> list[list[float]]:
        """Deterministic vectors derived from the text hash. For tests only."""
        embeddings = []
        for text in texts:
            digest = hashlib.sha256(text.encode()).digest()
            embeddings.append(
                [(digest[i % len(digest)] / 255.0) * 2 - 1 for i in range(MOCK_EMBEDDING_DIMENSION)]
            )
        return embeddings


class MockEmbeddingService(EmbeddingService):
    """Mock embedding service for testing without real embeddings."""

    def __init__(self):
        super().__init__(model=MOCK_EMBEDDING_MODEL)
