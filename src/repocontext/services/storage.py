"""
Storage Service for Code Chunks and Embeddings.

Persists indexed code chunks with their vectors in ChromaDB. Each
chunk's full content is kept as the document and its location as
metadata, so a search hit can be rendered without going back to disk.

Usage:
    from repocontext.services.storage import StorageService

    storage = StorageService()
    storage.store_chunks(chunks, embeddings)
    hits = storage.search(query_vector, repository_ids=[repo_id], n_results=10)

Author: RepoContext Team
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config import StorageConfig, get_config
from ..constants import CHROMADB_BATCH_SIZE, CHROMADB_COLLECTION_NAME
from ..logging import get_logger, log_operation_end, log_operation_start
from ..models.chunk import CodeChunk


logger = get_logger(__name__)

# ChromaDB clients keyed by path, shared across service instances
_chromadb_client_cache: dict = {}


@dataclass
class SearchHit:
    """A stored chunk returned by vector search."""

    chunk_id: str
    repository_id: str
    file_path: str
    name: str
    chunk_type: str
    start_line: int
    end_line: int
    language: str
    content: str
    score: float


class StorageService:
    """
    Vector store for code chunks.

    Attributes:
        chroma_dir: Directory of the persistent ChromaDB client
    """

    COLLECTION_NAME = CHROMADB_COLLECTION_NAME
    DEFAULT_BATCH_SIZE = CHROMADB_BATCH_SIZE

    def __init__(self, config: Optional[StorageConfig] = None, chroma_dir: Optional[Path] = None):
        storage_config = config or get_config().storage
        self.chroma_dir = Path(chroma_dir or storage_config.chroma_dir)
        self._collection = None

    def _get_chromadb_client(self):
        """Get or create the persistent client for this directory."""
        cache_key = str(self.chroma_dir)

        if cache_key not in _chromadb_client_cache:
            try:
                import chromadb
                from chromadb.config import Settings
            except ImportError as e:
                raise ImportError(
                    "chromadb is required for storage. Install with: pip install chromadb"
                ) from e

            self.chroma_dir.mkdir(parents=True, exist_ok=True)
            logger.debug("Creating new ChromaDB client", extra={"path": cache_key})
            _chromadb_client_cache[cache_key] = chromadb.PersistentClient(
                path=cache_key,
                settings=Settings(anonymized_telemetry=False),
            )

        return _chromadb_client_cache[cache_key]

    def _get_collection(self):
        if self._collection is None:
            self._collection = self._get_chromadb_client().get_or_create_collection(
                name=self.COLLECTION_NAME,
                metadata={"hnsw:space": "cosine"},
            )
        return self._collection

    def store_chunks(self, chunks: list[CodeChunk], embeddings: list[list[float]]) -> int:
        """
        Upsert chunks with their embeddings.

        Returns:
            Number of chunks stored.

        Raises:
            ValueError: If chunks and embeddings counts don't match.
        """
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Chunks count ({len(chunks)}) must match embeddings count ({len(embeddings)})"
            )
        if not chunks:
            return 0

        start_time = log_operation_start(logger, "store_chunks", chunk_count=len(chunks))
        collection = self._get_collection()

        stored = 0
        for start in range(0, len(chunks), self.DEFAULT_BATCH_SIZE):
            batch = chunks[start : start + self.DEFAULT_BATCH_SIZE]
            collection.upsert(
                ids=[chunk.id for chunk in batch],
                documents=[chunk.content for chunk in batch],
                metadatas=[self._chunk_metadata(chunk) for chunk in batch],
                embeddings=embeddings[start : start + self.DEFAULT_BATCH_SIZE],
            )
            stored += len(batch)

        log_operation_end(logger, "store_chunks", start_time, chunks_stored=stored)
        return stored

    @staticmethod
    def _chunk_metadata(chunk: CodeChunk) -> dict:
        return {
            "repository_id": chunk.repository_id,
            "file_path": chunk.file_path,
            "chunk_type": chunk.chunk_type.value,
            "name": chunk.name,
            "start_line": chunk.start_line,
            "end_line": chunk.end_line,
            "language": chunk.language,
            "parent_name": chunk.parent_name or "",
        }

    def search(
        self,
        query_embedding: list[float],
        repository_ids: Optional[list[str]] = None,
        n_results: int = 10,
    ) -> list[SearchHit]:
        """Nearest chunks to a query vector, optionally limited to repositories."""
        collection = self._get_collection()

        where = None
        if repository_ids:
            where = (
                {"repository_id": repository_ids[0]}
                if len(repository_ids) == 1
                else {"repository_id": {"$in": repository_ids}}
            )

        results = collection.query(
            query_embeddings=[query_embedding],
            n_results=n_results,
            where=where,
            include=["metadatas", "distances", "documents"],
        )

        hits = []
        if not results["ids"] or not results["ids"][0]:
            return hits

        for index, chunk_id in enumerate(results["ids"][0]):
            metadata = results["metadatas"][0][index]
            distance = results["distances"][0][index] if results["distances"] else 0.0
            hits.append(
                SearchHit(
                    chunk_id=chunk_id,
                    repository_id=metadata["repository_id"],
                    file_path=metadata["file_path"],
                    name=metadata["name"],
                    chunk_type=metadata["chunk_type"],
                    start_line=metadata["start_line"],
                    end_line=metadata["end_line"],
                    language=metadata["language"],
                    content=results["documents"][0][index] if results["documents"] else "",
                    # Cosine distance is in [0, 2]
                    score=round(max(0.0, 1 - distance / 2), 4),
                )
            )
        return hits

    def delete_repository(self, repository_id: str) -> int:
        """Remove every chunk of a repository. Returns the number removed."""
        collection = self._get_collection()
        existing = collection.get(where={"repository_id": repository_id}, include=[])
        ids = existing["ids"]
        if ids:
            collection.delete(ids=ids)
        return len(ids)
