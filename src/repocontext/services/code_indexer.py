"""Code indexing: parse classes and methods, embed them, store the vectors."""

from pathlib import Path
from typing import Optional

from ..logging import get_logger, log_operation_end, log_operation_start
from ..models.chunk import ChunkType, CodeChunk
from ..models.source import SourceClass
from ..parsers import JavaParser, PythonParser
from .embedding import EmbeddingService
from .source_tree import SourceTree
from .storage import StorageService


logger = get_logger(__name__)


def chunks_for_class(source_class: SourceClass, repository_id: str) -> list[CodeChunk]:
    """One chunk for the class itself and one per method."""
    class_type = ChunkType.INTERFACE if source_class.kind == "interface" else ChunkType.CLASS
    chunks = [
        CodeChunk(
            id=CodeChunk.make_id(
                repository_id, source_class.file_path, source_class.name, class_type.value, source_class.start_line
            ),
            repository_id=repository_id,
            file_path=source_class.file_path,
            start_line=source_class.start_line,
            end_line=source_class.end_line,
            chunk_type=class_type,
            name=source_class.name,
            content=source_class.content,
            docstring=source_class.docstring,
            language=source_class.language,
        )
    ]

    for method in source_class.methods:
        method_type = ChunkType.CONSTRUCTOR if method.is_constructor else ChunkType.METHOD
        chunks.append(
            CodeChunk(
                id=CodeChunk.make_id(
                    repository_id, source_class.file_path, method.name, method_type.value, method.line
                ),
                repository_id=repository_id,
                file_path=source_class.file_path,
                start_line=method.line,
                end_line=method.end_line,
                chunk_type=method_type,
                name=method.name,
                content=method.content,
                parent_name=source_class.name,
                language=source_class.language,
            )
        )
    return chunks


class CodeIndexer:
    """Build the vector index used by search_code."""

    def __init__(
        self,
        embedding_service: Optional[EmbeddingService] = None,
        storage_service: Optional[StorageService] = None,
    ):
        self.embedding_service = embedding_service or EmbeddingService()
        self.storage_service = storage_service or StorageService()
        self.parsers = [JavaParser(), PythonParser()]

    def chunk_repository(self, tree: SourceTree, repository_id: str) -> list[CodeChunk]:
        chunks = []
        for parser in self.parsers:
            for file_path in tree.with_suffix(*parser.file_extensions):
                for source_class in parser.parse_file(file_path, relative_to=tree.root):
                    chunks.extend(chunks_for_class(source_class, repository_id))
        return chunks

    def index_repository(self, repo_path: Path | SourceTree, repository_id: str) -> dict:
        """Replace a repository's chunks in the vector store.

        Returns:
            Dictionary with indexing statistics
        """
        tree = repo_path if isinstance(repo_path, SourceTree) else SourceTree(Path(repo_path))
        start_time = log_operation_start(logger, "Code indexing", repository_id=repository_id)

        chunks = self.chunk_repository(tree, repository_id)
        removed = self.storage_service.delete_repository(repository_id)
        stored = 0
        if chunks:
            embeddings = self.embedding_service.embed_chunks(chunks)
            stored = self.storage_service.store_chunks(chunks, embeddings)

        log_operation_end(logger, "Code indexing", start_time, chunks=stored, removed=removed)
        return {
            "repository_id": repository_id,
            "chunks_extracted": len(chunks),
            "chunks_stored": stored,
            "chunks_removed": removed,
        }
