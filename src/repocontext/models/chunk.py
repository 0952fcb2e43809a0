"""
Code Chunk Model - The Unit of Semantic Code Search.

Classes and methods of an analyzed repository are cut into CodeChunks,
embedded, and stored in ChromaDB so that search_code and the optional
vector section of search_code_with_enterprise_context can retrieve them.

Data Flow:
    SourceClass → CodeIndexer → CodeChunk → EmbeddingService → Vectors
                                                ↓
                                      StorageService → ChromaDB

Author: RepoContext Team
"""

import hashlib
import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ChunkType(str, Enum):
    """Types of code constructs that are indexed for search."""

    CLASS = "class"
    INTERFACE = "interface"
    METHOD = "method"
    CONSTRUCTOR = "constructor"


class CodeChunk(BaseModel):
    """
    A semantic unit of code extracted from a repository.

    Attributes:
        id: Unique identifier (hash of repository+file+name+type+line)
        repository_id: Repository the chunk belongs to
        file_path: Relative path within the repository
        start_line: 1-indexed line where the chunk starts
        end_line: 1-indexed line where the chunk ends
        chunk_type: Type of code construct
        name: Name of the construct
        content: Source code of the chunk
        parent_name: Enclosing class for methods
        language: Programming language
    """

    # ========================================================================
    # Identity Fields
    # ========================================================================

    id: str = Field(description="Unique identifier")
    repository_id: str = Field(description="Repository the chunk belongs to")
    file_path: str = Field(description="Relative path within the repository")

    # ========================================================================
    # Location Fields
    # ========================================================================

    start_line: int = Field(description="1-indexed line number where the chunk starts")
    end_line: int = Field(description="1-indexed line number where the chunk ends")

    # ========================================================================
    # Content Fields
    # ========================================================================

    chunk_type: ChunkType = Field(description="Type of code construct")
    name: str = Field(description="Name of the construct")
    content: str = Field(description="Source code of the chunk")
    docstring: Optional[str] = Field(default=None, description="Documentation comment if present")
    parent_name: Optional[str] = Field(default=None, description="Enclosing class for methods")
    language: str = Field(description="Programming language")

    @staticmethod
    def make_id(repository_id: str, file_path: str, name: str, chunk_type: str, start_line: int) -> str:
        content = f"{repository_id}:{file_path}:{name}:{chunk_type}:{start_line}"
        return hashlib.sha256(content.encode()).hexdigest()[:16]

    def to_embedding_text(self) -> str:
        """
        Text representation used for embedding.

        Purpose line and identifier keywords first, then the (truncated) code.
        """
        keywords = self.name_keywords()
        readable = " ".join(keywords) if keywords else self.name

        if self.chunk_type == ChunkType.METHOD and self.parent_name:
            purpose = f"Method for {readable} in {self.parent_name}"
        elif self.chunk_type == ChunkType.CONSTRUCTOR:
            purpose = f"Constructor for {self.parent_name or readable}"
        else:
            purpose = f"{self.chunk_type.value.capitalize()} representing {readable}"

        parts = [purpose]
        if self.docstring:
            parts.append(f"Description: {self.docstring.strip()}")
        parts.append(f"File: {self.file_path.rsplit('/', 1)[-1]}")
        parts.append(f"Language: {self.language}")

        code = self.content
        if len(code) > 2000:
            code = code[:1500] + "\n... (truncated) ...\n" + code[-400:]
        parts.append(f"Code:\n{code}")

        return "\n".join(parts)

    def name_keywords(self) -> list[str]:
        """Split camelCase/snake_case identifiers into lowercase keywords."""
        if "_" in self.name:
            words = self.name.split("_")
        else:
            words = re.findall(r"[A-Z]?[a-z]+|[A-Z]+(?=[A-Z][a-z]|\d|\W|$)|\d+", self.name)

        return [
            word.lower()
            for word in words
            if word and len(word) > 1 and word.lower() not in {"get", "set", "is", "has"}
        ]
