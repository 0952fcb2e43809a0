"""Search code tool for MCP - semantic search over indexed classes and methods."""

from typing import Optional

from rich.console import Console

from ..config import get_config
from ..constants import (
    DEFAULT_SEARCH_RESULTS,
    MAX_QUERY_LENGTH,
    MAX_SEARCH_RESULTS,
    ErrorMessage,
)
from ..services.embedding import EmbeddingService
from ..services.knowledge_store import KnowledgeStore
from ..services.storage import StorageService

# stderr keeps the stdio MCP transport clean
console = Console(stderr=True, width=200, force_terminal=False)

SNIPPET_LINES = 15


def validate_query(query: str) -> Optional[str]:
    """Error message for an unusable query, None when it is fine."""
    if not query or not query.strip():
        return ErrorMessage.EMPTY_QUERY
    if len(query) > MAX_QUERY_LENGTH:
        return ErrorMessage.QUERY_TOO_LONG.format(max_length=MAX_QUERY_LENGTH)
    return None


def snippet(content: str, max_lines: int = SNIPPET_LINES) -> str:
    lines = content.splitlines()
    if len(lines) <= max_lines:
        return content
    return "\n".join(lines[:max_lines]) + f"\n... ({len(lines) - max_lines} more lines)"


def search_code(
    query: str,
    workspace_id: Optional[str] = None,
    repository_id: Optional[str] = None,
    limit: int = DEFAULT_SEARCH_RESULTS,
    store: Optional[KnowledgeStore] = None,
    embedding_service: Optional[EmbeddingService] = None,
    storage_service: Optional[StorageService] = None,
) -> dict:
    """Search indexed code by meaning.

    Args:
        query: Natural language description of the code wanted
        workspace_id: Limit results to the workspace's repositories
        repository_id: Limit results to one repository (wins over workspace)
        limit: Maximum number of results

    Returns:
        Dictionary with one entry per hit: file, lines, name, score, snippet
    """
    error = validate_query(query)
    if error:
        return {"error": error}
    if not 1 <= limit <= MAX_SEARCH_RESULTS:
        return {"error": ErrorMessage.INVALID_LIMIT.format(maximum=MAX_SEARCH_RESULTS)}

    workspace_id = workspace_id or get_config().auth.workspace_id
    if repository_id:
        repository_ids = [repository_id]
    elif workspace_id:
        store = store or KnowledgeStore()
        repository_ids = [repo.id for repo in store.list_repositories(workspace_id)]
        if not repository_ids:
            return {"query": query, "total_results": 0, "results": []}
    else:
        return {"error": ErrorMessage.WORKSPACE_REQUIRED}

    console.print(f"[bold blue]Searching for: {query}[/bold blue]")

    embedding_service = embedding_service or EmbeddingService()
    storage_service = storage_service or StorageService()
    hits = storage_service.search(
        embedding_service.embed_query(query),
        repository_ids=repository_ids,
        n_results=limit,
    )

    results = [
        {
            "file": hit.file_path,
            "lines": f"{hit.start_line}-{hit.end_line}",
            "name": hit.name,
            "type": hit.chunk_type,
            "language": hit.language,
            "repository_id": hit.repository_id,
            "score": hit.score,
            "snippet": snippet(hit.content),
        }
        for hit in hits
    ]
    return {"query": query, "total_results": len(results), "results": results}
