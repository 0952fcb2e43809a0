"""
MCP tools for RepoContext.

**Enterprise Context**: search_code_with_enterprise_context
**Semantic Search**: search_code
**Extraction**: analyze_repository, analyze_local_repository,
    get_extraction_status, get_extraction_logs
**Knowledge**: get_knowledge_stats, clear_context_cache
"""

from .extraction import (
    analyze_local_repository,
    analyze_repository,
    get_extraction_logs,
    get_extraction_status,
    register_repository,
    resolve_repository,
)
from .knowledge import clear_context_cache, get_knowledge_stats
from .search_code import search_code
from .search_with_context import search_code_with_enterprise_context

__all__ = [
    # Enterprise context
    "search_code_with_enterprise_context",
    # Semantic search
    "search_code",
    # Extraction
    "register_repository",
    "resolve_repository",
    "analyze_repository",
    "analyze_local_repository",
    "get_extraction_status",
    "get_extraction_logs",
    # Knowledge
    "get_knowledge_stats",
    "clear_context_cache",
]
