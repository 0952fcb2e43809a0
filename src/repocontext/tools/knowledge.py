"""Knowledge store tools for MCP - statistics and cache maintenance."""

from typing import Optional

from ..constants import ErrorMessage, SuccessMessage
from ..services.knowledge_store import KnowledgeStore


def get_knowledge_stats(repository_id: str, store: Optional[KnowledgeStore] = None) -> dict:
    """Counts of everything extracted for a repository."""
    store = store or KnowledgeStore()
    repository = store.get_repository(repository_id)
    if repository is None:
        return {"error": ErrorMessage.REPOSITORY_NOT_FOUND.format(repository_id=repository_id)}

    fingerprint = store.get_fingerprint(repository_id)
    return {
        "repository_id": repository_id,
        "name": repository.name,
        "status": repository.extraction_status.value,
        "framework": fingerprint.framework_type if fingerprint else None,
        "is_custom_framework": fingerprint.is_custom if fingerprint else False,
        **store.get_stats(repository_id),
    }


def clear_context_cache(repository_id: Optional[str] = None, store: Optional[KnowledgeStore] = None) -> dict:
    """Drop cached assembled contexts for one repository, or all of them."""
    store = store or KnowledgeStore()
    if repository_id and store.get_repository(repository_id) is None:
        return {"error": ErrorMessage.REPOSITORY_NOT_FOUND.format(repository_id=repository_id)}

    cleared = store.clear_context_cache(repository_id)
    expired = store.purge_expired_cache()
    return {
        "repository_id": repository_id,
        "cleared": cleared,
        "expired_removed": expired,
        "message": SuccessMessage.CACHE_CLEARED.format(count=cleared),
    }
