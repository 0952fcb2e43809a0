"""Extraction tools for MCP - register repositories and follow their analysis."""

from pathlib import Path
from typing import Optional

from rich.console import Console

from ..config import get_config
from ..constants import DEFAULT_WORKSPACE_ID, ErrorMessage, SuccessMessage
from ..models.knowledge import Repository
from ..services.extraction_orchestrator import ExtractionOrchestrator
from ..services.git_service import GitAuth, GitService
from ..services.knowledge_store import KnowledgeStore

# stderr keeps the stdio MCP transport clean
console = Console(stderr=True, width=200, force_terminal=False)

MAX_LOG_LINES = 500


def register_repository(
    url: str,
    workspace_id: Optional[str] = None,
    branch: Optional[str] = None,
    store: Optional[KnowledgeStore] = None,
) -> Repository:
    """Register a repository URL, reusing an existing registration.

    Raises:
        GitError: If the URL cannot be parsed
    """
    store = store or KnowledgeStore()
    workspace_id = workspace_id or get_config().auth.workspace_id or DEFAULT_WORKSPACE_ID

    info = GitService.parse_repo_url(url)
    existing = store.find_repository_by_url(info.clone_url, workspace_id)
    if existing:
        return existing

    store.get_or_create_workspace(workspace_id, workspace_id)
    return store.create_repository(
        Repository(
            workspace_id=workspace_id,
            name=info.name,
            url=info.clone_url,
            branch=branch or info.branch,
        )
    )


def resolve_repository(reference: str, store: Optional[KnowledgeStore] = None) -> Optional[Repository]:
    """Look a repository up by id, then by URL."""
    store = store or KnowledgeStore()
    return store.get_repository(reference) or store.find_repository_by_url(reference)


def analyze_repository(
    url: str,
    workspace_id: Optional[str] = None,
    branch: Optional[str] = None,
    auth: Optional[GitAuth] = None,
    index_code: bool = False,
    store: Optional[KnowledgeStore] = None,
    orchestrator: Optional[ExtractionOrchestrator] = None,
) -> dict:
    """Register a repository (if needed) and run the extraction pipeline.

    Args:
        url: Clone URL
        workspace_id: Owning workspace
        branch: Branch to analyze
        auth: Credentials for private repositories
        index_code: Also build the semantic code index

    Returns:
        Dictionary describing the extraction result
    """
    if not url or not url.strip():
        return {"error": ErrorMessage.INVALID_REPO_URL.format(url=url)}

    store = store or KnowledgeStore()
    repository = register_repository(url, workspace_id, branch, store)
    console.print(f"[bold blue]Analyzing {repository.name}[/bold blue]")

    orchestrator = orchestrator or ExtractionOrchestrator(store=store)
    result = orchestrator.extract(repository.id, auth=auth, index_code=index_code)

    return {
        "message": SuccessMessage.EXTRACTION_COMPLETE.format(status=result.status.value),
        "repository": {"id": repository.id, "name": repository.name, "url": repository.url},
        **result.to_dict(),
    }


def analyze_local_repository(
    path: str,
    workspace_id: Optional[str] = None,
    index_code: bool = False,
    store: Optional[KnowledgeStore] = None,
    orchestrator: Optional[ExtractionOrchestrator] = None,
) -> dict:
    """Analyze an existing checkout in place."""
    repo_path = Path(path).expanduser().resolve()
    if not repo_path.exists():
        return {"error": ErrorMessage.PATH_NOT_FOUND.format(path=repo_path)}
    if not repo_path.is_dir():
        return {"error": ErrorMessage.NOT_A_DIRECTORY.format(path=repo_path)}

    store = store or KnowledgeStore()
    repository = store.find_repository_by_url(str(repo_path))
    if repository is None:
        workspace_id = workspace_id or get_config().auth.workspace_id or DEFAULT_WORKSPACE_ID
        store.get_or_create_workspace(workspace_id, workspace_id)
        repository = store.create_repository(
            Repository(workspace_id=workspace_id, name=repo_path.name, url=str(repo_path))
        )

    orchestrator = orchestrator or ExtractionOrchestrator(store=store)
    result = orchestrator.extract_local(repository.id, repo_path, index_code=index_code)
    return {
        "message": SuccessMessage.EXTRACTION_COMPLETE.format(status=result.status.value),
        "repository": {"id": repository.id, "name": repository.name, "url": repository.url},
        **result.to_dict(),
    }


def get_extraction_status(repository_id: str, store: Optional[KnowledgeStore] = None) -> dict:
    store = store or KnowledgeStore()
    repository = store.get_repository(repository_id)
    if repository is None:
        return {"error": ErrorMessage.REPOSITORY_NOT_FOUND.format(repository_id=repository_id)}

    return {
        "repository_id": repository.id,
        "name": repository.name,
        "url": GitService.redact(repository.url),
        "status": repository.extraction_status.value,
        "primary_language": repository.primary_language,
        "file_count": repository.file_count,
        "analyzed_at": repository.analyzed_at,
        "extraction_duration_ms": repository.extraction_duration_ms,
        "extraction_cost": repository.extraction_cost,
    }


def get_extraction_logs(repository_id: str, limit: int = 100, store: Optional[KnowledgeStore] = None) -> dict:
    """Most recent extraction log lines of a repository."""
    if not 1 <= limit <= MAX_LOG_LINES:
        return {"error": ErrorMessage.INVALID_LIMIT.format(maximum=MAX_LOG_LINES)}

    store = store or KnowledgeStore()
    if store.get_repository(repository_id) is None:
        return {"error": ErrorMessage.REPOSITORY_NOT_FOUND.format(repository_id=repository_id)}

    logs = store.get_extraction_logs(repository_id, limit)
    return {
        "repository_id": repository_id,
        "count": len(logs),
        "logs": [log.model_dump(mode="json") for log in logs],
    }
