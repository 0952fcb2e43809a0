"""Enterprise context search tool for MCP.

Finds the workspace's most recently analyzed repository, assembles the
hierarchical context for the query and optionally adds semantic code
search hits. This is the tool agents should call before generating code.
"""

from typing import Optional

from ..config import get_config
from ..constants import ExtractionStatus, ErrorMessage
from ..context import ContextAssembler
from ..logging import get_logger
from ..models.context import AssembledContext
from ..models.knowledge import Repository
from ..services.knowledge_store import KnowledgeStore
from .search_code import search_code, validate_query


logger = get_logger(__name__)


NO_REPOSITORY_MESSAGE = """**No Repository Found**

No analyzed repository found for this workspace. Please add and analyze a repository first.

**Next Steps:**
1. Add a repository to this workspace (`repocontext add <url>`)
2. Trigger analysis to extract enterprise knowledge (`repocontext analyze <id>`)
3. Wait for extraction to complete
4. Try your query again"""

ANALYSIS_IN_PROGRESS_MESSAGE = """**Repository Analysis In Progress**

Repository: {name}
Status: {status}

Enterprise context is not yet available. The repository is currently being analyzed or its last analysis did not complete."""


def format_response(
    query: str,
    repository: Repository,
    assembled: Optional[AssembledContext],
    vector_results: list[dict],
) -> str:
    analyzed = repository.analyzed_at.strftime("%Y-%m-%d %H:%M") if repository.analyzed_at else "never"
    lines = [
        f'# Enterprise Context for: "{query}"',
        "",
        f"**Repository:** {repository.name}",
        f"**Primary Language:** {repository.primary_language or 'unknown'}",
        f"**Last Analyzed:** {analyzed}",
        "",
    ]

    if assembled:
        context = assembled.context
        metadata = assembled.metadata
        lines += [
            "## Enterprise Knowledge Used",
            "",
            f"- Architecture patterns: {len(context.architecture)}",
            f"- Domain model: {context.domain.domain_name if context.domain else 'none'}",
            f"- API specifications: {len(context.apis)}",
            f"- Code patterns: {len(context.patterns)}",
            f"- Framework standards: {'yes' if context.standards else 'no'}",
            f"- Tokens used: {metadata.tokens_used} of {metadata.token_budget}",
            f"- Context quality score: {metadata.context_quality_score:.2f}",
            "",
            "## Enhanced Prompt",
            "",
            assembled.enhanced_prompt,
        ]

    if vector_results:
        lines += ["", "## Related Code", ""]
        for result in vector_results:
            lines.append(f"### {result['name']} ({result['file']}:{result['lines']}, score {result['score']})")
            lines.append(f"```{result['language']}\n{result['snippet']}\n```")

    return "\n".join(lines)


def search_code_with_enterprise_context(
    query: str,
    workspace_id: Optional[str] = None,
    token_budget: Optional[int] = None,
    include_hierarchy: bool = True,
    include_vector_search: bool = True,
    store: Optional[KnowledgeStore] = None,
    assembler: Optional[ContextAssembler] = None,
) -> dict:
    """Assemble hierarchical enterprise context for a query.

    Args:
        query: The task or question
        workspace_id: Workspace to use; defaults to the authenticated one
        token_budget: Tokens for the knowledge tiers (1000-16000)
        include_hierarchy: Assemble the four-tier context
        include_vector_search: Add semantic code search hits

    Returns:
        Dictionary with a markdown ``text`` and machine-readable ``meta``
    """
    error = validate_query(query)
    if error:
        return {"error": error}

    config = get_config()
    budget = config.context.default_token_budget if token_budget is None else token_budget
    if not config.context.min_token_budget <= budget <= config.context.max_token_budget:
        return {
            "error": ErrorMessage.INVALID_TOKEN_BUDGET.format(
                minimum=config.context.min_token_budget, maximum=config.context.max_token_budget
            )
        }

    workspace_id = workspace_id or config.auth.workspace_id
    if not workspace_id:
        return {"error": ErrorMessage.WORKSPACE_REQUIRED}

    store = store or KnowledgeStore()
    repository = store.get_latest_repository(workspace_id)
    if repository is None:
        return {"status": "no_repository", "text": NO_REPOSITORY_MESSAGE}

    if repository.extraction_status != ExtractionStatus.COMPLETED:
        return {
            "status": "analysis_in_progress",
            "text": ANALYSIS_IN_PROGRESS_MESSAGE.format(
                name=repository.name, status=repository.extraction_status.value
            ),
            "repository_id": repository.id,
        }

    assembled = None
    if include_hierarchy:
        assembler = assembler or ContextAssembler(store=store)
        assembled = assembler.assemble(query, repository.id, budget)

    vector_results: list[dict] = []
    if include_vector_search:
        try:
            search = search_code(query, repository_id=repository.id, store=store)
        except Exception as error:
            logger.warning("Vector search unavailable", extra={"error": str(error)})
            search = {}
        vector_results = search.get("results", [])

    return {
        "status": "ok",
        "text": format_response(query, repository, assembled, vector_results),
        "meta": {
            "repository": {
                "id": repository.id,
                "name": repository.name,
                "language": repository.primary_language,
                "analyzed_at": repository.analyzed_at,
            },
            "enterprise_context_available": assembled is not None and not assembled.context.is_empty(),
            "context": assembled.metadata.to_dict() if assembled else None,
            "vector_results_count": len(vector_results),
        },
    }
