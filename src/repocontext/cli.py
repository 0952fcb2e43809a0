"""
Command Line Interface for RepoContext.

Drives the same operations as the MCP server: registering repositories,
running knowledge extraction, inspecting what was extracted and
assembling hierarchical context for a prompt.

Commands:
    - add: Register a repository URL
    - analyze: Clone a registered repository (or URL) and extract knowledge
    - analyze-local: Extract knowledge from an existing checkout
    - status: Extraction status of a repository
    - logs: Extraction log of a repository
    - stats: Counts of extracted knowledge
    - context: Assemble hierarchical context for a prompt
    - repos: List registered repositories
    - search: Semantic code search
    - clear-cache: Drop cached assembled contexts
    - token: Create, list, revoke and clean up MCP tokens
    - detect: Detect the workspace of a checkout
    - serve: Run as MCP server
    - config-show: Show current configuration

Example Usage:
    $ repocontext add https://github.com/acme/payments.git
    $ repocontext analyze https://github.com/acme/payments.git
    $ repocontext context <repository-id> "Add a refund endpoint to payments"

Author: RepoContext Team
"""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from .config import Config, get_config, set_config
from .constants import (
    APPLICATION_VERSION,
    DEFAULT_SEARCH_RESULTS,
    DEFAULT_WORKSPACE_ID,
    ErrorMessage,
    ExtractionStatus,
    SuccessMessage,
)
from .context import ContextAssembler
from .services.auth import AuthService
from .services.extraction_orchestrator import ExtractionError, ExtractionOrchestrator
from .services.git_service import GitAuth, GitError
from .services.knowledge_store import KnowledgeStore
from .services.workspace_detector import WorkspaceDetector
from .tools import (
    analyze_local_repository,
    clear_context_cache,
    get_extraction_logs,
    get_knowledge_stats,
    register_repository,
    resolve_repository,
    search_code,
)

console = Console()

STATUS_STYLES = {
    ExtractionStatus.COMPLETED.value: "green",
    ExtractionStatus.PARTIAL.value: "yellow",
    ExtractionStatus.FAILED.value: "red",
    ExtractionStatus.ANALYZING.value: "blue",
    ExtractionStatus.PENDING.value: "dim",
}


def _status(value: str) -> str:
    style = STATUS_STYLES.get(value, "white")
    return f"[{style}]{value}[/{style}]"


def _print_extraction(result: dict) -> None:
    console.print(f"\n[bold]Extraction {_status(result['status'])}[/bold] for {result['repository_id']}\n")

    table = Table()
    table.add_column("Stage", style="cyan")
    table.add_column("Status")
    table.add_column("Items", justify="right")
    table.add_column("Duration (ms)", justify="right")
    table.add_column("Cost ($)", justify="right")
    for name, stage in result["stages"].items():
        table.add_row(
            name,
            _status(stage["status"]),
            str(stage["items_extracted"]),
            str(stage["duration_ms"]),
            f"{stage['cost']:.4f}",
        )
    console.print(table)

    console.print(
        f"\nDuration: {result['duration_ms']} ms  Cost: ${result['total_cost']:.4f}"
        f"  Language: {result.get('primary_language') or 'unknown'}"
    )
    if result.get("error"):
        console.print(f"[red]Error: {result['error']}[/red]")
    if result.get("code_index"):
        console.print(f"[dim]Code index: {json.dumps(result['code_index'], default=str)}[/dim]")


@click.group()
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False),
    help="Directory for the knowledge database, clones and vectors",
)
@click.version_option(APPLICATION_VERSION)
@click.pass_context
def main(ctx, data_dir):
    """RepoContext - Hierarchical Enterprise Context for Code Generation.

    Extracts architecture, domain, pattern and framework knowledge from
    repositories and assembles it into token-budgeted prompts.

    \b
    Quick Start:
        # Register and analyze a repository
        repocontext analyze https://github.com/acme/payments.git

        # Assemble context for a task
        repocontext context <repository-id> "Add a refund endpoint"

        # Serve the tools to an AI assistant
        repocontext serve
    """
    ctx.ensure_object(dict)

    if data_dir:
        config = Config.from_env()
        config.storage.data_dir = Path(data_dir).expanduser()
        set_config(config)


@main.command()
@click.argument("url")
@click.option("--branch", "-b", help="Branch to analyze")
@click.option("--workspace", "-w", help="Workspace to register the repository in")
def add(url, branch, workspace):
    """Register a repository.

    URL: Clone URL of the repository
    """
    try:
        repository = register_repository(url, workspace, branch)
    except GitError as error:
        console.print(f"[red]Error: {error}[/red]")
        raise SystemExit(1)

    console.print(
        f"[green]{SuccessMessage.REPOSITORY_REGISTERED.format(name=repository.name, repository_id=repository.id)}[/green]"
    )


@main.command()
@click.argument("reference")
@click.option("--keep-clone", is_flag=True, help="Keep the checkout after extraction")
@click.option("--index-code", is_flag=True, help="Also build the semantic code index")
@click.option("--token", envvar="REPOCONTEXT_GIT_TOKEN", help="Access token for private repositories")
def analyze(reference, keep_clone, index_code, token):
    """Clone a repository and extract its knowledge.

    REFERENCE: Repository ID or clone URL (URLs are registered first)
    """
    store = KnowledgeStore()
    repository = resolve_repository(reference, store)
    if repository is None:
        try:
            repository = register_repository(reference, store=store)
        except GitError:
            console.print(f"[red]Error: {ErrorMessage.UNKNOWN_REPOSITORY_REFERENCE.format(reference=reference)}[/red]")
            raise SystemExit(1)

    console.print(f"[bold blue]Analyzing {repository.name}...[/bold blue]")
    orchestrator = ExtractionOrchestrator(store=store)
    result = orchestrator.extract(
        repository.id,
        auth=GitAuth(token=token) if token else None,
        keep_clone=keep_clone,
        index_code=index_code,
    )
    _print_extraction(result.to_dict())


@main.command("analyze-local")
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option("--workspace", "-w", help="Workspace to register the checkout in")
@click.option("--index-code", is_flag=True, help="Also build the semantic code index")
def analyze_local(path, workspace, index_code):
    """Extract knowledge from an existing checkout.

    PATH: Directory of the checkout
    """
    try:
        result = analyze_local_repository(path, workspace, index_code=index_code)
    except ExtractionError as error:
        console.print(f"[red]Error: {error}[/red]")
        raise SystemExit(1)

    if "error" in result:
        console.print(f"[red]Error: {result['error']}[/red]")
        raise SystemExit(1)
    _print_extraction(result)


@main.command()
@click.argument("repository_id")
def status(repository_id):
    """Show the extraction status of a repository."""
    store = KnowledgeStore()
    repository = store.get_repository(repository_id)
    if repository is None:
        console.print(f"[red]Error: {ErrorMessage.REPOSITORY_NOT_FOUND.format(repository_id=repository_id)}[/red]")
        raise SystemExit(1)

    table = Table(title=repository.name)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("ID", repository.id)
    table.add_row("URL", repository.url)
    table.add_row("Branch", repository.branch or "[dim]default[/dim]")
    table.add_row("Status", _status(repository.extraction_status.value))
    table.add_row("Primary Language", repository.primary_language or "[dim]unknown[/dim]")
    table.add_row("Source Files", str(repository.file_count))
    table.add_row("Last Analyzed", str(repository.analyzed_at) if repository.analyzed_at else "[dim]never[/dim]")
    table.add_row("Duration (ms)", str(repository.extraction_duration_ms or 0))
    table.add_row("Cost ($)", f"{repository.extraction_cost:.4f}")
    console.print(table)


@main.command()
@click.argument("repository_id")
@click.option("--limit", "-n", default=50, help="Number of log entries")
def logs(repository_id, limit):
    """Show the extraction log of a repository."""
    result = get_extraction_logs(repository_id, limit)
    if "error" in result:
        console.print(f"[red]Error: {result['error']}[/red]")
        raise SystemExit(1)

    table = Table()
    table.add_column("Time", style="dim")
    table.add_column("Stage", style="cyan")
    table.add_column("Level")
    table.add_column("Message")
    level_styles = {"info": "green", "warning": "yellow", "error": "red"}
    for entry in reversed(result["logs"]):
        style = level_styles.get(entry["level"], "white")
        table.add_row(entry["created_at"], entry["stage"], f"[{style}]{entry['level']}[/{style}]", entry["message"])
    console.print(table)


@main.command()
@click.argument("repository_id")
@click.option("--details", "-d", is_flag=True, help="Also list architecture and code patterns")
def stats(repository_id, details):
    """Show counts of extracted knowledge."""
    result = get_knowledge_stats(repository_id)
    if "error" in result:
        console.print(f"[red]Error: {result['error']}[/red]")
        raise SystemExit(1)

    console.print(f"\n[bold]Knowledge Statistics: {result['name']}[/bold]\n")

    table = Table()
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("Framework", str(result["framework"] or "Unknown"))
    table.add_row("Custom Framework", "✓ Yes" if result["is_custom_framework"] else "✗ No")
    table.add_row("Architecture Patterns", str(result["architecture_patterns"]))
    table.add_row("Domain Models", str(result["domain_models"]))
    table.add_row("Code Patterns", str(result["code_patterns"]))
    table.add_row("Standard Patterns", str(result["standard_patterns"]))
    table.add_row("API Specifications", str(result["api_specifications"]))
    table.add_row("Cached Contexts", str(result["cached_contexts"]))
    console.print(table)

    if details:
        _print_pattern_details(KnowledgeStore(), repository_id)


def _print_pattern_details(store: KnowledgeStore, repository_id: str) -> None:
    architecture = Table(title="Architecture Patterns")
    architecture.add_column("Pattern", style="cyan")
    architecture.add_column("Confidence", justify="right")
    architecture.add_column("Evidence", style="dim")
    for pattern in store.get_architecture_patterns(repository_id):
        architecture.add_row(pattern.pattern_name, f"{pattern.confidence_score:.2f}", pattern.evidence_source)
    console.print(architecture)

    patterns = Table(title="Code Patterns")
    patterns.add_column("Pattern", style="cyan")
    patterns.add_column("Category")
    patterns.add_column("Usages", justify="right")
    patterns.add_column("Standard")
    for pattern in store.get_code_patterns(repository_id):
        patterns.add_row(
            pattern.pattern_name, pattern.category.value, str(pattern.frequency), "✓" if pattern.is_standard else ""
        )
    console.print(patterns)


@main.command()
@click.argument("repository_id")
@click.argument("prompt")
@click.option("--budget", "-b", type=int, default=None, help="Token budget for the context")
@click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON")
def context(repository_id, prompt, budget, as_json):
    """Assemble hierarchical context for a prompt.

    REPOSITORY_ID: Repository whose knowledge to use
    PROMPT: The task or question
    """
    try:
        result = ContextAssembler().assemble(prompt, repository_id, budget)
    except ValueError as error:
        console.print(f"[red]Error: {error}[/red]")
        raise SystemExit(1)

    if as_json:
        console.print_json(json.dumps(result.to_dict(), default=str))
        return

    console.print(result.enhanced_prompt, markup=False, highlight=False)
    metadata = result.metadata
    console.print(
        f"[dim]{metadata.tokens_used}/{metadata.token_budget} tokens, "
        f"quality {metadata.context_quality_score:.2f}, {metadata.operation}"
        f"{', domain ' + metadata.domain if metadata.domain else ''}"
        f"{', cache hit' if metadata.cache_hit else ''}"
        f"{', truncated: ' + ', '.join(metadata.truncated_tiers) if metadata.truncated_tiers else ''}[/dim]"
    )


@main.command()
@click.option("--workspace", "-w", help="Only repositories of this workspace")
def repos(workspace):
    """List registered repositories."""
    repositories = KnowledgeStore().list_repositories(workspace)
    if not repositories:
        console.print("[yellow]No repositories registered[/yellow]")
        return

    table = Table()
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Workspace", style="dim")
    table.add_column("Status")
    table.add_column("Language")
    table.add_column("Last Analyzed", style="dim")
    for repository in repositories:
        table.add_row(
            repository.id,
            repository.name,
            repository.workspace_id or "",
            _status(repository.extraction_status.value),
            repository.primary_language or "",
            str(repository.analyzed_at or ""),
        )
    console.print(table)


@main.command()
@click.argument("query")
@click.option("--repository", "-r", help="Limit to one repository")
@click.option("--workspace", "-w", help="Limit to a workspace's repositories")
@click.option("--results", "-n", default=DEFAULT_SEARCH_RESULTS, help="Number of results")
def search(query, repository, workspace, results):
    """Semantic code search.

    QUERY: Natural language description of what you're looking for
    """
    result = search_code(query, workspace_id=workspace, repository_id=repository, limit=results)
    if "error" in result:
        console.print(f"[red]Error: {result['error']}[/red]")
        raise SystemExit(1)

    if not result["results"]:
        console.print("[yellow]No matching code found[/yellow]")
        return

    table = Table()
    table.add_column("Score", justify="right", style="green")
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("Location", style="dim")
    for hit in result["results"]:
        table.add_row(f"{hit['score']:.3f}", hit["name"], hit["type"], f"{hit['file']}:{hit['lines']}")
    console.print(table)


@main.command("clear-cache")
@click.argument("repository_id", required=False)
def clear_cache(repository_id):
    """Drop cached contexts for a repository (all repositories when omitted)."""
    result = clear_context_cache(repository_id)
    if "error" in result:
        console.print(f"[red]Error: {result['error']}[/red]")
        raise SystemExit(1)
    console.print(f"[green]{result['message']}[/green]")


@main.group()
def token():
    """Manage MCP tokens."""


@token.command("create")
@click.option("--workspace", "-w", default=None, help="Workspace the token grants access to")
@click.option("--name", "-n", required=True, help="Label for the token")
@click.option("--permission", "-p", "permissions", multiple=True, help="search, context, analyze or admin (repeatable; default search and context)")
@click.option("--expires-days", type=int, default=None, help="Days until the token expires")
def token_create(workspace, name, permissions, expires_days):
    """Create a token. It is shown once; only its hash is stored."""
    workspace = workspace or get_config().auth.workspace_id or DEFAULT_WORKSPACE_ID
    raw = AuthService().generate_mcp_token(
        workspace, name, list(permissions) or None, expires_in_days=expires_days
    )
    console.print(f"[green]Token created for workspace {workspace}[/green]")
    console.print(raw, markup=False, highlight=False)
    console.print("[yellow]Store it now; it cannot be shown again.[/yellow]")


@token.command("list")
@click.option("--workspace", "-w", default=None, help="Workspace to list tokens for")
def token_list(workspace):
    """List active tokens of a workspace."""
    workspace = workspace or get_config().auth.workspace_id or DEFAULT_WORKSPACE_ID
    tokens = AuthService().list_tokens(workspace)
    if not tokens:
        console.print("[yellow]No active tokens[/yellow]")
        return

    table = Table()
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Permissions")
    table.add_column("Expires", style="dim")
    table.add_column("Last Used", style="dim")
    for record in tokens:
        table.add_row(
            record.id,
            record.name,
            ", ".join(record.permissions),
            str(record.expires_at or "never"),
            str(record.last_used_at or "never"),
        )
    console.print(table)


@token.command("revoke")
@click.argument("token_id")
def token_revoke(token_id):
    """Revoke a token by ID."""
    if AuthService().revoke_token(token_id):
        console.print(f"[green]{SuccessMessage.TOKEN_REVOKED}[/green]")
    else:
        console.print(f"[red]Error: no token with id {token_id}[/red]")
        raise SystemExit(1)


@token.command("cleanup")
def token_cleanup():
    """Delete expired tokens."""
    removed = AuthService().cleanup_expired()
    console.print(f"[green]Removed {removed} expired tokens[/green]")


@main.command()
@click.argument("path", required=False, type=click.Path(exists=True, file_okay=False))
def detect(path):
    """Detect the workspace of a checkout (default: current directory)."""
    detected = WorkspaceDetector().detect(Path(path) if path else None)

    table = Table()
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Workspace ID", detected.workspace_id)
    table.add_row("Name", detected.name)
    table.add_row("Repository ID", detected.repository_id)
    table.add_row("Git URL", detected.git_url or "[dim]no remote[/dim]")
    table.add_row("Local Path", detected.local_path)
    console.print(table)


@main.command()
def serve():
    """Run as MCP server for AI assistant integration.

    Starts an MCP (Model Context Protocol) server over stdio. Set
    REPOCONTEXT_MCP_TOKEN to authenticate and select the workspace.
    """
    from .server import run_server

    # stdout belongs to the MCP transport
    Console(stderr=True).print("[bold]Starting RepoContext MCP Server...[/bold]")
    run_server()


@main.command("config-show")
def config_show():
    """Show current configuration."""
    config = get_config()

    console.print("\n[bold]RepoContext Configuration[/bold]\n")

    table = Table()
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Data Directory", str(config.storage.data_dir))
    table.add_row("Knowledge Database", str(config.storage.database_path))
    table.add_row("Clone Directory", str(config.storage.clone_dir))
    table.add_row("ChromaDB Directory", str(config.storage.chroma_dir))
    table.add_row("LLM Model", config.llm.model)
    table.add_row("LLM Available", "✓ Yes" if config.llm.is_available else "✗ No (heuristics only)")
    table.add_row("Embedding Model", config.embedding.model)
    table.add_row("Default Token Budget", str(config.context.default_token_budget))
    table.add_row("Cache TTL (s)", str(config.context.cache_ttl_seconds))
    table.add_row("Standard Threshold", f"{config.extraction.standard_threshold:.2f}")
    table.add_row("Custom Package Patterns", ", ".join(config.extraction.custom_package_patterns))
    table.add_row("Workspace", config.auth.workspace_id or "[dim]Not set[/dim]")
    table.add_row("MCP Token", "✓ Set" if config.auth.mcp_token else "[dim]Not set[/dim]")

    console.print(table)


if __name__ == "__main__":
    main()
