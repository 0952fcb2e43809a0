"""
MCP Server for RepoContext.

Exposes the knowledge pipeline and the hierarchical context assembler to
AI coding assistants over the Model Context Protocol:

    1. Registers tools via @app.list_tools()
    2. Handles tool invocations via @app.call_tool()
    3. Communicates via stdio (standard input/output)

Available Tools:
    Context:
    - search_code_with_enterprise_context: hierarchical enterprise context
      for a task, plus related code

    Search:
    - search_code: semantic search over indexed classes and methods

    Extraction:
    - analyze_repository: register a repository and extract its knowledge
    - get_extraction_status: lifecycle state of the last extraction
    - get_extraction_logs: per-stage extraction audit trail

    Knowledge:
    - get_knowledge_stats: counts of extracted knowledge
    - clear_context_cache: drop cached assembled contexts

Authentication:
    When REPOCONTEXT_MCP_TOKEN is set the token is validated at startup and
    its workspace becomes the default for every tool. Without a token the
    workspace is detected from the git remote of the working directory.

Usage:
    # Start the server directly
    python -m repocontext.server

    # Or via the CLI
    repocontext serve

    # Or configured in an MCP client
    {
      "command": "repocontext",
      "args": ["serve"],
      "env": {"REPOCONTEXT_MCP_TOKEN": "rc_..."}
    }

Author: RepoContext Team
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .config import get_config
from .constants import (
    APPLICATION_NAME,
    DEFAULT_SEARCH_RESULTS,
    DEFAULT_TOKEN_BUDGET,
    MAX_QUERY_LENGTH,
    MAX_SEARCH_RESULTS,
    MAX_TOKEN_BUDGET,
    MIN_TOKEN_BUDGET,
    TOOL_PERMISSIONS,
    ErrorMessage,
    MCPToolName,
)
from .logging import get_logger, log_operation_end, log_operation_start
from .services.auth import AuthContext, AuthService
from .services.workspace_detector import WorkspaceDetector
from .tools import (
    analyze_repository,
    clear_context_cache,
    get_extraction_logs,
    get_extraction_status,
    get_knowledge_stats,
    search_code,
    search_code_with_enterprise_context,
)


# Module logger
logger = get_logger(__name__)

# Create MCP server instance
app = Server(APPLICATION_NAME.lower())

# Identity established at startup, None when running unauthenticated
_auth_context: Optional[AuthContext] = None


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name=MCPToolName.SEARCH_WITH_CONTEXT.value,
            description="""Search code with hierarchical enterprise context.

Returns an enhanced prompt containing the repository's architecture patterns,
the domain model and APIs the request touches, the standard implementation
patterns of the codebase and its framework conventions, sized to a token budget.

Use this tool BEFORE generating code so the result follows the organization's
established conventions.""",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "User query or task description",
                        "maxLength": MAX_QUERY_LENGTH,
                    },
                    "workspace_id": {
                        "type": "string",
                        "description": "Workspace ID (optional when authenticated)",
                    },
                    "token_budget": {
                        "type": "integer",
                        "description": "Token budget for the context",
                        "minimum": MIN_TOKEN_BUDGET,
                        "maximum": MAX_TOKEN_BUDGET,
                        "default": DEFAULT_TOKEN_BUDGET,
                    },
                    "include_hierarchy": {
                        "type": "boolean",
                        "description": "Include hierarchical enterprise context",
                        "default": True,
                    },
                    "include_vector_search": {
                        "type": "boolean",
                        "description": "Include semantic code search results",
                        "default": True,
                    },
                },
                "required": ["query"],
            },
        ),
        Tool(
            name=MCPToolName.SEARCH_CODE.value,
            description="""Search indexed code by meaning.

Finds classes and methods semantically similar to the query, even if they
don't contain the exact words. Requires the repository to have been analyzed
with code indexing enabled.""",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Natural language description of the code",
                        "maxLength": MAX_QUERY_LENGTH,
                    },
                    "workspace_id": {
                        "type": "string",
                        "description": "Workspace ID (optional when authenticated)",
                    },
                    "repository_id": {
                        "type": "string",
                        "description": "Limit results to one repository",
                    },
                    "limit": {
                        "type": "integer",
                        "description": "Maximum results",
                        "minimum": 1,
                        "maximum": MAX_SEARCH_RESULTS,
                        "default": DEFAULT_SEARCH_RESULTS,
                    },
                },
                "required": ["query"],
            },
        ),
        Tool(
            name=MCPToolName.ANALYZE_REPOSITORY.value,
            description="""Register a git repository and extract its enterprise knowledge.

Clones the repository (shallow) and extracts the framework fingerprint,
architecture patterns, domain models, code patterns and API specifications.
This can take several minutes for large repositories.""",
            inputSchema={
                "type": "object",
                "properties": {
                    "url": {
                        "type": "string",
                        "description": "Clone URL of the repository",
                    },
                    "workspace_id": {
                        "type": "string",
                        "description": "Workspace to register the repository in",
                    },
                    "branch": {
                        "type": "string",
                        "description": "Branch to analyze (default branch when omitted)",
                    },
                },
                "required": ["url"],
            },
        ),
        Tool(
            name=MCPToolName.GET_EXTRACTION_STATUS.value,
            description="Get the extraction status, duration and cost of a repository.",
            inputSchema={
                "type": "object",
                "properties": {
                    "repository_id": {"type": "string", "description": "Repository ID"},
                },
                "required": ["repository_id"],
            },
        ),
        Tool(
            name=MCPToolName.GET_EXTRACTION_LOGS.value,
            description="Get the most recent extraction log entries of a repository.",
            inputSchema={
                "type": "object",
                "properties": {
                    "repository_id": {"type": "string", "description": "Repository ID"},
                    "limit": {
                        "type": "integer",
                        "description": "Maximum log entries",
                        "minimum": 1,
                        "default": 100,
                    },
                },
                "required": ["repository_id"],
            },
        ),
        Tool(
            name=MCPToolName.GET_KNOWLEDGE_STATS.value,
            description="Count the architecture patterns, domain models, code patterns and APIs extracted for a repository.",
            inputSchema={
                "type": "object",
                "properties": {
                    "repository_id": {"type": "string", "description": "Repository ID"},
                },
                "required": ["repository_id"],
            },
        ),
        Tool(
            name=MCPToolName.CLEAR_CONTEXT_CACHE.value,
            description="Clear cached assembled contexts for a repository, or all of them.",
            inputSchema={
                "type": "object",
                "properties": {
                    "repository_id": {
                        "type": "string",
                        "description": "Repository ID (all repositories when omitted)",
                    },
                },
            },
        ),
    ]


@app.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """
    Handle incoming tool invocations from MCP clients.

    Errors never reach the transport; they are returned as a JSON payload
    naming the tool and the arguments it was called with.

    Args:
        name: Name of the tool being invoked.
        arguments: Dictionary of arguments passed to the tool.

    Returns:
        List containing a single TextContent with JSON-formatted results.
    """
    start_time = log_operation_start(logger, f"tool_call:{name}", tool_name=name)

    try:
        result = await _execute_tool(name, arguments or {})

        log_operation_end(
            logger, f"tool_call:{name}", start_time,
            success="error" not in result,
        )

        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    except Exception as error:
        log_operation_end(
            logger, f"tool_call:{name}", start_time,
            success=False,
            error=str(error),
        )

        error_response = {
            "error": str(error),
            "tool": name,
            "arguments": arguments,
        }

        return [TextContent(type="text", text=json.dumps(error_response, indent=2, default=str))]


def _workspace(arguments: dict[str, Any]) -> Optional[str]:
    return arguments.get("workspace_id") or get_config().auth.workspace_id


def _check_permission(name: str) -> None:
    """Reject tools the authenticated token may not use. Unauthenticated servers allow all."""
    if _auth_context is None:
        return
    required = TOOL_PERMISSIONS.get(name)
    if required and not AuthService.has_permission(_auth_context, required):
        raise PermissionError(ErrorMessage.PERMISSION_DENIED.format(permission=required, tool=name))


async def _execute_tool(name: str, arguments: dict[str, Any]) -> dict:
    """
    Execute a specific tool by name.

    Blocking work runs in the default executor so the event loop stays
    responsive.

    Raises:
        ValueError: If tool name is unknown.
        PermissionError: If the authenticated token lacks the tool's permission.
    """
    _check_permission(name)
    loop = asyncio.get_running_loop()

    if name == MCPToolName.SEARCH_WITH_CONTEXT.value:
        return await loop.run_in_executor(
            None,
            lambda: search_code_with_enterprise_context(
                query=arguments["query"],
                workspace_id=_workspace(arguments),
                token_budget=arguments.get("token_budget", DEFAULT_TOKEN_BUDGET),
                include_hierarchy=arguments.get("include_hierarchy", True),
                include_vector_search=arguments.get("include_vector_search", True),
            ),
        )

    elif name == MCPToolName.SEARCH_CODE.value:
        return await loop.run_in_executor(
            None,
            lambda: search_code(
                query=arguments["query"],
                workspace_id=_workspace(arguments),
                repository_id=arguments.get("repository_id"),
                limit=arguments.get("limit", DEFAULT_SEARCH_RESULTS),
            ),
        )

    elif name == MCPToolName.ANALYZE_REPOSITORY.value:
        return await loop.run_in_executor(
            None,
            lambda: analyze_repository(
                url=arguments["url"],
                workspace_id=_workspace(arguments),
                branch=arguments.get("branch"),
            ),
        )

    elif name == MCPToolName.GET_EXTRACTION_STATUS.value:
        return await loop.run_in_executor(None, lambda: get_extraction_status(arguments["repository_id"]))

    elif name == MCPToolName.GET_EXTRACTION_LOGS.value:
        return await loop.run_in_executor(
            None,
            lambda: get_extraction_logs(arguments["repository_id"], arguments.get("limit", 100)),
        )

    elif name == MCPToolName.GET_KNOWLEDGE_STATS.value:
        return await loop.run_in_executor(None, lambda: get_knowledge_stats(arguments["repository_id"]))

    elif name == MCPToolName.CLEAR_CONTEXT_CACHE.value:
        return await loop.run_in_executor(None, lambda: clear_context_cache(arguments.get("repository_id")))

    else:
        raise ValueError(f"Unknown tool: {name}")


def authenticate(
    auth_service: Optional[AuthService] = None,
    detector: Optional[WorkspaceDetector] = None,
    cwd: Optional[Path] = None,
) -> Optional[AuthContext]:
    """
    Establish the default workspace before serving.

    With a configured MCP token the token must validate; its workspace
    becomes the default. Otherwise the workspace is detected from the
    working directory's git remote, if none is configured.

    Raises:
        AuthenticationError: If a configured token is rejected
    """
    global _auth_context
    config = get_config()

    if config.auth.mcp_token:
        auth_service = auth_service or AuthService()
        _auth_context = auth_service.validate_token(config.auth.mcp_token, config.auth.workspace_id)
        config.auth.workspace_id = _auth_context.workspace_id
        logger.info(
            "Authentication validated",
            extra={"workspace_id": _auth_context.workspace_id, "token_type": _auth_context.token_type},
        )
        return _auth_context

    if not config.auth.workspace_id:
        detector = detector or WorkspaceDetector()
        detected = detector.detect(cwd)
        config.auth.workspace_id = detected.workspace_id
        logger.info(
            "Using detected workspace",
            extra={"workspace_id": detected.workspace_id, "workspace_name": detected.name},
        )
    return None


async def main():
    """
    Run the MCP server with stdio transport.

    Authenticates first, then serves until the client disconnects.
    """
    logger.info("Starting RepoContext MCP server")
    authenticate()

    async with stdio_server() as (read_stream, write_stream):
        logger.info("MCP server ready, waiting for connections")
        await app.run(
            read_stream,
            write_stream,
            app.create_initialization_options(),
        )

    logger.info("MCP server shut down")


def run_server():
    """Entry point for running the server."""
    asyncio.run(main())


if __name__ == "__main__":
    run_server()
