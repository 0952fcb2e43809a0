"""
Tests for the MCP server module.

Tests cover:
- Tool listing and input schemas
- Tool dispatch and JSON responses
- Error payloads
- Startup authentication and workspace detection
- Per-tool permission checks for authenticated tokens

Author: RepoContext Team
"""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from repocontext.constants import MCPToolName
from repocontext.services.auth import AuthContext, AuthenticationError, AuthService


@pytest.fixture(autouse=True)
def unauthenticated():
    """Each test starts without a startup identity."""
    with patch("repocontext.server._auth_context", None):
        yield


class TestServerToolListing:
    """Tests for MCP tool listing."""

    @pytest.mark.asyncio
    async def test_list_tools_returns_every_tool(self):
        """Every MCPToolName is exposed exactly once."""
        from repocontext.server import list_tools

        tools = await list_tools()

        assert sorted(t.name for t in tools) == sorted(name.value for name in MCPToolName)

    @pytest.mark.asyncio
    async def test_list_tools_have_schemas(self):
        from repocontext.server import list_tools

        for tool in await list_tools():
            assert tool.description
            assert tool.inputSchema["type"] == "object"

    @pytest.mark.asyncio
    async def test_context_tool_schema(self):
        """The budget bounds match the assembler's accepted range."""
        from repocontext.server import list_tools

        tools = {t.name: t for t in await list_tools()}
        schema = tools[MCPToolName.SEARCH_WITH_CONTEXT.value].inputSchema

        assert schema["required"] == ["query"]
        assert schema["properties"]["token_budget"]["minimum"] == 1000
        assert schema["properties"]["token_budget"]["maximum"] == 16000


class TestServerToolExecution:
    """Tests for MCP tool execution."""

    @pytest.mark.asyncio
    @patch("repocontext.server.search_code_with_enterprise_context")
    async def test_call_search_with_context(self, mock_search, config):
        from repocontext.server import call_tool

        config.auth.workspace_id = "ws-1"
        mock_search.return_value = {"status": "ok", "text": "# Enterprise Context"}

        result = await call_tool(MCPToolName.SEARCH_WITH_CONTEXT.value, {"query": "add refunds"})

        assert len(result) == 1
        assert result[0].type == "text"
        assert json.loads(result[0].text)["status"] == "ok"
        kwargs = mock_search.call_args.kwargs
        assert kwargs["workspace_id"] == "ws-1"
        assert kwargs["token_budget"] == 8000
        assert kwargs["include_vector_search"] is True

    @pytest.mark.asyncio
    @patch("repocontext.server.search_code")
    async def test_call_search_code(self, mock_search, config):
        from repocontext.server import call_tool

        mock_search.return_value = {"query": "q", "results": []}

        await call_tool(MCPToolName.SEARCH_CODE.value, {"query": "q", "workspace_id": "ws-2", "limit": 3})

        kwargs = mock_search.call_args.kwargs
        assert kwargs["workspace_id"] == "ws-2"
        assert kwargs["limit"] == 3

    @pytest.mark.asyncio
    @patch("repocontext.server.analyze_repository")
    async def test_call_analyze_repository(self, mock_analyze, config):
        from repocontext.server import call_tool

        mock_analyze.return_value = {"status": "completed"}

        result = await call_tool(
            MCPToolName.ANALYZE_REPOSITORY.value,
            {"url": "https://github.com/acme/payments.git", "branch": "main"},
        )

        assert json.loads(result[0].text)["status"] == "completed"
        assert mock_analyze.call_args.kwargs["branch"] == "main"

    @pytest.mark.asyncio
    @patch("repocontext.server.get_extraction_logs")
    async def test_call_logs_default_limit(self, mock_logs):
        from repocontext.server import call_tool

        mock_logs.return_value = {"count": 0, "logs": []}

        await call_tool(MCPToolName.GET_EXTRACTION_LOGS.value, {"repository_id": "r1"})

        mock_logs.assert_called_once_with("r1", 100)

    @pytest.mark.asyncio
    @patch("repocontext.server.clear_context_cache")
    async def test_call_clear_cache_without_repository(self, mock_clear):
        from repocontext.server import call_tool

        mock_clear.return_value = {"cleared": 0}

        await call_tool(MCPToolName.CLEAR_CONTEXT_CACHE.value, {})

        mock_clear.assert_called_once_with(None)

    @pytest.mark.asyncio
    async def test_call_unknown_tool(self):
        """Unknown tools come back as an error payload, not an exception."""
        from repocontext.server import call_tool

        result = await call_tool("unknown_tool", {"x": 1})

        data = json.loads(result[0].text)
        assert data["error"] == "Unknown tool: unknown_tool"
        assert data["tool"] == "unknown_tool"
        assert data["arguments"] == {"x": 1}

    @pytest.mark.asyncio
    @patch("repocontext.server.get_knowledge_stats")
    async def test_call_tool_with_error(self, mock_stats):
        from repocontext.server import call_tool

        mock_stats.side_effect = RuntimeError("database is locked")

        result = await call_tool(MCPToolName.GET_KNOWLEDGE_STATS.value, {"repository_id": "r1"})

        assert json.loads(result[0].text)["error"] == "database is locked"

    @pytest.mark.asyncio
    async def test_missing_required_argument(self):
        from repocontext.server import call_tool

        result = await call_tool(MCPToolName.GET_EXTRACTION_STATUS.value, {})

        assert "repository_id" in json.loads(result[0].text)["error"]

    @pytest.mark.asyncio
    async def test_execute_unknown_tool_raises(self):
        from repocontext.server import _execute_tool

        with pytest.raises(ValueError):
            await _execute_tool("completely_unknown_tool", {})


class TestToolPermissions:
    """Tests for per-tool permission checks."""

    @pytest.mark.asyncio
    @patch("repocontext.server.analyze_repository")
    async def test_missing_permission_is_rejected(self, mock_analyze, config):
        from repocontext.server import call_tool

        reader = AuthContext(workspace_id="ws-1", permissions=["search", "context"])
        with patch("repocontext.server._auth_context", reader):
            result = await call_tool(MCPToolName.ANALYZE_REPOSITORY.value, {"url": "https://github.com/acme/p.git"})

        data = json.loads(result[0].text)
        assert data["error"] == "Token lacks the 'analyze' permission required by analyze_repository"
        mock_analyze.assert_not_called()

    @pytest.mark.asyncio
    @patch("repocontext.server.get_knowledge_stats")
    async def test_granted_permission(self, mock_stats, config):
        from repocontext.server import call_tool

        mock_stats.return_value = {"name": "payments"}
        reader = AuthContext(workspace_id="ws-1", permissions=["context"])
        with patch("repocontext.server._auth_context", reader):
            result = await call_tool(MCPToolName.GET_KNOWLEDGE_STATS.value, {"repository_id": "r1"})

        assert json.loads(result[0].text) == {"name": "payments"}

    @pytest.mark.asyncio
    @patch("repocontext.server.clear_context_cache")
    async def test_admin_may_use_every_tool(self, mock_clear, config):
        from repocontext.server import call_tool

        mock_clear.return_value = {"cleared": 0}
        with patch("repocontext.server._auth_context", AuthContext(workspace_id="ws-1", permissions=["admin"])):
            await call_tool(MCPToolName.CLEAR_CONTEXT_CACHE.value, {})

        mock_clear.assert_called_once_with(None)

    def test_every_tool_has_a_permission(self):
        from repocontext.constants import TOOL_PERMISSIONS

        assert set(TOOL_PERMISSIONS) == set(MCPToolName)


class TestAuthenticate:
    """Tests for startup authentication."""

    def test_valid_token_sets_workspace(self, config, store):
        from repocontext.server import authenticate

        service = AuthService(store, config.auth)
        config.auth.mcp_token = service.generate_mcp_token("ws-7", "laptop")

        context = authenticate(auth_service=service)

        assert context.workspace_id == "ws-7"
        assert config.auth.workspace_id == "ws-7"

    def test_rejected_token(self, config, store):
        from repocontext.server import authenticate

        config.auth.mcp_token = "rc_not_issued"

        with pytest.raises(AuthenticationError):
            authenticate(auth_service=AuthService(store, config.auth))

    def test_detects_workspace_without_token(self, config, tmp_path):
        from repocontext.server import authenticate

        detector = MagicMock()
        detector.detect.return_value = SimpleNamespace(workspace_id="ws-detected", name="payments")

        assert authenticate(detector=detector, cwd=tmp_path) is None
        assert config.auth.workspace_id == "ws-detected"
        detector.detect.assert_called_once_with(tmp_path)

    def test_configured_workspace_skips_detection(self, config):
        from repocontext.server import authenticate

        config.auth.workspace_id = "ws-fixed"
        detector = MagicMock()

        authenticate(detector=detector)

        detector.detect.assert_not_called()
        assert config.auth.workspace_id == "ws-fixed"


class TestServerIntegration:
    """Module-level objects."""

    def test_app_name(self):
        from repocontext.server import app

        assert app.name == "repocontext"

    def test_run_server_function_exists(self):
        from repocontext.server import run_server

        assert callable(run_server)
