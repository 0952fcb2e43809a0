"""
Services Layer for RepoContext.

Each service encapsulates one capability used by the extractors, the
context assembler, the MCP server and the CLI:

**KnowledgeStore**:
    SQLite persistence for repositories, extracted knowledge, extraction
    logs, the assembled-context cache, workspaces and MCP tokens.

**GitService**:
    URL parsing, authenticated shallow clones and checkout cleanup.

**LLMService**:
    Optional OpenAI chat completions returning JSON. Extractors fall back
    to heuristics when it is unavailable.

**TokenCounter**:
    tiktoken-based counting and truncation for the token budget.

**ExtractionOrchestrator**:
    Clones a repository and runs the extractors, all settled.

**EmbeddingService / StorageService / CodeIndexer**:
    Vector index of classes and methods for semantic code search.

**AuthService / WorkspaceDetector**:
    JWT and MCP token validation; mapping a checkout to its workspace.

Usage:
    from repocontext.services.knowledge_store import KnowledgeStore
    from repocontext.services.extraction_orchestrator import ExtractionOrchestrator

    store = KnowledgeStore()
    result = ExtractionOrchestrator(store=store).extract(repository_id)

Services are imported from their modules; the extractors depend on
several of them, so this package does not import them eagerly.

Author: RepoContext Team
"""
