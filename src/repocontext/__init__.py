"""
RepoContext - Hierarchical Enterprise Context for Code Generation.

This package extracts enterprise knowledge from source repositories and
serves it to AI coding assistants over the Model Context Protocol, so
generated code follows an organization's architecture, domain model and
established implementation patterns.

Knowledge Tiers:
    - **Architecture**: decisions found in docs or inferred from code
    - **Domain**: entities, services, business rules and APIs per domain
    - **Patterns**: the dominant way in-house components are used
    - **Standards**: framework fingerprint and custom components

Quick Start:
    1. Install: pip install repocontext
    2. Analyze: repocontext analyze https://github.com/acme/payments.git
    3. Assemble: repocontext context <repository-id> "Add a refund endpoint"

Architecture:
    - server.py: MCP protocol handler and tool registration
    - tools/: Tool implementations shared by the server and the CLI
    - context/: Intent classification, budgeting and prompt assembly
    - extractors/: The five knowledge extractors
    - services/: Knowledge store, git, LLM, auth and orchestration
    - parsers/: tree-sitter source parsers and manifest readers
    - models/: Pydantic knowledge records and context dataclasses
    - config.py: Configuration loaded from the environment

Author: RepoContext Team
"""

__version__ = "1.0.0"
__author__ = "RepoContext Team"
__description__ = "Hierarchical enterprise context for code-generation agents"

# Public API
from repocontext.constants import (
    APPLICATION_NAME,
    APPLICATION_VERSION,
    ContextTier,
    ExtractionStatus,
    OperationType,
)

from repocontext.logging import (
    get_logger,
    setup_logging,
)

__all__ = [
    # Metadata
    "__version__",
    "__author__",
    "__description__",

    # Constants
    "APPLICATION_NAME",
    "APPLICATION_VERSION",
    "ContextTier",
    "ExtractionStatus",
    "OperationType",

    # Logging
    "get_logger",
    "setup_logging",
]
