"""
Constants and Configuration Values for RepoContext.

This module centralizes all magic strings, numbers, and lookup tables
used throughout the application:

1. Extraction lifecycle states and log levels
2. Intent classification keyword tables
3. Token budget allocation per operation type
4. Heuristic thresholds used by the extractors
5. MCP tool names and user-facing messages

Usage:
    from repocontext.constants import (
        ExtractionStatus,
        OperationType,
        BUDGET_ALLOCATION,
    )

Naming Conventions:
    - ALL_CAPS for constants
    - Descriptive names that read like English
    - Grouped by category with clear section headers

Author: RepoContext Team
"""

from enum import Enum
from pathlib import Path


# ============================================================================
# Application Metadata
# ============================================================================

APPLICATION_NAME = "RepoContext"
APPLICATION_VERSION = "1.0.0"
APPLICATION_DESCRIPTION = "Hierarchical enterprise context for code-generation agents"


# ============================================================================
# File System Paths
# ============================================================================

DEFAULT_DATA_DIRECTORY = Path.home() / ".repocontext"
DATABASE_FILENAME = "knowledge.db"
CLONE_DIRECTORY_NAME = "repos"
CHROMA_DIRECTORY_NAME = "chroma"
LOG_DIRECTORY_NAME = "logs"


# ============================================================================
# Extraction Lifecycle
# ============================================================================

class ExtractionStatus(str, Enum):
    """
    Lifecycle of a repository's knowledge extraction.

    PARTIAL means at least one extractor succeeded and at least one failed.
    """

    PENDING = "pending"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class LogLevel(str, Enum):
    """Levels recorded in the extraction_logs table."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ExtractionStage(str, Enum):
    """Named stages recorded in extraction logs."""

    CLONE = "clone"
    REPOSITORY = "repository_analysis"
    ARCHITECTURE = "architecture"
    DOMAIN = "domain"
    PATTERNS = "patterns"
    API = "api"
    CODE_INDEX = "code_index"


# Estimated LLM cost in USD per extracted item
DEFAULT_COST_PER_ITEM = {
    ExtractionStage.ARCHITECTURE.value: 0.01,
    ExtractionStage.DOMAIN.value: 0.02,
    ExtractionStage.PATTERNS.value: 0.05,
    ExtractionStage.API.value: 0.05,
}


# ============================================================================
# Source Scanning
# ============================================================================

# File extensions mapped to languages
FILE_EXTENSION_TO_LANGUAGE = {
    ".java": "java",
    ".py": "python",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".go": "go",
    ".rs": "rust",
    ".cs": "csharp",
}

DEFAULT_PRIMARY_LANGUAGE = "java"

# Directories to always skip while scanning a checkout
IGNORED_DIRECTORIES = {
    ".git",
    ".svn",
    ".hg",
    "__pycache__",
    "node_modules",
    ".venv",
    "venv",
    "dist",
    "build",
    "target",
    ".idea",
    ".vscode",
    ".gradle",
    ".tox",
    ".pytest_cache",
    ".mypy_cache",
    "coverage",
}

# Internal package naming conventions that mark a dependency as "custom"
DEFAULT_CUSTOM_PACKAGE_PATTERNS = [
    r"^com\.(abc|internal|company|mycompany)\.",
    r"^@(company|internal|abc)/",
    r"^(company|internal)_",
    r"r1-core",
    r"ginger",
]

# Substring in a dependency name -> human framework name
KNOWN_FRAMEWORKS = {
    "spring": "Spring Boot",
    "django": "Django",
    "express": "Express",
    "react": "React",
    "vue": "Vue",
    "angular": "Angular",
    "nest": "NestJS",
    "fastapi": "FastAPI",
    "flask": "Flask",
}

UNKNOWN_FRAMEWORK = "Unknown"

# Class name markers that identify reusable in-house components
COMPONENT_NAME_MARKERS = ("Client", "Service", "Repository")


# ============================================================================
# Heuristic Thresholds
# ============================================================================

DEFAULT_MAX_DOC_FILES = 10
DEFAULT_MAX_DOC_CHARS = 8000
DEFAULT_MAX_COMPONENT_FILES = 50

# Share of usages the dominant structure needs to count as the standard
DEFAULT_STANDARD_THRESHOLD = 0.7
DEFAULT_MIN_VARIATION_PERCENTAGE = 5.0

EVENT_DRIVEN_MIN_LISTENERS = 10
MICROSERVICES_MIN_SERVICES = 3
FALLBACK_PATTERN_MIN_OCCURRENCES = 5

# Lines of context captured around a component usage
USAGE_CONTEXT_BEFORE = 5
USAGE_CONTEXT_AFTER = 10

ARCHITECTURE_DOC_KEYWORDS = (
    "architecture",
    "design pattern",
    "microservices",
    "monolith",
    "event-driven",
    "cqrs",
    "saga",
    "rest",
    "grpc",
    "messaging",
    "database",
    "decision",
    "adr",
    "technical decision",
)

# Entity class name suffixes removed when grouping classes by domain
DOMAIN_NAME_SUFFIXES = (
    "Service",
    "Entity",
    "Repository",
    "Controller",
    "Dto",
    "DTO",
    "Request",
    "Response",
    "Impl",
)


class PatternCategory(str, Enum):
    """Categories assigned to mined code patterns."""

    API_CLIENT = "api_client"
    DATABASE_ACCESS = "database_access"
    BUSINESS_LOGIC = "business_logic"
    REST_CONTROLLER = "rest_controller"
    EVENT_HANDLER = "event_handler"
    GENERAL = "general"


# Component name suffix -> category, checked in order
COMPONENT_CATEGORY_SUFFIXES = [
    ("Client", PatternCategory.API_CLIENT),
    ("Repository", PatternCategory.DATABASE_ACCESS),
    ("Service", PatternCategory.BUSINESS_LOGIC),
    ("Controller", PatternCategory.REST_CONTROLLER),
    ("Handler", PatternCategory.EVENT_HANDLER),
    ("Listener", PatternCategory.EVENT_HANDLER),
]


# ============================================================================
# Intent Classification
# ============================================================================

class OperationType(str, Enum):
    """
    What the user is trying to do with a prompt.

    Drives the token budget split between the four knowledge tiers.
    """

    NEW_FEATURE = "NEW_FEATURE"
    BUG_FIX = "BUG_FIX"
    REFACTORING = "REFACTORING"
    UNDERSTANDING = "UNDERSTANDING"
    GENERAL = "GENERAL"


# Checked in order; first operation with a matching keyword wins
OPERATION_KEYWORDS = [
    (OperationType.NEW_FEATURE, ("write", "add", "implement", "create")),
    (OperationType.BUG_FIX, ("fix", "debug", "broken", "error")),
    (OperationType.REFACTORING, ("refactor", "improve", "optimize")),
    (OperationType.UNDERSTANDING, ("explain", "how does", "what is", "understand")),
]

DOMAIN_KEYWORDS = (
    "payment",
    "order",
    "user",
    "customer",
    "product",
    "invoice",
    "transaction",
)

TECHNOLOGY_KEYWORDS = (
    "stripe",
    "paypal",
    "kafka",
    "rabbitmq",
    "redis",
    "postgres",
    "mysql",
    "react",
    "vue",
    "angular",
    "spring",
    "django",
)

CATEGORY_KEYWORDS = [
    (PatternCategory.API_CLIENT, ("api", "endpoint", "http")),
    (PatternCategory.DATABASE_ACCESS, ("database", "query", "sql")),
    (PatternCategory.EVENT_HANDLER, ("event", "message", "queue")),
]


# ============================================================================
# Context Assembly
# ============================================================================

class ContextTier(str, Enum):
    """The four knowledge tiers, in precedence order."""

    ARCHITECTURE = "architecture"
    DOMAIN = "domain"
    PATTERNS = "patterns"
    STANDARDS = "standards"


# Fraction of the token budget given to each tier, per operation
BUDGET_ALLOCATION = {
    OperationType.NEW_FEATURE: {
        ContextTier.ARCHITECTURE: 0.10,
        ContextTier.DOMAIN: 0.20,
        ContextTier.PATTERNS: 0.50,
        ContextTier.STANDARDS: 0.20,
    },
    OperationType.BUG_FIX: {
        ContextTier.ARCHITECTURE: 0.05,
        ContextTier.DOMAIN: 0.15,
        ContextTier.PATTERNS: 0.30,
        ContextTier.STANDARDS: 0.50,
    },
    OperationType.UNDERSTANDING: {
        ContextTier.ARCHITECTURE: 0.20,
        ContextTier.DOMAIN: 0.40,
        ContextTier.PATTERNS: 0.30,
        ContextTier.STANDARDS: 0.10,
    },
    OperationType.REFACTORING: {
        ContextTier.ARCHITECTURE: 0.15,
        ContextTier.DOMAIN: 0.25,
        ContextTier.PATTERNS: 0.40,
        ContextTier.STANDARDS: 0.20,
    },
    OperationType.GENERAL: {
        ContextTier.ARCHITECTURE: 0.25,
        ContextTier.DOMAIN: 0.25,
        ContextTier.PATTERNS: 0.25,
        ContextTier.STANDARDS: 0.25,
    },
}

ARCHITECTURE_TIER_LIMIT = 3
API_TIER_LIMIT = 5
PATTERN_TIER_LIMIT = 5

DEFAULT_TOKEN_BUDGET = 8000
MIN_TOKEN_BUDGET = 1000
MAX_TOKEN_BUDGET = 16000

DEFAULT_CACHE_TTL_SECONDS = 3600
DEFAULT_TOKEN_MODEL = "gpt-4"

# Approximate characters per token when no tokenizer is available
CHARS_PER_TOKEN = 4

TRUNCATION_MARKER = "... [truncated to fit token budget]"

# Quality score weights
QUALITY_WEIGHT_ARCHITECTURE = 0.25
QUALITY_WEIGHT_DOMAIN = 0.25
QUALITY_WEIGHT_PATTERNS = 0.15
QUALITY_WEIGHT_STANDARD_RATIO = 0.15
QUALITY_WEIGHT_STANDARDS = 0.20


# ============================================================================
# LLM Configuration
# ============================================================================

DEFAULT_LLM_MODEL = "gpt-4o-mini"
DEFAULT_LLM_TEMPERATURE = 0.3
DEFAULT_LLM_MAX_TOKENS = 2000


# ============================================================================
# Embeddings and Vector Search
# ============================================================================

CHROMADB_COLLECTION_NAME = "code_chunks"
CHROMADB_BATCH_SIZE = 500
DEFAULT_EMBEDDING_MODEL = "all-MiniLM-L6-v2"
MOCK_EMBEDDING_MODEL = "mock"
MOCK_EMBEDDING_DIMENSION = 384
EMBEDDING_BATCH_SIZE = 32
DEFAULT_SEARCH_RESULTS = 10
MAX_SEARCH_RESULTS = 50


# ============================================================================
# Git and Authentication
# ============================================================================

class GitProvider(str, Enum):
    """Hosting providers recognized in repository URLs."""

    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"
    GENERIC = "generic"


class AuthType(str, Enum):
    """Ways of authenticating a clone."""

    TOKEN = "token"
    BASIC = "basic"
    OAUTH = "oauth"
    SSH = "ssh"


GIT_COMMAND_TIMEOUT_SECONDS = 300

MCP_TOKEN_PREFIX = "rc_"
MCP_TOKEN_BYTES = 32
JWT_PREFIX = "eyJ"
JWT_ALGORITHM = "HS256"
WILDCARD_PERMISSIONS = ("*", "admin")
DEFAULT_TOKEN_PERMISSIONS = ["search", "context"]
DEFAULT_WORKSPACE_ID = "default"


# ============================================================================
# MCP Tool Names
# ============================================================================

class MCPToolName(str, Enum):
    """Names of tools exposed via MCP protocol."""

    SEARCH_WITH_CONTEXT = "search_code_with_enterprise_context"
    SEARCH_CODE = "search_code"
    ANALYZE_REPOSITORY = "analyze_repository"
    GET_EXTRACTION_STATUS = "get_extraction_status"
    GET_EXTRACTION_LOGS = "get_extraction_logs"
    GET_KNOWLEDGE_STATS = "get_knowledge_stats"
    CLEAR_CONTEXT_CACHE = "clear_context_cache"


# Permission an authenticated token needs for each tool; mutating tools need "analyze"
TOOL_PERMISSIONS = {
    MCPToolName.SEARCH_WITH_CONTEXT: "context",
    MCPToolName.SEARCH_CODE: "search",
    MCPToolName.ANALYZE_REPOSITORY: "analyze",
    MCPToolName.GET_EXTRACTION_STATUS: "context",
    MCPToolName.GET_EXTRACTION_LOGS: "context",
    MCPToolName.GET_KNOWLEDGE_STATS: "context",
    MCPToolName.CLEAR_CONTEXT_CACHE: "analyze",
}


# ============================================================================
# Error Messages
# ============================================================================

class ErrorMessage:
    """Standardized error messages for consistent user feedback."""

    EMPTY_QUERY = "Query cannot be empty"
    QUERY_TOO_LONG = "Query must be at most {max_length} characters"
    WORKSPACE_REQUIRED = "Workspace ID is required for code search"
    REPOSITORY_NOT_FOUND = "Repository not found: {repository_id}"
    INVALID_TOKEN_BUDGET = "token_budget must be between {minimum} and {maximum}"
    INVALID_REPO_URL = "Unable to parse repository URL: {url}"
    PATH_NOT_FOUND = "Path does not exist: {path}"
    NOT_A_DIRECTORY = "Path is not a directory: {path}"
    INVALID_TOKEN = "Invalid or expired token"
    PERMISSION_DENIED = "Token lacks the '{permission}' permission required by {tool}"
    WORKSPACE_MISMATCH = "Token does not grant access to workspace {workspace_id}"
    JWT_SECRET_MISSING = "JWT validation requested but no jwt_secret is configured"
    INVALID_LIMIT = "limit must be between 1 and {maximum}"
    UNKNOWN_REPOSITORY_REFERENCE = "No repository registered with id or URL: {reference}"


# ============================================================================
# Success Messages
# ============================================================================

class SuccessMessage:
    """Standardized success messages."""

    EXTRACTION_COMPLETE = "Extraction finished with status {status}"
    CACHE_CLEARED = "Cleared {count} cached context entries"
    TOKEN_REVOKED = "Token revoked"
    REPOSITORY_REGISTERED = "Repository {name} registered with id {repository_id}"


MAX_QUERY_LENGTH = 2000
