"""
Configuration Module for RepoContext.

The configuration follows a hierarchical structure:
    - StorageConfig: Where the knowledge database, clones and vectors live
    - LLMConfig: Chat model used by the extractors
    - ExtractionConfig: Heuristic thresholds and cost accounting
    - ContextConfig: Token budget and cache behavior of the assembler
    - EmbeddingConfig: Embedding model for code search
    - AuthConfig: Credentials for the MCP server
    - Config: Main configuration aggregating all sub-configs

Example Usage:
    >>> from repocontext.config import get_config, set_config, Config
    >>> config = Config(storage=StorageConfig(data_dir=Path("/tmp/rc")))
    >>> set_config(config)
    >>> current_config = get_config()

Author: RepoContext Team
"""

import os
import re
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from .constants import (
    CHROMA_DIRECTORY_NAME,
    CLONE_DIRECTORY_NAME,
    DATABASE_FILENAME,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_COST_PER_ITEM,
    DEFAULT_CUSTOM_PACKAGE_PATTERNS,
    DEFAULT_DATA_DIRECTORY,
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_LLM_MAX_TOKENS,
    DEFAULT_LLM_MODEL,
    DEFAULT_LLM_TEMPERATURE,
    DEFAULT_MAX_COMPONENT_FILES,
    DEFAULT_MAX_DOC_CHARS,
    DEFAULT_MAX_DOC_FILES,
    DEFAULT_MIN_VARIATION_PERCENTAGE,
    DEFAULT_STANDARD_THRESHOLD,
    DEFAULT_TOKEN_BUDGET,
    DEFAULT_TOKEN_MODEL,
    EMBEDDING_BATCH_SIZE,
    IGNORED_DIRECTORIES,
    LOG_DIRECTORY_NAME,
    MAX_TOKEN_BUDGET,
    MIN_TOKEN_BUDGET,
)


class StorageConfig(BaseModel):
    """
    Configuration for on-disk storage locations.

    Attributes:
        data_dir: Root directory for all persisted state
    """

    data_dir: Path = Field(
        default=DEFAULT_DATA_DIRECTORY,
        description="Directory for the knowledge database, clones and vectors",
    )

    @property
    def database_path(self) -> Path:
        """SQLite knowledge store."""
        return self.data_dir / DATABASE_FILENAME

    @property
    def clone_dir(self) -> Path:
        """Working directory for temporary clones."""
        return self.data_dir / CLONE_DIRECTORY_NAME

    @property
    def chroma_dir(self) -> Path:
        """Directory for ChromaDB storage."""
        return self.data_dir / CHROMA_DIRECTORY_NAME

    @property
    def log_dir(self) -> Path:
        return self.data_dir / LOG_DIRECTORY_NAME


class LLMConfig(BaseModel):
    """Configuration for the chat model used during extraction."""

    model: str = Field(default=DEFAULT_LLM_MODEL, description="Chat completion model")
    temperature: float = Field(default=DEFAULT_LLM_TEMPERATURE, description="Sampling temperature")
    max_tokens: int = Field(default=DEFAULT_LLM_MAX_TOKENS, description="Completion token limit")
    api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    base_url: Optional[str] = Field(default=None, description="Alternative OpenAI-compatible endpoint")
    enabled: bool = Field(default=True, description="Allow extractors to call the LLM")

    @property
    def is_available(self) -> bool:
        """True when LLM calls can actually be made."""
        return self.enabled and bool(self.api_key)


class ExtractionConfig(BaseModel):
    """Configuration for the knowledge extractors."""

    max_doc_files: int = Field(
        default=DEFAULT_MAX_DOC_FILES,
        description="Maximum documentation files read by the architecture extractor",
    )
    max_doc_chars: int = Field(
        default=DEFAULT_MAX_DOC_CHARS,
        description="Maximum characters of a document sent to the LLM",
    )
    max_component_files: int = Field(
        default=DEFAULT_MAX_COMPONENT_FILES,
        description="Maximum Java files scanned for custom components",
    )
    standard_threshold: float = Field(
        default=DEFAULT_STANDARD_THRESHOLD,
        description="Share of usages the dominant structure needs to be standard",
    )
    min_variation_percentage: float = Field(
        default=DEFAULT_MIN_VARIATION_PERCENTAGE,
        description="Minimum share (percent) for a pattern variation to be reported",
    )
    clone_depth: int = Field(default=1, description="git clone --depth")
    keep_clones: bool = Field(default=False, description="Keep checkouts after extraction")
    ignored_directories: list[str] = Field(
        default=sorted(IGNORED_DIRECTORIES),
        description="Directory names skipped while scanning",
    )
    custom_package_patterns: list[str] = Field(
        default=list(DEFAULT_CUSTOM_PACKAGE_PATTERNS),
        description="Regexes identifying in-house dependencies",
    )
    cost_per_item: dict[str, float] = Field(
        default=dict(DEFAULT_COST_PER_ITEM),
        description="Estimated LLM cost in USD per extracted item, per stage",
    )

    def is_custom_package(self, name: str) -> bool:
        """Check whether a dependency name follows an in-house naming convention."""
        return any(
            re.search(pattern, name, re.IGNORECASE)
            for pattern in self.custom_package_patterns
        )

    def is_ignored(self, path: Path) -> bool:
        """Check whether any path component is an ignored directory."""
        ignored = set(self.ignored_directories)
        return any(part in ignored for part in path.parts)


class ContextConfig(BaseModel):
    """Configuration for hierarchical context assembly."""

    default_token_budget: int = Field(default=DEFAULT_TOKEN_BUDGET, description="Default budget")
    min_token_budget: int = Field(default=MIN_TOKEN_BUDGET, description="Smallest accepted budget")
    max_token_budget: int = Field(default=MAX_TOKEN_BUDGET, description="Largest accepted budget")
    cache_ttl_seconds: int = Field(
        default=DEFAULT_CACHE_TTL_SECONDS,
        description="Lifetime of cached assembled contexts",
    )
    token_encoding_model: str = Field(
        default=DEFAULT_TOKEN_MODEL,
        description="Model whose tiktoken encoding is used to count tokens",
    )


class EmbeddingConfig(BaseModel):
    """Configuration for embedding generation."""

    model: str = Field(default=DEFAULT_EMBEDDING_MODEL, description="Embedding model to use")
    batch_size: int = Field(default=EMBEDDING_BATCH_SIZE, description="Batch size for embedding requests")


class AuthConfig(BaseModel):
    """Credentials consumed by the MCP server."""

    jwt_secret: Optional[str] = Field(default=None, description="HS256 secret for JWT tokens")
    mcp_token: Optional[str] = Field(default=None, description="Token presented by the MCP client")
    workspace_id: Optional[str] = Field(default=None, description="Default workspace for tools")


class Config(BaseModel):
    """
    Main configuration for RepoContext.

    Example:
        >>> config = Config.from_env()
        >>> config.storage.database_path
        PosixPath('/home/me/.repocontext/knowledge.db')
    """

    storage: StorageConfig = Field(default_factory=StorageConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)

    @classmethod
    def load_default(cls) -> "Config":
        """Load default configuration with environment overrides."""
        return cls.from_env()

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> "Config":
        """
        Build a configuration from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Returns:
            Config with defaults overlaid by any variables that are set
        """
        env = os.environ if environ is None else environ
        config = cls()

        if env.get("REPOCONTEXT_DATA_DIR"):
            config.storage.data_dir = Path(env["REPOCONTEXT_DATA_DIR"]).expanduser()

        config.llm.api_key = env.get("OPENAI_API_KEY") or config.llm.api_key
        config.llm.base_url = env.get("OPENAI_BASE_URL") or config.llm.base_url
        if env.get("REPOCONTEXT_LLM_MODEL"):
            config.llm.model = env["REPOCONTEXT_LLM_MODEL"]
        if env.get("REPOCONTEXT_LLM_ENABLED", "").lower() in ("0", "false", "no"):
            config.llm.enabled = False

        if env.get("REPOCONTEXT_EMBEDDING_MODEL"):
            config.embedding.model = env["REPOCONTEXT_EMBEDDING_MODEL"]

        config.auth.jwt_secret = env.get("REPOCONTEXT_JWT_SECRET") or config.auth.jwt_secret
        config.auth.mcp_token = env.get("REPOCONTEXT_MCP_TOKEN") or config.auth.mcp_token
        config.auth.workspace_id = env.get("REPOCONTEXT_WORKSPACE_ID") or config.auth.workspace_id

        return config


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance.

    Creates a default configuration if none has been set.
    """
    global _config
    if _config is None:
        _config = Config.load_default()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """
    Reset the global configuration to None.

    Useful for testing or reinitializing configuration.
    """
    global _config
    _config = None
