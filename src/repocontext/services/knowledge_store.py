"""
Knowledge Store - SQLite persistence for extracted enterprise knowledge.

Every extractor writes its records here, keyed by repository, and the
context assembler reads the four knowledge tiers back out:

    Level 1  architecture_patterns    top N by confidence
    Level 2  domain_models            case-insensitive domain match
             api_specifications       by API name or endpoint path
    Level 3  code_patterns            standard patterns by frequency
    Level 4  framework_fingerprints   first custom framework

The store also keeps repository lifecycle state, an extraction audit
trail, the assembled-context cache, workspaces and MCP tokens.

List- and dict-valued columns are stored as JSON text. Each extractor
replaces its own rows for a repository, so re-analysis is idempotent.

Author: RepoContext Team
"""

import json
import math
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, TypeVar

from pydantic import BaseModel

from ..config import get_config
from ..constants import (
    API_TIER_LIMIT,
    ARCHITECTURE_TIER_LIMIT,
    DEFAULT_STANDARD_THRESHOLD,
    PATTERN_TIER_LIMIT,
    ExtractionStatus,
    LogLevel,
)
from ..logging import get_logger
from ..models.knowledge import (
    APISpecification,
    ArchitecturePattern,
    CodePattern,
    DomainModel,
    ExtractionLog,
    FrameworkFingerprint,
    MCPToken,
    Repository,
    Workspace,
)


logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS workspaces (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS repositories (
    id TEXT PRIMARY KEY,
    workspace_id TEXT,
    name TEXT NOT NULL,
    url TEXT NOT NULL,
    branch TEXT,
    primary_language TEXT,
    analyzed_at TEXT,
    extraction_status TEXT NOT NULL DEFAULT 'pending',
    extraction_duration_ms INTEGER,
    extraction_cost REAL NOT NULL DEFAULT 0,
    file_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS framework_fingerprints (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_id TEXT NOT NULL,
    framework_type TEXT NOT NULL,
    framework_version TEXT,
    is_custom INTEGER NOT NULL DEFAULT 0,
    package_name TEXT,
    custom_components TEXT NOT NULL DEFAULT '[]',
    dependency_file TEXT,
    config_namespaces TEXT NOT NULL DEFAULT '[]',
    detected_languages TEXT NOT NULL DEFAULT '{}',
    dependencies TEXT NOT NULL DEFAULT '[]',
    metadata TEXT NOT NULL DEFAULT '{}'
);

CREATE TABLE IF NOT EXISTS architecture_patterns (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_id TEXT NOT NULL,
    pattern_type TEXT NOT NULL,
    pattern_name TEXT NOT NULL,
    description TEXT,
    rationale TEXT,
    evidence_source TEXT,
    confidence_score REAL NOT NULL DEFAULT 0.5,
    metadata TEXT NOT NULL DEFAULT '{}'
);

CREATE TABLE IF NOT EXISTS domain_models (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_id TEXT NOT NULL,
    domain_name TEXT NOT NULL,
    summary TEXT,
    entities TEXT NOT NULL DEFAULT '[]',
    services TEXT NOT NULL DEFAULT '[]',
    relationships TEXT NOT NULL DEFAULT '[]',
    operations TEXT NOT NULL DEFAULT '[]',
    business_rules TEXT NOT NULL DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS code_patterns (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_id TEXT NOT NULL,
    pattern_name TEXT NOT NULL,
    category TEXT NOT NULL,
    frequency INTEGER NOT NULL DEFAULT 0,
    is_standard INTEGER NOT NULL DEFAULT 0,
    template TEXT,
    explanation TEXT,
    when_to_use TEXT,
    examples TEXT NOT NULL DEFAULT '[]',
    variations TEXT NOT NULL DEFAULT '[]',
    metadata TEXT NOT NULL DEFAULT '{}'
);

CREATE TABLE IF NOT EXISTS api_specifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_id TEXT NOT NULL,
    api_name TEXT NOT NULL,
    base_url TEXT,
    version TEXT,
    description TEXT,
    authentication TEXT,
    endpoints TEXT NOT NULL DEFAULT '[]',
    source TEXT
);

CREATE TABLE IF NOT EXISTS extraction_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_id TEXT NOT NULL,
    stage TEXT NOT NULL,
    level TEXT NOT NULL,
    message TEXT NOT NULL,
    details TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS context_cache (
    cache_key TEXT PRIMARY KEY,
    repository_id TEXT NOT NULL,
    assembled TEXT NOT NULL,
    tokens_used INTEGER NOT NULL,
    quality_score REAL NOT NULL,
    created_at TEXT NOT NULL,
    expires_at TEXT NOT NULL,
    accessed_at TEXT NOT NULL,
    access_count INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS mcp_tokens (
    id TEXT PRIMARY KEY,
    workspace_id TEXT NOT NULL,
    name TEXT NOT NULL,
    token_hash TEXT NOT NULL UNIQUE,
    permissions TEXT NOT NULL DEFAULT '[]',
    is_active INTEGER NOT NULL DEFAULT 1,
    expires_at TEXT,
    last_used_at TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_repositories_workspace ON repositories(workspace_id);
CREATE INDEX IF NOT EXISTS idx_repositories_url ON repositories(url);
CREATE INDEX IF NOT EXISTS idx_fingerprints_repo ON framework_fingerprints(repository_id);
CREATE INDEX IF NOT EXISTS idx_architecture_repo ON architecture_patterns(repository_id, confidence_score);
CREATE INDEX IF NOT EXISTS idx_domain_repo ON domain_models(repository_id, domain_name);
CREATE INDEX IF NOT EXISTS idx_patterns_repo ON code_patterns(repository_id, is_standard, frequency);
CREATE INDEX IF NOT EXISTS idx_api_repo ON api_specifications(repository_id);
CREATE INDEX IF NOT EXISTS idx_logs_repo ON extraction_logs(repository_id, created_at);
CREATE INDEX IF NOT EXISTS idx_cache_expiry ON context_cache(expires_at);
CREATE INDEX IF NOT EXISTS idx_tokens_workspace ON mcp_tokens(workspace_id);
"""

# Knowledge tables and their JSON-encoded columns
_KNOWLEDGE_TABLES = {
    "framework_fingerprints": (
        FrameworkFingerprint,
        ("custom_components", "config_namespaces", "detected_languages", "dependencies", "metadata"),
    ),
    "architecture_patterns": (ArchitecturePattern, ("metadata",)),
    "domain_models": (
        DomainModel,
        ("entities", "services", "relationships", "operations", "business_rules"),
    ),
    "code_patterns": (CodePattern, ("examples", "variations", "metadata")),
    "api_specifications": (APISpecification, ("endpoints",)),
}


def _now() -> str:
    return datetime.now().isoformat()


def _decode_row(row: sqlite3.Row, json_columns: tuple[str, ...]) -> dict[str, Any]:
    data = dict(row)
    for column in json_columns:
        if data.get(column) is not None:
            data[column] = json.loads(data[column])
    return data


def calculate_pattern_threshold(total_files: int, percentage: float = DEFAULT_STANDARD_THRESHOLD) -> int:
    """Number of files a pattern must appear in to count as standard."""
    return math.ceil(total_files * percentage)


class KnowledgeStore:
    """SQLite-backed store for repositories and their extracted knowledge.

    Each public method opens a short-lived connection so the store can be
    shared between the CLI, the extraction pipeline and the MCP server.
    """

    def __init__(self, db_path: Optional[Path] = None):
        config = get_config()
        self.db_path = Path(db_path) if db_path else config.storage.database_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        """Initialize the database schema."""
        conn = self._get_connection()
        try:
            conn.executescript(_SCHEMA)
            conn.commit()
        finally:
            conn.close()

    # ========================================================================
    # Workspaces
    # ========================================================================

    def get_workspace(self, workspace_id: str) -> Optional[Workspace]:
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT * FROM workspaces WHERE id = ?", (workspace_id,)).fetchone()
            return Workspace.model_validate(dict(row)) if row else None
        finally:
            conn.close()

    def get_or_create_workspace(self, workspace_id: str, name: str) -> Workspace:
        """Find a workspace by id, creating it if it does not exist."""
        existing = self.get_workspace(workspace_id)
        if existing:
            return existing

        workspace = Workspace(id=workspace_id, name=name)
        conn = self._get_connection()
        try:
            conn.execute(
                "INSERT OR IGNORE INTO workspaces (id, name, created_at) VALUES (?, ?, ?)",
                (workspace.id, workspace.name, workspace.created_at.isoformat()),
            )
            conn.commit()
        finally:
            conn.close()

        logger.debug("Workspace created", extra={"workspace_id": workspace_id})
        return workspace

    # ========================================================================
    # Repositories
    # ========================================================================

    def create_repository(self, repository: Repository) -> Repository:
        data = repository.model_dump(mode="json")
        columns = ", ".join(data)
        placeholders = ", ".join("?" for _ in data)

        conn = self._get_connection()
        try:
            conn.execute(
                f"INSERT INTO repositories ({columns}) VALUES ({placeholders})",
                tuple(data.values()),
            )
            conn.commit()
        finally:
            conn.close()

        logger.info(
            "Repository registered",
            extra={"repository_id": repository.id, "url": repository.url},
        )
        return repository

    def get_repository(self, repository_id: str) -> Optional[Repository]:
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM repositories WHERE id = ?", (repository_id,)
            ).fetchone()
            return Repository.model_validate(dict(row)) if row else None
        finally:
            conn.close()

    def find_repository_by_url(self, url: str, workspace_id: Optional[str] = None) -> Optional[Repository]:
        query = "SELECT * FROM repositories WHERE url = ?"
        params: list[Any] = [url]
        if workspace_id:
            query += " AND workspace_id = ?"
            params.append(workspace_id)
        query += " ORDER BY created_at DESC LIMIT 1"

        conn = self._get_connection()
        try:
            row = conn.execute(query, params).fetchone()
            return Repository.model_validate(dict(row)) if row else None
        finally:
            conn.close()

    def list_repositories(self, workspace_id: Optional[str] = None) -> list[Repository]:
        query = "SELECT * FROM repositories"
        params: list[Any] = []
        if workspace_id:
            query += " WHERE workspace_id = ?"
            params.append(workspace_id)
        query += " ORDER BY created_at DESC"

        conn = self._get_connection()
        try:
            return [Repository.model_validate(dict(r)) for r in conn.execute(query, params)]
        finally:
            conn.close()

    def get_latest_repository(self, workspace_id: str) -> Optional[Repository]:
        """Most recently analyzed repository of a workspace (never-analyzed last)."""
        conn = self._get_connection()
        try:
            row = conn.execute(
                """
                SELECT * FROM repositories
                WHERE workspace_id = ?
                ORDER BY analyzed_at IS NULL, analyzed_at DESC, created_at DESC
                LIMIT 1
                """,
                (workspace_id,),
            ).fetchone()
            return Repository.model_validate(dict(row)) if row else None
        finally:
            conn.close()

    def update_repository_status(self, repository_id: str, status: ExtractionStatus) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                "UPDATE repositories SET extraction_status = ? WHERE id = ?",
                (ExtractionStatus(status).value, repository_id),
            )
            conn.commit()
        finally:
            conn.close()

    def update_repository_analysis(
        self,
        repository_id: str,
        primary_language: Optional[str],
        file_count: int,
    ) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                "UPDATE repositories SET primary_language = ?, file_count = ? WHERE id = ?",
                (primary_language, file_count, repository_id),
            )
            conn.commit()
        finally:
            conn.close()

    def record_extraction_completion(
        self,
        repository_id: str,
        status: ExtractionStatus,
        duration_ms: int,
        cost: float,
    ) -> None:
        """Mark an extraction as finished and stamp analyzed_at."""
        conn = self._get_connection()
        try:
            conn.execute(
                """
                UPDATE repositories
                SET extraction_status = ?, analyzed_at = ?,
                    extraction_duration_ms = ?, extraction_cost = ?
                WHERE id = ?
                """,
                (ExtractionStatus(status).value, _now(), duration_ms, round(cost, 4), repository_id),
            )
            conn.commit()
        finally:
            conn.close()

    def delete_repository(self, repository_id: str) -> None:
        """Delete a repository and everything extracted from it."""
        conn = self._get_connection()
        try:
            for table in (*_KNOWLEDGE_TABLES, "extraction_logs", "context_cache"):
                conn.execute(f"DELETE FROM {table} WHERE repository_id = ?", (repository_id,))
            conn.execute("DELETE FROM repositories WHERE id = ?", (repository_id,))
            conn.commit()
        finally:
            conn.close()

    # ========================================================================
    # Knowledge Writes
    # ========================================================================

    def _replace(self, table: str, repository_id: str, records: list[BaseModel]) -> int:
        """Replace all rows of a knowledge table for one repository."""
        _, json_columns = _KNOWLEDGE_TABLES[table]

        conn = self._get_connection()
        try:
            conn.execute(f"DELETE FROM {table} WHERE repository_id = ?", (repository_id,))
            for record in records:
                data = record.model_dump(mode="json")
                for column in json_columns:
                    data[column] = json.dumps(data[column])
                columns = ", ".join(["repository_id", *data])
                placeholders = ", ".join("?" for _ in range(len(data) + 1))
                conn.execute(
                    f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
                    (repository_id, *data.values()),
                )
            conn.commit()
        finally:
            conn.close()

        logger.debug(
            "Knowledge stored",
            extra={"table": table, "repository_id": repository_id, "rows": len(records)},
        )
        return len(records)

    def save_fingerprint(self, repository_id: str, fingerprint: FrameworkFingerprint) -> int:
        return self._replace("framework_fingerprints", repository_id, [fingerprint])

    def save_architecture_patterns(self, repository_id: str, patterns: list[ArchitecturePattern]) -> int:
        return self._replace("architecture_patterns", repository_id, patterns)

    def save_domain_models(self, repository_id: str, models: list[DomainModel]) -> int:
        return self._replace("domain_models", repository_id, models)

    def save_code_patterns(self, repository_id: str, patterns: list[CodePattern]) -> int:
        return self._replace("code_patterns", repository_id, patterns)

    def save_api_specifications(self, repository_id: str, specs: list[APISpecification]) -> int:
        return self._replace("api_specifications", repository_id, specs)

    # ========================================================================
    # Knowledge Reads
    # ========================================================================

    def _select(self, table: str, where: str, params: tuple, order_limit: str = "") -> list[Any]:
        model_cls, json_columns = _KNOWLEDGE_TABLES[table]
        conn = self._get_connection()
        try:
            rows = conn.execute(f"SELECT * FROM {table} WHERE {where} {order_limit}", params).fetchall()
        finally:
            conn.close()
        return [model_cls.model_validate(_decode_row(row, json_columns)) for row in rows]

    def get_fingerprint(self, repository_id: str) -> Optional[FrameworkFingerprint]:
        results = self._select(
            "framework_fingerprints", "repository_id = ?", (repository_id,), "ORDER BY id LIMIT 1"
        )
        return results[0] if results else None

    def get_architecture_patterns(self, repository_id: str) -> list[ArchitecturePattern]:
        return self._select(
            "architecture_patterns", "repository_id = ?", (repository_id,),
            "ORDER BY confidence_score DESC, id",
        )

    def get_domain_models(self, repository_id: str) -> list[DomainModel]:
        return self._select("domain_models", "repository_id = ?", (repository_id,), "ORDER BY domain_name")

    def get_code_patterns(self, repository_id: str) -> list[CodePattern]:
        return self._select(
            "code_patterns", "repository_id = ?", (repository_id,), "ORDER BY frequency DESC, id"
        )

    def get_api_specifications(self, repository_id: str) -> list[APISpecification]:
        return self._select("api_specifications", "repository_id = ?", (repository_id,), "ORDER BY id")

    def top_architecture_patterns(
        self, repository_id: str, limit: int = ARCHITECTURE_TIER_LIMIT
    ) -> list[ArchitecturePattern]:
        """Level 1: highest-confidence architecture patterns."""
        return self._select(
            "architecture_patterns", "repository_id = ?", (repository_id, limit),
            "ORDER BY confidence_score DESC, id LIMIT ?",
        )

    def find_domain_model(self, repository_id: str, domain: str) -> Optional[DomainModel]:
        """Level 2: first domain whose name contains ``domain`` (case-insensitive)."""
        results = self._select(
            "domain_models", "repository_id = ? AND domain_name LIKE ?",
            (repository_id, f"%{domain}%"), "ORDER BY id LIMIT 1",
        )
        return results[0] if results else None

    def find_api_specs(
        self, repository_id: str, domain: str, limit: int = API_TIER_LIMIT
    ) -> list[APISpecification]:
        """Level 2: APIs named after the domain or exposing an endpoint path containing it."""
        needle = domain.lower()
        matches = [
            spec
            for spec in self.get_api_specifications(repository_id)
            if needle in spec.api_name.lower()
            or any(needle in endpoint.path.lower() for endpoint in spec.endpoints)
        ]
        return matches[:limit]

    def standard_code_patterns(
        self,
        repository_id: str,
        category: Optional[str] = None,
        limit: int = PATTERN_TIER_LIMIT,
    ) -> list[CodePattern]:
        """Level 3: standard patterns, most frequent first."""
        where = "repository_id = ? AND is_standard = 1"
        params: tuple = (repository_id,)
        if category:
            where += " AND category = ?"
            params += (category,)
        return self._select("code_patterns", where, (*params, limit), "ORDER BY frequency DESC, id LIMIT ?")

    def custom_framework(self, repository_id: str) -> Optional[FrameworkFingerprint]:
        """Level 4: the repository's in-house framework fingerprint, if any."""
        results = self._select(
            "framework_fingerprints", "repository_id = ? AND is_custom = 1",
            (repository_id,), "ORDER BY id LIMIT 1",
        )
        return results[0] if results else None

    # ========================================================================
    # Extraction Logs
    # ========================================================================

    def add_extraction_log(
        self,
        repository_id: str,
        stage: str,
        message: str,
        level: LogLevel = LogLevel.INFO,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT INTO extraction_logs (repository_id, stage, level, message, details, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    repository_id,
                    stage,
                    LogLevel(level).value,
                    message,
                    json.dumps(details or {}, default=str),
                    _now(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def get_extraction_logs(self, repository_id: str, limit: int = 100) -> list[ExtractionLog]:
        """Most recent log lines first."""
        conn = self._get_connection()
        try:
            rows = conn.execute(
                """
                SELECT * FROM extraction_logs WHERE repository_id = ?
                ORDER BY created_at DESC, id DESC LIMIT ?
                """,
                (repository_id, limit),
            ).fetchall()
        finally:
            conn.close()
        return [ExtractionLog.model_validate(_decode_row(row, ("details",))) for row in rows]

    # ========================================================================
    # Statistics
    # ========================================================================

    def get_stats(self, repository_id: str) -> dict[str, Any]:
        """Row counts per knowledge table plus pattern totals."""
        conn = self._get_connection()
        try:
            counts = {
                table: conn.execute(
                    f"SELECT COUNT(*) FROM {table} WHERE repository_id = ?", (repository_id,)
                ).fetchone()[0]
                for table in _KNOWLEDGE_TABLES
            }
            pattern_row = conn.execute(
                """
                SELECT COALESCE(SUM(is_standard), 0) AS standard, COALESCE(SUM(frequency), 0) AS occurrences
                FROM code_patterns WHERE repository_id = ?
                """,
                (repository_id,),
            ).fetchone()
            cache_entries = conn.execute(
                "SELECT COUNT(*) FROM context_cache WHERE repository_id = ?", (repository_id,)
            ).fetchone()[0]
        finally:
            conn.close()

        return {
            "framework_fingerprints": counts["framework_fingerprints"],
            "architecture_patterns": counts["architecture_patterns"],
            "domain_models": counts["domain_models"],
            "code_patterns": counts["code_patterns"],
            "api_specifications": counts["api_specifications"],
            "standard_patterns": pattern_row["standard"],
            "total_pattern_occurrences": pattern_row["occurrences"],
            "cached_contexts": cache_entries,
        }

    # ========================================================================
    # Context Cache
    # ========================================================================

    def get_cached_context(self, cache_key: str) -> Optional[dict[str, Any]]:
        """Return an unexpired cached context and bump its access statistics."""
        now = _now()
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT assembled FROM context_cache WHERE cache_key = ? AND expires_at > ?",
                (cache_key, now),
            ).fetchone()
            if row is None:
                return None
            conn.execute(
                """
                UPDATE context_cache SET accessed_at = ?, access_count = access_count + 1
                WHERE cache_key = ?
                """,
                (now, cache_key),
            )
            conn.commit()
            return json.loads(row["assembled"])
        finally:
            conn.close()

    def put_cached_context(
        self,
        cache_key: str,
        repository_id: str,
        assembled: dict[str, Any],
        tokens_used: int,
        quality_score: float,
        expires_at: datetime,
    ) -> None:
        now = _now()
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT INTO context_cache
                (cache_key, repository_id, assembled, tokens_used, quality_score,
                 created_at, expires_at, accessed_at, access_count)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0)
                ON CONFLICT(cache_key) DO UPDATE SET
                    assembled = excluded.assembled,
                    tokens_used = excluded.tokens_used,
                    quality_score = excluded.quality_score,
                    created_at = excluded.created_at,
                    expires_at = excluded.expires_at,
                    accessed_at = excluded.accessed_at,
                    access_count = 0
                """,
                (
                    cache_key,
                    repository_id,
                    json.dumps(assembled, default=str),
                    tokens_used,
                    quality_score,
                    now,
                    expires_at.isoformat(),
                    now,
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def clear_context_cache(self, repository_id: Optional[str] = None) -> int:
        """Delete cached contexts for one repository, or all of them."""
        conn = self._get_connection()
        try:
            if repository_id:
                cursor = conn.execute("DELETE FROM context_cache WHERE repository_id = ?", (repository_id,))
            else:
                cursor = conn.execute("DELETE FROM context_cache")
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()

    def purge_expired_cache(self) -> int:
        conn = self._get_connection()
        try:
            cursor = conn.execute("DELETE FROM context_cache WHERE expires_at <= ?", (_now(),))
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()

    # ========================================================================
    # MCP Tokens
    # ========================================================================

    def save_token(self, token: MCPToken) -> None:
        data = token.model_dump(mode="json")
        data["permissions"] = json.dumps(data["permissions"])
        columns = ", ".join(data)
        placeholders = ", ".join("?" for _ in data)

        conn = self._get_connection()
        try:
            conn.execute(f"INSERT INTO mcp_tokens ({columns}) VALUES ({placeholders})", tuple(data.values()))
            conn.commit()
        finally:
            conn.close()

    def find_token_by_hash(self, token_hash: str) -> Optional[MCPToken]:
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT * FROM mcp_tokens WHERE token_hash = ?", (token_hash,)).fetchone()
        finally:
            conn.close()
        return MCPToken.model_validate(_decode_row(row, ("permissions",))) if row else None

    def touch_token(self, token_id: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute("UPDATE mcp_tokens SET last_used_at = ? WHERE id = ?", (_now(), token_id))
            conn.commit()
        finally:
            conn.close()

    def revoke_token(self, token_id: str) -> bool:
        conn = self._get_connection()
        try:
            cursor = conn.execute("UPDATE mcp_tokens SET is_active = 0 WHERE id = ?", (token_id,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def list_tokens(self, workspace_id: str) -> list[MCPToken]:
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM mcp_tokens WHERE workspace_id = ? ORDER BY created_at DESC",
                (workspace_id,),
            ).fetchall()
        finally:
            conn.close()
        return [MCPToken.model_validate(_decode_row(row, ("permissions",))) for row in rows]

    def delete_expired_tokens(self) -> int:
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                "DELETE FROM mcp_tokens WHERE expires_at IS NOT NULL AND expires_at <= ?", (_now(),)
            )
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()
